from recall_agent.config import ContextOptions
from recall_agent.context.builder import RESPONSE_INSTRUCTIONS, ContextAssembler
from recall_agent.types import ContextFrame, Message, ToolResult


def _frame(**overrides) -> ContextFrame:
    values = {
        "user_message": "How do we deploy?",
        "conversation_history": [],
        "tool_results": [],
    }
    values.update(overrides)
    return ContextFrame(**values)


def test_sections_render_in_fixed_order() -> None:
    frame = _frame(
        conversation_history=[Message(role="user", content="hi there", timestamp=0)],
        tool_results=[
            ToolResult(
                tool="knowledge_base",
                success=True,
                raw_data={},
                formatted="Deployment Guide excerpt",
                execution_time_ms=12.4,
            )
        ],
        memory_context="We talked about blue-green rollouts.",
    )

    prompt = ContextAssembler().build(frame)

    order = [
        prompt.index("## TOOL RESULTS"),
        prompt.index("## MEMORY CONTEXT"),
        prompt.index("## CONVERSATION HISTORY"),
        prompt.index("## CURRENT USER MESSAGE"),
        prompt.index("## INSTRUCTIONS"),
    ]
    assert order == sorted(order)
    assert "### knowledge_base\nDeployment Guide excerpt" in prompt
    assert "**USER**: hi there" in prompt
    assert prompt.endswith(RESPONSE_INSTRUCTIONS)


def test_empty_sections_are_omitted() -> None:
    prompt = ContextAssembler().build(_frame())

    assert "## TOOL RESULTS" not in prompt
    assert "## MEMORY CONTEXT" not in prompt
    assert "## CONVERSATION HISTORY" not in prompt
    assert "## CURRENT USER MESSAGE\n\nHow do we deploy?" in prompt


def test_options_control_history_window_and_metadata() -> None:
    history = [
        Message(role="user" if i % 2 == 0 else "assistant", content=f"turn {i}", timestamp=i)
        for i in range(6)
    ]
    frame = _frame(
        conversation_history=history,
        tool_results=[
            ToolResult(
                tool="memory_search",
                success=False,
                raw_data=None,
                formatted="Error executing memory_search: boom",
                execution_time_ms=3.0,
            )
        ],
    )
    options = ContextOptions(
        max_history_length=2, include_timestamps=False, include_tool_metadata=True
    )

    prompt = ContextAssembler(options).build(frame)

    assert "turn 3" not in prompt
    assert "**USER**: turn 4\n\n**ASSISTANT**: turn 5" in prompt
    assert "Status: Failed" in prompt
    assert "Execution time: 3ms" in prompt


def test_timestamps_prefix_history_lines() -> None:
    frame = _frame(
        conversation_history=[Message(role="assistant", content="hello", timestamp=0)]
    )

    prompt = ContextAssembler().build(frame)

    line = next(line for line in prompt.splitlines() if "**ASSISTANT**" in line)
    assert line.startswith("[") and line.endswith("] **ASSISTANT**: hello")


def test_clarification_and_routing_prompts() -> None:
    assembler = ContextAssembler()

    clarification = assembler.build_clarification_prompt("fix", ["What broke?", "Where?"])
    assert 'User message: "fix"' in clarification
    assert "1. What broke?\n2. Where?" in clarification

    routing = assembler.build_routing_prompt(
        "hello", [{"name": "memory_search", "description": "search memory"}]
    )
    assert "- **memory_search**: search memory" in routing
    assert '"requires_clarification"' in routing
