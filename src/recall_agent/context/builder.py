"""Prompt and context assembly for downstream text generation."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from recall_agent.config import ContextOptions
from recall_agent.types import ContextFrame, Message, ToolResult

SYSTEM_PREAMBLE = (
    "You are an intelligent assistant with access to various tools and information "
    "sources. Your goal is to provide helpful, accurate, and contextually relevant "
    "responses based on the information provided below."
)

RESPONSE_INSTRUCTIONS = """
## INSTRUCTIONS

Using the context provided above (tool results, memory, and conversation history), generate a helpful and accurate response to the user's current message.

Guidelines:
- Ground every statement in the tool results, memory, or conversation history above
- Maintain consistency with previous conversations
- Be concise but thorough
- If information is incomplete or uncertain, acknowledge it
- Do not make up information that is not supported by the context
""".strip()


class ContextAssembler:
    """Renders a `ContextFrame` into a single prompt document.

    Sections appear in a fixed order: preamble, tool results, memory context,
    conversation history, the current user message, and closing instructions.
    Empty sections are omitted.
    """

    def __init__(self, options: ContextOptions | None = None) -> None:
        self.options = options or ContextOptions()

    def build(self, frame: ContextFrame, options: ContextOptions | None = None) -> str:
        opts = options or self.options
        sections = [SYSTEM_PREAMBLE]

        if frame.tool_results:
            sections.append(_tool_results_section(frame.tool_results, opts))
        if frame.memory_context:
            sections.append(f"## MEMORY CONTEXT\n\n{frame.memory_context}")
        if frame.conversation_history:
            sections.append(_history_section(frame.conversation_history, opts))

        sections.append(f"## CURRENT USER MESSAGE\n\n{frame.user_message}")
        sections.append(RESPONSE_INSTRUCTIONS)
        return "\n\n".join(sections)

    def build_clarification_prompt(
        self, user_message: str, suggested_questions: Sequence[str]
    ) -> str:
        questions = "\n".join(
            f"{idx}. {question}" for idx, question in enumerate(suggested_questions, start=1)
        )
        return (
            "The user's message requires clarification before I can provide a complete response.\n\n"
            f'User message: "{user_message}"\n\n'
            f"I need to ask one of these clarifying questions:\n{questions}\n\n"
            "Generate a polite response that:\n"
            "1. Acknowledges what I understood from their message\n"
            "2. Asks the single most relevant clarifying question\n"
            "3. Explains why this information would help me assist them better"
        )

    def build_routing_prompt(
        self, user_message: str, available_tools: Sequence[dict[str, str]]
    ) -> str:
        tool_list = "\n".join(
            f"- **{tool['name']}**: {tool['description']}" for tool in available_tools
        )
        return (
            "Analyze the following user message and determine which tools should be "
            "used to best respond.\n\n"
            f'User message: "{user_message}"\n\n'
            f"Available tools:\n{tool_list or '- (none)'}\n\n"
            "Respond with strict JSON only, no prose, shaped like:\n"
            "{\n"
            '  "intent": "knowledge_retrieval" | "memory_access" | "clarification_needed" '
            '| "conversation" | "multi_tool",\n'
            '  "tools": ["tool_name1", "tool_name2"],\n'
            '  "requires_clarification": true | false,\n'
            '  "confidence": number between 0 and 1,\n'
            '  "reasoning": "brief explanation of your decision"\n'
            "}\n\n"
            "If no tools are needed for a simple conversational response, return an "
            'empty tools array with intent "conversation".'
        )


def _tool_results_section(results: Sequence[ToolResult], opts: ContextOptions) -> str:
    blocks = []
    for result in results:
        block = f"### {result.tool}\n"
        if opts.include_tool_metadata:
            block += f"Status: {'Success' if result.success else 'Failed'}\n"
            block += f"Execution time: {result.execution_time_ms:.0f}ms\n\n"
        block += result.formatted
        blocks.append(block)
    return "## TOOL RESULTS\n\n" + "\n\n".join(blocks)


def _history_section(history: Sequence[Message], opts: ContextOptions) -> str:
    lines = []
    for message in history[-opts.max_history_length :]:
        line = f"**{message.role.upper()}**: {message.content}"
        if opts.include_timestamps:
            stamp = datetime.fromtimestamp(message.timestamp / 1000).strftime("%H:%M:%S")
            line = f"[{stamp}] {line}"
        lines.append(line)
    return "## CONVERSATION HISTORY\n\n" + "\n\n".join(lines)
