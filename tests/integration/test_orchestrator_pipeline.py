import asyncio

import pytest
from pydantic import BaseModel

from recall_agent.agent.orchestrator import Orchestrator, extract_topics
from recall_agent.agent.registry import ToolRegistry, ToolSpec
from recall_agent.agent.synthesizer import GREETING_REPLY
from recall_agent.config import PipelineConfig
from recall_agent.errors import DuplicateToolError, InvalidMessageError
from recall_agent.memory.store import MemoryStore
from recall_agent.obs.tracing import TraceStore
from recall_agent.types import MemoryEntry, ToolResult

_DAY_MS = 24 * 60 * 60 * 1000
_NOW = 1_700_000_000_000


def _memory_with_deployment_entry() -> MemoryStore:
    entry = MemoryEntry(
        id="mem_seed",
        timestamp=_NOW - 5 * _DAY_MS,
        user_message="Can you walk me through the deployment rollout?",
        assistant_response="We use blue-green deployment with a 30 minute rollback window.",
        topics=("deployment",),
        summary="Can you walk me through the deployment rollout? We use...",
    )
    return MemoryStore(clock=lambda: _NOW, entries=[entry])


def test_greeting_is_a_plain_conversation_turn() -> None:
    orchestrator = Orchestrator()

    result = asyncio.run(orchestrator.process_message("Hello, how are you?"))

    assert result.routing.intent == "conversation"
    assert result.tool_results == []
    assert result.response.content == GREETING_REPLY
    assert result.processing_time_ms >= 0.0


def test_memory_question_searches_last_week() -> None:
    trace_store = TraceStore()
    orchestrator = Orchestrator(memory=_memory_with_deployment_entry(), trace_store=trace_store)

    result = asyncio.run(
        orchestrator.process_message("What did we discuss about deployment last week?")
    )

    assert result.routing.intent == "memory_access"
    assert [r.tool for r in result.tool_results] == ["memory_search"]
    assert result.tool_results[0].raw_data["count"] == 1
    assert "Based on our previous conversations" in result.response.content

    record = trace_store.get(result.trace_id)
    assert record.tool_traces[0].input_payload["timeframe_days"] == 7
    assert record.groundedness is not None


def test_vague_message_asks_for_clarification() -> None:
    orchestrator = Orchestrator()

    result = asyncio.run(orchestrator.process_message("fix"))

    assert result.routing.requires_clarification
    assert result.tool_results[0].tool == "clarification_check"
    assert result.response.content == (
        "I want to make sure I help you effectively. "
        "Could you provide more details about what you need help with?"
    )


class _Query(BaseModel):
    query: str


def test_duplicate_tool_aborts_initialization() -> None:
    registry = ToolRegistry()
    registry.register(
        ToolSpec(
            name="knowledge_base",
            description="custom docs",
            args_schema=_Query,
            handler=lambda data: data.query,
        )
    )
    orchestrator = Orchestrator(registry=registry)

    with pytest.raises(DuplicateToolError):
        orchestrator.initialize()

    assert not orchestrator.initialized
    assert registry.names() == ["knowledge_base"]
    with pytest.raises(DuplicateToolError):
        asyncio.run(orchestrator.process_message("Hello there friend"))


def test_interactions_are_stored_with_topics() -> None:
    memory = _memory_with_deployment_entry()
    orchestrator = Orchestrator(memory=memory)

    asyncio.run(orchestrator.process_message("What did we discuss about deployment last week?"))

    stored = memory.entries()[-1]
    assert stored.user_message == "What did we discuss about deployment last week?"
    assert stored.topics == ("memory", "history", "deployment")
    assert [m.role for m in orchestrator.get_session_history()] == ["user", "assistant"]


def test_storage_can_be_disabled() -> None:
    memory = MemoryStore()
    orchestrator = Orchestrator(memory=memory, config=PipelineConfig(store_interactions=False))

    asyncio.run(orchestrator.process_message("Hello, how are you?"))

    assert memory.entries() == []
    assert [m.role for m in orchestrator.get_session_history()] == ["user"]


@pytest.mark.parametrize("message", ["", "   ", None, 42])
def test_invalid_messages_are_rejected(message) -> None:
    with pytest.raises(InvalidMessageError):
        asyncio.run(Orchestrator().process_message(message))


def test_session_and_tool_listing_are_stable() -> None:
    orchestrator = Orchestrator()

    first = orchestrator.get_available_tools()
    orchestrator.initialize()
    assert orchestrator.get_available_tools() == first
    assert [tool["name"] for tool in first] == [
        "memory_search",
        "knowledge_base",
        "clarification_check",
    ]

    asyncio.run(orchestrator.process_message("Hello, how are you?"))
    orchestrator.clear_session()
    assert orchestrator.get_session_history() == []


def test_dispose_unregisters_builtins() -> None:
    registry = ToolRegistry()
    orchestrator = Orchestrator(registry=registry)
    orchestrator.initialize()

    orchestrator.dispose()

    assert registry.names() == []
    assert not orchestrator.initialized
    orchestrator.initialize()
    assert len(registry.names()) == 3


def test_extract_topics_orders_tool_topics_first() -> None:
    results = [
        ToolResult(
            tool="knowledge_base",
            success=True,
            raw_data={},
            formatted="",
            execution_time_ms=0.0,
        )
    ]

    topics = extract_topics("How do I deploy the API and test auth?", results)

    assert topics == [
        "documentation",
        "knowledge",
        "deployment",
        "api",
        "authentication",
        "testing",
    ]


def test_trace_summary_counts_intents() -> None:
    trace_store = TraceStore()
    orchestrator = Orchestrator(trace_store=trace_store)

    asyncio.run(orchestrator.process_message("Hello, how are you?"))
    asyncio.run(orchestrator.process_message("fix"))

    summary = trace_store.summary()
    assert summary["total_requests"] == 2
    assert summary["intent_counts"] == {"conversation": 1, "clarification_needed": 1}
    assert summary["tool_failures"] == 0
