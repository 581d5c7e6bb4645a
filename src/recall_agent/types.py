"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

Role = Literal["user", "assistant", "system"]

Intent = Literal[
    "knowledge_retrieval",
    "memory_access",
    "clarification_needed",
    "conversation",
    "multi_tool",
]


@dataclass(slots=True, frozen=True)
class Message:
    """One turn of the session history."""

    role: Role
    content: str
    timestamp: int


@dataclass(slots=True, frozen=True)
class ToolResult:
    """Outcome of a single tool invocation."""

    tool: str
    success: bool
    raw_data: Any
    formatted: str
    execution_time_ms: float


@dataclass(slots=True, frozen=True)
class ToolInvocation:
    """A tool name paired with the payload it should be called with."""

    name: str
    payload: dict[str, Any]


@dataclass(slots=True)
class RoutingDecision:
    """The router's judgment of how a message should be handled."""

    intent: Intent
    tools: list[str]
    requires_clarification: bool
    confidence: float
    reasoning: str


@dataclass(slots=True)
class ContextFrame:
    """Everything the synthesizer needs for one pipeline run."""

    user_message: str
    conversation_history: list[Message]
    tool_results: list[ToolResult]
    memory_context: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class MemoryEntry:
    """A persisted user/assistant exchange."""

    id: str
    timestamp: int
    user_message: str
    assistant_response: str
    topics: tuple[str, ...]
    summary: str


@dataclass(slots=True, frozen=True)
class MemorySearchHit:
    """A memory entry with its keyword relevance score."""

    entry: MemoryEntry
    relevance: float


@dataclass(slots=True)
class AgentResponse:
    """Final reply produced by a synthesizer."""

    content: str
    tools_used: list[str]
    confidence: float
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class PipelineResult:
    """Terminal artifact of `Orchestrator.process_message`."""

    response: AgentResponse
    routing: RoutingDecision
    tool_results: list[ToolResult]
    processing_time_ms: float
    trace_id: str | None = None


@dataclass(slots=True)
class ToolTrace:
    """Trace record for an executed tool call."""

    name: str
    input_payload: dict[str, Any]
    output_preview: str
    latency_ms: float
    success: bool = True
