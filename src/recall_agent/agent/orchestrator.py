"""End-to-end pipeline: route, dispatch tools, synthesize, remember."""

from __future__ import annotations

import logging

from recall_agent.agent.registry import ToolRegistry
from recall_agent.agent.router import RouterAgent
from recall_agent.agent.synthesizer import ResponseSynthesizer, TemplateSynthesizer
from recall_agent.agent.tools import (
    BUILTIN_TOOL_NAMES,
    KNOWLEDGE_BASE,
    MEMORY_SEARCH,
    register_builtin_tools,
)
from recall_agent.config import PipelineConfig
from recall_agent.errors import DuplicateToolError, InvalidMessageError
from recall_agent.memory.store import MemoryStore
from recall_agent.obs.tracing import Timer, TraceStore
from recall_agent.retrieval.knowledge import KnowledgeBase
from recall_agent.types import (
    ContextFrame,
    Message,
    PipelineResult,
    ToolResult,
    ToolTrace,
)

logger = logging.getLogger(__name__)

_TOOL_TOPICS: dict[str, tuple[str, ...]] = {
    MEMORY_SEARCH: ("memory", "history"),
    KNOWLEDGE_BASE: ("documentation", "knowledge"),
}

_KEYWORD_TOPICS: tuple[tuple[str, str], ...] = (
    ("deploy", "deployment"),
    ("database", "database"),
    ("api", "api"),
    ("auth", "authentication"),
    ("test", "testing"),
    ("security", "security"),
    ("monitor", "monitoring"),
)


class Orchestrator:
    """Coordinates one conversational turn across the pipeline stages.

    Stages run strictly in order: classify, fan out to the selected tools,
    assemble a context frame, synthesize, then record the exchange. Tool and
    synthesis failures are contained and show up in the result. Only a
    duplicate tool registration or an unusable message raises.

    Runs against one instance must not interleave; callers serialize them.
    """

    def __init__(
        self,
        *,
        registry: ToolRegistry | None = None,
        memory: MemoryStore | None = None,
        router: RouterAgent | None = None,
        synthesizer: ResponseSynthesizer | None = None,
        config: PipelineConfig | None = None,
        trace_store: TraceStore | None = None,
        knowledge: KnowledgeBase | None = None,
    ) -> None:
        self.registry = registry or ToolRegistry()
        self.memory = memory or MemoryStore()
        self.router = router or RouterAgent(self.registry)
        self.synthesizer = synthesizer or TemplateSynthesizer()
        self.config = config or PipelineConfig()
        self.trace_store = trace_store
        self.knowledge = knowledge
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        if self._initialized:
            return

        preexisting = set(self.registry.names())
        try:
            register_builtin_tools(self.registry, self.memory, knowledge=self.knowledge)
        except DuplicateToolError:
            for name in BUILTIN_TOOL_NAMES:
                if name not in preexisting:
                    self.registry.unregister(name)
            raise

        self._initialized = True
        logger.info("Pipeline initialized with tools: %s", ", ".join(self.registry.names()))

    async def process_message(self, user_message: str) -> PipelineResult:
        if not isinstance(user_message, str) or not user_message.strip():
            raise InvalidMessageError("User message must be a non-empty string")

        self.initialize()

        observed: list[ToolTrace] = []
        with Timer() as timer:
            self.memory.add_to_session(
                Message(role="user", content=user_message, timestamp=self.memory.now())
            )

            routing = await self.router.aclassify(user_message)
            logger.debug(
                "Routed message to %s (tools=%s, confidence=%.2f)",
                routing.intent,
                routing.tools,
                routing.confidence,
            )

            tool_results: list[ToolResult] = []
            if routing.tools:
                invocations = self.router.extract_tool_inputs(user_message, routing.tools)
                tool_results = await self.registry.execute_multiple(
                    invocations, observer=observed.append
                )
                for result in tool_results:
                    logger.debug(
                        "Tool %s finished in %.1f ms (success=%s)",
                        result.tool,
                        result.execution_time_ms,
                        result.success,
                    )

            frame = ContextFrame(
                user_message=user_message,
                conversation_history=self.memory.get_session_history(
                    self.config.max_history_length
                ),
                tool_results=tool_results,
                metadata={"intent": routing.intent},
            )
            response = await self.synthesizer.agenerate(frame)

            if self.config.store_interactions:
                self.memory.store_interaction(
                    user_message,
                    response.content,
                    extract_topics(user_message, tool_results),
                )
                self.memory.add_to_session(
                    Message(
                        role="assistant",
                        content=response.content,
                        timestamp=self.memory.now(),
                    )
                )

        trace_id = None
        if self.trace_store is not None:
            record = self.trace_store.create_record(
                message=user_message,
                response=response.content,
                intent=routing.intent,
                tools=[result.tool for result in tool_results],
                tool_traces=observed,
                source_snippets=[r.formatted for r in tool_results if r.success],
                confidence=response.confidence,
                latency_ms=timer.elapsed_ms,
            )
            trace_id = record.trace_id

        return PipelineResult(
            response=response,
            routing=routing,
            tool_results=tool_results,
            processing_time_ms=timer.elapsed_ms,
            trace_id=trace_id,
        )

    def get_session_history(self) -> list[Message]:
        return self.memory.get_session_history()

    def clear_session(self) -> None:
        self.memory.clear_session()

    def get_available_tools(self) -> list[dict[str, str]]:
        self.initialize()
        return self.registry.descriptions()

    def dispose(self) -> None:
        if self._initialized:
            for name in BUILTIN_TOOL_NAMES:
                self.registry.unregister(name)
            self._initialized = False
        self.memory.clear_session()
        self.memory.close()


def extract_topics(user_message: str, tool_results: list[ToolResult]) -> list[str]:
    """Tool-implied topics first, then keyword topics, without duplicates."""
    topics: list[str] = []
    for result in tool_results:
        for topic in _TOOL_TOPICS.get(result.tool, ()):
            if topic not in topics:
                topics.append(topic)

    lower = user_message.lower()
    for keyword, topic in _KEYWORD_TOPICS:
        if keyword in lower and topic not in topics:
            topics.append(topic)
    return topics
