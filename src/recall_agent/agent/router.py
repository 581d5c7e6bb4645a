"""Rule-based intent classification and per-tool input extraction."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, Field

from recall_agent.agent.llm import message_text
from recall_agent.agent.registry import ToolRegistry
from recall_agent.agent.tools import CLARIFICATION_CHECK, KNOWLEDGE_BASE, MEMORY_SEARCH
from recall_agent.config import RouterConfig
from recall_agent.context.builder import ContextAssembler
from recall_agent.types import RoutingDecision, ToolInvocation

logger = logging.getLogger(__name__)

_MEMORY_PATTERNS = (
    re.compile(r"\b(remember|recall|last time|previously|before|earlier|past|history)\b"),
    re.compile(r"\b(we (discussed|talked|mentioned))\b"),
    re.compile(r"\b(you (said|told|mentioned))\b"),
    re.compile(r"\b(what did (we|i|you))\b"),
    re.compile(r"\b(ago|last week|yesterday|last month)\b"),
)

_KNOWLEDGE_PATTERNS = (
    re.compile(r"\b(documentation|docs|guide|how to|tutorial)\b"),
    re.compile(r"\b(what is|explain|describe|define)\b"),
    re.compile(r"\b(how does|how do|how can)\b"),
    re.compile(r"\b(best practice|recommended|standard)\b"),
    re.compile(r"\b(process|procedure|workflow|steps|flow)\b"),
    re.compile(r"\b(authentication|authorization|security)\b"),
    re.compile(r"\b(testing|migration|configuration|infrastructure)\b"),
)

_VAGUE_PATTERNS = (
    re.compile(r"^(help|fix|change|update)\s*$"),
    re.compile(r"^\s*\?\s*$"),
    re.compile(r"^what\s*$"),
    re.compile(r"^how\s*$"),
)

_RELATIVE_TIME = re.compile(r"(\d+)\s*(day|week|month)s?\s*ago", re.IGNORECASE)
_LAST_WEEK = re.compile(r"last week", re.IGNORECASE)
_YESTERDAY = re.compile(r"yesterday", re.IGNORECASE)
_UNIT_DAYS = {"day": 1, "week": 7, "month": 30}


@dataclass(slots=True, frozen=True)
class MessageSignals:
    """Pattern matches computed once per message and shared by every rule."""

    too_vague: bool
    very_short: bool
    has_question_mark: bool
    needs_memory: bool
    needs_knowledge: bool

    @classmethod
    def from_message(cls, message: str) -> "MessageSignals":
        lower = message.lower()
        return cls(
            too_vague=any(p.search(lower) for p in _VAGUE_PATTERNS),
            very_short=len(message.split()) < 3,
            has_question_mark="?" in message,
            needs_memory=any(p.search(lower) for p in _MEMORY_PATTERNS),
            needs_knowledge=any(p.search(lower) for p in _KNOWLEDGE_PATTERNS),
        )


@dataclass(slots=True, frozen=True)
class RoutingRule:
    """One row of the routing decision table."""

    name: str
    predicate: Callable[[MessageSignals], bool]
    build: Callable[[ToolRegistry], RoutingDecision]


def _available(registry: ToolRegistry, *names: str) -> list[str]:
    return [name for name in names if registry.has(name)]


def _clarification(registry: ToolRegistry) -> RoutingDecision:
    # Not gated on registration: a missing clarification tool shows up as a
    # failed tool result.
    return RoutingDecision(
        intent="clarification_needed",
        tools=[CLARIFICATION_CHECK],
        requires_clarification=True,
        confidence=0.9,
        reasoning="Message is too vague or short to determine intent",
    )


def _multi_tool(registry: ToolRegistry) -> RoutingDecision:
    return RoutingDecision(
        intent="multi_tool",
        tools=_available(registry, MEMORY_SEARCH, KNOWLEDGE_BASE),
        requires_clarification=False,
        confidence=0.8,
        reasoning="Message requires both memory context and knowledge base lookup",
    )


def _memory_access(registry: ToolRegistry) -> RoutingDecision:
    return RoutingDecision(
        intent="memory_access",
        tools=_available(registry, MEMORY_SEARCH),
        requires_clarification=False,
        confidence=0.85,
        reasoning="Message references past conversations or needs historical context",
    )


def _knowledge_retrieval(registry: ToolRegistry) -> RoutingDecision:
    return RoutingDecision(
        intent="knowledge_retrieval",
        tools=_available(registry, KNOWLEDGE_BASE),
        requires_clarification=False,
        confidence=0.85,
        reasoning="Message requires documentation or knowledge base information",
    )


def _conversation(registry: ToolRegistry) -> RoutingDecision:
    return RoutingDecision(
        intent="conversation",
        tools=[],
        requires_clarification=False,
        confidence=0.9,
        reasoning="Standard conversational message, no special tools needed",
    )


ROUTING_RULES: tuple[RoutingRule, ...] = (
    RoutingRule(
        name="clarification",
        predicate=lambda s: s.too_vague or (s.very_short and not s.has_question_mark),
        build=_clarification,
    ),
    RoutingRule(
        name="multi_tool",
        predicate=lambda s: s.needs_memory and s.needs_knowledge,
        build=_multi_tool,
    ),
    RoutingRule(
        name="memory",
        predicate=lambda s: s.needs_memory,
        build=_memory_access,
    ),
    RoutingRule(
        name="knowledge",
        predicate=lambda s: s.needs_knowledge,
        build=_knowledge_retrieval,
    ),
    RoutingRule(name="conversation", predicate=lambda s: True, build=_conversation),
)


class _RoutingPayload(BaseModel):
    intent: Literal[
        "knowledge_retrieval",
        "memory_access",
        "clarification_needed",
        "conversation",
        "multi_tool",
    ]
    tools: list[str] = Field(default_factory=list)
    requires_clarification: bool = False
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""


class RouterAgent:
    """Classifies a message into an intent and the tools needed to answer it.

    Classification walks `rules` top to bottom and the first matching row
    wins. When an `llm` is supplied the router asks it for a JSON routing
    decision first and falls back to the rule table if the call or the parse
    fails.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        *,
        config: RouterConfig | None = None,
        llm: Any | None = None,
        assembler: ContextAssembler | None = None,
        rules: Sequence[RoutingRule] = ROUTING_RULES,
    ) -> None:
        self.registry = registry
        self.config = config or RouterConfig()
        self.llm = llm
        self.assembler = assembler or ContextAssembler()
        self.rules = tuple(rules)

    def classify(self, user_message: str) -> RoutingDecision:
        if self.llm is not None:
            try:
                return self._classify_with_llm(user_message)
            except Exception as exc:
                logger.warning("LLM routing failed, using rule table: %s", exc)
        return self.classify_with_rules(user_message)

    async def aclassify(self, user_message: str) -> RoutingDecision:
        """Async `classify`: the LLM call is awaited instead of blocking the loop."""
        if self.llm is not None:
            try:
                return await self._aclassify_with_llm(user_message)
            except Exception as exc:
                logger.warning("LLM routing failed, using rule table: %s", exc)
        return self.classify_with_rules(user_message)

    def classify_with_rules(self, user_message: str) -> RoutingDecision:
        signals = MessageSignals.from_message(user_message)
        for rule in self.rules:
            if rule.predicate(signals):
                logger.debug("Routing rule %s matched", rule.name)
                return rule.build(self.registry)
        return _conversation(self.registry)

    def extract_tool_inputs(
        self, user_message: str, tools: Sequence[str]
    ) -> list[ToolInvocation]:
        invocations: list[ToolInvocation] = []
        for name in tools:
            if name == MEMORY_SEARCH:
                payload: dict[str, Any] = {
                    "query": user_message,
                    "limit": self.config.memory_search_limit,
                    "timeframe_days": parse_timeframe_days(user_message),
                }
            elif name == KNOWLEDGE_BASE:
                payload = {
                    "query": user_message,
                    "category": self._match_category(user_message),
                    "limit": self.config.knowledge_limit,
                }
            elif name == CLARIFICATION_CHECK:
                payload = {"user_message": user_message, "conversation_history": []}
            else:
                payload = {"query": user_message}
            invocations.append(ToolInvocation(name=name, payload=payload))
        return invocations

    def _match_category(self, user_message: str) -> str | None:
        lower = user_message.lower()
        for category in self.config.knowledge_categories:
            if category in lower:
                return category
        return None

    def _routing_prompt(self, user_message: str) -> str:
        return self.assembler.build_routing_prompt(
            user_message, self.registry.descriptions()
        )

    def _classify_with_llm(self, user_message: str) -> RoutingDecision:
        reply = self.llm.invoke(self._routing_prompt(user_message))
        return self._parse_llm_reply(message_text(reply))

    async def _aclassify_with_llm(self, user_message: str) -> RoutingDecision:
        reply = await self.llm.ainvoke(self._routing_prompt(user_message))
        return self._parse_llm_reply(message_text(reply))

    def _parse_llm_reply(self, reply: str) -> RoutingDecision:
        match = re.search(r"\{.*\}", reply, flags=re.DOTALL)
        if match is None:
            raise ValueError("LLM routing reply contained no JSON object")
        payload = _RoutingPayload.model_validate_json(match.group(0))

        tools: list[str] = []
        for name in payload.tools:
            if self.registry.has(name) and name not in tools:
                tools.append(name)
        return RoutingDecision(
            intent=payload.intent,
            tools=tools,
            requires_clarification=payload.requires_clarification,
            confidence=payload.confidence,
            reasoning=payload.reasoning,
        )


def parse_timeframe_days(user_message: str) -> int | None:
    """Translate relative-time phrases such as "3 weeks ago" into a day count."""
    match = _RELATIVE_TIME.search(user_message)
    if match:
        days = int(match.group(1)) * _UNIT_DAYS[match.group(2).lower()]
        return days or None
    if _LAST_WEEK.search(user_message):
        return 7
    if _YESTERDAY.search(user_message):
        return 1
    return None
