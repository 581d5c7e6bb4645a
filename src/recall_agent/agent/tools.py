"""Built-in tool implementations for the conversational pipeline."""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, Field

from recall_agent.agent.registry import ToolRegistry, ToolSpec
from recall_agent.memory.store import MemoryStore, format_date
from recall_agent.retrieval.knowledge import KnowledgeBase

MEMORY_SEARCH = "memory_search"
KNOWLEDGE_BASE = "knowledge_base"
CLARIFICATION_CHECK = "clarification_check"

BUILTIN_TOOL_NAMES = (MEMORY_SEARCH, KNOWLEDGE_BASE, CLARIFICATION_CHECK)


class MemorySearchInput(BaseModel):
    query: str = Field(min_length=1)
    limit: int = Field(default=5, ge=1, le=50)
    timeframe_days: int | None = Field(default=None, ge=1)


class KnowledgeSearchInput(BaseModel):
    query: str = Field(min_length=1)
    category: str | None = None
    limit: int = Field(default=3, ge=1, le=10)


class ClarificationInput(BaseModel):
    user_message: str
    conversation_history: list[dict[str, Any]] = Field(default_factory=list)


_VAGUE_REFERENCE_PATTERNS = (
    re.compile(r"\b(it|this|that|these|those)\b(?!\s+is\s+(a|an|the))"),
    re.compile(r"\bthe thing\b"),
    re.compile(r"\bstuff\b"),
    re.compile(r"\bwhatever\b"),
)

_INCOMPLETE_PATTERNS = (
    re.compile(r"^(how|what|why|when|where)\s*\?*$"),
    re.compile(r"\bhelp\s*(me)?\s*$"),
    re.compile(r"\bfix\s*(it)?\s*$"),
    re.compile(r"\bchange\s*(it)?\s*$"),
)

_AMBIGUOUS_TERMS = ("better", "improve", "optimize", "fix", "update", "change")


def register_builtin_tools(
    registry: ToolRegistry,
    memory: MemoryStore,
    *,
    knowledge: KnowledgeBase | None = None,
) -> None:
    """Register the default tool set used by the orchestrator.

    Tools:
    - `memory_search`: keyword search over past conversations.
    - `knowledge_base`: keyword search over reference documentation.
    - `clarification_check`: vagueness heuristics with follow-up questions.
    """

    kb = knowledge if knowledge is not None else KnowledgeBase.with_defaults()

    def _memory_search(input_data: MemorySearchInput) -> dict[str, Any]:
        hits = memory.search_memory(
            input_data.query,
            limit=input_data.limit,
            timeframe_days=input_data.timeframe_days,
        )
        return {
            "found": bool(hits),
            "count": len(hits),
            "results": [
                {
                    "date": format_date(hit.entry.timestamp),
                    "summary": hit.entry.summary,
                    "user_message": hit.entry.user_message,
                    "assistant_response": hit.entry.assistant_response,
                    "relevance": round(hit.relevance, 2),
                }
                for hit in hits
            ],
        }

    def _knowledge_search(input_data: KnowledgeSearchInput) -> dict[str, Any]:
        hits = kb.search(
            input_data.query,
            category=input_data.category,
            limit=input_data.limit,
        )
        return {
            "found": bool(hits),
            "count": len(hits),
            "documents": [
                {
                    "id": hit.document.id,
                    "title": hit.document.title,
                    "content": hit.document.content,
                    "category": hit.document.category,
                    "relevance": round(hit.relevance, 2),
                    "last_updated": hit.document.last_updated,
                }
                for hit in hits
            ],
        }

    registry.register(
        ToolSpec(
            name=MEMORY_SEARCH,
            description=(
                "Search through past conversations and interactions to find relevant "
                "context. Use this when the user references previous discussions or "
                "needs historical context."
            ),
            args_schema=MemorySearchInput,
            handler=_memory_search,
            formatter=format_memory_output,
            tags=["memory"],
        )
    )
    registry.register(
        ToolSpec(
            name=KNOWLEDGE_BASE,
            description=(
                "Search the internal knowledge base for documentation, guides, and "
                "technical information about processes, APIs, architecture, and best "
                "practices."
            ),
            args_schema=KnowledgeSearchInput,
            handler=_knowledge_search,
            formatter=format_knowledge_output,
            tags=["retrieval", "documentation"],
        )
    )
    registry.register(
        ToolSpec(
            name=CLARIFICATION_CHECK,
            description=(
                "Analyze the user message to determine if clarification is needed "
                "before proceeding. Use this when the request is ambiguous, incomplete, "
                "or could have multiple interpretations."
            ),
            args_schema=ClarificationInput,
            handler=check_clarification,
            formatter=format_clarification_output,
            tags=["dialogue"],
        )
    )


def check_clarification(input_data: ClarificationInput) -> dict[str, Any]:
    message = input_data.user_message
    lower = message.lower()

    is_very_short = len(message.split()) < 4
    has_vague_reference = any(p.search(lower) for p in _VAGUE_REFERENCE_PATTERNS)
    is_incomplete = any(p.search(lower) for p in _INCOMPLETE_PATTERNS)
    has_ambiguous_term = any(term in lower for term in _AMBIGUOUS_TERMS)

    needs_clarification = False
    ambiguity_type: str | None = None
    questions: list[str] = []
    confidence = 0.9

    if is_incomplete or (is_very_short and "?" not in lower):
        needs_clarification = True
        ambiguity_type = "incomplete"
        questions.append("Could you provide more details about what you need help with?")
        questions.append("What specific aspect would you like me to focus on?")
        confidence = 0.85
    elif has_vague_reference:
        needs_clarification = True
        ambiguity_type = "vague"
        questions.append("Could you clarify what you are referring to?")
        questions.append("Can you be more specific about which component or feature?")
        confidence = 0.8
    elif has_ambiguous_term and is_very_short:
        needs_clarification = True
        ambiguity_type = "multiple_interpretations"
        if "improve" in lower or "optimize" in lower:
            questions.append(
                "Are you looking to improve performance, readability, or functionality?"
            )
        if "fix" in lower:
            questions.append("What specific issue or error are you experiencing?")
        if "update" in lower or "change" in lower:
            questions.append("What changes would you like to make?")
        confidence = 0.75

    if needs_clarification and not questions:
        questions.append("Could you provide more context about your request?")

    return {
        "needs_clarification": needs_clarification,
        "ambiguity_type": ambiguity_type,
        "suggested_questions": questions,
        "confidence": confidence,
    }


def format_memory_output(raw: dict[str, Any]) -> str:
    if not raw["found"]:
        return "No relevant past conversations found."

    blocks = [
        f"**Previous conversation ({item['date']}):**\n"
        f"Summary: {item['summary']}\n"
        f'User asked: "{item["user_message"]}"\n'
        f'Response: "{item["assistant_response"]}"'
        for item in raw["results"]
    ]
    return f"Found {raw['count']} relevant conversation(s):\n\n" + "\n\n".join(blocks)


def format_knowledge_output(raw: dict[str, Any]) -> str:
    if not raw["found"]:
        return "No relevant documentation found in the knowledge base."

    blocks = [
        f"**{doc['title']}** ({doc['category']})\n"
        f"Last updated: {doc['last_updated']}\n\n"
        f"{doc['content']}"
        for doc in raw["documents"]
    ]
    return f"Found {raw['count']} relevant document(s):\n\n" + "\n\n---\n\n".join(blocks)


def format_clarification_output(raw: dict[str, Any]) -> str:
    if not raw["needs_clarification"]:
        return "The request is clear and can be processed."

    questions = "\n".join(
        f"{idx}. {question}"
        for idx, question in enumerate(raw["suggested_questions"], start=1)
    )
    return (
        f"**Clarification Needed** ({raw['ambiguity_type']})\n\n"
        f"Suggested questions to ask:\n{questions}"
    )
