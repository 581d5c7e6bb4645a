"""Response synthesis from an assembled context frame.

Two strategies share one contract: `TemplateSynthesizer` composes replies
from fixed sentences and needs nothing external, `DelegatedSynthesizer`
hands the rendered context to a LangChain chat model and falls back to the
template strategy whenever no model is wired in or the call fails.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from langchain_core.prompts import ChatPromptTemplate

from recall_agent.agent.llm import message_text
from recall_agent.agent.tools import CLARIFICATION_CHECK, KNOWLEDGE_BASE, MEMORY_SEARCH
from recall_agent.config import SynthesizerConfig
from recall_agent.context.builder import ContextAssembler
from recall_agent.types import AgentResponse, ContextFrame, ToolResult

logger = logging.getLogger(__name__)

GREETING_REPLY = (
    "Hello! How can I assist you today? I have access to our conversation history "
    "and knowledge base if you need to reference previous discussions or documentation."
)
THANKS_REPLY = "You're welcome! Let me know if you need anything else."
FAREWELL_REPLY = "Goodbye! Feel free to return whenever you need assistance."
DEFAULT_REPLY = (
    "I'm here to help. You can ask me about documentation, reference our past "
    "conversations, or discuss any topic you'd like. What would you like to explore?"
)

_GREETING = re.compile(r"\b(hello|hi|hey)\b")
_FAREWELL = re.compile(r"\b(bye|goodbye)\b")
_KNOWLEDGE_EXCERPT_CHARS = 500

_GENERATOR_SYSTEM_PROMPT = """
You are a conversational assistant answering from retrieved context.

Rules:
1) Ground the answer in the tool results, memory and history you are given.
2) If the context does not contain the answer, say so instead of guessing.
3) Keep answers concise and conversational.
""".strip()


class ResponseSynthesizer(Protocol):
    def generate(self, frame: ContextFrame) -> AgentResponse:
        """Turn a context frame into the final reply."""

    async def agenerate(self, frame: ContextFrame) -> AgentResponse:
        """Async `generate`, used by the orchestrator."""


class TemplateSynthesizer:
    """Deterministic synthesizer that never raises for a well-formed frame."""

    def generate(self, frame: ContextFrame) -> AgentResponse:
        tools_used = [result.tool for result in frame.tool_results]
        if not frame.tool_results:
            content = conversational_reply(frame.user_message)
            confidence = 0.8
        else:
            content = self._synthesize_from_tools(frame)
            confidence = calculate_confidence(frame.tool_results)

        return AgentResponse(
            content=content,
            tools_used=tools_used,
            confidence=confidence,
            metadata={
                "generation_method": "template",
                "tool_results_count": len(frame.tool_results),
            },
        )

    async def agenerate(self, frame: ContextFrame) -> AgentResponse:
        return self.generate(frame)

    def _synthesize_from_tools(self, frame: ContextFrame) -> str:
        successful = [r for r in frame.tool_results if r.success]
        failed = [r for r in frame.tool_results if not r.success]
        by_name = {r.tool: r for r in reversed(successful)}

        clarification = by_name.get(CLARIFICATION_CHECK)
        if clarification is not None:
            return clarification_reply(frame.user_message, clarification.raw_data)

        memory = by_name.get(MEMORY_SEARCH)
        knowledge = by_name.get(KNOWLEDGE_BASE)
        parts: list[str] = []

        if memory and knowledge:
            parts.append(
                "I've searched both our previous conversations and the knowledge base to help you."
            )
        elif memory:
            parts.append("Based on our previous conversations, here's what I found:")
        elif knowledge:
            parts.append("Here's what I found in the documentation:")

        if memory is not None:
            results = _field(memory.raw_data, "results") or []
            if _field(memory.raw_data, "found") and results:
                top = results[0]
                parts.append("\n**From our past conversations:**")
                parts.append(
                    f"On {top.get('date', 'an earlier date')}, "
                    f"we discussed: {top.get('summary', '')}"
                )
                parts.append(f"\nKey points: {top.get('assistant_response', '')}")
            else:
                parts.append(
                    "\nI couldn't find relevant information from our previous conversations."
                )

        if knowledge is not None:
            documents = _field(knowledge.raw_data, "documents") or []
            if _field(knowledge.raw_data, "found") and documents:
                top_doc = documents[0]
                parts.append("\n**From the documentation:**")
                parts.append(f"**{top_doc.get('title', 'Untitled')}**")
                parts.append(str(top_doc.get("content", ""))[:_KNOWLEDGE_EXCERPT_CHARS])
            else:
                parts.append("\nI couldn't find relevant documentation in the knowledge base.")

        if failed:
            names = ", ".join(r.tool for r in failed)
            parts.append(f"\n*Note: Some tools encountered issues: {names}*")

        if successful:
            parts.append(
                "\nIs there anything specific from this information you would like me to elaborate on?"
            )
        return "\n".join(parts)


class DelegatedSynthesizer:
    """Synthesizer that delegates generation to a LangChain chat model."""

    def __init__(
        self,
        llm: Any | None = None,
        *,
        config: SynthesizerConfig | None = None,
        assembler: ContextAssembler | None = None,
        fallback: TemplateSynthesizer | None = None,
    ) -> None:
        self.llm = llm
        self.config = config or SynthesizerConfig(strategy="delegated")
        self.assembler = assembler or ContextAssembler()
        self.fallback = fallback or TemplateSynthesizer()
        self._prompt = ChatPromptTemplate.from_messages(
            [("system", _GENERATOR_SYSTEM_PROMPT), ("human", "{context}")]
        )

    def generate(self, frame: ContextFrame) -> AgentResponse:
        if self.llm is None:
            return self._fall_back(frame, "no text generator configured")

        try:
            chain = self._prompt | self.llm
            reply = message_text(chain.invoke({"context": self._render(frame)})).strip()
        except Exception as exc:
            logger.warning("Delegated generation failed, using templates: %s", exc)
            return self._fall_back(frame, f"generator error: {exc}")
        return self._finish(frame, reply)

    async def agenerate(self, frame: ContextFrame) -> AgentResponse:
        if self.llm is None:
            return self._fall_back(frame, "no text generator configured")

        try:
            chain = self._prompt | self.llm
            reply = await chain.ainvoke({"context": self._render(frame)})
            reply = message_text(reply).strip()
        except Exception as exc:
            logger.warning("Delegated generation failed, using templates: %s", exc)
            return self._fall_back(frame, f"generator error: {exc}")
        return self._finish(frame, reply)

    def _finish(self, frame: ContextFrame, reply: str) -> AgentResponse:
        if not reply:
            return self._fall_back(frame, "generator returned an empty reply")

        confidence = (
            calculate_confidence(frame.tool_results) if frame.tool_results else 0.8
        )
        return AgentResponse(
            content=reply[: self.config.max_response_length],
            tools_used=[result.tool for result in frame.tool_results],
            confidence=confidence,
            metadata={
                "generation_method": "llm",
                "tool_results_count": len(frame.tool_results),
            },
        )

    def _render(self, frame: ContextFrame) -> str:
        for result in frame.tool_results:
            if result.tool != CLARIFICATION_CHECK or not result.success:
                continue
            if _field(result.raw_data, "needs_clarification"):
                questions = _field(result.raw_data, "suggested_questions") or []
                return self.assembler.build_clarification_prompt(
                    frame.user_message, questions
                )
        return self.assembler.build(frame)

    def _fall_back(self, frame: ContextFrame, reason: str) -> AgentResponse:
        response = self.fallback.generate(frame)
        response.metadata["fallback_reason"] = reason
        return response


def create_synthesizer(
    config: SynthesizerConfig | None = None,
    *,
    llm: Any | None = None,
    assembler: ContextAssembler | None = None,
) -> ResponseSynthesizer:
    config = config or SynthesizerConfig()
    if config.strategy == "delegated":
        return DelegatedSynthesizer(llm, config=config, assembler=assembler)
    return TemplateSynthesizer()


def conversational_reply(user_message: str) -> str:
    lower = user_message.lower()
    if _GREETING.search(lower):
        return GREETING_REPLY
    if "thank" in lower:
        return THANKS_REPLY
    if _FAREWELL.search(lower):
        return FAREWELL_REPLY
    return DEFAULT_REPLY


def clarification_reply(user_message: str, data: Any) -> str:
    if not _field(data, "needs_clarification"):
        return f'I understand your request: "{user_message}". Let me help you with that.'

    questions: Sequence[str] = _field(data, "suggested_questions") or []
    question = questions[0] if questions else "Could you provide more details?"
    return f"I want to make sure I help you effectively. {question}"


def calculate_confidence(results: Sequence[ToolResult]) -> float:
    """0.8 x success rate, plus 0.15 when a successful result carries data, capped at 0.95."""
    if not results:
        return 0.7

    success_rate = sum(1 for r in results if r.success) / len(results)
    has_data = any(
        r.success
        and (_field(r.raw_data, "found") or (_field(r.raw_data, "count") or 0) > 0)
        for r in results
    )
    confidence = success_rate * 0.8
    if has_data:
        confidence += 0.15
    return min(confidence, 0.95)


def _field(data: Any, key: str) -> Any:
    if isinstance(data, Mapping):
        return data.get(key)
    return None
