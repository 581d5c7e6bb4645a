"""Pipeline run tracing and groundedness evaluation."""

from __future__ import annotations

import re
import time
import uuid
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone

from recall_agent.types import ToolTrace

_TOKEN_PATTERN = re.compile(r"\w+|[^\w\s]", flags=re.UNICODE)


@dataclass(slots=True)
class TraceRecord:
    trace_id: str
    timestamp_utc: str
    message: str
    response: str
    intent: str
    tools: list[str]
    tool_traces: list[ToolTrace]
    confidence: float
    latency_ms: float
    groundedness: float | None


class GroundednessEvaluator:
    """Computes how much of a reply is supported by the tool outputs.

    Metric definition used here:
    - Split the reply into sentences.
    - A sentence is grounded if at least one source has token overlap ratio
      >= `min_overlap` with it.

    This is a deterministic proxy suitable for tests and dashboards.
    """

    def __init__(self, min_overlap: float = 0.35) -> None:
        self.min_overlap = min_overlap

    def score(self, answer: str, source_snippets: list[str]) -> float:
        sentences = [
            sentence.strip()
            for sentence in re.split(r"(?<=[.!?])\s+", answer)
            if sentence.strip()
        ]
        if not sentences:
            return 1.0
        if not source_snippets:
            return 0.0

        source_token_sets = [set(self._normalize(source)) for source in source_snippets]
        grounded = 0

        for sentence in sentences:
            sentence_tokens = set(self._normalize(sentence))
            if not sentence_tokens:
                grounded += 1
                continue

            if any(
                self._overlap(sentence_tokens, source_tokens) >= self.min_overlap
                for source_tokens in source_token_sets
            ):
                grounded += 1

        return grounded / len(sentences)

    @staticmethod
    def _normalize(text: str) -> list[str]:
        return [token.lower() for token in _TOKEN_PATTERN.findall(text)]

    @staticmethod
    def _overlap(a: set[str], b: set[str]) -> float:
        if not a or not b:
            return 0.0
        return len(a & b) / len(a)


class TraceStore:
    """In-memory trace storage for API-level observability."""

    def __init__(self, *, groundedness_evaluator: GroundednessEvaluator | None = None) -> None:
        self._records: dict[str, TraceRecord] = {}
        self._groundedness = groundedness_evaluator or GroundednessEvaluator()

    def create_record(
        self,
        *,
        message: str,
        response: str,
        intent: str,
        tools: list[str],
        tool_traces: list[ToolTrace],
        source_snippets: list[str],
        confidence: float,
        latency_ms: float,
    ) -> TraceRecord:
        trace_id = str(uuid.uuid4())
        # Conversational turns have no sources to be grounded in.
        groundedness = (
            self._groundedness.score(response, source_snippets) if source_snippets else None
        )
        record = TraceRecord(
            trace_id=trace_id,
            timestamp_utc=datetime.now(timezone.utc).isoformat(),
            message=message,
            response=response,
            intent=intent,
            tools=tools,
            tool_traces=tool_traces,
            confidence=confidence,
            latency_ms=latency_ms,
            groundedness=groundedness,
        )
        self._records[trace_id] = record
        return record

    def get(self, trace_id: str) -> TraceRecord:
        record = self._records.get(trace_id)
        if record is None:
            raise KeyError(f"Trace not found: {trace_id}")
        return record

    def list_recent(self, limit: int = 20) -> list[TraceRecord]:
        return list(self._records.values())[-limit:]

    def summary(self) -> dict[str, object]:
        """Aggregate pipeline metrics for dashboard display."""
        records = list(self._records.values())
        total = len(records)
        if total == 0:
            return {
                "total_requests": 0,
                "avg_latency_ms": 0.0,
                "p95_latency_ms": 0.0,
                "avg_confidence": 0.0,
                "avg_groundedness": None,
                "intent_counts": {},
                "tool_failures": 0,
            }

        latencies = sorted(record.latency_ms for record in records)
        p95_index = max(0, int((len(latencies) * 0.95) - 1))
        grounded = [r.groundedness for r in records if r.groundedness is not None]
        failures = sum(
            1 for record in records for trace in record.tool_traces if not trace.success
        )

        return {
            "total_requests": total,
            "avg_latency_ms": sum(latencies) / total,
            "p95_latency_ms": latencies[p95_index],
            "avg_confidence": sum(record.confidence for record in records) / total,
            "avg_groundedness": sum(grounded) / len(grounded) if grounded else None,
            "intent_counts": dict(Counter(record.intent for record in records)),
            "tool_failures": failures,
        }


class Timer:
    """Simple context timer used by the orchestrator."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0
