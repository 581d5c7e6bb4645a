"""Relevance ranking for long-term memory entries."""

from __future__ import annotations

from collections.abc import Iterable

from recall_agent.retrieval.scoring import keyword_relevance, tokenize
from recall_agent.types import MemoryEntry, MemorySearchHit

_TOPIC_BOOST = 0.5


def score_entry(entry: MemoryEntry, tokens: list[str]) -> float:
    """Keyword relevance of one entry.

    Entry text is user message, assistant response, topics and summary; each
    token scores 1 for appearing in that text and 0.5 more for appearing in
    any topic, normalized by the raw token count.
    """
    text = (
        f"{entry.user_message} {entry.assistant_response} "
        f"{' '.join(entry.topics)} {entry.summary}"
    ).lower()
    topics = [topic.lower() for topic in entry.topics]
    return keyword_relevance(tokens, text, boosts=((_TOPIC_BOOST, topics),))


def rank_entries(
    entries: Iterable[MemoryEntry], query: str, *, limit: int
) -> list[MemorySearchHit]:
    tokens = tokenize(query)
    if not tokens:
        return []

    hits = []
    for entry in entries:
        relevance = score_entry(entry, tokens)
        if relevance > 0:
            hits.append(MemorySearchHit(entry=entry, relevance=relevance))
    hits.sort(key=lambda hit: hit.relevance, reverse=True)
    return hits[:limit]
