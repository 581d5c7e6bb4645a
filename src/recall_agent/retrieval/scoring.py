"""Keyword-overlap relevance scoring shared by memory and knowledge search."""

from __future__ import annotations

from collections.abc import Iterable, Sequence


def tokenize(query: str) -> list[str]:
    """Lower-case a query and split it on whitespace.

    Repeated tokens are kept: each occurrence counts toward both the score
    and the normalizing token count.
    """
    return query.lower().split()


def keyword_relevance(
    tokens: Sequence[str],
    text: str,
    boosts: Iterable[tuple[float, Sequence[str]]] = (),
) -> float:
    """Score how well `tokens` cover `text`.

    Each token earns 1.0 when it occurs anywhere in `text` (substring match),
    plus `weight` for every boost group in which any field contains it. The
    total is divided by the number of tokens, so scores can exceed 1.0 when
    boosts apply. `text` and boost fields are expected to be lower-cased.
    """
    if not tokens:
        return 0.0
    boost_groups = [(weight, list(fields)) for weight, fields in boosts]

    total = 0.0
    for token in tokens:
        if token in text:
            total += 1.0
        for weight, fields in boost_groups:
            if any(token in field for field in fields):
                total += weight
    return total / len(tokens)
