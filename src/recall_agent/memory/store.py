"""Session history and searchable long-term memory."""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Iterable
from datetime import datetime

from recall_agent.config import MemoryConfig
from recall_agent.memory.backend import EpisodeBackend
from recall_agent.memory.scoring import rank_entries
from recall_agent.types import MemoryEntry, MemorySearchHit, Message

logger = logging.getLogger(__name__)

_DAY_MS = 24 * 60 * 60 * 1000


def now_ms() -> int:
    return int(time.time() * 1000)


class MemoryStore:
    """Holds the short-lived session window and the long-term episode log.

    Long-term entries are only removed by `delete_memory` or `forget`. When an
    `EpisodeBackend` is wired in, the local entry list is a write-through
    cache of this process's writes: searches and recency listings are served
    by the backend, and deletions are applied to both. Without a backend the
    in-process keyword scoring answers searches.

    The store is not thread-safe: concurrent pipeline runs against one
    instance must be serialized by the caller.
    """

    def __init__(
        self,
        config: MemoryConfig | None = None,
        *,
        backend: EpisodeBackend | None = None,
        clock: Callable[[], int] | None = None,
        entries: Iterable[MemoryEntry] = (),
    ) -> None:
        self.config = config or MemoryConfig()
        self.backend = backend
        self._clock = clock or now_ms
        self._session: list[Message] = []
        self._entries: list[MemoryEntry] = list(entries)

    def now(self) -> int:
        return self._clock()

    # Session history

    def add_to_session(self, message: Message) -> None:
        self._session.append(message)

    def get_session_history(self, limit: int | None = None) -> list[Message]:
        if limit:
            return self._session[-limit:]
        return list(self._session)

    def clear_session(self) -> None:
        self._session = []

    # Long-term memory

    def store_interaction(
        self,
        user_message: str,
        assistant_response: str,
        topics: Iterable[str] = (),
    ) -> MemoryEntry:
        entry = MemoryEntry(
            id=f"mem_{uuid.uuid4().hex[:12]}",
            timestamp=self._clock(),
            user_message=user_message,
            assistant_response=assistant_response,
            topics=tuple(topics),
            summary=self._summarize(user_message, assistant_response),
        )
        self._entries.append(entry)

        if self.backend is not None:
            try:
                self.backend.save_episode(self.config.namespace, entry)
            except Exception:
                logger.exception("Failed to persist memory entry %s", entry.id)
        return entry

    def search_memory(
        self,
        query: str,
        *,
        limit: int | None = None,
        timeframe_days: int | None = None,
    ) -> list[MemorySearchHit]:
        """Rank long-term entries against `query` by keyword overlap."""
        limit = limit or self.config.default_search_limit
        cutoff = self._clock() - timeframe_days * _DAY_MS if timeframe_days else None

        if self.backend is not None:
            return self.backend.search_episodes(
                self.config.namespace, query, limit=limit, since_ms=cutoff
            )

        candidates = self._entries
        if cutoff is not None:
            candidates = [entry for entry in candidates if entry.timestamp >= cutoff]
        return rank_entries(candidates, query, limit=limit)

    def get_recent_memories(self, count: int = 5) -> list[MemoryEntry]:
        if self.backend is not None:
            return self.backend.list_episodes(self.config.namespace, limit=count)
        ordered = sorted(self._entries, key=lambda entry: entry.timestamp, reverse=True)
        return ordered[:count]

    def delete_memory(self, entry_id: str) -> bool:
        """Remove one long-term entry; return whether anything was removed."""
        before = len(self._entries)
        self._entries = [entry for entry in self._entries if entry.id != entry_id]
        removed = len(self._entries) < before

        if self.backend is not None:
            removed = self.backend.delete_episode(self.config.namespace, entry_id) or removed
        return removed

    def forget(self) -> int:
        """Remove every long-term entry in this store's namespace."""
        count = len(self._entries)
        self._entries = []
        if self.backend is not None:
            count = max(count, self.backend.forget(self.config.namespace))
        logger.info("Forgot %d memory entries in %s", count, self.config.namespace)
        return count

    def entries(self) -> list[MemoryEntry]:
        """Entries written through this store (a cache when a backend is wired in)."""
        return list(self._entries)

    def close(self) -> None:
        if self.backend is not None:
            self.backend.close()

    def _summarize(self, user_message: str, assistant_response: str) -> str:
        combined = f"{user_message} {assistant_response}"
        words = combined.split(" ")[: self.config.summary_words]
        return " ".join(words) + "..."


def format_date(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%Y-%m-%d")

