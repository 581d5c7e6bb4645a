"""Durable episode storage behind the memory store."""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Protocol

from recall_agent.memory.scoring import rank_entries
from recall_agent.types import MemoryEntry, MemorySearchHit


class EpisodeBackend(Protocol):
    """Minimal contract for an external long-term memory service.

    Every call is scoped to a namespace (for example one per user) so several
    conversations can share a single store.
    """

    def save_episode(self, namespace: str, entry: MemoryEntry) -> None:
        """Persist one completed exchange."""

    def search_episodes(
        self,
        namespace: str,
        query: str,
        *,
        limit: int,
        since_ms: int | None = None,
    ) -> list[MemorySearchHit]:
        """Search stored episodes by free text."""

    def list_episodes(self, namespace: str, *, limit: int) -> list[MemoryEntry]:
        """Return the most recent episodes, newest first."""

    def delete_episode(self, namespace: str, episode_id: str) -> bool:
        """Remove one episode; return whether it existed."""

    def forget(self, namespace: str) -> int:
        """Remove every episode in a namespace and return how many were removed."""

    def close(self) -> None:
        """Release any held resources."""


class SqliteEpisodeBackend:
    """Episode store persisted in a local SQLite file.

    One connection is held for the backend's lifetime and released by
    `close()`. Search loads the namespace's candidate rows and ranks them with
    the same keyword relevance formula as the in-process store, so switching
    backends does not change result order.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self.conn = sqlite3.connect(self._path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._initialize_tables()

    def save_episode(self, namespace: str, entry: MemoryEntry) -> None:
        self.conn.execute(
            "INSERT INTO episodes(id, namespace, timestamp, user_message, "
            "assistant_response, topics, summary) VALUES(?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(id) DO NOTHING",
            (
                entry.id,
                namespace,
                entry.timestamp,
                entry.user_message,
                entry.assistant_response,
                json.dumps(list(entry.topics)),
                entry.summary,
            ),
        )
        self.conn.commit()

    def search_episodes(
        self,
        namespace: str,
        query: str,
        *,
        limit: int,
        since_ms: int | None = None,
    ) -> list[MemorySearchHit]:
        sql = "SELECT * FROM episodes WHERE namespace = ?"
        params: list[object] = [namespace]
        if since_ms is not None:
            sql += " AND timestamp >= ?"
            params.append(since_ms)
        sql += " ORDER BY timestamp ASC"
        return rank_entries(self._fetch(sql, params), query, limit=limit)

    def list_episodes(self, namespace: str, *, limit: int) -> list[MemoryEntry]:
        return self._fetch(
            "SELECT * FROM episodes WHERE namespace = ? ORDER BY timestamp DESC LIMIT ?",
            [namespace, limit],
        )

    def delete_episode(self, namespace: str, episode_id: str) -> bool:
        cursor = self.conn.execute(
            "DELETE FROM episodes WHERE namespace = ? AND id = ?", (namespace, episode_id)
        )
        self.conn.commit()
        return cursor.rowcount > 0

    def forget(self, namespace: str) -> int:
        cursor = self.conn.execute("DELETE FROM episodes WHERE namespace = ?", (namespace,))
        self.conn.commit()
        return cursor.rowcount

    def close(self) -> None:
        self.conn.close()

    def _fetch(self, sql: str, params: list[object]) -> list[MemoryEntry]:
        rows = self.conn.execute(sql, params).fetchall()
        return [_row_to_entry(row) for row in rows]

    def _initialize_tables(self) -> None:
        self.conn.execute(
            "CREATE TABLE IF NOT EXISTS episodes ("
            "id TEXT PRIMARY KEY, "
            "namespace TEXT NOT NULL, "
            "timestamp INTEGER NOT NULL, "
            "user_message TEXT NOT NULL, "
            "assistant_response TEXT NOT NULL, "
            "topics TEXT NOT NULL, "
            "summary TEXT NOT NULL)"
        )
        self.conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_episodes_namespace_ts "
            "ON episodes(namespace, timestamp)"
        )
        self.conn.commit()


def _row_to_entry(row: sqlite3.Row) -> MemoryEntry:
    return MemoryEntry(
        id=row["id"],
        timestamp=int(row["timestamp"]),
        user_message=row["user_message"],
        assistant_response=row["assistant_response"],
        topics=tuple(json.loads(row["topics"])),
        summary=row["summary"],
    )
