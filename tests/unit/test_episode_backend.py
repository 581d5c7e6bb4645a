import sqlite3
from pathlib import Path

import pytest

from recall_agent.config import MemoryConfig
from recall_agent.memory import backend as backend_module
from recall_agent.memory.backend import SqliteEpisodeBackend
from recall_agent.memory.store import MemoryStore
from recall_agent.types import MemoryEntry

_DAY_MS = 24 * 60 * 60 * 1000
_NOW = 1_700_000_000_000


def _entry(entry_id: str, user: str, timestamp: int) -> MemoryEntry:
    return MemoryEntry(
        id=entry_id,
        timestamp=timestamp,
        user_message=user,
        assistant_response="noted",
        topics=("deployment",),
        summary=f"{user} noted...",
    )


def test_sqlite_backend_round_trips_and_scopes_namespaces(tmp_path: Path) -> None:
    backend = SqliteEpisodeBackend(tmp_path / "episodes.db")
    backend.save_episode("alice", _entry("m1", "deployment plan", _NOW - 2 * _DAY_MS))
    backend.save_episode("alice", _entry("m2", "deployment rollback", _NOW))
    backend.save_episode("bob", _entry("m3", "deployment freeze", _NOW))
    backend.save_episode("alice", _entry("m1", "duplicate id ignored", _NOW))

    recent = backend.list_episodes("alice", limit=10)
    assert [entry.id for entry in recent] == ["m2", "m1"]
    assert recent[1].user_message == "deployment plan"
    assert recent[1].topics == ("deployment",)

    hits = backend.search_episodes("alice", "rollback", limit=5)
    assert [hit.entry.id for hit in hits] == ["m2"]

    windowed = backend.search_episodes("alice", "deployment", limit=5, since_ms=_NOW - _DAY_MS)
    assert [hit.entry.id for hit in windowed] == ["m2"]
    backend.close()


def test_memory_store_delegates_to_backend(tmp_path: Path) -> None:
    db_path = tmp_path / "memory.db"
    store = MemoryStore(
        MemoryConfig(namespace="team"),
        backend=SqliteEpisodeBackend(db_path),
        clock=lambda: _NOW,
    )
    store.store_interaction("How do we rotate api keys?", "Use the vault CLI.", ["api"])

    reopened = MemoryStore(
        MemoryConfig(namespace="team"),
        backend=SqliteEpisodeBackend(db_path),
        clock=lambda: _NOW,
    )

    hits = reopened.search_memory("rotate keys", timeframe_days=1)
    assert len(hits) == 1
    assert hits[0].entry.assistant_response == "Use the vault CLI."
    assert [entry.topics for entry in reopened.get_recent_memories()] == [("api",)]

    store.close()
    reopened.close()


def test_close_releases_every_connection(tmp_path: Path, monkeypatch) -> None:
    opened: list[sqlite3.Connection] = []
    real_connect = sqlite3.connect

    def _tracking_connect(*args, **kwargs):
        conn = real_connect(*args, **kwargs)
        opened.append(conn)
        return conn

    monkeypatch.setattr(backend_module.sqlite3, "connect", _tracking_connect)

    backend = SqliteEpisodeBackend(tmp_path / "episodes.db")
    backend.save_episode("alice", _entry("m1", "deployment plan", _NOW))
    backend.search_episodes("alice", "deployment", limit=5)
    backend.list_episodes("alice", limit=5)
    backend.delete_episode("alice", "m1")
    backend.close()

    assert opened
    for conn in opened:
        with pytest.raises(sqlite3.ProgrammingError):
            conn.execute("SELECT 1")


def test_delete_and_forget_are_scoped_to_namespace(tmp_path: Path) -> None:
    backend = SqliteEpisodeBackend(tmp_path / "episodes.db")
    backend.save_episode("alice", _entry("m1", "deployment plan", _NOW))
    backend.save_episode("alice", _entry("m2", "deployment rollback", _NOW))
    backend.save_episode("bob", _entry("m3", "deployment freeze", _NOW))

    assert backend.delete_episode("bob", "m1") is False
    assert backend.delete_episode("alice", "m1") is True
    assert backend.delete_episode("alice", "m1") is False
    assert [entry.id for entry in backend.list_episodes("alice", limit=10)] == ["m2"]

    assert backend.forget("alice") == 1
    assert backend.list_episodes("alice", limit=10) == []
    assert [entry.id for entry in backend.list_episodes("bob", limit=10)] == ["m3"]
    backend.close()


def test_memory_store_deletions_reach_backend_and_cache(tmp_path: Path) -> None:
    db_path = tmp_path / "memory.db"
    store = MemoryStore(
        MemoryConfig(namespace="team"),
        backend=SqliteEpisodeBackend(db_path),
        clock=lambda: _NOW,
    )
    kept = store.store_interaction("How do we rotate api keys?", "Use the vault CLI.", ["api"])
    dropped = store.store_interaction("Where are the deploy logs?", "In the log bucket.")

    assert store.delete_memory(dropped.id) is True
    assert store.delete_memory(dropped.id) is False
    assert [entry.id for entry in store.entries()] == [kept.id]
    assert [entry.id for entry in store.get_recent_memories()] == [kept.id]

    assert store.forget() == 1
    assert store.entries() == []
    store.close()

    reopened = SqliteEpisodeBackend(db_path)
    assert reopened.list_episodes("team", limit=10) == []
    reopened.close()
