"""FastAPI entrypoint for chat/session/trace endpoints."""

from __future__ import annotations

import asyncio
import os
import threading
from dataclasses import asdict
from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from recall_agent.agent.orchestrator import Orchestrator
from recall_agent.agent.registry import ToolRegistry
from recall_agent.agent.router import RouterAgent
from recall_agent.agent.synthesizer import create_synthesizer
from recall_agent.config import MemoryConfig, PipelineConfig, SynthesizerConfig
from recall_agent.context.builder import ContextAssembler
from recall_agent.errors import InvalidMessageError
from recall_agent.memory.backend import SqliteEpisodeBackend
from recall_agent.memory.store import MemoryStore
from recall_agent.obs.tracing import TraceStore
from recall_agent.types import PipelineResult


def _create_llm() -> Any:
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        return None

    from langchain_openai import ChatOpenAI

    return ChatOpenAI(model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"), temperature=0)


def _create_memory() -> MemoryStore:
    config = MemoryConfig(namespace=os.getenv("RECALL_AGENT_NAMESPACE", "conversations"))
    db_path = os.getenv("RECALL_AGENT_DB_PATH")
    backend = SqliteEpisodeBackend(db_path) if db_path else None
    return MemoryStore(config, backend=backend)


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)


app = FastAPI(title="Recall Agent", version="0.1.0")

_llm = _create_llm()
_assembler = ContextAssembler()
_registry = ToolRegistry()
_trace_store = TraceStore()
_orchestrator = Orchestrator(
    registry=_registry,
    memory=_create_memory(),
    router=RouterAgent(_registry, llm=_llm, assembler=_assembler),
    synthesizer=create_synthesizer(
        SynthesizerConfig(strategy="delegated" if _llm is not None else "template"),
        llm=_llm,
        assembler=_assembler,
    ),
    config=PipelineConfig(),
    trace_store=_trace_store,
)
_orchestrator.initialize()
# Pipeline runs share session and memory state, so they execute one at a time.
_pipeline_lock = threading.Lock()


def _serialize_result(result: PipelineResult) -> dict[str, Any]:
    # raw_data may be an exception; only rendered output is serialized.
    return {
        "response": asdict(result.response),
        "routing": asdict(result.routing),
        "tool_results": [
            {
                "tool": item.tool,
                "success": item.success,
                "formatted": item.formatted,
                "execution_time_ms": item.execution_time_ms,
            }
            for item in result.tool_results
        ],
        "processing_time_ms": result.processing_time_ms,
        "trace_id": result.trace_id,
    }


@app.get("/health")
def health() -> dict[str, Any]:
    return {
        "status": "ok",
        "llm_configured": _llm is not None,
        "synthesis_mode": "delegated" if _llm is not None else "template",
        "tools": _registry.names(),
        "trace_count": len(_trace_store.list_recent(limit=1000)),
    }


@app.post("/chat")
def chat(request: ChatRequest) -> dict[str, Any]:
    try:
        with _pipeline_lock:
            result = asyncio.run(_orchestrator.process_message(request.message))
    except InvalidMessageError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _serialize_result(result)


@app.get("/session")
def session() -> dict[str, Any]:
    return {"items": [asdict(message) for message in _orchestrator.get_session_history()]}


@app.delete("/session")
def clear_session() -> dict[str, Any]:
    with _pipeline_lock:
        _orchestrator.clear_session()
    return {"cleared": True}


@app.get("/tools")
def tools() -> dict[str, Any]:
    return {"items": _orchestrator.get_available_tools()}


@app.get("/memory/recent")
def recent_memories(count: int = 5) -> dict[str, Any]:
    entries = _orchestrator.memory.get_recent_memories(count)
    return {"items": [asdict(entry) for entry in entries]}


@app.delete("/memory/{entry_id}")
def delete_memory(entry_id: str) -> dict[str, Any]:
    with _pipeline_lock:
        removed = _orchestrator.memory.delete_memory(entry_id)
    if not removed:
        raise HTTPException(status_code=404, detail=f"Memory not found: {entry_id}")
    return {"deleted": entry_id}


@app.delete("/memory")
def forget_memories() -> dict[str, Any]:
    with _pipeline_lock:
        count = _orchestrator.memory.forget()
    return {"forgotten": count}


@app.get("/traces")
def traces(limit: int = 20) -> dict[str, Any]:
    records = [asdict(record) for record in _trace_store.list_recent(limit=limit)]
    return {"items": records}


@app.get("/traces/{trace_id}")
def trace_detail(trace_id: str) -> dict[str, Any]:
    try:
        record = _trace_store.get(trace_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return asdict(record)


@app.get("/metrics")
def metrics() -> dict[str, Any]:
    return _trace_store.summary()
