"""Configuration models for the conversational pipeline."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class PipelineConfig(BaseModel):
    """Configures the orchestrator's runtime behavior."""

    store_interactions: bool = True
    max_history_length: int = Field(default=10, ge=1)


class MemoryConfig(BaseModel):
    """Configures long-term memory search and summaries."""

    namespace: str = Field(default="conversations", min_length=1)
    default_search_limit: int = Field(default=5, ge=1)
    summary_words: int = Field(default=10, ge=1)


class RouterConfig(BaseModel):
    """Configures tool input extraction for the router."""

    memory_search_limit: int = Field(default=5, ge=1)
    knowledge_limit: int = Field(default=3, ge=1)
    knowledge_categories: tuple[str, ...] = (
        "infrastructure",
        "security",
        "api",
        "database",
        "testing",
    )


class SynthesizerConfig(BaseModel):
    """Configures response generation strategy."""

    strategy: Literal["template", "delegated"] = "template"
    max_response_length: int = Field(default=2000, ge=1)


class ContextOptions(BaseModel):
    """Configures how a context frame is rendered into a prompt."""

    max_history_length: int = Field(default=10, ge=1)
    include_timestamps: bool = True
    include_tool_metadata: bool = False
