"""Recall Agent package."""

from .agent.orchestrator import Orchestrator
from .config import MemoryConfig, PipelineConfig, RouterConfig, SynthesizerConfig

__all__ = [
    "MemoryConfig",
    "Orchestrator",
    "PipelineConfig",
    "RouterConfig",
    "SynthesizerConfig",
]
