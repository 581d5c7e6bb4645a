"""Tool registry built on Pydantic v2 models."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable, Sequence
from time import perf_counter
from typing import Any

from langchain_core.tools import StructuredTool
from pydantic import BaseModel, ConfigDict, Field

from recall_agent.errors import DuplicateToolError
from recall_agent.types import ToolInvocation, ToolResult, ToolTrace

logger = logging.getLogger(__name__)

Observer = Callable[[ToolTrace], None]


class ToolSpec(BaseModel):
    """Declarative tool specification for registration and validation."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = Field(min_length=1)
    description: str
    args_schema: type[BaseModel]
    handler: Callable[[Any], Any]
    formatter: Callable[[Any], str] = str
    tags: list[str] = Field(default_factory=list)

    def parameters(self) -> dict[str, Any]:
        return self.args_schema.model_json_schema()

    async def invoke(self, payload: dict[str, Any]) -> Any:
        data = self.args_schema.model_validate(payload)
        result = self.handler(data)
        if inspect.isawaitable(result):
            result = await result
        return result


class ToolRegistry:
    """Stores tool specs, executes them, and exports LangChain tool objects.

    Execution never raises: unknown tools and failing handlers both come back
    as a failed `ToolResult`, so one broken capability cannot take down a
    pipeline run.
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolSpec] = {}
        self._observer: Observer | None = None

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._tools:
            raise DuplicateToolError(spec.name)
        self._tools[spec.name] = spec

    def unregister(self, name: str) -> None:
        self._tools.pop(name, None)

    def has(self, name: str) -> bool:
        return name in self._tools

    def get(self, name: str) -> ToolSpec | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def specs(self) -> list[ToolSpec]:
        return list(self._tools.values())

    def descriptions(self) -> list[dict[str, str]]:
        return [
            {"name": spec.name, "description": spec.description}
            for spec in self._tools.values()
        ]

    def set_observer(self, observer: Observer | None) -> None:
        """Set an optional callback invoked after each tool execution."""
        self._observer = observer

    async def execute(
        self,
        name: str,
        payload: dict[str, Any],
        *,
        observer: Observer | None = None,
    ) -> ToolResult:
        """Run one tool. `observer` receives this call's trace only."""
        spec = self._tools.get(name)
        if spec is None:
            logger.warning("Requested unknown tool %s", name)
            result = ToolResult(
                tool=name,
                success=False,
                raw_data=None,
                formatted=f'Error: Tool "{name}" not found',
                execution_time_ms=0.0,
            )
        else:
            result = await self._execute_spec(spec, payload)

        self._notify(result, payload, observer)
        return result

    async def execute_multiple(
        self,
        invocations: Sequence[ToolInvocation],
        *,
        observer: Observer | None = None,
    ) -> list[ToolResult]:
        """Run every invocation concurrently and return results in request order."""
        results = await asyncio.gather(
            *(
                self.execute(item.name, item.payload, observer=observer)
                for item in invocations
            )
        )
        return list(results)

    def as_langchain_tools(self) -> list[StructuredTool]:
        tools: list[StructuredTool] = []
        for spec in self._tools.values():
            tools.append(
                StructuredTool.from_function(
                    name=spec.name,
                    description=spec.description,
                    args_schema=spec.args_schema,
                    coroutine=self._build_coroutine(spec.name),
                )
            )
        return tools

    def _build_coroutine(self, name: str) -> Callable[..., Any]:
        async def _callable(**kwargs: Any) -> str:
            result = await self.execute(name, kwargs)
            return result.formatted

        return _callable

    async def _execute_spec(self, spec: ToolSpec, payload: dict[str, Any]) -> ToolResult:
        start = perf_counter()
        try:
            raw = await spec.invoke(payload)
            formatted = spec.formatter(raw)
        except Exception as exc:
            latency_ms = (perf_counter() - start) * 1000.0
            logger.warning("Tool %s failed: %s", spec.name, exc)
            return ToolResult(
                tool=spec.name,
                success=False,
                raw_data=exc,
                formatted=f"Error executing {spec.name}: {exc}",
                execution_time_ms=latency_ms,
            )

        return ToolResult(
            tool=spec.name,
            success=True,
            raw_data=raw,
            formatted=formatted,
            execution_time_ms=(perf_counter() - start) * 1000.0,
        )

    def _notify(
        self,
        result: ToolResult,
        payload: dict[str, Any],
        observer: Observer | None,
    ) -> None:
        callbacks = [cb for cb in (self._observer, observer) if cb is not None]
        if not callbacks:
            return

        trace = ToolTrace(
            name=result.tool,
            input_payload=payload,
            output_preview=result.formatted[:320],
            latency_ms=result.execution_time_ms,
            success=result.success,
        )
        for callback in callbacks:
            try:
                callback(trace)
            except Exception:
                logger.exception("Tool observer failed for %s", result.tool)
