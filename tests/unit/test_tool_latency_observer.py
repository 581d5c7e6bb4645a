import asyncio

from pydantic import BaseModel

from recall_agent.agent.registry import ToolRegistry, ToolSpec


class EchoInput(BaseModel):
    text: str


def test_tool_observer_captures_latency_and_payload() -> None:
    registry = ToolRegistry()

    def _handler(data: EchoInput) -> str:
        return data.text.upper()

    registry.register(
        ToolSpec(
            name="echo",
            description="uppercase",
            args_schema=EchoInput,
            handler=_handler,
        )
    )

    observed = []
    registry.set_observer(observed.append)
    result = asyncio.run(registry.execute("echo", {"text": "hello"}))
    registry.set_observer(None)

    assert result.formatted == "HELLO"
    assert len(observed) == 1
    assert observed[0].name == "echo"
    assert observed[0].input_payload == {"text": "hello"}
    assert observed[0].latency_ms >= 0.0
    assert observed[0].success


def test_tool_observer_sees_unknown_tool_failures() -> None:
    registry = ToolRegistry()
    observed = []
    registry.set_observer(observed.append)

    asyncio.run(registry.execute("nope", {"text": "x"}))

    assert len(observed) == 1
    assert observed[0].name == "nope"
    assert not observed[0].success
    assert "not found" in observed[0].output_preview


def test_per_call_observers_stay_isolated_across_concurrent_runs() -> None:
    registry = ToolRegistry()

    class SleepInput(BaseModel):
        text: str
        delay: float = 0.0

    async def _handler(data: SleepInput) -> str:
        await asyncio.sleep(data.delay)
        return data.text

    registry.register(
        ToolSpec(name="sleepy", description="sleeps", args_schema=SleepInput, handler=_handler)
    )

    async def _run_both() -> tuple[list, list]:
        first: list = []
        second: list = []
        await asyncio.gather(
            registry.execute("sleepy", {"text": "a", "delay": 0.05}, observer=first.append),
            registry.execute("sleepy", {"text": "b"}, observer=second.append),
        )
        return first, second

    first, second = asyncio.run(_run_both())

    assert [trace.input_payload["text"] for trace in first] == ["a"]
    assert [trace.input_payload["text"] for trace in second] == ["b"]


def test_failing_observer_does_not_break_execution() -> None:
    registry = ToolRegistry()
    registry.register(
        ToolSpec(
            name="echo",
            description="uppercase",
            args_schema=EchoInput,
            handler=lambda data: data.text.upper(),
        )
    )

    def _broken_observer(trace) -> None:
        raise RuntimeError("observer down")

    registry.set_observer(_broken_observer)
    seen = []
    result = asyncio.run(registry.execute("echo", {"text": "hi"}, observer=seen.append))

    assert result.success
    assert result.formatted == "HI"
    assert [trace.name for trace in seen] == ["echo"]
