"""Tests for the sequential pipeline coordinator."""
from __future__ import annotations

import asyncio
from typing import List

import pytest

from conftest import Backends, ScriptedBackend

from agentchat.core.errors import InvalidPipelineError, OrchestrationError, OrchestrationTimeoutError
from agentchat.core.models import AgentDescriptor, ChatHistory, KernelArgument
from agentchat.orchestration.agent_runtime import AgentRuntime
from agentchat.orchestration.coordinator import OrchestrationCoordinator, compose_handoff


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class _CountingRuntime(AgentRuntime):
    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.drains = 0

    async def drain_until_idle(self) -> None:
        self.drains += 1
        await super().drain_until_idle()


async def _collect(stream) -> List[str]:
    return [chunk async for chunk in stream]


@pytest.mark.anyio
async def test_empty_pipeline_fails_before_runtime_start() -> None:
    runtime = _CountingRuntime()
    coordinator = OrchestrationCoordinator(runtime, Backends())

    with pytest.raises(InvalidPipelineError):
        await coordinator.invoke("hello", [])

    assert runtime.start_count == 0
    assert runtime.drains == 0


@pytest.mark.anyio
async def test_single_agent_streams_deltas_in_order() -> None:
    runtime = _CountingRuntime()
    backends = Backends(Writer=ScriptedBackend(["Hel", "lo, ", "world"]))
    coordinator = OrchestrationCoordinator(runtime, backends)

    stream = await coordinator.invoke("hi", [AgentDescriptor(name="Writer")])
    chunks = await _collect(stream)

    assert chunks == ["Hel", "lo, ", "world"]
    assert runtime.drains == 1


@pytest.mark.anyio
async def test_pipeline_hands_output_to_the_next_agent(agents: List[AgentDescriptor]) -> None:
    writer = ScriptedBackend(["Draft ", "one"])
    reviewer = ScriptedBackend(["Looks ", "good"])
    coordinator = OrchestrationCoordinator(AgentRuntime(), Backends(Writer=writer, Reviewer=reviewer))
    history = ChatHistory()
    history.add_user("earlier question")

    stream = await coordinator.invoke(
        "Write a haiku", agents, history, [KernelArgument(key="tone", value="calm")]
    )

    assert await _collect(stream) == ["Looks ", "good"]
    assert writer.calls == [("Write a haiku", ["earlier question"], {"tone": "calm"})]
    assert reviewer.calls[0][0] == compose_handoff("Write a haiku", "Writer", "Draft one")
    assert "--- Output from Writer ---\nDraft one" in reviewer.calls[0][0]


@pytest.mark.anyio
async def test_runtime_is_reused_across_runs() -> None:
    runtime = AgentRuntime()
    coordinator = OrchestrationCoordinator(runtime, Backends(Writer=ScriptedBackend(["ok"])))

    for _ in range(3):
        await _collect(await coordinator.invoke("hi", [AgentDescriptor(name="Writer")]))

    assert runtime.start_count == 1


@pytest.mark.anyio
async def test_failure_before_output_raises_from_invoke(agents: List[AgentDescriptor]) -> None:
    runtime = _CountingRuntime()
    backends = Backends(
        Writer=ScriptedBackend(["draft"], error=ConnectionError("model unavailable")),
        Reviewer=ScriptedBackend(["fine"]),
    )
    coordinator = OrchestrationCoordinator(runtime, backends)

    with pytest.raises(OrchestrationError) as excinfo:
        await coordinator.invoke("hi", agents)

    assert isinstance(excinfo.value.cause, ConnectionError)
    assert "model unavailable" in str(excinfo.value)
    assert runtime.drains == 1
    assert backends["Reviewer"].calls == []


@pytest.mark.anyio
async def test_failure_mid_stream_raises_from_iterator() -> None:
    runtime = _CountingRuntime()
    backend = ScriptedBackend(["one", "two"], error=RuntimeError("socket closed"), fail_after=1)
    coordinator = OrchestrationCoordinator(runtime, Backends(Writer=backend))

    stream = await coordinator.invoke("hi", [AgentDescriptor(name="Writer")])
    received = []
    with pytest.raises(OrchestrationError):
        async for chunk in stream:
            received.append(chunk)

    assert received == ["one"]
    assert runtime.drains == 1


@pytest.mark.anyio
async def test_empty_reply_is_an_orchestration_error() -> None:
    coordinator = OrchestrationCoordinator(AgentRuntime(), Backends(Writer=ScriptedBackend([])))

    with pytest.raises(OrchestrationError, match="empty reply"):
        await coordinator.invoke("hi", [AgentDescriptor(name="Writer")])


@pytest.mark.anyio
async def test_deadline_cancels_the_run() -> None:
    runtime = _CountingRuntime()
    coordinator = OrchestrationCoordinator(
        runtime, Backends(Writer=ScriptedBackend(["late"], delay=5)), deadline_seconds=0.05
    )

    with pytest.raises(OrchestrationTimeoutError):
        await coordinator.invoke("hi", [AgentDescriptor(name="Writer")])

    assert runtime.drains == 1
    handle = await runtime.ensure_started()
    assert handle.in_flight == 0


@pytest.mark.anyio
async def test_runtime_start_failure_is_wrapped() -> None:
    async def broken_start() -> None:
        raise OSError("no sockets left")

    coordinator = OrchestrationCoordinator(
        AgentRuntime(on_start=broken_start), Backends(Writer=ScriptedBackend(["x"]))
    )

    with pytest.raises(OrchestrationError) as excinfo:
        await coordinator.invoke("hi", [AgentDescriptor(name="Writer")])
    assert isinstance(excinfo.value.cause, OSError)


@pytest.mark.anyio
async def test_closing_the_stream_early_drains_the_runtime() -> None:
    runtime = _CountingRuntime()
    backend = ScriptedBackend(["a", "b", "c"], delay=0.0)
    coordinator = OrchestrationCoordinator(runtime, Backends(Writer=backend))

    stream = await coordinator.invoke("hi", [AgentDescriptor(name="Writer")])
    assert await stream.__anext__() == "a"
    await stream.aclose()

    assert runtime.drains == 1
    await asyncio.sleep(0)
    assert (await runtime.ensure_started()).in_flight == 0


@pytest.mark.anyio
async def test_duplicate_kernel_arguments_are_rejected() -> None:
    runtime = _CountingRuntime()
    coordinator = OrchestrationCoordinator(runtime, Backends(Writer=ScriptedBackend(["x"])))

    with pytest.raises(ValueError):
        await coordinator.invoke(
            "hi",
            [AgentDescriptor(name="Writer")],
            kernel_args=[KernelArgument("tone", "calm"), KernelArgument("tone", "loud")],
        )
    assert runtime.start_count == 0


@pytest.mark.anyio
async def test_output_queued_before_the_deadline_is_delivered() -> None:
    runtime = _CountingRuntime()
    coordinator = OrchestrationCoordinator(
        runtime, Backends(Writer=ScriptedBackend(["a", "b"])), deadline_seconds=0.05
    )

    stream = await coordinator.invoke("hi", [AgentDescriptor(name="Writer")])
    assert await stream.__anext__() == "a"
    await asyncio.sleep(0.1)

    assert await _collect(stream) == ["b"]
    assert runtime.drains == 1
