"""Lifecycle tests for the shared agent runtime."""
from __future__ import annotations

import asyncio

import pytest

from agentchat.orchestration.agent_runtime import AgentRuntime


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.mark.anyio
async def test_concurrent_first_use_starts_once() -> None:
    starts = 0

    async def on_start() -> None:
        nonlocal starts
        starts += 1
        await asyncio.sleep(0.01)

    runtime = AgentRuntime(on_start=on_start)

    handles = await asyncio.gather(*(runtime.ensure_started() for _ in range(10)))

    assert starts == 1
    assert runtime.start_count == 1
    assert len({handle.runtime_id for handle in handles}) == 1


@pytest.mark.anyio
async def test_stop_is_idempotent_and_runs_hook_once() -> None:
    stops = 0

    async def on_stop() -> None:
        nonlocal stops
        stops += 1

    runtime = AgentRuntime(on_stop=on_stop)
    await runtime.ensure_started()

    await runtime.stop()
    await runtime.stop()

    assert stops == 1
    assert runtime.is_running is False


@pytest.mark.anyio
async def test_drain_waits_for_spawned_work() -> None:
    runtime = AgentRuntime()
    handle = await runtime.ensure_started()
    finished = []

    async def work() -> None:
        await asyncio.sleep(0.02)
        finished.append(True)

    handle.spawn(work())
    await runtime.drain_until_idle()

    assert finished == [True]
    assert handle.in_flight == 0


@pytest.mark.anyio
async def test_drain_before_start_is_a_no_op() -> None:
    runtime = AgentRuntime()
    await runtime.drain_until_idle()
    assert runtime.start_count == 0


@pytest.mark.anyio
async def test_stop_cancels_work_beyond_grace_period() -> None:
    runtime = AgentRuntime(stop_grace=0.01)
    handle = await runtime.ensure_started()
    task = handle.spawn(asyncio.sleep(10))

    await runtime.stop()

    assert task.cancelled()
    with pytest.raises(RuntimeError):
        handle.spawn(asyncio.sleep(0))


@pytest.mark.anyio
async def test_runtime_restarts_after_stop() -> None:
    runtime = AgentRuntime()
    first = await runtime.ensure_started()
    await runtime.stop()
    second = await runtime.ensure_started()

    assert runtime.start_count == 2
    assert first.runtime_id != second.runtime_id
