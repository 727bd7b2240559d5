"""Lifecycle owner of the shared execution environment for orchestration runs."""
from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Awaitable, Callable, Coroutine, Optional, Set, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Hook = Callable[[], Awaitable[None]]


class RuntimeHandle:
    """Started runtime; tracks every task spawned for orchestration work."""

    def __init__(self) -> None:
        self.runtime_id = str(uuid.uuid4())
        self._tasks: Set[asyncio.Task[Any]] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, T]) -> asyncio.Task[T]:
        """Schedule ``coro`` as tracked work of this runtime."""
        if self._closed:
            coro.close()
            raise RuntimeError("Runtime has been stopped")
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.wait(list(self._tasks))

    async def cancel_all(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def close(self) -> None:
        self._closed = True


class AgentRuntime:
    """Start lazily, reuse across runs, stop idempotently.

    Start and stop are serialized by one lock; invocation against a started
    runtime takes no lock at all.
    """

    def __init__(
        self,
        *,
        on_start: Optional[Hook] = None,
        on_stop: Optional[Hook] = None,
        stop_grace: float = 5.0,
    ) -> None:
        self._on_start = on_start
        self._on_stop = on_stop
        self._stop_grace = stop_grace
        self._handle: Optional[RuntimeHandle] = None
        self._lock = asyncio.Lock()
        self.start_count = 0

    @property
    def is_running(self) -> bool:
        return self._handle is not None

    async def ensure_started(self) -> RuntimeHandle:
        """Return the running handle, starting the runtime at most once."""
        handle = self._handle
        if handle is not None:
            return handle
        async with self._lock:
            if self._handle is None:
                if self._on_start is not None:
                    await self._on_start()
                self._handle = RuntimeHandle()
                self.start_count += 1
                logger.info("Agent runtime %s started", self._handle.runtime_id)
            return self._handle

    async def drain_until_idle(self) -> None:
        """Wait until all work spawned through the current handle has settled."""
        handle = self._handle
        if handle is None:
            return
        await handle.wait_idle()

    async def stop(self) -> None:
        """Drain, cancel stragglers and release the runtime. Safe to call twice."""
        async with self._lock:
            handle = self._handle
            if handle is None:
                return
            self._handle = None
            handle.close()
            try:
                await asyncio.wait_for(handle.wait_idle(), timeout=self._stop_grace)
            except asyncio.TimeoutError:
                logger.warning(
                    "Agent runtime %s still had %d tasks after %.1fs; cancelling",
                    handle.runtime_id, handle.in_flight, self._stop_grace,
                )
                await handle.cancel_all()
            if self._on_stop is not None:
                await self._on_stop()
            logger.info("Agent runtime %s stopped", handle.runtime_id)
