"""Sequential multi-agent pipeline executed under a single deadline."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Dict, Optional, Sequence, Union

from agentchat.agents.backends import BackendResolver
from agentchat.core.errors import InvalidPipelineError, OrchestrationError, OrchestrationTimeoutError
from agentchat.core.models import (
    AgentDescriptor,
    ChatHistory,
    KernelArgs,
    OrchestrationRun,
    RunState,
    kernel_arguments_to_mapping,
)
from agentchat.orchestration.agent_runtime import AgentRuntime

logger = logging.getLogger(__name__)

DEFAULT_DEADLINE_SECONDS = 120.0


class _Done:
    pass


@dataclass(frozen=True)
class _Failure:
    error: BaseException


_DONE = _Done()
_Item = Union[str, _Done, _Failure]


def compose_handoff(message: str, agent_name: str, output: str) -> str:
    """Input for the next pipeline stage: the original request plus the previous agent's output."""
    return f"{message}\n\n--- Output from {agent_name} ---\n{output}"


class OrchestrationCoordinator:
    """Build and run an ordered agent pipeline, exposing the last agent's stream.

    ``invoke`` returns once the final agent has produced its first delta, so
    any failure before output exists is raised by ``invoke`` itself. The
    runtime is drained on every exit path.
    """

    def __init__(
        self,
        runtime: AgentRuntime,
        resolve_backend: BackendResolver,
        *,
        deadline_seconds: float = DEFAULT_DEADLINE_SECONDS,
    ) -> None:
        self._runtime = runtime
        self._resolve_backend = resolve_backend
        self.deadline_seconds = deadline_seconds

    async def invoke(
        self,
        message: str,
        agents: Sequence[AgentDescriptor],
        history: Optional[ChatHistory] = None,
        kernel_args: KernelArgs = None,
    ) -> AsyncIterator[str]:
        pipeline = list(agents)
        if not pipeline:
            raise InvalidPipelineError("At least one agent is required to build a pipeline")
        arguments = kernel_arguments_to_mapping(kernel_args)

        loop = asyncio.get_running_loop()
        run = OrchestrationRun(pipeline=pipeline, deadline=loop.time() + self.deadline_seconds)
        run_history = history.copy() if history is not None else ChatHistory()
        queue: asyncio.Queue[_Item] = asyncio.Queue()
        task: Optional[asyncio.Task[None]] = None

        logger.info(
            "Invoking pipeline of %d agent(s): %s",
            len(pipeline), ", ".join(agent.name for agent in pipeline),
        )
        try:
            run.handle = await self._start_runtime(run)
            run.state = RunState.RUNTIME_READY
            task = run.handle.spawn(self._execute(run, message, run_history, arguments, queue))
            run.state = RunState.INVOKING
            first = await self._next_item(run, queue, task)
        except BaseException as exc:
            if isinstance(exc, Exception):
                run.state = RunState.FAILED
            await self._release(run, task)
            raise

        return self._stream(run, queue, task, first)

    async def _start_runtime(self, run: OrchestrationRun):
        remaining = run.deadline - asyncio.get_running_loop().time()
        try:
            return await asyncio.wait_for(self._runtime.ensure_started(), remaining)
        except asyncio.TimeoutError:
            raise OrchestrationTimeoutError(
                f"Agent runtime did not start within {self.deadline_seconds:g} seconds"
            ) from None
        except Exception as exc:
            raise OrchestrationError(f"Agent runtime failed to start: {exc}", cause=exc) from exc

    async def _execute(
        self,
        run: OrchestrationRun,
        message: str,
        history: ChatHistory,
        arguments: Dict[str, str],
        queue: asyncio.Queue[_Item],
    ) -> None:
        try:
            current_input = message
            last_index = len(run.pipeline) - 1
            for index, agent in enumerate(run.pipeline):
                backend = self._resolve_backend(agent)
                if index < last_index:
                    parts = [delta async for delta in backend.invoke_streaming(current_input, history, arguments)]
                    current_input = compose_handoff(message, agent.name, "".join(parts))
                    continue
                produced = False
                async for delta in backend.invoke_streaming(current_input, history, arguments):
                    if delta:
                        produced = True
                        queue.put_nowait(delta)
                if not produced:
                    raise OrchestrationError(f"Agent '{agent.name}' returned an empty reply")
            queue.put_nowait(_DONE)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            queue.put_nowait(_Failure(exc))

    async def _next_item(
        self, run: OrchestrationRun, queue: asyncio.Queue[_Item], task: asyncio.Task[None]
    ) -> Union[str, _Done]:
        remaining = run.deadline - asyncio.get_running_loop().time()
        try:
            if remaining <= 0:
                # Output queued before the deadline is still delivered.
                item = queue.get_nowait()
            else:
                item = await asyncio.wait_for(queue.get(), remaining)
        except (asyncio.TimeoutError, asyncio.QueueEmpty):
            task.cancel()
            raise OrchestrationTimeoutError(
                f"Orchestration did not complete within {self.deadline_seconds:g} seconds"
            ) from None
        if isinstance(item, _Failure):
            if isinstance(item.error, OrchestrationError):
                raise item.error
            raise OrchestrationError(f"Orchestration failed: {item.error}", cause=item.error) from item.error
        return item

    async def _stream(
        self,
        run: OrchestrationRun,
        queue: asyncio.Queue[_Item],
        task: asyncio.Task[None],
        first: Union[str, _Done],
    ) -> AsyncIterator[str]:
        run.state = RunState.STREAMING
        try:
            item = first
            while not isinstance(item, _Done):
                yield item
                item = await self._next_item(run, queue, task)
        except Exception:
            run.state = RunState.FAILED
            raise
        finally:
            await self._release(run, task)

    async def _release(self, run: OrchestrationRun, task: Optional[asyncio.Task[None]]) -> None:
        if task is not None:
            if not task.done():
                task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        await self._runtime.drain_until_idle()
        run.state = RunState.DRAINED
        logger.debug("Orchestration run drained")
