"""Single-agent fallback when multi-agent coordination fails."""
from __future__ import annotations

import logging
from contextlib import aclosing
from typing import AsyncIterator, Callable, Optional, Sequence

from agentchat.core.errors import OrchestrationError
from agentchat.core.models import AgentDescriptor, ChatHistory, KernelArgs
from agentchat.orchestration.coordinator import OrchestrationCoordinator

logger = logging.getLogger(__name__)


def degradation_notice(agent_name: str) -> str:
    return (
        f"⚠️ Multi-agent orchestration failed; continuing with {agent_name} only.\n\n"
    )


class DegradationPolicy:
    """Wrap a coordinator so a failed pipeline falls back to its first agent, once.

    A multi-agent run degrades whether it fails inside ``invoke`` or while its
    stream is being consumed (deadline included). Chunks already delivered by
    the primary run stay in place; the notice and the fallback reply follow.
    ``on_degraded`` is called with the primary error before the notice.
    """

    def __init__(self, coordinator: OrchestrationCoordinator) -> None:
        self._coordinator = coordinator

    async def run(
        self,
        message: str,
        agents: Sequence[AgentDescriptor],
        history: Optional[ChatHistory] = None,
        kernel_args: KernelArgs = None,
        *,
        on_degraded: Optional[Callable[[OrchestrationError], None]] = None,
    ) -> AsyncIterator[str]:
        pipeline = list(agents)
        try:
            stream = await self._coordinator.invoke(message, pipeline, history, kernel_args)
            async with aclosing(stream):
                async for chunk in stream:
                    yield chunk
            return
        except OrchestrationError as exc:
            if len(pipeline) <= 1:
                raise
            fallback = pipeline[0]
            logger.warning(
                "Orchestration of %d agents failed (%s); degrading to '%s'",
                len(pipeline), exc, fallback.name,
            )
            if on_degraded is not None:
                on_degraded(exc)

        yield degradation_notice(fallback.name)
        # A failure here propagates; there is no second fallback.
        stream = await self._coordinator.invoke(message, [fallback], history, kernel_args)
        async with aclosing(stream):
            async for chunk in stream:
                yield chunk
