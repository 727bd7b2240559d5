"""Capability interface the orchestration layer uses to invoke an agent."""
from __future__ import annotations

import asyncio
from typing import AsyncIterator, Callable, Mapping, Protocol, runtime_checkable

from agentchat.core.models import AgentDescriptor, ChatHistory


@runtime_checkable
class AgentBackend(Protocol):
    """Anything that can turn a message into a lazy stream of text deltas."""

    def invoke_streaming(
        self,
        message: str,
        history: ChatHistory,
        kernel_args: Mapping[str, str],
    ) -> AsyncIterator[str]: ...


BackendResolver = Callable[[AgentDescriptor], AgentBackend]


class EchoBackend:
    """Backend that echoes the incoming message; used by the demo and tests."""

    def __init__(self, name: str, delay: float = 0.0) -> None:
        self.name = name
        self.delay = delay

    async def invoke_streaming(
        self,
        message: str,
        history: ChatHistory,
        kernel_args: Mapping[str, str],
    ) -> AsyncIterator[str]:
        words = f"{self.name} heard {message}".split(" ")
        for index, word in enumerate(words):
            if self.delay:
                await asyncio.sleep(self.delay)  # Simulate work
            yield word if index == 0 else f" {word}"
