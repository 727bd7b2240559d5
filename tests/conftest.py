"""Shared fakes for orchestration tests."""
from __future__ import annotations

import asyncio
from typing import AsyncIterator, List, Mapping, Optional, Tuple

import pytest

from agentchat.core.models import AgentDescriptor, ChatHistory


class ScriptedBackend:
    """Backend yielding fixed deltas, optionally failing or stalling first."""

    def __init__(
        self,
        deltas: List[str],
        *,
        error: Optional[Exception] = None,
        fail_after: int = 0,
        delay: float = 0.0,
    ) -> None:
        self.deltas = deltas
        self.error = error
        self.fail_after = fail_after
        self.delay = delay
        self.calls: List[Tuple[str, List[str], dict]] = []

    async def invoke_streaming(
        self, message: str, history: ChatHistory, kernel_args: Mapping[str, str]
    ) -> AsyncIterator[str]:
        self.calls.append((message, [turn.content for turn in history], dict(kernel_args)))
        if self.delay:
            await asyncio.sleep(self.delay)
        for index, delta in enumerate(self.deltas):
            if self.error is not None and index == self.fail_after:
                raise self.error
            yield delta
        if self.error is not None and self.fail_after >= len(self.deltas):
            raise self.error


class Backends(dict):
    """Name-to-backend map usable as a backend resolver."""

    def __call__(self, agent: AgentDescriptor) -> ScriptedBackend:
        return self[agent.name]


@pytest.fixture
def agents() -> List[AgentDescriptor]:
    return [AgentDescriptor(name="Writer", id=1), AgentDescriptor(name="Reviewer", id=2)]
