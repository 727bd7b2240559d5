"""CLI demonstration of a two-agent chat turn with local file context."""
from __future__ import annotations

import asyncio
import json
import sys
import tempfile
from pathlib import Path
from typing import List

from agentchat.agents.backends import EchoBackend
from agentchat.core.errors import OrchestrationError
from agentchat.core.models import AgentDescriptor, ContextSourceDescriptor, ContextSourceKind
from agentchat.core.selection import (
    AgentPicked,
    AgentsLoaded,
    MultiSelectToggled,
    SelectionState,
    reduce_selection,
)
from agentchat.orchestration.agent_runtime import AgentRuntime
from agentchat.orchestration.chat import ChatEngine
from agentchat.orchestration.coordinator import OrchestrationCoordinator
from agentchat.orchestration.degradation import DegradationPolicy
from agentchat.sources.aggregator import SourceAggregator


class _StaticDefinitions:
    def __init__(self, descriptors: List[ContextSourceDescriptor]) -> None:
        self._descriptors = descriptors

    async def get_all(self) -> List[ContextSourceDescriptor]:
        return list(self._descriptors)


async def main() -> None:
    with tempfile.TemporaryDirectory() as workdir:
        notes = Path(workdir) / "notes.md"
        notes.write_text("Release 2.1 ships on Friday.", encoding="utf-8")

        aggregator = SourceAggregator(
            _StaticDefinitions(
                [
                    ContextSourceDescriptor(
                        id=1,
                        name="Notes",
                        kind=ContextSourceKind.LOCAL_FILES,
                        configuration=json.dumps({"file_path": str(notes)}),
                    )
                ]
            )
        )
        await aggregator.refresh()

        backends = {}

        def resolve(agent: AgentDescriptor) -> EchoBackend:
            return backends.setdefault(agent.name, EchoBackend(agent.name, delay=0.01))

        runtime = AgentRuntime()
        engine = ChatEngine(
            DegradationPolicy(OrchestrationCoordinator(runtime, resolve, deadline_seconds=10)),
            aggregator,
        )

        selection = SelectionState()
        for event in (
            AgentsLoaded((AgentDescriptor(name="Writer", id=1), AgentDescriptor(name="Reviewer", id=2))),
            MultiSelectToggled(),
            AgentPicked("Reviewer"),
        ):
            selection = reduce_selection(selection, event)
        print(selection.status_text())

        def report(error: OrchestrationError) -> None:
            print(f"[degraded: {error}]", file=sys.stderr)

        async for chunk in engine.send_message(
            "When is the release?", selection.selected_agents(), on_degraded=report
        ):
            sys.stdout.write(chunk)
            sys.stdout.flush()
        print()

        await runtime.stop()
        print(f"History now holds {len(engine.history)} turns")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
