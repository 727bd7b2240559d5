"""Pure reducer for the agent selection shown next to the chat input.

The presentation layer feeds events in and renders whatever state comes out;
nothing here touches UI objects.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Tuple, Union

from agentchat.core.models import AgentDescriptor


@dataclass(frozen=True)
class SelectionState:
    available: Tuple[AgentDescriptor, ...] = ()
    selected: Tuple[str, ...] = ()
    multi_select: bool = False

    def selected_agents(self) -> list[AgentDescriptor]:
        """Selected descriptors in selection order, flagged ``selected=True``."""
        by_name = {agent.name: agent for agent in self.available}
        return [replace(by_name[name], selected=True) for name in self.selected if name in by_name]

    def status_text(self) -> str:
        if not self.selected:
            return "No agent selected"
        if len(self.selected) == 1:
            return f"Chatting with {self.selected[0]}"
        return f"Orchestrating {len(self.selected)} agents: {' → '.join(self.selected)}"


@dataclass(frozen=True)
class AgentsLoaded:
    agents: Tuple[AgentDescriptor, ...]


@dataclass(frozen=True)
class AgentPicked:
    name: str


@dataclass(frozen=True)
class AgentDeselected:
    name: str


@dataclass(frozen=True)
class MultiSelectToggled:
    pass


SelectionEvent = Union[AgentsLoaded, AgentPicked, AgentDeselected, MultiSelectToggled]


def reduce_selection(state: SelectionState, event: SelectionEvent) -> SelectionState:
    """Return the selection that results from applying ``event`` to ``state``."""
    if isinstance(event, AgentsLoaded):
        names = {agent.name for agent in event.agents}
        kept = tuple(name for name in state.selected if name in names)
        if not kept and event.agents:
            kept = (event.agents[0].name,)
        return replace(state, available=tuple(event.agents), selected=kept)

    if isinstance(event, AgentPicked):
        if event.name not in {agent.name for agent in state.available}:
            return state
        if not state.multi_select:
            return replace(state, selected=(event.name,))
        if event.name in state.selected:
            return replace(state, selected=tuple(n for n in state.selected if n != event.name))
        return replace(state, selected=state.selected + (event.name,))

    if isinstance(event, AgentDeselected):
        return replace(state, selected=tuple(n for n in state.selected if n != event.name))

    if isinstance(event, MultiSelectToggled):
        if state.multi_select:
            # Leaving multi-select keeps only the first pick.
            return replace(state, multi_select=False, selected=state.selected[:1])
        return replace(state, multi_select=True)

    raise TypeError(f"Unknown selection event: {event!r}")
