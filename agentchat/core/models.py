"""Core data models shared across the store, sources and orchestration."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, auto
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Union


class ContextSourceKind(Enum):
    """Kinds of context source a user can register."""

    LOCAL_FILES = "LocalFiles"
    WEB_API = "WebApi"
    DATABASE = "Database"
    SHAREPOINT = "SharePoint"
    CUSTOM = "Custom"


class RunState(Enum):
    """Lifecycle states of a single orchestration run."""

    IDLE = auto()
    RUNTIME_READY = auto()
    INVOKING = auto()
    STREAMING = auto()
    FAILED = auto()
    DRAINED = auto()


@dataclass(frozen=True, slots=True)
class AgentDescriptor:
    """Persisted agent definition; ``selected`` is transient UI state."""

    name: str
    description: str = ""
    instructions_ref: str = ""
    persona_ref: str = ""
    id: Optional[int] = None
    selected: bool = field(default=False, compare=False)


@dataclass(frozen=True, slots=True)
class KernelArgument:
    """Templating parameter handed opaquely to the agent backend."""

    key: str
    value: str
    description: str = ""


KernelArgs = Union[Sequence[KernelArgument], Mapping[str, str], None]


def kernel_arguments_to_mapping(arguments: KernelArgs) -> Dict[str, str]:
    """Flatten kernel arguments into a mapping, rejecting duplicate keys."""
    if arguments is None:
        return {}
    if isinstance(arguments, Mapping):
        return {str(key): str(value) for key, value in arguments.items()}
    mapping: Dict[str, str] = {}
    for argument in arguments:
        if argument.key in mapping:
            raise ValueError(f"Duplicate kernel argument '{argument.key}'")
        mapping[argument.key] = argument.value
    return mapping


@dataclass(frozen=True, slots=True)
class ContextSourceDescriptor:
    """Stored configuration of one context source."""

    name: str
    kind: ContextSourceKind
    configuration: str = "{}"
    enabled: bool = True
    description: str = ""
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class ContextResult:
    """One piece of retrieved context, attributed to the source it came from."""

    content: str
    title: str
    source_name: str
    source_kind: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    retrieved_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True, slots=True)
class ChatTurn:
    role: str
    content: str
    author: Optional[str] = None


class ChatHistory:
    """Ordered conversation turns."""

    def __init__(self, turns: Optional[Iterable[ChatTurn]] = None) -> None:
        self._turns: List[ChatTurn] = list(turns or [])

    def add_user(self, content: str) -> None:
        self._turns.append(ChatTurn(role="user", content=content))

    def add_assistant(self, content: str, author: Optional[str] = None) -> None:
        self._turns.append(ChatTurn(role="assistant", content=content, author=author))

    def copy(self) -> "ChatHistory":
        return ChatHistory(self._turns)

    @property
    def turns(self) -> List[ChatTurn]:
        return list(self._turns)

    def __iter__(self) -> Iterator[ChatTurn]:
        return iter(list(self._turns))

    def __len__(self) -> int:
        return len(self._turns)


@dataclass(slots=True)
class OrchestrationRun:
    """Ephemeral state of one user turn inside the coordinator."""

    pipeline: List[AgentDescriptor]
    deadline: float
    handle: Any = None
    state: RunState = RunState.IDLE
