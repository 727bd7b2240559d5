"""Exception taxonomy shared by the store, source and orchestration layers."""
from __future__ import annotations

from typing import Optional


class AgentChatError(Exception):
    """Base class for every error raised by the engine."""


class StoreError(AgentChatError):
    """Persistence failure that is not worth retrying any further."""

    def __init__(self, message: str, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


class TransientStoreError(StoreError):
    """Temporary contention (busy, locked, interrupted I/O); safe to retry."""


class IntegrityError(StoreError):
    """Unique-constraint or reference violation; retrying cannot help."""


class CorruptionError(StoreError):
    """The backing store is damaged or is not a database at all."""


class InvalidPipelineError(AgentChatError, ValueError):
    """Raised when an orchestration is requested without any agent."""


class OrchestrationError(AgentChatError):
    """Runtime, transport or agent failure during an orchestration run."""

    def __init__(self, message: str, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause


class OrchestrationTimeoutError(OrchestrationError):
    """The run did not complete before its deadline."""


class SourceSearchError(AgentChatError):
    """A single context source failed; always isolated to that source."""

    def __init__(self, source_name: str, message: str) -> None:
        super().__init__(f"{source_name}: {message}")
        self.source_name = source_name


class SourceValidationError(AgentChatError, ValueError):
    """A context source definition failed validation."""
