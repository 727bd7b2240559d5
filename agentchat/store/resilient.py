"""Retry wrapper for units of work against a contended store."""
from __future__ import annotations

import asyncio
import logging
import sqlite3
from enum import Enum, auto
from typing import Awaitable, Callable, Optional, TypeVar

from agentchat.core.errors import CorruptionError, IntegrityError, StoreError, TransientStoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Primary SQLite result codes (extended codes carry these in the low byte).
SQLITE_BUSY = 5
SQLITE_LOCKED = 6
SQLITE_INTERRUPT = 9
SQLITE_IOERR = 10
SQLITE_CORRUPT = 11
SQLITE_CONSTRAINT = 19
SQLITE_NOTADB = 26

_TRANSIENT_CODES = {SQLITE_BUSY, SQLITE_LOCKED, SQLITE_INTERRUPT, SQLITE_IOERR}
_CORRUPTION_CODES = {SQLITE_CORRUPT, SQLITE_NOTADB}


class ErrorKind(Enum):
    TRANSIENT = auto()
    INTEGRITY = auto()
    CORRUPTION = auto()
    OTHER = auto()


def classify_store_error(exc: BaseException) -> ErrorKind:
    """Map an exception raised by a unit of work onto a retry decision."""
    if isinstance(exc, TransientStoreError):
        return ErrorKind.TRANSIENT
    if isinstance(exc, IntegrityError):
        return ErrorKind.INTEGRITY
    if isinstance(exc, CorruptionError):
        return ErrorKind.CORRUPTION
    if not isinstance(exc, sqlite3.Error):
        return ErrorKind.OTHER

    code = getattr(exc, "sqlite_errorcode", None)
    if code is not None:
        primary = code & 0xFF
        if primary in _TRANSIENT_CODES:
            return ErrorKind.TRANSIENT
        if primary == SQLITE_CONSTRAINT:
            return ErrorKind.INTEGRITY
        if primary in _CORRUPTION_CODES:
            return ErrorKind.CORRUPTION
        return ErrorKind.OTHER

    # Older interpreters do not expose the result code.
    if isinstance(exc, sqlite3.IntegrityError):
        return ErrorKind.INTEGRITY
    message = str(exc).lower()
    if "locked" in message or "busy" in message or "interrupted" in message or "disk i/o" in message:
        return ErrorKind.TRANSIENT
    if "malformed" in message or "not a database" in message:
        return ErrorKind.CORRUPTION
    return ErrorKind.OTHER


class ResilientStore:
    """Run store operations with bounded, linearly backed-off retries.

    The wrapper keeps no state between calls, so one instance can be shared by
    any number of concurrent callers.
    """

    def __init__(
        self,
        *,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        classifier: Callable[[BaseException], ErrorKind] = classify_store_error,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._classify = classifier
        self._sleep = sleep

    async def execute(self, operation: Callable[[], Awaitable[T]], purpose: str) -> T:
        """Run ``operation`` and return its result; ``purpose`` labels failures."""
        last_error: Optional[BaseException] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation()
            except Exception as exc:
                kind = self._classify(exc)
                if kind is ErrorKind.TRANSIENT:
                    last_error = exc
                    logger.warning(
                        "Store operation failed (attempt %d/%d): %s: %s",
                        attempt, self.max_attempts, purpose, exc,
                    )
                    if attempt < self.max_attempts:
                        await self._sleep(self.base_delay * attempt)
                    continue
                if kind is ErrorKind.INTEGRITY:
                    if isinstance(exc, IntegrityError):
                        raise
                    raise IntegrityError(
                        f"Constraint violation: {exc}. This may indicate duplicate data or invalid references.",
                        cause=exc,
                    ) from exc
                if kind is ErrorKind.CORRUPTION:
                    if isinstance(exc, CorruptionError):
                        raise
                    raise CorruptionError(f"Store corruption detected: {exc}", cause=exc) from exc
                raise StoreError(f"{purpose}: {exc}", cause=exc) from exc

        raise StoreError(
            f"{purpose} after {self.max_attempts} attempts. Last error: {last_error}",
            cause=last_error,
        ) from last_error
