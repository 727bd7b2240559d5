"""Concurrent fan-out search across every active context source."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence

from agentchat.config import DEFAULT_SOURCE_TIMEOUT
from agentchat.core.errors import SourceSearchError
from agentchat.core.models import ContextResult, ContextSourceDescriptor
from agentchat.sources.base import ContextSource
from agentchat.sources.factory import Rejected, Unsupported, build_source

logger = logging.getLogger(__name__)

CONTEXT_HEADER = "--- DOCUMENT CONTEXT ---"


class SourceDefinitions(Protocol):
    async def get_all(self) -> Sequence[ContextSourceDescriptor]: ...


class SourceAggregator:
    """Keep the set of active sources and merge their search results.

    Every source search is bounded by ``source_timeout`` so a hung source cannot
    stall the chat turn; pass ``None`` only when sources enforce their own limit.
    """

    def __init__(
        self,
        definitions: SourceDefinitions,
        *,
        source_timeout: Optional[float] = DEFAULT_SOURCE_TIMEOUT,
    ) -> None:
        self._definitions = definitions
        self._source_timeout = source_timeout
        self._active: Dict[int, ContextSource] = {}

    @property
    def source_timeout(self) -> Optional[float]:
        return self._source_timeout

    def active_sources(self) -> List[ContextSource]:
        return list(self._active.values())

    async def refresh(self) -> None:
        """Rebuild the active set from the stored definitions."""
        descriptors = await self._definitions.get_all()
        active: Dict[int, ContextSource] = {}

        for descriptor in descriptors:
            if not descriptor.enabled:
                continue
            outcome = build_source(descriptor)
            if isinstance(outcome, Unsupported):
                logger.info(
                    "Context source '%s' skipped: %s sources are not supported yet",
                    descriptor.name, outcome.kind.value,
                )
                continue
            if isinstance(outcome, Rejected):
                logger.warning("Context source '%s' rejected: %s", descriptor.name, outcome.reason)
                continue
            source = outcome.source
            try:
                valid = await source.validate_configuration()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Context source '%s' failed validation: %s", descriptor.name, exc)
                continue
            if not valid:
                logger.warning("Context source '%s' deactivated: configuration is not valid", descriptor.name)
                continue
            key = descriptor.id if descriptor.id is not None else -len(active) - 1
            active[key] = source

        self._active = active
        logger.info("Context sources refreshed: %d active", len(active))

    async def search(
        self, query: str, parameters: Optional[Dict[str, Any]] = None
    ) -> List[ContextResult]:
        """Search every active source concurrently; failing sources contribute nothing."""
        if not query or not query.strip():
            return []

        sources = list(self._active.values())
        if not sources:
            return []

        batches = await asyncio.gather(
            *(self._search_one(source, query, parameters) for source in sources)
        )
        return [result for batch in batches for result in batch]

    async def _search_one(
        self, source: ContextSource, query: str, parameters: Optional[Dict[str, Any]]
    ) -> List[ContextResult]:
        try:
            if self._source_timeout is None:
                return list(await source.search(query, parameters))
            return list(await asyncio.wait_for(source.search(query, parameters), self._source_timeout))
        except asyncio.TimeoutError:
            error = SourceSearchError(source.name, f"timed out after {self._source_timeout}s")
        except Exception as exc:  # noqa: BLE001
            error = SourceSearchError(source.name, str(exc) or type(exc).__name__)
        logger.warning("Search failed for context source %s", error)
        return []


def build_context_block(message: str, results: Iterable[ContextResult]) -> str:
    """Append retrieved context to ``message``, labelling each piece with its source."""
    results = list(results)
    if not results:
        return message

    lines = [message, "", CONTEXT_HEADER]
    for result in results:
        lines.append(f"--- {result.title} ({result.source_name}) ---")
        lines.append(result.content)
        lines.append("")
    return "\n".join(lines)
