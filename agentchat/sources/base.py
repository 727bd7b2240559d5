"""Base context source definition used by the aggregator."""
from __future__ import annotations

import abc
from typing import Any, Dict, List, Optional

from agentchat.core.models import ContextResult, ContextSourceDescriptor, ContextSourceKind


class ContextSource(abc.ABC):
    """A searchable provider of text that can enrich a user message."""

    def __init__(self, descriptor: ContextSourceDescriptor) -> None:
        self.descriptor = descriptor

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def kind(self) -> ContextSourceKind:
        return self.descriptor.kind

    @property
    def description(self) -> str:
        return self.descriptor.description

    @abc.abstractmethod
    async def search(
        self, query: str, parameters: Optional[Dict[str, Any]] = None
    ) -> List[ContextResult]:
        """Return the context this source holds for ``query``."""

    @abc.abstractmethod
    async def validate_configuration(self) -> bool:
        """Report whether the source is usable as configured."""
