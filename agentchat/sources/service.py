"""Management operations for context source definitions."""
from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from agentchat.core.errors import SourceValidationError
from agentchat.core.models import ContextSourceDescriptor, ContextSourceKind
from agentchat.sources.aggregator import SourceAggregator
from agentchat.sources.local_files import LocalFilesConfiguration
from agentchat.sources.validation import validate_descriptor
from agentchat.store.repositories import SqliteContextSourceRepository

logger = logging.getLogger(__name__)


class ContextSourceService:
    """Validate, persist and re-activate context sources."""

    def __init__(self, repository: SqliteContextSourceRepository, aggregator: SourceAggregator) -> None:
        self._repository = repository
        self._aggregator = aggregator

    async def list(self) -> List[ContextSourceDescriptor]:
        return await self._repository.get_all()

    async def get(self, source_id: int) -> Optional[ContextSourceDescriptor]:
        return await self._repository.get(source_id)

    async def save(self, descriptor: ContextSourceDescriptor) -> ContextSourceDescriptor:
        if not validate_descriptor(descriptor):
            raise SourceValidationError(f"Invalid configuration for context source '{descriptor.name}'")
        saved = await self._repository.save(descriptor)
        await self._aggregator.refresh()
        return saved

    async def set_enabled(self, source_id: int, enabled: bool) -> Optional[ContextSourceDescriptor]:
        current = await self._repository.get(source_id)
        if current is None:
            return None
        updated = replace(current, enabled=enabled)
        if enabled and not validate_descriptor(updated):
            raise SourceValidationError(f"Cannot enable context source '{current.name}': invalid configuration")
        saved = await self._repository.save(updated)
        await self._aggregator.refresh()
        return saved

    async def delete(self, source_id: int) -> bool:
        deleted = await self._repository.delete(source_id)
        if deleted:
            await self._aggregator.refresh()
        return deleted

    async def import_file(self, file_path: str | Path) -> ContextSourceDescriptor:
        """Register a single file as a local files source."""
        path = Path(file_path)
        configuration = LocalFilesConfiguration(file_path=str(path))
        descriptor = ContextSourceDescriptor(
            name=f"File: {path.stem}",
            description=f"Single file data source: {path.name}",
            kind=ContextSourceKind.LOCAL_FILES,
            configuration=configuration.model_dump_json(indent=2),
            enabled=True,
        )
        saved = await self.save(descriptor)
        logger.info("Imported file '%s' as context source '%s'", path.name, saved.name)
        return saved
