"""Context source backed by a single file on the local disk."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from agentchat.core.models import ContextResult, ContextSourceDescriptor
from agentchat.sources.base import ContextSource

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = [".txt", ".md", ".json", ".xml", ".csv", ".pdf", ".doc", ".docx"]
DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024


class LocalFilesConfiguration(BaseModel):
    file_path: str = ""
    supported_extensions: List[str] = Field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE


class LocalFilesSource(ContextSource):
    """Returns the whole configured file as one context result.

    Files outside the extension whitelist or above the size ceiling yield no
    results; that is a configuration boundary, not an error.
    """

    def __init__(self, descriptor: ContextSourceDescriptor) -> None:
        super().__init__(descriptor)
        self.configuration = LocalFilesConfiguration.model_validate_json(descriptor.configuration or "{}")

    @property
    def path(self) -> Path:
        return Path(self.configuration.file_path)

    async def search(
        self, query: str, parameters: Optional[Dict[str, Any]] = None
    ) -> List[ContextResult]:
        if not await self.validate_configuration():
            return []
        if not self._is_supported() or not self._is_size_acceptable():
            return []

        content = await asyncio.to_thread(self.path.read_text, encoding="utf-8", errors="replace")
        if not content.strip():
            return []
        stat = self.path.stat()
        return [
            ContextResult(
                content=content,
                title=self.path.name,
                source_name=self.name,
                source_kind="LocalFile",
                metadata={
                    "file_path": str(self.path),
                    "file_size": stat.st_size,
                    "last_modified": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                },
            )
        ]

    async def validate_configuration(self) -> bool:
        if not self.configuration.file_path.strip():
            return False
        return await asyncio.to_thread(is_readable_file, self.path)

    def _is_supported(self) -> bool:
        allowed = {ext.lower() for ext in self.configuration.supported_extensions}
        return self.path.suffix.lower() in allowed

    def _is_size_acceptable(self) -> bool:
        try:
            return self.path.stat().st_size <= self.configuration.max_file_size_bytes
        except OSError:
            return False


def is_readable_file(path: Path) -> bool:
    if not path.is_file():
        return False
    try:
        with path.open("rb"):
            return True
    except OSError as exc:
        logger.debug("File %s is not readable: %s", path, exc)
        return False
