"""Factory turning stored descriptors into live context sources."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from pydantic import ValidationError

from agentchat.core.models import ContextSourceDescriptor, ContextSourceKind
from agentchat.sources.base import ContextSource
from agentchat.sources.local_files import LocalFilesSource


@dataclass(frozen=True)
class Built:
    source: ContextSource


@dataclass(frozen=True)
class Unsupported:
    kind: ContextSourceKind


@dataclass(frozen=True)
class Rejected:
    reason: str


SourceBuild = Union[Built, Unsupported, Rejected]


def build_source(descriptor: ContextSourceDescriptor) -> SourceBuild:
    """Construct the handler for ``descriptor``; anticipated failures are values, not exceptions."""
    if descriptor.kind is ContextSourceKind.LOCAL_FILES:
        try:
            return Built(LocalFilesSource(descriptor))
        except ValidationError as exc:
            return Rejected(f"Invalid local files configuration: {exc.error_count()} error(s)")
    # Web API, database, SharePoint and custom sources are not supported yet.
    return Unsupported(descriptor.kind)
