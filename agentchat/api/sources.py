"""HTTP API for registering and toggling context sources."""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from agentchat.api.routes import store_error_to_http
from agentchat.core.errors import SourceValidationError, StoreError
from agentchat.core.models import ContextSourceDescriptor, ContextSourceKind
from agentchat.runtime import get_source_service
from agentchat.sources.service import ContextSourceService

router = APIRouter(prefix="/sources", tags=["sources"])


class SourceCreateRequest(BaseModel):
    name: str = Field(..., description="Unique source name")
    kind: ContextSourceKind = Field(..., description="Kind of context source")
    configuration: Dict[str, Any] = Field(default_factory=dict)
    description: str = ""
    enabled: bool = True
    id: Optional[int] = Field(default=None, description="Existing source id to update")


class ImportFileRequest(BaseModel):
    file_path: str = Field(..., description="Path of the file to register as a context source")


class EnabledRequest(BaseModel):
    enabled: bool


class SourceResponse(BaseModel):
    id: int
    name: str
    kind: ContextSourceKind
    configuration: Dict[str, Any]
    description: str
    enabled: bool
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None

    @classmethod
    def from_descriptor(cls, descriptor: ContextSourceDescriptor) -> "SourceResponse":
        try:
            configuration = json.loads(descriptor.configuration)
        except ValueError:
            configuration = {}
        return cls(
            id=descriptor.id,
            name=descriptor.name,
            kind=descriptor.kind,
            configuration=configuration if isinstance(configuration, dict) else {},
            description=descriptor.description,
            enabled=descriptor.enabled,
            created_at=descriptor.created_at,
            modified_at=descriptor.modified_at,
        )


@router.get("", response_model=List[SourceResponse])
async def list_sources(service: ContextSourceService = Depends(get_source_service)) -> List[SourceResponse]:
    try:
        sources = await service.list()
    except StoreError as exc:
        raise store_error_to_http(exc) from exc
    return [SourceResponse.from_descriptor(source) for source in sources]


@router.post("", response_model=SourceResponse, status_code=status.HTTP_201_CREATED)
async def save_source(
    request: SourceCreateRequest,
    service: ContextSourceService = Depends(get_source_service),
) -> SourceResponse:
    descriptor = ContextSourceDescriptor(
        id=request.id,
        name=request.name,
        kind=request.kind,
        configuration=json.dumps(request.configuration),
        description=request.description,
        enabled=request.enabled,
    )
    try:
        saved = await service.save(descriptor)
    except SourceValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except StoreError as exc:
        raise store_error_to_http(exc) from exc
    return SourceResponse.from_descriptor(saved)


@router.post("/import", response_model=SourceResponse, status_code=status.HTTP_201_CREATED)
async def import_file(
    request: ImportFileRequest,
    service: ContextSourceService = Depends(get_source_service),
) -> SourceResponse:
    try:
        imported = await service.import_file(request.file_path)
    except SourceValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except StoreError as exc:
        raise store_error_to_http(exc) from exc
    return SourceResponse.from_descriptor(imported)


@router.post("/{source_id}/enabled", response_model=SourceResponse)
async def set_source_enabled(
    source_id: int,
    request: EnabledRequest,
    service: ContextSourceService = Depends(get_source_service),
) -> SourceResponse:
    try:
        updated = await service.set_enabled(source_id, request.enabled)
    except SourceValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except StoreError as exc:
        raise store_error_to_http(exc) from exc
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown context source")
    return SourceResponse.from_descriptor(updated)


@router.delete("/{source_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_source(source_id: int, service: ContextSourceService = Depends(get_source_service)) -> None:
    try:
        deleted = await service.delete(source_id)
    except StoreError as exc:
        raise store_error_to_http(exc) from exc
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown context source")
