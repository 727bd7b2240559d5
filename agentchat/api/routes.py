"""HTTP API for managing stored agents."""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from agentchat.agents.catalog import AgentCatalog
from agentchat.core.errors import IntegrityError, StoreError
from agentchat.core.models import AgentDescriptor
from agentchat.runtime import get_agent_catalog

router = APIRouter(prefix="/agents", tags=["agents"])


class AgentCreateRequest(BaseModel):
    name: str = Field(..., description="Unique agent name")
    description: str = Field(default="", description="Short description shown to users")
    instructions_path: str = Field(default="", description="Path to the system instructions file")
    persona_path: str = Field(default="", description="Path to the persona template")
    id: Optional[int] = Field(default=None, description="Existing agent id to update")


class AgentResponse(BaseModel):
    id: int
    name: str
    description: str
    instructions_path: str
    persona_path: str

    @classmethod
    def from_descriptor(cls, descriptor: AgentDescriptor) -> "AgentResponse":
        return cls(
            id=descriptor.id,
            name=descriptor.name,
            description=descriptor.description,
            instructions_path=descriptor.instructions_ref,
            persona_path=descriptor.persona_ref,
        )


def store_error_to_http(exc: StoreError) -> HTTPException:
    if isinstance(exc.cause, LookupError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc.cause))
    if isinstance(exc, IntegrityError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))


@router.get("", response_model=List[AgentResponse])
async def list_agents(catalog: AgentCatalog = Depends(get_agent_catalog)) -> List[AgentResponse]:
    try:
        agents = await catalog.list()
    except StoreError as exc:
        raise store_error_to_http(exc) from exc
    return [AgentResponse.from_descriptor(agent) for agent in agents]


@router.post("", response_model=AgentResponse, status_code=status.HTTP_201_CREATED)
async def save_agent(
    request: AgentCreateRequest,
    catalog: AgentCatalog = Depends(get_agent_catalog),
) -> AgentResponse:
    descriptor = AgentDescriptor(
        id=request.id,
        name=request.name,
        description=request.description,
        instructions_ref=request.instructions_path,
        persona_ref=request.persona_path,
    )
    try:
        saved = await catalog.save(descriptor)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except StoreError as exc:
        raise store_error_to_http(exc) from exc
    return AgentResponse.from_descriptor(saved)


@router.delete("/{agent_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_agent(agent_id: int, catalog: AgentCatalog = Depends(get_agent_catalog)) -> None:
    try:
        deleted = await catalog.delete(agent_id)
    except StoreError as exc:
        raise store_error_to_http(exc) from exc
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown agent")
