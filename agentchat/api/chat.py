"""Chat and context search endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from agentchat.agents.catalog import AgentCatalog
from agentchat.api.routes import store_error_to_http
from agentchat.core.errors import StoreError
from agentchat.orchestration.chat import DEFAULT_SESSION
from agentchat.runtime import get_agent_catalog, get_chat_engine

router = APIRouter(tags=["chat"])


class ChatRequest(BaseModel):
    message: str = Field(..., description="User message")
    agents: List[str] = Field(..., description="Names of the selected agents, in pipeline order")
    kernel_args: Dict[str, str] = Field(default_factory=dict)
    session_id: str = Field(
        default=DEFAULT_SESSION,
        description="Session identifier for conversation continuity",
    )


class ContextSearchRequest(BaseModel):
    query: str
    parameters: Dict[str, Any] = Field(default_factory=dict)


class ContextResultResponse(BaseModel):
    content: str
    title: str
    source_name: str
    source_kind: str
    metadata: Dict[str, Any]
    retrieved_at: datetime


@router.post("/chat")
async def chat(
    request: ChatRequest,
    catalog: AgentCatalog = Depends(get_agent_catalog),
) -> StreamingResponse:
    """Stream the reply of the selected agents as plain text."""
    if not request.agents:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Select at least one agent before sending a message",
        )
    if not request.message.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message cannot be empty")

    try:
        known = {agent.name: agent for agent in await catalog.list()}
    except StoreError as exc:
        raise store_error_to_http(exc) from exc
    missing = [name for name in request.agents if name not in known]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown agent(s): {', '.join(missing)}",
        )

    engine = get_chat_engine(request.session_id)
    stream = engine.send_message(
        request.message,
        [known[name] for name in request.agents],
        request.kernel_args,
    )
    return StreamingResponse(stream, media_type="text/plain; charset=utf-8")


@router.post("/context/search", response_model=List[ContextResultResponse])
async def search_context(request: ContextSearchRequest) -> List[ContextResultResponse]:
    engine = get_chat_engine()
    results = await engine.search_context(request.query, request.parameters)
    return [
        ContextResultResponse(
            content=result.content,
            title=result.title,
            source_name=result.source_name,
            source_kind=result.source_kind,
            metadata=result.metadata,
            retrieved_at=result.retrieved_at,
        )
        for result in results
    ]
