"""FastAPI entry-point exposing the chat engine."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from agentchat import runtime
from agentchat.api.chat import router as chat_router
from agentchat.api.routes import router as agents_router
from agentchat.api.sources import router as sources_router
from agentchat.config import config

logging.basicConfig(
    level=config.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for FastAPI application."""
    await runtime.initialize()
    yield
    # Shutdown: drain and stop the agent runtime
    await runtime.shutdown()


app = FastAPI(title="Agent Chat", lifespan=lifespan)
app.include_router(agents_router)
app.include_router(sources_router)
app.include_router(chat_router)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok", "environment": config.environment}
