"""Application runtime composition helpers."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from agentchat.agents.backends import AgentBackend, EchoBackend
from agentchat.agents.catalog import AgentCatalog
from agentchat.agents.llm_backend import OpenAIChatBackend
from agentchat.agents.persona import AgentTemplateWriter
from agentchat.config import config
from agentchat.core.models import AgentDescriptor
from agentchat.orchestration.agent_runtime import AgentRuntime
from agentchat.orchestration.chat import ChatEngine, ChatSessions
from agentchat.orchestration.coordinator import OrchestrationCoordinator
from agentchat.orchestration.degradation import DegradationPolicy
from agentchat.services.llm_pool import LLMPool
from agentchat.sources.aggregator import SourceAggregator
from agentchat.sources.service import ContextSourceService
from agentchat.store.repositories import SqliteAgentRepository, SqliteContextSourceRepository
from agentchat.store.resilient import ResilientStore

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "default"


@lru_cache
def get_store() -> ResilientStore:
    return ResilientStore(
        max_attempts=config.store.max_attempts,
        base_delay=config.store.retry_delay,
    )


@lru_cache
def get_agent_repository() -> SqliteAgentRepository:
    return SqliteAgentRepository(config.store.database_path, get_store())


@lru_cache
def get_source_repository() -> SqliteContextSourceRepository:
    return SqliteContextSourceRepository(config.store.database_path, get_store())


@lru_cache
def get_llm_pool() -> LLMPool:
    pool = LLMPool()

    # Register Azure OpenAI if configured
    if config.azure_openai:
        pool.register_azure_openai(DEFAULT_MODEL, config.azure_openai)

    return pool


def _build_backend(agent: AgentDescriptor) -> AgentBackend:
    pool = get_llm_pool()
    if pool.is_registered(DEFAULT_MODEL):
        return OpenAIChatBackend(agent, pool, model_name=DEFAULT_MODEL)
    return EchoBackend(agent.name)


@lru_cache
def get_agent_catalog() -> AgentCatalog:
    return AgentCatalog(
        get_agent_repository(),
        _build_backend,
        templates=AgentTemplateWriter(config.templates_dir),
    )


@lru_cache
def get_agent_runtime() -> AgentRuntime:
    return AgentRuntime(on_stop=get_llm_pool().close)


@lru_cache
def get_source_aggregator() -> SourceAggregator:
    return SourceAggregator(
        get_source_repository(),
        source_timeout=config.orchestration.source_timeout,
    )


@lru_cache
def get_source_service() -> ContextSourceService:
    return ContextSourceService(get_source_repository(), get_source_aggregator())


@lru_cache
def get_coordinator() -> OrchestrationCoordinator:
    return OrchestrationCoordinator(
        get_agent_runtime(),
        get_agent_catalog().resolve_backend,
        deadline_seconds=config.orchestration.deadline_seconds,
    )


@lru_cache
def get_policy() -> DegradationPolicy:
    return DegradationPolicy(get_coordinator())


@lru_cache
def get_chat_sessions() -> ChatSessions:
    return ChatSessions(
        lambda: ChatEngine(
            get_policy(),
            get_source_aggregator(),
            scroll_interval=config.orchestration.scroll_interval,
        ),
        max_sessions=config.orchestration.max_sessions,
    )


def get_chat_engine(session_id: Optional[str] = None) -> ChatEngine:
    """Chat engine (and therefore conversation history) for one session."""
    return get_chat_sessions().get(session_id)


async def initialize() -> None:
    """Create tables, seed agents and activate stored context sources."""
    await get_agent_repository().initialize()
    await get_source_repository().initialize()
    if config.agents_seed_path:
        await get_agent_catalog().seed_from_json(config.agents_seed_path)
    await get_source_aggregator().refresh()
    logger.info("Runtime initialised with database %s", config.store.database_path)


async def shutdown() -> None:
    await get_agent_runtime().stop()


def reset() -> None:
    """Forget every cached component so the next lookup rebuilds it."""
    for getter in (
        get_store,
        get_agent_repository,
        get_source_repository,
        get_llm_pool,
        get_agent_catalog,
        get_agent_runtime,
        get_source_aggregator,
        get_source_service,
        get_coordinator,
        get_policy,
        get_chat_sessions,
    ):
        getter.cache_clear()
