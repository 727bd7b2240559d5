"""LLM client pool for shared model access with concurrency control."""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

from openai import AsyncAzureOpenAI

from agentchat.config import AzureOpenAIConfig

logger = logging.getLogger(__name__)


class LLMPool:
    """Manages shared LLM clients with concurrency limiting."""

    def __init__(self) -> None:
        self._configs: Dict[str, AzureOpenAIConfig] = {}
        self._clients: Dict[str, Any] = {}
        self._semaphores: Dict[str, asyncio.Semaphore] = {}

    def register_azure_openai(self, name: str, config: AzureOpenAIConfig) -> None:
        """Register an Azure OpenAI deployment under ``name``."""
        self._configs[name] = config
        self._semaphores[name] = asyncio.Semaphore(config.max_concurrent)

    def register_client(self, name: str, client: Any, max_concurrent: int = 50) -> None:
        """Register an already constructed client (any OpenAI-compatible async client)."""
        self._clients[name] = client
        self._semaphores[name] = asyncio.Semaphore(max_concurrent)

    def is_registered(self, model_name: str) -> bool:
        return model_name in self._semaphores

    def deployment_for(self, model_name: str) -> str:
        config = self._configs.get(model_name)
        return config.deployment_name if config else model_name

    @asynccontextmanager
    async def acquire(self, model_name: str) -> AsyncIterator[Any]:
        """Acquire access to a model client with concurrency control."""
        if model_name not in self._semaphores:
            raise KeyError(f"Model '{model_name}' not registered in LLM pool")

        async with self._semaphores[model_name]:
            # Lazy initialization on first use
            if model_name not in self._clients:
                self._clients[model_name] = self._create_client(self._configs[model_name])
            yield self._clients[model_name]

    async def close(self) -> None:
        """Close every initialised client."""
        clients = list(self._clients.items())
        self._clients = {name: client for name, client in clients if name not in self._configs}
        for name, client in clients:
            if name not in self._configs:
                continue
            try:
                await client.close()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Failed to close LLM client '%s': %s", name, exc)

    @staticmethod
    def _create_client(config: AzureOpenAIConfig) -> AsyncAzureOpenAI:
        return AsyncAzureOpenAI(
            api_key=config.api_key,
            api_version=config.api_version,
            azure_endpoint=config.endpoint,
        )
