"""Agent catalog: stored agent definitions and the backends serving them."""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from agentchat.agents.backends import AgentBackend
from agentchat.agents.persona import AgentTemplateWriter
from agentchat.core.errors import StoreError
from agentchat.core.models import AgentDescriptor
from agentchat.store.repositories import SqliteAgentRepository

logger = logging.getLogger(__name__)


class AgentSeed(BaseModel):
    """One entry of an ``agents.config.json`` seed file."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(alias="Name")
    description: str = Field(default="", alias="Description")
    instructions_path: str = Field(default="", alias="InstructionsPath")
    persona_path: str = Field(default="", alias="PromptyPath")


class AgentCatalog:
    """Service layer over the agent repository."""

    def __init__(
        self,
        repository: SqliteAgentRepository,
        backend_factory: Callable[[AgentDescriptor], AgentBackend],
        templates: Optional[AgentTemplateWriter] = None,
    ) -> None:
        self._repository = repository
        self._backend_factory = backend_factory
        self._templates = templates
        self._backends: Dict[str, AgentBackend] = {}

    async def list(self) -> List[AgentDescriptor]:
        return await self._repository.get_all()

    async def get(self, agent_id: int) -> Optional[AgentDescriptor]:
        return await self._repository.get(agent_id)

    async def save(self, agent: AgentDescriptor) -> AgentDescriptor:
        if not agent.name or not agent.name.strip():
            raise ValueError("Agent name cannot be null or empty")
        is_new = agent.id is None
        saved = await self._repository.save(agent)
        if is_new and self._templates is not None:
            saved = await self._write_templates(saved)
        self._backends.pop(saved.name, None)
        return saved

    async def _write_templates(self, agent: AgentDescriptor) -> AgentDescriptor:
        """Generate starter files for any reference the new agent left blank."""
        if agent.instructions_ref and agent.persona_ref:
            return agent
        try:
            instructions_ref = agent.instructions_ref or str(
                await asyncio.to_thread(self._templates.create_instructions, agent.name, agent.description)
            )
            persona_ref = agent.persona_ref or str(
                await asyncio.to_thread(self._templates.create_persona, agent.name, agent.description)
            )
        except (OSError, ValueError) as exc:
            logger.warning("Could not write template files for agent '%s': %s", agent.name, exc)
            return agent
        return await self._repository.save(
            replace(agent, instructions_ref=instructions_ref, persona_ref=persona_ref)
        )

    async def delete(self, agent_id: int) -> bool:
        existing = await self._repository.get(agent_id)
        deleted = await self._repository.delete(agent_id)
        if deleted and existing is not None:
            self._backends.pop(existing.name, None)
        return deleted

    def resolve_backend(self, agent: AgentDescriptor) -> AgentBackend:
        """Return the backend for ``agent``, building it once per agent name."""
        backend = self._backends.get(agent.name)
        if backend is None:
            backend = self._backend_factory(agent)
            self._backends[agent.name] = backend
        return backend

    async def seed_from_json(self, path: str | Path) -> bool:
        """Import agents from a JSON seed file when the catalog is still empty.

        Returns ``True`` when agents were imported. Failures are logged and
        reported as ``False``; a bad seed file never stops start-up.
        """
        seed_path = Path(path)
        if not seed_path.is_file():
            return False
        try:
            if await self._repository.get_all():
                return False
            raw = await asyncio.to_thread(seed_path.read_text, encoding="utf-8")
            seeds = [AgentSeed.model_validate(item) for item in _load_json_list(raw)]
            if not seeds:
                return False
            for seed in seeds:
                await self._repository.save(
                    AgentDescriptor(
                        name=seed.name,
                        description=seed.description,
                        instructions_ref=seed.instructions_path,
                        persona_ref=seed.persona_path,
                    )
                )
        except (StoreError, ValidationError, ValueError, OSError) as exc:
            logger.warning("Failed to seed agents from %s: %s", seed_path, exc)
            return False
        logger.info("Seeded %d agents from %s", len(seeds), seed_path)
        return True


def _load_json_list(raw: str) -> list:
    data = json.loads(raw)
    if not isinstance(data, list):
        raise ValueError("Agent seed file must contain a JSON array")
    return data
