"""SQLite repositories for agent and context source definitions."""
from __future__ import annotations

import asyncio
import logging
import sqlite3
from contextlib import closing
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from agentchat.core.models import AgentDescriptor, ContextSourceDescriptor, ContextSourceKind
from agentchat.store.resilient import ResilientStore

logger = logging.getLogger(__name__)


class _SqliteRepository:
    """Shared connection handling; every call opens its own short-lived connection."""

    def __init__(self, db_path: str | Path, store: ResilientStore) -> None:
        self.db_path = Path(db_path)
        self._store = store

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    async def _run(self, fn, purpose: str, *args):
        return await self._store.execute(lambda: asyncio.to_thread(fn, *args), purpose)


class SqliteAgentRepository(_SqliteRepository):
    """CRUD access to the ``agents`` table."""

    async def initialize(self) -> None:
        await self._run(self._initialize, "Failed to initialize agents database")

    async def get_all(self) -> List[AgentDescriptor]:
        return await self._run(self._get_all, "Failed to retrieve agents from database")

    async def get(self, agent_id: int) -> Optional[AgentDescriptor]:
        return await self._run(self._get, f"Failed to retrieve agent with ID {agent_id}", agent_id)

    async def save(self, agent: AgentDescriptor) -> AgentDescriptor:
        return await self._run(self._save, f"Failed to save agent '{agent.name}'", agent)

    async def delete(self, agent_id: int) -> bool:
        return await self._run(self._delete, f"Failed to delete agent with ID {agent_id}", agent_id)

    def _initialize(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with closing(self._connect()) as conn, conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS agents (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    description TEXT,
                    instructions_path TEXT,
                    persona_path TEXT
                )
                """
            )

    def _get_all(self) -> List[AgentDescriptor]:
        with closing(self._connect()) as conn:
            rows = conn.execute(
                "SELECT id, name, description, instructions_path, persona_path FROM agents ORDER BY name"
            ).fetchall()
        return [self._from_row(row) for row in rows]

    def _get(self, agent_id: int) -> Optional[AgentDescriptor]:
        with closing(self._connect()) as conn:
            row = conn.execute(
                "SELECT id, name, description, instructions_path, persona_path FROM agents WHERE id = ?",
                (agent_id,),
            ).fetchone()
        return self._from_row(row) if row else None

    def _save(self, agent: AgentDescriptor) -> AgentDescriptor:
        values = (agent.name, agent.description, agent.instructions_ref, agent.persona_ref)
        with closing(self._connect()) as conn, conn:
            if agent.id is not None:
                cursor = conn.execute(
                    """
                    UPDATE agents
                    SET name = ?, description = ?, instructions_path = ?, persona_path = ?
                    WHERE id = ?
                    """,
                    values + (agent.id,),
                )
                if cursor.rowcount == 0:
                    raise LookupError(f"Agent with ID {agent.id} not found for update")
                return replace(agent, selected=False)
            cursor = conn.execute(
                "INSERT INTO agents (name, description, instructions_path, persona_path) VALUES (?, ?, ?, ?)",
                values,
            )
            return replace(agent, id=cursor.lastrowid, selected=False)

    def _delete(self, agent_id: int) -> bool:
        with closing(self._connect()) as conn, conn:
            cursor = conn.execute("DELETE FROM agents WHERE id = ?", (agent_id,))
            return cursor.rowcount > 0

    @staticmethod
    def _from_row(row: sqlite3.Row) -> AgentDescriptor:
        return AgentDescriptor(
            id=row["id"],
            name=row["name"],
            description=row["description"] or "",
            instructions_ref=row["instructions_path"] or "",
            persona_ref=row["persona_path"] or "",
        )


class SqliteContextSourceRepository(_SqliteRepository):
    """CRUD access to the ``context_sources`` table."""

    _COLUMNS = "id, name, description, kind, configuration, enabled, created_at, modified_at"

    async def initialize(self) -> None:
        await self._run(self._initialize, "Failed to initialize context sources database")

    async def get_all(self) -> List[ContextSourceDescriptor]:
        return await self._run(self._get_all, "Failed to retrieve context sources from database")

    async def get(self, source_id: int) -> Optional[ContextSourceDescriptor]:
        return await self._run(self._get, f"Failed to retrieve context source with ID {source_id}", source_id)

    async def save(self, source: ContextSourceDescriptor) -> ContextSourceDescriptor:
        return await self._run(self._save, f"Failed to save context source '{source.name}'", source)

    async def delete(self, source_id: int) -> bool:
        return await self._run(self._delete, f"Failed to delete context source with ID {source_id}", source_id)

    def _initialize(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with closing(self._connect()) as conn, conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS context_sources (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    description TEXT,
                    kind TEXT NOT NULL,
                    configuration TEXT NOT NULL DEFAULT '{}',
                    enabled INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL,
                    modified_at TEXT NOT NULL
                )
                """
            )

    def _get_all(self) -> List[ContextSourceDescriptor]:
        with closing(self._connect()) as conn:
            rows = conn.execute(
                f"SELECT {self._COLUMNS} FROM context_sources ORDER BY created_at DESC, id DESC"
            ).fetchall()
        results = []
        for row in rows:
            try:
                results.append(self._from_row(row))
            except (ValueError, KeyError) as exc:
                logger.warning("Skipping unreadable context source row %s: %s", row["id"], exc)
        return results

    def _get(self, source_id: int) -> Optional[ContextSourceDescriptor]:
        with closing(self._connect()) as conn:
            row = conn.execute(
                f"SELECT {self._COLUMNS} FROM context_sources WHERE id = ?", (source_id,)
            ).fetchone()
        return self._from_row(row) if row else None

    def _save(self, source: ContextSourceDescriptor) -> ContextSourceDescriptor:
        now = datetime.now(timezone.utc).isoformat()
        values = (
            source.name,
            source.description,
            source.kind.value,
            source.configuration or "{}",
            int(source.enabled),
        )
        with closing(self._connect()) as conn, conn:
            if source.id is not None:
                cursor = conn.execute(
                    """
                    UPDATE context_sources
                    SET name = ?, description = ?, kind = ?, configuration = ?, enabled = ?, modified_at = ?
                    WHERE id = ?
                    """,
                    values + (now, source.id),
                )
                if cursor.rowcount == 0:
                    raise LookupError(f"Context source with ID {source.id} not found for update")
                source_id = source.id
            else:
                cursor = conn.execute(
                    """
                    INSERT INTO context_sources
                        (name, description, kind, configuration, enabled, created_at, modified_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    values + (now, now),
                )
                source_id = cursor.lastrowid

        saved = self._get(source_id)
        if saved is None:
            raise LookupError("Failed to retrieve saved context source")
        return saved

    def _delete(self, source_id: int) -> bool:
        with closing(self._connect()) as conn, conn:
            cursor = conn.execute("DELETE FROM context_sources WHERE id = ?", (source_id,))
            return cursor.rowcount > 0

    @staticmethod
    def _from_row(row: sqlite3.Row) -> ContextSourceDescriptor:
        return ContextSourceDescriptor(
            id=row["id"],
            name=row["name"],
            description=row["description"] or "",
            kind=ContextSourceKind(row["kind"]),
            configuration=row["configuration"] or "{}",
            enabled=bool(row["enabled"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            modified_at=datetime.fromisoformat(row["modified_at"]),
        )
