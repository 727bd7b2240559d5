"""Configuration management for the chat engine."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

DEFAULT_SOURCE_TIMEOUT = 10.0


def _default_db_path() -> str:
    return str(Path.home() / ".agentchat" / "agents.db")


def _default_templates_dir() -> str:
    return str(Path.home() / ".agentchat" / "PromptTemplates")


def _source_timeout(value: Optional[str]) -> Optional[float]:
    # Unset means the default; "0" or "none" disables the per-source limit.
    if value is None or not value.strip():
        return DEFAULT_SOURCE_TIMEOUT
    if value.strip().lower() == "none" or float(value) <= 0:
        return None
    return float(value)


@dataclass(frozen=True)
class AzureOpenAIConfig:
    """Azure OpenAI service configuration."""

    api_key: str
    endpoint: str
    api_version: str = "2024-10-21"
    deployment_name: str = "gpt-4.1-nano"
    max_concurrent: int = 50


@dataclass(frozen=True)
class StoreConfig:
    """SQLite location and retry policy for configuration persistence."""

    database_path: str = field(default_factory=_default_db_path)
    max_attempts: int = 3
    retry_delay: float = 1.0


@dataclass(frozen=True)
class OrchestrationConfig:
    """Deadline and streaming knobs for a chat turn."""

    deadline_seconds: float = 120.0
    scroll_interval: int = 50
    source_timeout: Optional[float] = DEFAULT_SOURCE_TIMEOUT
    max_sessions: int = 100


@dataclass(frozen=True)
class Config:
    """Application configuration loaded from environment variables."""

    azure_openai: Optional[AzureOpenAIConfig] = None
    store: StoreConfig = field(default_factory=StoreConfig)
    orchestration: OrchestrationConfig = field(default_factory=OrchestrationConfig)
    agents_seed_path: Optional[str] = None
    templates_dir: str = field(default_factory=_default_templates_dir)
    environment: str = "development"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables."""
        azure_key = os.getenv("AOAI_API_KEY")
        azure_endpoint = os.getenv("AOAI_ENDPOINT")

        azure_config = None
        if azure_key and azure_endpoint:
            azure_config = AzureOpenAIConfig(
                api_key=azure_key,
                endpoint=azure_endpoint,
                api_version=os.getenv("AOAI_API_VERSION", "2024-10-21"),
                deployment_name=os.getenv("AOAI_DEPLOYMENT", "gpt-4.1-nano"),
                max_concurrent=int(os.getenv("AOAI_MAX_CONCURRENT", "50")),
            )

        store = StoreConfig(
            database_path=os.getenv("AGENTCHAT_DB_PATH") or _default_db_path(),
            max_attempts=int(os.getenv("AGENTCHAT_STORE_MAX_ATTEMPTS", "3")),
            retry_delay=float(os.getenv("AGENTCHAT_STORE_RETRY_DELAY", "1.0")),
        )
        orchestration = OrchestrationConfig(
            deadline_seconds=float(os.getenv("AGENTCHAT_DEADLINE_SECONDS", "120")),
            scroll_interval=int(os.getenv("AGENTCHAT_SCROLL_INTERVAL", "50")),
            source_timeout=_source_timeout(os.getenv("AGENTCHAT_SOURCE_TIMEOUT")),
            max_sessions=int(os.getenv("AGENTCHAT_MAX_SESSIONS", "100")),
        )

        return cls(
            azure_openai=azure_config,
            store=store,
            orchestration=orchestration,
            agents_seed_path=os.getenv("AGENTCHAT_AGENTS_SEED") or None,
            templates_dir=os.getenv("AGENTCHAT_TEMPLATES_DIR") or _default_templates_dir(),
            environment=os.getenv("ENVIRONMENT", "development"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


# Global config instance
config = Config.from_env()
