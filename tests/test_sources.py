"""Tests for context sources, their validation and the concurrent aggregator."""
from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from agentchat.config import DEFAULT_SOURCE_TIMEOUT, Config, OrchestrationConfig
from agentchat.core.models import ContextResult, ContextSourceDescriptor, ContextSourceKind
from agentchat.sources.aggregator import CONTEXT_HEADER, SourceAggregator, build_context_block
from agentchat.sources.base import ContextSource
from agentchat.sources.factory import Built, Rejected, Unsupported, build_source
from agentchat.sources.local_files import LocalFilesSource
from agentchat.sources.validation import validate_descriptor


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def _local(path: Path, source_id: int = 1, name: str = "Notes", **config: Any) -> ContextSourceDescriptor:
    return ContextSourceDescriptor(
        id=source_id,
        name=name,
        kind=ContextSourceKind.LOCAL_FILES,
        configuration=json.dumps({"file_path": str(path), **config}),
    )


class _Definitions:
    def __init__(self, descriptors: List[ContextSourceDescriptor]) -> None:
        self.descriptors = descriptors

    async def get_all(self) -> List[ContextSourceDescriptor]:
        return list(self.descriptors)


class _ScriptedSource(ContextSource):
    def __init__(self, name: str, *, content: str = "", fail: bool = False, delay: float = 0.0) -> None:
        super().__init__(ContextSourceDescriptor(name=name, kind=ContextSourceKind.CUSTOM))
        self._content = content
        self._fail = fail
        self._delay = delay
        self.queries: List[str] = []

    async def search(self, query: str, parameters: Optional[Dict[str, Any]] = None) -> List[ContextResult]:
        self.queries.append(query)
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._fail:
            raise ConnectionError("source offline")
        return [ContextResult(content=self._content, title=f"{self.name}.txt", source_name=self.name, source_kind="Test")]

    async def validate_configuration(self) -> bool:
        return True


def _aggregator_with(*sources: ContextSource, timeout: Optional[float] = None) -> SourceAggregator:
    aggregator = SourceAggregator(_Definitions([]), source_timeout=timeout)
    aggregator._active = {index: source for index, source in enumerate(sources)}
    return aggregator


@pytest.mark.anyio
async def test_local_file_returns_whole_file(tmp_path: Path) -> None:
    notes = tmp_path / "notes.md"
    notes.write_text("Release 2.1 ships on Friday.", encoding="utf-8")
    source = LocalFilesSource(_local(notes))

    results = await source.search("anything at all")

    assert len(results) == 1
    result = results[0]
    assert result.content == "Release 2.1 ships on Friday."
    assert result.title == "notes.md"
    assert result.source_name == "Notes"
    assert result.source_kind == "LocalFile"
    assert result.metadata["file_size"] == notes.stat().st_size
    assert result.metadata["file_path"] == str(notes)


@pytest.mark.anyio
async def test_local_file_outside_whitelist_yields_nothing(tmp_path: Path) -> None:
    binary = tmp_path / "tool.exe"
    binary.write_text("MZ", encoding="utf-8")

    assert await LocalFilesSource(_local(binary)).search("q") == []


@pytest.mark.anyio
async def test_local_file_above_size_limit_yields_nothing(tmp_path: Path) -> None:
    big = tmp_path / "big.txt"
    big.write_text("x" * 2048, encoding="utf-8")

    assert await LocalFilesSource(_local(big, max_file_size_bytes=1024)).search("q") == []
    assert len(await LocalFilesSource(_local(big, max_file_size_bytes=4096)).search("q")) == 1


@pytest.mark.anyio
async def test_missing_or_blank_file_yields_nothing(tmp_path: Path) -> None:
    blank = tmp_path / "blank.txt"
    blank.write_text("   \n", encoding="utf-8")

    assert await LocalFilesSource(_local(blank)).search("q") == []
    assert await LocalFilesSource(_local(tmp_path / "gone.txt")).search("q") == []


def test_factory_builds_local_files_and_defers_the_rest(tmp_path: Path) -> None:
    outcome = build_source(_local(tmp_path / "notes.md"))
    assert isinstance(outcome, Built)
    assert isinstance(outcome.source, LocalFilesSource)

    web = ContextSourceDescriptor(name="Wiki", kind=ContextSourceKind.WEB_API, configuration='{"endpoint": "https://wiki"}')
    assert build_source(web) == Unsupported(ContextSourceKind.WEB_API)

    broken = ContextSourceDescriptor(name="Bad", kind=ContextSourceKind.LOCAL_FILES, configuration="{oops")
    assert isinstance(build_source(broken), Rejected)


def test_validation_rules(tmp_path: Path) -> None:
    notes = tmp_path / "notes.md"
    notes.write_text("hello", encoding="utf-8")

    assert validate_descriptor(_local(notes)) is True
    assert validate_descriptor(_local(tmp_path / "missing.md")) is False
    assert validate_descriptor(_local(notes, supported_extensions=["md"])) is False
    assert validate_descriptor(_local(notes, supported_extensions=[])) is False
    assert validate_descriptor(_local(notes, max_file_size_bytes=0)) is False
    assert validate_descriptor(_local(notes, max_file_size_bytes=200 * 1024 * 1024)) is False
    assert validate_descriptor(_local(notes, name="x" * 101)) is False

    def web(config: str) -> ContextSourceDescriptor:
        return ContextSourceDescriptor(name="Wiki", kind=ContextSourceKind.WEB_API, configuration=config)

    assert validate_descriptor(web('{"endpoint": "https://wiki.example.com/api"}')) is True
    assert validate_descriptor(web('{"endpoint": "ftp://wiki"}')) is False
    assert validate_descriptor(web("[1, 2]")) is False
    assert validate_descriptor(web("not json")) is False

    database = ContextSourceDescriptor(
        name="Db", kind=ContextSourceKind.DATABASE, configuration='{"connectionString": ""}'
    )
    assert validate_descriptor(database) is False
    custom = ContextSourceDescriptor(name="Custom", kind=ContextSourceKind.CUSTOM, configuration="")
    assert validate_descriptor(custom) is True


@pytest.mark.anyio
async def test_whitespace_query_does_not_touch_sources() -> None:
    source = _ScriptedSource("A", content="a")
    aggregator = _aggregator_with(source)

    assert await aggregator.search("   ") == []
    assert source.queries == []


@pytest.mark.anyio
async def test_failing_source_is_isolated() -> None:
    aggregator = _aggregator_with(
        _ScriptedSource("A", fail=True),
        _ScriptedSource("B", content="from b"),
    )

    results = await aggregator.search("release date")

    assert [(r.source_name, r.content) for r in results] == [("B", "from b")]


@pytest.mark.anyio
async def test_slow_source_times_out_without_affecting_others() -> None:
    aggregator = _aggregator_with(
        _ScriptedSource("A", content="alpha"),
        _ScriptedSource("Slow", content="late", delay=5),
        _ScriptedSource("C", content="gamma"),
        timeout=0.05,
    )

    results = await aggregator.search("q")

    assert sorted((r.source_name, r.content) for r in results) == [("A", "alpha"), ("C", "gamma")]


def test_source_searches_are_bounded_by_default(monkeypatch: pytest.MonkeyPatch) -> None:
    orchestration = OrchestrationConfig()
    assert orchestration.source_timeout == DEFAULT_SOURCE_TIMEOUT
    assert orchestration.source_timeout < orchestration.deadline_seconds
    assert SourceAggregator(_Definitions([])).source_timeout == DEFAULT_SOURCE_TIMEOUT

    monkeypatch.delenv("AGENTCHAT_SOURCE_TIMEOUT", raising=False)
    assert Config.from_env().orchestration.source_timeout == DEFAULT_SOURCE_TIMEOUT
    monkeypatch.setenv("AGENTCHAT_SOURCE_TIMEOUT", "2.5")
    assert Config.from_env().orchestration.source_timeout == 2.5
    monkeypatch.setenv("AGENTCHAT_SOURCE_TIMEOUT", "0")
    assert Config.from_env().orchestration.source_timeout is None


@pytest.mark.anyio
async def test_refresh_activates_only_valid_enabled_local_files(tmp_path: Path) -> None:
    notes = tmp_path / "notes.md"
    notes.write_text("hello", encoding="utf-8")
    definitions = _Definitions([
        _local(notes, source_id=1, name="Notes"),
        _local(tmp_path / "missing.md", source_id=2, name="Missing"),
        ContextSourceDescriptor(id=3, name="Off", kind=ContextSourceKind.LOCAL_FILES,
                                configuration=json.dumps({"file_path": str(notes)}), enabled=False),
        ContextSourceDescriptor(id=4, name="Wiki", kind=ContextSourceKind.WEB_API),
    ])
    aggregator = SourceAggregator(definitions)

    await aggregator.refresh()

    assert [source.name for source in aggregator.active_sources()] == ["Notes"]
    results = await aggregator.search("hello?")
    assert [result.source_name for result in results] == ["Notes"]


def test_context_block_labels_every_result() -> None:
    results = [
        ContextResult(content="alpha", title="a.md", source_name="A", source_kind="LocalFile"),
        ContextResult(content="beta", title="b.md", source_name="B", source_kind="LocalFile"),
    ]

    block = build_context_block("Summarise", results)

    assert block.startswith("Summarise\n\n" + CONTEXT_HEADER)
    assert "--- a.md (A) ---\nalpha" in block
    assert "--- b.md (B) ---\nbeta" in block
    assert build_context_block("Summarise", []) == "Summarise"
