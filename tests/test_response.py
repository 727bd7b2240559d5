"""Tests for the streamed reply buffer."""
from __future__ import annotations

from typing import List

import pytest

from agentchat.core.models import ChatHistory
from agentchat.orchestration.response import ResponseAggregator


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def test_chunks_accumulate_in_order() -> None:
    history = ChatHistory()
    progress: List[str] = []
    response = ResponseAggregator(history, author="Writer", on_progress=progress.append)

    seen = []
    for delta in ["Hel", "lo, ", "world"]:
        response.on_chunk(delta)
        seen.append(response.current_value())

    assert seen == ["Hel", "Hello, ", "Hello, world"]
    assert progress == seen
    assert response.finish() == "Hello, world"
    assert [(turn.role, turn.content, turn.author) for turn in history] == [
        ("assistant", "Hello, world", "Writer")
    ]


def test_finish_happens_exactly_once() -> None:
    history = ChatHistory()
    response = ResponseAggregator(history)
    response.on_chunk("done")
    response.finish()

    with pytest.raises(RuntimeError):
        response.finish()
    with pytest.raises(RuntimeError):
        response.on_chunk("more")
    assert len(history) == 1


def test_scroll_fires_when_crossing_the_interval() -> None:
    scrolls = []
    response = ResponseAggregator(ChatHistory(), scroll_interval=10, on_scroll=lambda: scrolls.append(
        len(response.current_value())
    ))

    for delta in ["abcd", "efgh", "ijkl", "m", "nopqrstuvwxyz"]:
        response.on_chunk(delta)

    assert scrolls == [12, 26]


def test_callbacks_go_through_the_dispatcher() -> None:
    dispatched = []

    def dispatcher(callback, *args) -> None:
        dispatched.append(args)
        callback(*args)

    progress: List[str] = []
    response = ResponseAggregator(ChatHistory(), on_progress=progress.append, dispatcher=dispatcher)
    response.on_chunk("hi")

    assert dispatched == [("hi",)]
    assert progress == ["hi"]


def test_error_chunk_is_appended_to_the_buffer() -> None:
    response = ResponseAggregator(ChatHistory())
    response.on_chunk("partial")

    chunk = response.record_error(RuntimeError("deadline exceeded"))

    assert chunk == "\n\nError: deadline exceeded"
    assert response.current_value() == "partial\n\nError: deadline exceeded"


@pytest.mark.anyio
async def test_consume_drains_an_async_stream() -> None:
    async def stream():
        for delta in ["a", "b", "c"]:
            yield delta

    response = ResponseAggregator(ChatHistory())

    assert await response.consume(stream()) == "abc"
