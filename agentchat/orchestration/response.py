"""Accumulation of streamed deltas into one reply buffer."""
from __future__ import annotations

from typing import Any, AsyncIterable, Callable, Optional

from agentchat.core.models import ChatHistory

Dispatcher = Callable[..., None]


def call_inline(callback: Callable[..., None], *args: Any) -> None:
    callback(*args)


class ResponseAggregator:
    """Growing buffer for a single run; never share one between runs.

    Progress is reported after every chunk, while the scroll signal only fires
    when the buffer length crosses a multiple of ``scroll_interval``. Both are
    routed through ``dispatcher`` so a UI can marshal them onto its own thread.
    """

    def __init__(
        self,
        history: ChatHistory,
        *,
        author: Optional[str] = None,
        scroll_interval: int = 50,
        on_progress: Optional[Callable[[str], None]] = None,
        on_scroll: Optional[Callable[[], None]] = None,
        dispatcher: Dispatcher = call_inline,
    ) -> None:
        if scroll_interval < 1:
            raise ValueError("scroll_interval must be positive")
        self._history = history
        self._author = author
        self._scroll_interval = scroll_interval
        self._on_progress = on_progress
        self._on_scroll = on_scroll
        self._dispatch = dispatcher
        self._buffer = ""
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    def current_value(self) -> str:
        return self._buffer

    def on_chunk(self, delta: str) -> None:
        if self._finished:
            raise RuntimeError("Cannot append to a finished response")
        if not delta:
            return
        previous = len(self._buffer)
        self._buffer += delta
        if self._on_progress is not None:
            self._dispatch(self._on_progress, self._buffer)
        if self._on_scroll is not None and (
            len(self._buffer) // self._scroll_interval > previous // self._scroll_interval
        ):
            self._dispatch(self._on_scroll)

    def record_error(self, error: BaseException) -> str:
        """Append an explanatory error chunk and return it."""
        chunk = f"Error: {error}"
        if self._buffer:
            chunk = f"\n\n{chunk}"
        self.on_chunk(chunk)
        return chunk

    async def consume(self, stream: AsyncIterable[str]) -> str:
        """Feed a whole stream through ``on_chunk`` for callers that do not relay chunks."""
        async for delta in stream:
            self.on_chunk(delta)
        return self._buffer

    def finish(self) -> str:
        """Close the run and record the buffer as one assistant turn."""
        if self._finished:
            raise RuntimeError("Response already finished")
        self._finished = True
        self._history.add_assistant(self._buffer, author=self._author)
        if self._on_scroll is not None:
            self._dispatch(self._on_scroll)
        return self._buffer
