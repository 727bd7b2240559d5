"""Chat engine: the entry points the application talks to."""
from __future__ import annotations

import logging
from collections import OrderedDict
from contextlib import aclosing
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Sequence

from agentchat.core.errors import InvalidPipelineError, OrchestrationError
from agentchat.core.models import (
    AgentDescriptor,
    ChatHistory,
    ContextResult,
    KernelArgs,
    kernel_arguments_to_mapping,
)
from agentchat.orchestration.degradation import DegradationPolicy
from agentchat.orchestration.response import Dispatcher, ResponseAggregator, call_inline
from agentchat.sources.aggregator import SourceAggregator, build_context_block

logger = logging.getLogger(__name__)


class ChatEngine:
    """One conversation: context retrieval, orchestration and the shared history."""

    def __init__(
        self,
        policy: DegradationPolicy,
        sources: SourceAggregator,
        *,
        history: Optional[ChatHistory] = None,
        scroll_interval: int = 50,
        dispatcher: Dispatcher = call_inline,
    ) -> None:
        self._policy = policy
        self._sources = sources
        self.history = history if history is not None else ChatHistory()
        self._scroll_interval = scroll_interval
        self._dispatcher = dispatcher

    async def search_context(
        self, query: str, parameters: Optional[Dict[str, Any]] = None
    ) -> List[ContextResult]:
        try:
            return await self._sources.search(query, parameters)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Context search failed: %s", exc)
            return []

    async def send_message(
        self,
        text: str,
        selected_agents: Sequence[AgentDescriptor],
        kernel_args: KernelArgs = None,
        *,
        on_progress: Optional[Callable[[str], None]] = None,
        on_scroll: Optional[Callable[[], None]] = None,
        on_degraded: Optional[Callable[[OrchestrationError], None]] = None,
    ) -> AsyncIterator[str]:
        """Stream the reply to ``text`` from the selected agents.

        The reply is accumulated in a fresh buffer and recorded as one
        assistant turn once the stream ends. Orchestration failures end up in
        that buffer as an ``Error:`` chunk instead of being raised.
        """
        agents = list(selected_agents)
        if not agents:
            raise InvalidPipelineError("Select at least one agent before sending a message")
        kernel_arguments_to_mapping(kernel_args)

        results = await self.search_context(text)
        message = build_context_block(text, results)
        if results:
            logger.info("Augmented message with %d context result(s)", len(results))

        snapshot = self.history.copy()
        self.history.add_user(text)

        response = ResponseAggregator(
            self.history,
            author=agents[-1].name,
            scroll_interval=self._scroll_interval,
            on_progress=on_progress,
            on_scroll=on_scroll,
            dispatcher=self._dispatcher,
        )
        try:
            stream = self._policy.run(message, agents, snapshot, kernel_args, on_degraded=on_degraded)
            try:
                async with aclosing(stream):
                    async for chunk in stream:
                        response.on_chunk(chunk)
                        yield chunk
            except OrchestrationError as exc:
                logger.error("Chat turn failed: %s", exc)
                yield response.record_error(exc)
        finally:
            if not response.finished:
                response.finish()


DEFAULT_SESSION = "default"


def normalize_session_id(session_id: Optional[str]) -> str:
    if session_id is None or not session_id.strip():
        return DEFAULT_SESSION
    return session_id.strip()


class ChatSessions:
    """Chat engines keyed by session id; least recently used sessions are evicted."""

    def __init__(self, factory: Callable[[], ChatEngine], *, max_sessions: int = 100) -> None:
        if max_sessions < 1:
            raise ValueError("max_sessions must be positive")
        self._factory = factory
        self._max_sessions = max_sessions
        self._engines: OrderedDict[str, ChatEngine] = OrderedDict()

    def __len__(self) -> int:
        return len(self._engines)

    def get(self, session_id: Optional[str] = None) -> ChatEngine:
        key = normalize_session_id(session_id)
        engine = self._engines.get(key)
        if engine is not None:
            self._engines.move_to_end(key)
            return engine

        engine = self._factory()
        self._engines[key] = engine
        while len(self._engines) > self._max_sessions:
            evicted, _ = self._engines.popitem(last=False)
            logger.info("Evicted chat session '%s'", evicted)
        return engine
