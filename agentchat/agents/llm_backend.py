"""LLM-powered backend that streams replies from an Azure OpenAI deployment."""
from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, AsyncIterator, Dict, List, Mapping, Optional

from agentchat.agents.persona import PersonaTemplate, load_instructions, load_persona
from agentchat.core.models import AgentDescriptor, ChatHistory

if TYPE_CHECKING:
    from agentchat.services.llm_pool import LLMPool

DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant agent in a multi-agent system."


class OpenAIChatBackend:
    """Agent backend that uses a pooled chat-completions client."""

    def __init__(
        self,
        descriptor: AgentDescriptor,
        llm_pool: LLMPool,
        model_name: str = "default",
        temperature: float = 0.7,
    ) -> None:
        self.descriptor = descriptor
        self._llm_pool = llm_pool
        self.model_name = model_name
        self.temperature = temperature
        self._system_prompt: Optional[str] = None
        self._persona: Optional[PersonaTemplate] = None

    async def _load_prompts(self) -> None:
        if self._system_prompt is not None:
            return
        system_prompt = DEFAULT_SYSTEM_PROMPT
        if self.descriptor.instructions_ref:
            system_prompt = await asyncio.to_thread(load_instructions, self.descriptor.instructions_ref)
        if self.descriptor.persona_ref:
            self._persona = await asyncio.to_thread(load_persona, self.descriptor.persona_ref)
        self._system_prompt = system_prompt

    def build_messages(
        self, message: str, history: ChatHistory, kernel_args: Mapping[str, str]
    ) -> List[Dict[str, str]]:
        user_prompt = self._persona.render(message, kernel_args) if self._persona else message
        messages = [{"role": "system", "content": self._system_prompt or DEFAULT_SYSTEM_PROMPT}]
        messages.extend({"role": turn.role, "content": turn.content} for turn in history)
        messages.append({"role": "user", "content": user_prompt})
        return messages

    async def invoke_streaming(
        self,
        message: str,
        history: ChatHistory,
        kernel_args: Mapping[str, str],
    ) -> AsyncIterator[str]:
        await self._load_prompts()
        messages = self.build_messages(message, history, kernel_args)

        async with self._llm_pool.acquire(self.model_name) as client:
            stream = await client.chat.completions.create(
                model=self._llm_pool.deployment_for(self.model_name),
                messages=messages,
                temperature=self.temperature,
                stream=True,
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
