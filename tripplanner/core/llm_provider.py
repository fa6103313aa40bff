from __future__ import annotations

import asyncio
from collections.abc import Iterator
from typing import Any

import aisuite as ai  # type: ignore


class LLMProvider:
    def __init__(self, model: str) -> None:
        self.model = model
        try:
            self._client = ai.Client()
        except Exception as exc:  # fail fast if aisuite cannot initialize
            raise RuntimeError("Failed to initialize aisuite client") from exc

    def chat(self, messages: list[dict[str, Any]], temperature: float = 1.0) -> str:
        """Send a chat completion request. messages: list of dicts with keys: role (system|user|assistant), content (str)"""
        resp = self._client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
        )
        return resp.choices[0].message.content or ""

    async def chat_async(self, messages: list[dict[str, Any]], temperature: float = 1.0) -> str:
        """Async version of chat; runs the sync request in a worker thread."""
        return await asyncio.to_thread(self.chat, messages, temperature)

    def chat_stream(self, messages: list[dict[str, Any]], temperature: float = 1.0) -> Iterator[str]:
        """Stream a chat completion, yielding content deltas as they arrive."""
        stream = self._client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
            stream=True,
        )
        for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta
            content = getattr(delta, "content", None)
            if content:
                yield content
