"""
Shared fixtures: a scripted completion service and a throwaway SQLite DB.
"""
from __future__ import annotations

import asyncio
import json
from typing import Callable, List

import numpy as np
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from core.estimation import FULL_MESSAGE_PROMPT, SINGLE_FOOD_PROMPT
from core.extraction import EXTRACTION_PROMPT
from services.db import init_models
from services.gemini import CompletionError

OWNER = "user-1"


def prompt_kind(prompt: str) -> str:
    if prompt == EXTRACTION_PROMPT:
        return "extract"
    if prompt == SINGLE_FOOD_PROMPT:
        return "estimate"
    if prompt == FULL_MESSAGE_PROMPT:
        return "fallback"
    if prompt.startswith("You match a food"):
        return "match"
    return "other"


class FakeCompletion:
    """Stands in for GeminiService.

    `reply(kind, prompt, user_text)` returns the raw model text, or raises
    CompletionError to simulate an outage / timeout.
    """

    def __init__(
        self,
        reply: Callable[[str, str, str | None], str] | None = None,
        tokens: List[str] | None = None,
        stream_error_after: int | None = None,
    ) -> None:
        self._reply = reply or (lambda kind, prompt, text: "")
        self.tokens = tokens if tokens is not None else ["Got ", "it!"]
        self.stream_error_after = stream_error_after
        self.calls: List[tuple[str, str | None]] = []
        self.chat_calls: List[dict] = []

    async def complete(self, prompt, user_text=None, image=None,
                       temperature=0.1, max_output_tokens=800) -> str:
        kind = prompt_kind(prompt)
        self.calls.append((kind, user_text))
        await asyncio.sleep(0)
        return self._reply(kind, prompt, user_text)

    async def stream_chat(self, system, history, message, image=None,
                          temperature=0.7, max_output_tokens=1000):
        self.chat_calls.append(
            {"system": system, "history": list(history), "message": message, "image": image}
        )
        for i, token in enumerate(self.tokens):
            if self.stream_error_after is not None and i >= self.stream_error_after:
                raise CompletionError("stream broke")
            await asyncio.sleep(0)
            yield token
        if self.stream_error_after is not None and self.stream_error_after >= len(self.tokens):
            raise CompletionError("stream broke")

    async def embed(self, texts):
        # bag-of-letters vectors: enough to rank near-identical names together
        rows = []
        for text in texts:
            vec = np.zeros(26, dtype=np.float32)
            for ch in text.lower():
                if "a" <= ch <= "z":
                    vec[ord(ch) - 97] += 1
            rows.append(vec + 1e-3)
        return np.vstack(rows)

    def kinds(self) -> List[str]:
        return [k for k, _ in self.calls]


def as_json(obj) -> str:
    return json.dumps(obj)


def fenced(obj) -> str:
    return f"Sure! Here you go:\n```json\n{json.dumps(obj)}\n```"


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def sessions(tmp_path) -> async_sessionmaker:
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    asyncio.run(init_models(eng))
    yield async_sessionmaker(eng, expire_on_commit=False)
    asyncio.run(eng.dispose())
