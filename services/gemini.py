# services/gemini.py
"""
Completion service backed by Gemini.

`GeminiService` is built once by the app lifespan (see `main.py`) and
handed to request handlers through `get_completion_service`; nothing in
this module holds a process-global client.

Every call is bounded by `timeout_s`.  Timeouts and API errors surface as
`CompletionError`, which the pipeline treats as a soft failure.
"""
from __future__ import annotations

import asyncio
import base64
import logging
import random
from typing import AsyncIterator, List, Sequence, Tuple

import httpx
import numpy as np
from fastapi import Request
from google import genai
from google.genai import types, errors as gerrors

_LOG = logging.getLogger(__name__)

HistoryTurn = Tuple[str, str]   # (role, text) with role in {"user", "assistant"}


class CompletionError(RuntimeError):
    """Completion call failed, timed out, or returned nothing usable."""


# API rejections plus transport failures the SDK lets through unwrapped
_CALL_ERRORS = (gerrors.APIError, httpx.HTTPError, OSError)


def _image_part(image: str) -> types.Part:
    # accept both bare base64 and data: URLs
    if image.startswith("data:"):
        header, _, image = image.partition(",")
        mime = header[5:].split(";")[0] or "image/jpeg"
    else:
        mime = "image/jpeg"
    return types.Part.from_bytes(data=base64.b64decode(image), mime_type=mime)


def _user_content(text: str, image: str | None = None) -> types.Content:
    parts = [types.Part(text=text)]
    if image:
        parts.append(_image_part(image))
    return types.Content(role="user", parts=parts)


class GeminiService:
    def __init__(
        self,
        api_key: str,
        chat_model: str,
        extraction_model: str,
        embed_model: str,
        timeout_s: float = 30.0,
    ) -> None:
        if not api_key:
            raise RuntimeError("GEMINI_API_KEY not set in environment")
        self._client = genai.Client(api_key=api_key)
        self._chat_model = chat_model
        self._extraction_model = extraction_model
        self._embed_model = embed_model
        self._timeout = timeout_s

    # ───────────── Streaming chat ─────────────
    async def stream_chat(
        self,
        system: str,
        history: Sequence[HistoryTurn],
        message: str,
        image: str | None = None,
        temperature: float = 0.7,
        max_output_tokens: int = 1000,
    ) -> AsyncIterator[str]:
        """Yield reply tokens as Gemini produces them."""
        contents: List[types.Content] = [
            types.Content(
                role="model" if role == "assistant" else "user",
                parts=[types.Part(text=text)],
            )
            for role, text in history
        ]
        contents.append(_user_content(message, image))
        config = types.GenerateContentConfig(
            system_instruction=system,
            temperature=temperature,
            max_output_tokens=max_output_tokens,
        )
        try:
            stream = await asyncio.wait_for(
                self._client.aio.models.generate_content_stream(
                    model=self._chat_model, contents=contents, config=config
                ),
                self._timeout,
            )
            chunks = stream.__aiter__()
            while True:
                try:
                    chunk = await asyncio.wait_for(chunks.__anext__(), self._timeout)
                except StopAsyncIteration:
                    return
                if chunk.text:
                    yield chunk.text
        except asyncio.TimeoutError as exc:
            raise CompletionError("chat stream timed out") from exc
        except _CALL_ERRORS as exc:
            raise CompletionError(f"chat stream failed: {exc}") from exc

    # ───────────── Single completion ─────────────
    async def complete(
        self,
        prompt: str,
        user_text: str | None = None,
        image: str | None = None,
        temperature: float = 0.1,
        max_output_tokens: int = 800,
    ) -> str:
        """Run one low-temperature completion and return the raw text."""
        contents: list = [prompt]
        if user_text is not None or image:
            contents = [_user_content(f"{prompt}\n\n{user_text or ''}".rstrip(), image)]
        try:
            resp = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=self._extraction_model,
                    contents=contents,
                    config=types.GenerateContentConfig(
                        temperature=temperature,
                        max_output_tokens=max_output_tokens,
                    ),
                ),
                self._timeout,
            )
        except asyncio.TimeoutError as exc:
            raise CompletionError("completion timed out") from exc
        except _CALL_ERRORS as exc:
            raise CompletionError(f"completion failed: {exc}") from exc
        if not resp.text:
            raise CompletionError("completion returned no text")
        return resp.text

    # ───────────── Embedding (async + retry) ─────────────
    async def embed(self, texts: Sequence[str]) -> np.ndarray:
        """Return one row per text, retrying on rate limits."""
        for attempt in range(5):
            try:
                resp = await asyncio.wait_for(
                    self._client.aio.models.embed_content(
                        model=self._embed_model,
                        contents=list(texts),
                        config=types.EmbedContentConfig(task_type="SEMANTIC_SIMILARITY"),
                    ),
                    self._timeout,
                )
                return np.array([e.values for e in resp.embeddings], dtype=np.float32)
            except gerrors.ClientError as exc:
                if getattr(exc, "status", None) == "RESOURCE_EXHAUSTED":
                    backoff = (2 ** attempt) + random.random()
                    _LOG.warning("429 from embed, retrying in %.1fs", backoff)
                    await asyncio.sleep(backoff)
                    continue
                raise CompletionError(f"embedding failed: {exc}") from exc
            except (asyncio.TimeoutError, *_CALL_ERRORS) as exc:
                raise CompletionError(f"embedding failed: {exc}") from exc
        raise CompletionError("Embedding retries exhausted")


# ───────────── FastAPI dependency ─────────────
def get_completion_service(request: Request) -> GeminiService:
    return request.app.state.completion
