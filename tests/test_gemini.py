# tests/test_gemini.py
"""
GeminiService error mapping: anything the SDK lets escape from a call
surfaces as CompletionError, so callers only ever handle one type.
"""
from __future__ import annotations

from types import SimpleNamespace

import httpx
import pytest

from conftest import run

from core.estimation import estimate_food
from core.extraction import extract_foods
from services.gemini import CompletionError, GeminiService


def _offline_service(exc: Exception) -> GeminiService:
    async def fail(*args, **kwargs):
        raise exc

    svc = GeminiService(
        api_key="test-key",
        chat_model="models/chat",
        extraction_model="models/extract",
        embed_model="models/embed",
        timeout_s=1,
    )
    models = SimpleNamespace(
        generate_content=fail, generate_content_stream=fail, embed_content=fail
    )
    svc._client = SimpleNamespace(aio=SimpleNamespace(models=models))
    return svc


TRANSPORT_ERRORS = [
    httpx.ConnectError("connection refused"),
    httpx.ReadTimeout("read timed out"),
    ConnectionResetError("reset by peer"),
]


def test_missing_key_is_rejected():
    with pytest.raises(RuntimeError):
        GeminiService(api_key="", chat_model="m", extraction_model="m", embed_model="e")


# ── transport failures ──────────────────────────────────────────────
@pytest.mark.parametrize("exc", TRANSPORT_ERRORS)
def test_complete_wraps_transport_errors(exc):
    with pytest.raises(CompletionError):
        run(_offline_service(exc).complete("prompt", user_text="hi"))


@pytest.mark.parametrize("exc", TRANSPORT_ERRORS)
def test_stream_wraps_transport_errors(exc):
    svc = _offline_service(exc)

    async def drain():
        return [t async for t in svc.stream_chat("system", [], "hello")]

    with pytest.raises(CompletionError):
        run(drain())


@pytest.mark.parametrize("exc", TRANSPORT_ERRORS)
def test_embed_wraps_transport_errors(exc):
    with pytest.raises(CompletionError):
        run(_offline_service(exc).embed(["toast"]))


# ── steps degrade instead of raising ────────────────────────────────
def test_extraction_is_empty_when_offline():
    svc = _offline_service(httpx.ConnectError("connection refused"))
    assert run(extract_foods(svc, "I had toast")) == []


def test_estimate_is_empty_when_offline():
    svc = _offline_service(httpx.ConnectError("connection refused"))
    assert run(estimate_food(svc, "toast")).is_empty()
