# tests/test_api.py
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from conftest import OWNER, FakeCompletion, fenced

from api.v1.chat import get_pipeline_config
from core.pipeline import PipelineConfig
from main import app
from services.auth import create_token
from services.db import get_sessionmaker
from services.gemini import get_completion_service

API = "/api/v1"


def _reply(kind, prompt, user_text):
    if kind == "extract":
        return fenced({"foods": [{"name": "avocado toast", "mealType": "breakfast", "portion": "full"}]})
    if kind == "estimate":
        return '{"calories": 250, "protein": 6, "carbs": 20, "fat": 15}'
    return ""


@pytest.fixture
def fake():
    return FakeCompletion(_reply, tokens=["Logged ", "your toast!"])


@pytest.fixture
def client(sessions, fake):
    app.dependency_overrides[get_sessionmaker] = lambda: sessions
    app.dependency_overrides[get_completion_service] = lambda: fake
    app.dependency_overrides[get_pipeline_config] = lambda: PipelineConfig()
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth(owner: str = OWNER) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_token(owner)}"}


# ── auth ────────────────────────────────────────────────────────────
def test_requires_token(client):
    assert client.get(f"{API}/meals").status_code == 401
    bad = {"Authorization": "Bearer not-a-jwt"}
    assert client.get(f"{API}/meals", headers=bad).status_code == 401


def test_health(client):
    assert client.get("/health").json()["status"] == "ok"


# ── chat ────────────────────────────────────────────────────────────
def test_chat_streams_sse(client):
    resp = client.post(
        f"{API}/chat", json={"message": "having avocado toast for breakfast"}, headers=auth()
    )
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")

    frames = [f for f in resp.text.split("\n\n") if f]
    assert frames[0] == 'data: {"content": "Logged "}'
    assert '"type": "meal_logged"' in frames[2]
    assert frames[-1] == "data: [DONE]"

    meals = client.get(f"{API}/meals", headers=auth()).json()
    assert [m["name"] for m in meals] == ["avocado toast"]
    assert meals[0]["calories"] == 250

    history = client.get(f"{API}/chat/messages", headers=auth()).json()
    assert [m["role"] for m in history] == ["user", "assistant"]
    assert history[1]["content"] == "Logged your toast!"


def test_chat_needs_message_or_image(client):
    resp = client.post(f"{API}/chat", json={"message": "   "}, headers=auth())
    assert resp.status_code == 400


# ── meals ───────────────────────────────────────────────────────────
def test_meal_crud(client):
    created = client.post(
        f"{API}/meals",
        json={"name": "oats", "meal_type": "breakfast", "calories": 300, "portion": "1/2"},
        headers=auth(),
    )
    assert created.status_code == 201
    meal = created.json()
    assert meal["status"] == "logged" and meal["source"] == "estimate"

    url = f"{API}/meals/{meal['id']}"
    assert client.get(url, headers=auth()).json()["name"] == "oats"
    assert client.get(url, headers=auth("someone-else")).status_code == 404

    patched = client.patch(url, json={"calories": 320}, headers=auth())
    assert patched.json()["calories"] == 320
    assert client.patch(url, json={"status": "planned"}, headers=auth()).status_code == 409
    assert client.patch(url, json={"name": None}, headers=auth()).status_code == 422
    assert client.patch(url, json={"meal_type": None}, headers=auth()).status_code == 422
    cleared = client.patch(url, json={"calories": None}, headers=auth()).json()
    assert cleared["calories"] is None and cleared["name"] == "oats"

    assert client.delete(url, headers=auth()).status_code == 204
    assert client.get(url, headers=auth()).status_code == 404


def test_planned_meal_endpoints(client):
    assert client.post(f"{API}/meals/planned/eaten", headers=auth()).json() is None

    planned = client.post(
        f"{API}/meals",
        json={"name": "salad", "meal_type": "lunch", "status": "planned", "calories": 400},
        headers=auth(),
    ).json()
    eaten = client.post(f"{API}/meals/planned/eaten", headers=auth()).json()
    assert eaten["id"] == planned["id"]
    assert eaten["status"] == "logged"
    assert eaten["meal_type"] == "lunch"


def test_daily_totals_skip_planned_and_unknown(client):
    for body in (
        {"name": "oats", "meal_type": "breakfast", "calories": 300, "protein_g": 10},
        {"name": "tea", "meal_type": "snack"},
        {"name": "steak", "meal_type": "dinner", "status": "planned", "calories": 700},
    ):
        client.post(f"{API}/meals", json=body, headers=auth())

    totals = client.get(f"{API}/meals/totals", headers=auth()).json()
    assert totals["meals"] == 2
    assert totals["calories"] == 300
    assert totals["protein_g"] == 10
    assert totals["fat_g"] == 0
    assert totals["by_meal_type"] == {"breakfast": 300, "snack": 0}


def test_empty_day_totals(client):
    totals = client.get(f"{API}/meals/totals", params={"date": "2020-01-01"}, headers=auth()).json()
    assert totals["meals"] == 0 and totals["calories"] == 0


# ── preferences ─────────────────────────────────────────────────────
def test_preferences(client):
    created = client.post(
        f"{API}/preferences", json={"type": "allergy", "subject": " shellfish "}, headers=auth()
    )
    assert created.status_code == 201
    pref = created.json()
    assert pref["subject"] == "shellfish"

    listed = client.get(f"{API}/preferences", headers=auth()).json()
    assert [p["id"] for p in listed] == [pref["id"]]

    url = f"{API}/preferences/{pref['id']}"
    assert client.delete(url, headers=auth("someone-else")).status_code == 404
    assert client.delete(url, headers=auth()).status_code == 204
    assert client.delete(url, headers=auth()).status_code == 404


def test_bad_preference_type(client):
    resp = client.post(f"{API}/preferences", json={"type": "mood", "subject": "x"}, headers=auth())
    assert resp.status_code == 422


# ── catalog ─────────────────────────────────────────────────────────
def test_catalog_import_and_list(client):
    resp = client.post(
        f"{API}/catalog",
        json=[
            {"brand": "Bakehouse", "name": "Banana Bread", "calories": 390},
            {"brand": "Bakehouse", "name": "Seasonal Tart", "is_available": False},
        ],
        headers=auth(),
    )
    assert resp.json() == {"imported": 2}

    items = client.get(f"{API}/catalog", headers=auth()).json()
    assert [i["name"] for i in items] == ["Banana Bread"]
