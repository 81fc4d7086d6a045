# tests/test_catalog_match.py
from __future__ import annotations

from conftest import FakeCompletion, run

from core.catalog_match import match_food, parse_match, shortlist
from core.models.meal import CatalogEntry, Confidence, NutritionVector
from services.gemini import CompletionError

CATALOG = [
    CatalogEntry(id="c1", brand="Bakehouse", name="Banana Bread",
                 nutrition=NutritionVector(calories=390, protein_g=6, carb_g=60, fat_g=14)),
    CatalogEntry(id="c2", brand="Bakehouse", name="Beef Empanada",
                 nutrition=NutritionVector(calories=420)),
    CatalogEntry(id="c3", brand="Cafe", name="Chicken Caesar Wrap",
                 nutrition=NutritionVector(calories=510)),
]


def _service(text: str) -> FakeCompletion:
    return FakeCompletion(lambda kind, prompt, user: text)


# ── confidence gate ─────────────────────────────────────────────────
def test_high_confidence_is_accepted():
    svc = _service('{"index": 0, "confidence": "high", "rationale": "same item"}')
    result = run(match_food(svc, "banana bread", CATALOG))

    assert result.accepted
    assert result.item.id == "c1"
    assert svc.kinds() == ["match"]


def test_medium_is_not_accepted():
    svc = _service('{"index": 1, "confidence": "medium", "rationale": "both beef"}')
    result = run(match_food(svc, "grilled beef", CATALOG))

    assert result.item.id == "c2"
    assert result.confidence is Confidence.medium
    assert not result.accepted


def test_null_index_is_low():
    result = run(match_food(_service('{"index": null, "confidence": "high"}'), "sushi", CATALOG))
    assert result.item is None and not result.accepted


def test_empty_catalog_skips_the_call():
    svc = _service("{}")
    assert not run(match_food(svc, "sushi", [])).accepted
    assert svc.calls == []


def test_outage_is_not_a_match():
    def boom(kind, prompt, user):
        raise CompletionError("timeout")

    assert not run(match_food(FakeCompletion(boom), "banana bread", CATALOG)).accepted


# ── parse_match ─────────────────────────────────────────────────────
def test_parse_match_bad_payloads():
    assert parse_match("junk", CATALOG).confidence is Confidence.low
    assert parse_match({"index": 9, "confidence": "high"}, CATALOG).item is None
    assert parse_match({"index": -1, "confidence": "high"}, CATALOG).item is None
    assert parse_match({"index": True, "confidence": "high"}, CATALOG).item is None
    assert parse_match({"index": 0, "confidence": "certain"}, CATALOG).confidence is Confidence.low


def test_parse_match_string_index():
    result = parse_match({"index": "2", "confidence": "HIGH"}, CATALOG)
    assert result.item.id == "c3" and result.accepted


# ── shortlist ───────────────────────────────────────────────────────
def test_shortlist_keeps_small_catalogs_whole():
    assert run(shortlist(FakeCompletion(), "bread", CATALOG, limit=10)) == CATALOG


def test_shortlist_ranks_by_similarity():
    picked = run(shortlist(FakeCompletion(), "Bakehouse Banana Bread", CATALOG, limit=1))
    assert [c.id for c in picked] == ["c1"]


def test_shortlist_survives_embedding_failure():
    class NoEmbed(FakeCompletion):
        async def embed(self, texts):
            raise CompletionError("quota")

    assert run(shortlist(NoEmbed(), "bread", CATALOG, limit=2)) == CATALOG[:2]
