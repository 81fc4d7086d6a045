# tests/test_extraction.py
from __future__ import annotations

from conftest import FakeCompletion, fenced, run

from core.extraction import extract_foods, resolve_meal_type
from core.models.meal import MealType, Portion
from scripts.helpers import extract_clean_json
from services.gemini import CompletionError


def _service(text: str) -> FakeCompletion:
    return FakeCompletion(lambda kind, prompt, user: text)


# ── JSON cleanup ────────────────────────────────────────────────────
def test_clean_json_accepts_fences_and_chatter():
    assert extract_clean_json('```json\n{"a": 1}\n```') == {"a": 1}
    assert extract_clean_json('Here it is: {"a": 1} hope that helps') == {"a": 1}
    assert extract_clean_json("[1, 2]") == [1, 2]


def test_clean_json_never_raises():
    assert extract_clean_json("not json at all") == {}
    assert extract_clean_json("") == {}
    assert extract_clean_json(None) == {}
    assert extract_clean_json("{broken: ") == {}


# ── extraction ──────────────────────────────────────────────────────
def test_two_foods_with_portions():
    svc = _service(fenced({"foods": [
        {"name": "banana bread", "mealType": "breakfast", "portion": "half"},
        {"name": "avocado toast", "mealType": "breakfast", "portion": "full"},
    ]}))
    foods = run(extract_foods(svc, "I ate half a banana bread and avocado toast for breakfast"))

    assert [f.name for f in foods] == ["banana bread", "avocado toast"]
    assert [f.portion for f in foods] == [Portion.half, Portion.full]
    assert all(f.meal_type is MealType.breakfast for f in foods)
    assert svc.kinds() == ["extract"]


def test_meal_type_is_not_guessed_from_food():
    svc = _service('{"foods": [{"name": "pancakes", "mealType": "breakfast", "portion": "full"}]}')
    foods = run(extract_foods(svc, "I had pancakes"))

    assert len(foods) == 1
    assert foods[0].meal_type is None


def test_meal_type_from_message_when_model_omits_it():
    svc = _service('{"foods": [{"foodItem": "soup", "portionSize": "2x"}]}')
    foods = run(extract_foods(svc, "soup for lunch"))

    assert foods[0].name == "soup"
    assert foods[0].meal_type is MealType.lunch
    assert foods[0].portion is Portion.double


def test_unparsable_reply_is_empty():
    assert run(extract_foods(_service("sorry, I can't help"), "had a burrito")) == []
    assert run(extract_foods(_service('{"foods": "burrito"}'), "had a burrito")) == []


def test_outage_is_empty():
    def boom(kind, prompt, user):
        raise CompletionError("timeout")

    assert run(extract_foods(FakeCompletion(boom), "had a burrito")) == []


def test_nameless_rows_are_dropped():
    svc = _service('{"foods": [{"name": ""}, {"portion": "1/2"}, {"name": "kiwi"}]}')
    assert [f.name for f in run(extract_foods(svc, "a kiwi"))] == ["kiwi"]


def test_resolve_meal_type():
    assert resolve_meal_type("dinner", "pasta for dinner") is MealType.dinner
    assert resolve_meal_type("dinner", "pasta") is None
    assert resolve_meal_type(None, "two snacks") is MealType.snack
    assert resolve_meal_type("brunch", "brunch today") is None
