"""
core/extraction.py
────────────────────────────────────────────────────────────────────────
Turn a user message (+ optional photo) into ExtractedFood rows.

One low-temperature completion asks for
    {"foods": [{"name", "mealType", "portion"}]}
Anything unusable collapses to an empty list; the pipeline then tries the
full-message fallback in `core.estimation`.

Meal type comes only from words in the user's message.  A model that
answers "breakfast" for "pancakes" without the user saying so is ignored.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Iterable, List

from core.intent import MEAL_WORDS, meal_type_cue
from core.models.meal import ExtractedFood, MealType
from core.portion import normalise_portion
from scripts.helpers import extract_clean_json
from services.gemini import CompletionError

_LOG = logging.getLogger(__name__)

EXTRACTION_PROMPT = """You are a food logging assistant. Extract ALL food items the user mentions.

Respond with ONLY a JSON object in this exact format:
{
  "foods": [
    {
      "name": "food name without quantities (e.g. 'banana bread')",
      "mealType": "breakfast|lunch|dinner|snack, or null",
      "portion": "1/4|1/2|3/4|full|2x"
    }
  ]
}

Rules:
1. Every separate food is its own object; split on commas and "and".
2. Drop filler like "I had", "let's add", "for breakfast" from names.
3. mealType is set ONLY when the user names the meal (breakfast, lunch,
   dinner, snack). Never guess it from the food itself: "pancakes" alone
   has mealType null.
4. portion reflects how much of a normal serving was eaten: "half" -> "1/2",
   "a quarter" -> "1/4", "three quarters" -> "3/4", "double"/"two" -> "2x",
   otherwise "full".
5. If a photo is attached, list the foods visible in it.
6. No food at all -> {"foods": []}.
"""


def meal_types_in(message: str) -> set[str]:
    text = (message or "").lower()
    return {w for w in MEAL_WORDS if re.search(rf"\b{w}s?\b", text)}


def resolve_meal_type(claimed: Any, message: str) -> MealType | None:
    """Accept the model's meal type only when the message names it."""
    named = meal_types_in(message)
    if isinstance(claimed, str) and claimed.strip().lower() in named:
        return MealType(claimed.strip().lower())
    if claimed:
        _LOG.debug("dropping meal type %r without a lexical cue", claimed)
    cue = meal_type_cue(message)
    return MealType(cue) if cue else None


def foods_from_payload(payload: Any) -> List[dict]:
    """Pull the list of food dicts out of whatever shape the model returned."""
    if isinstance(payload, dict):
        payload = payload.get("foods", payload.get("items", []))
    if not isinstance(payload, list):
        return []
    return [f for f in payload if isinstance(f, dict)]


def food_name(raw: dict) -> str:
    name = raw.get("name") or raw.get("foodItem") or raw.get("food") or ""
    return str(name).strip()


def build_foods(raw_foods: Iterable[dict], message: str) -> List[ExtractedFood]:
    foods: List[ExtractedFood] = []
    for raw in raw_foods:
        name = food_name(raw)
        if not name:
            continue
        foods.append(
            ExtractedFood(
                name=name,
                meal_type=resolve_meal_type(raw.get("mealType") or raw.get("meal_type"), message),
                portion=normalise_portion(raw.get("portion") or raw.get("portionSize")),
            )
        )
    return foods


async def extract_foods(
    service,
    message: str,
    image: str | None = None,
) -> List[ExtractedFood]:
    """Structured extraction.  Returns [] on any failure."""
    try:
        raw = await service.complete(
            EXTRACTION_PROMPT,
            user_text=f'User message: "{message}"',
            image=image,
            temperature=0.1,
            max_output_tokens=400,
        )
    except CompletionError as exc:
        _LOG.warning("food extraction failed: %s", exc)
        return []

    foods = build_foods(foods_from_payload(extract_clean_json(raw)), message)
    if not foods:
        _LOG.info("extraction yielded no foods for %.80r", message)
    return foods
