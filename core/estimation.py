"""
core/estimation.py
────────────────────────────────────────────────────────────────────────
Nutrition estimates from the completion service.

Two modes
---------
* `estimate_food()`        – one NutritionVector for a typical serving.
* `estimate_from_message()` – full-message fallback: extract foods AND
  estimate them in a single call, used when structured extraction found
  nothing.

All numbers are rounded up.  `sanity_check()` only logs; it never blocks.
"""
from __future__ import annotations

import logging
import numbers
from typing import Any, List

from core.extraction import build_foods, food_name, foods_from_payload
from core.models.meal import ExtractedFood, NutritionVector
from core.portion import ceil_or_none
from scripts.helpers import extract_clean_json
from services.gemini import CompletionError

_LOG = logging.getLogger(__name__)

_MACRO_RULES = """IMPORTANT: calories, protein, carbs and fat are SEPARATE values.
"protein" is ONLY grams of protein, never the sum of the macronutrients.
If a food has 10g protein, 15g carbs and 5g fat, protein is 10, NOT 30."""

SINGLE_FOOD_PROMPT = """You are a nutrition expert. Estimate nutrition for ONE typical
serving of the food below.

Respond with ONLY a JSON object:
{"calories": number, "protein": number, "carbs": number, "fat": number}

""" + _MACRO_RULES

FULL_MESSAGE_PROMPT = """You are a nutrition expert. Extract ALL food items from the user's
message and estimate nutrition for a typical serving of each.

Respond with ONLY a JSON object in this exact format:
{
  "foods": [
    {
      "name": "food name (e.g. 'banana bread')",
      "mealType": "breakfast|lunch|dinner|snack or null if not stated",
      "portion": "1/4|1/2|3/4|full|2x",
      "calories": number,
      "protein": number,
      "carbs": number,
      "fat": number
    }
  ]
}

Rules:
1. Each separate food is its own object.
2. Nutrition is for ONE FULL standard serving, regardless of portion.
3. mealType only when the user names the meal; never guess from the food.
4. No identifiable food -> {"foods": []}.

""" + _MACRO_RULES


def _number(raw: Any) -> float | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, numbers.Number):
        value = float(raw)
    elif isinstance(raw, str):
        try:
            value = float(raw.strip().rstrip("gkcal ").strip())
        except ValueError:
            return None
    else:
        return None
    if value != value or value < 0:   # NaN or negative
        return None
    return value


def nutrition_from_dict(raw: Any) -> NutritionVector:
    """Read a model nutrition dict, tolerant of key spellings, rounding up."""
    if not isinstance(raw, dict):
        return NutritionVector()

    def pick(*keys: str) -> int | None:
        for key in keys:
            if key in raw:
                return ceil_or_none(_number(raw[key]))
        return None

    return NutritionVector(
        calories=pick("calories", "kcal", "kcal_total", "energy"),
        protein_g=pick("protein", "protein_g", "g_protein"),
        carb_g=pick("carbs", "carb_g", "carbs_g", "g_carb", "carbohydrates"),
        fat_g=pick("fat", "fat_g", "g_fat"),
    )


def sanity_check(name: str, n: NutritionVector) -> List[str]:
    """Flag implausible estimates.  Returns the warnings it logged."""
    warnings: List[str] = []
    protein, carbs, fat, kcal = n.protein_g, n.carb_g, n.fat_g, n.calories
    if protein and carbs is not None and fat is not None and protein == carbs + fat:
        warnings.append("protein equals carbs + fat (possible summed macros)")
    if protein and kcal and protein * 4 > kcal:
        warnings.append("protein calories exceed total calories")
    for w in warnings:
        _LOG.warning("suspicious estimate for %r: %s (%s)", name, w, n.model_dump())
    return warnings


async def estimate_food(service, name: str) -> NutritionVector:
    """Typical-serving estimate for one food; empty vector on failure."""
    try:
        raw = await service.complete(
            SINGLE_FOOD_PROMPT,
            user_text=f"Food: {name}",
            temperature=0.1,
            max_output_tokens=200,
        )
    except CompletionError as exc:
        _LOG.warning("estimate for %r failed: %s", name, exc)
        return NutritionVector()

    nutrition = nutrition_from_dict(extract_clean_json(raw))
    if nutrition.is_empty():
        _LOG.warning("estimate for %r was unparsable", name)
    else:
        sanity_check(name, nutrition)
    return nutrition


async def estimate_from_message(
    service, message: str, image: str | None = None
) -> List[ExtractedFood]:
    """Full-message fallback.  Foods carry their full-serving nutrition."""
    try:
        raw = await service.complete(
            FULL_MESSAGE_PROMPT,
            user_text=f'User message: "{message}"',
            image=image,
            temperature=0.1,
            max_output_tokens=600,
        )
    except CompletionError as exc:
        _LOG.warning("full-message estimate failed: %s", exc)
        return []

    raw_foods = [f for f in foods_from_payload(extract_clean_json(raw)) if food_name(f)]
    foods = build_foods(raw_foods, message)
    for food, raw_food in zip(foods, raw_foods):
        nutrition = nutrition_from_dict(raw_food)
        sanity_check(food.name, nutrition)
        food.nutrition = nutrition
    return foods
