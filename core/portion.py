"""
core/portion.py
────────────────────────────────────────────────────────────────────────
Portion tokens and arithmetic scaling of a full-serving NutritionVector.
"""
from __future__ import annotations

import math
import re
from typing import Dict

from core.models.meal import NutritionVector, Portion

PORTION_FACTORS: Dict[Portion, float] = {
    Portion.quarter: 0.25,
    Portion.half: 0.5,
    Portion.three_quarters: 0.75,
    Portion.full: 1.0,
    Portion.double: 2.0,
}

# checked in order: "three quarters" must win over "quarter"
_PORTION_PATTERNS = [
    (Portion.three_quarters, r"3/4|¾|three[\s-]+quarters?|^0?\.75$"),
    (Portion.quarter, r"1/4|¼|\bquarter\b|\ba\s+quarter\b|^0?\.25$"),
    (Portion.half, r"1/2|½|\bhalf\b|\bhalves\b|^0?\.5$"),
    (Portion.double, r"\b2\s*x\b|\bx\s*2\b|\bdouble\b|\btwice\b|\btwo\b|^\s*2\s*$|\b2\s+(servings?|portions?)\b"),
]


def ceil_or_none(value: float | None) -> int | None:
    if value is None:
        return None
    return int(math.ceil(value))


def normalise_portion(raw: object) -> Portion:
    """Map free-text portion wording onto the closed Portion enum.

    Unrecognised or missing text is a full serving.
    """
    if isinstance(raw, Portion):
        return raw
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        for portion, factor in PORTION_FACTORS.items():
            if math.isclose(float(raw), factor):
                return portion
        return Portion.full
    if not isinstance(raw, str) or not raw.strip():
        return Portion.full

    text = raw.strip().lower()
    for portion in Portion:
        if text == portion.value:
            return portion
    for portion, pattern in _PORTION_PATTERNS:
        if re.search(pattern, text):
            return portion
    return Portion.full


def adjust(nutrition: NutritionVector, portion: Portion) -> NutritionVector:
    """Scale every known field by the portion factor, rounding up."""
    factor = PORTION_FACTORS[portion]

    def scale(value: float | None) -> int | None:
        return None if value is None else ceil_or_none(value * factor)

    return NutritionVector(
        calories=scale(nutrition.calories),
        protein_g=scale(nutrition.protein_g),
        carb_g=scale(nutrition.carb_g),
        fat_g=scale(nutrition.fat_g),
    )
