"""
core/intent.py
────────────────────────────────────────────────────────────────────────
Keyword intent classifier.

`RULES` is an ordered list of (predicate, Intent) pairs; the first
predicate that fires wins.  Order matters:

  1. preference update  – must run before logging, "add" overlaps both
  2. log meal           – skips preference / planning / planned-eaten text
  3. plan meal
  4. mark planned meal eaten

No match → Intent.no_action.
"""
from __future__ import annotations

import re
from enum import Enum
from typing import Callable, List, Tuple


class Intent(str, Enum):
    update_preference = "update_preference"
    log_meal = "log_meal"
    plan_meal = "plan_meal"
    mark_planned_eaten = "mark_planned_eaten"
    no_action = "no_action"


Predicate = Callable[[str, bool], bool]

MEAL_WORDS = ("breakfast", "lunch", "dinner", "snack")

_PREFERENCE_WORDS = (
    "allergic", "allergy", "vegetarian", "vegan", "avoid", "restriction",
    "dislike", "hate",
)
_PREFERENCE_PHRASES = (
    "don't like", "dont like", "do not like", "can't stand", "cant stand",
    "not a fan", "feel bad", "negative preference",
)
_LOG_VERBS = ("ate", "had", "consumed", "want", "having", "eating")


def _has_word(text: str, *words: str) -> bool:
    return any(re.search(rf"\b{re.escape(w)}\b", text) for w in words)


def _has_phrase(text: str, *phrases: str) -> bool:
    return any(p in text for p in phrases)


def _normalise(message: str) -> str:
    # curly apostrophes show up from mobile keyboards
    return message.lower().replace("’", "'")


# ───────────────────────── predicates ────────────────────────────────
def is_preference_update(text: str, has_image: bool = False) -> bool:
    if _has_word(text, *_PREFERENCE_WORDS) or _has_phrase(text, *_PREFERENCE_PHRASES):
        return True
    if _has_word(text, "add"):
        return _has_word(text, "preference", "negative", "dislike")
    return False


def is_planning(text: str, has_image: bool = False) -> bool:
    return _has_word(text, "plan", "planning") and _has_word(text, "meal", *MEAL_WORDS)


def is_planned_eaten(text: str, has_image: bool = False) -> bool:
    return bool(re.search(r"\b(ate|had)\s+my\s+planned\b", text))


def is_meal_log(text: str, has_image: bool = False) -> bool:
    if is_preference_update(text) or is_planning(text) or is_planned_eaten(text):
        return False
    if has_image:
        return True
    if _has_word(text, *_LOG_VERBS):
        return True
    if _has_word(text, "add", "log"):
        return True
    return _has_word(text, "for") and _has_word(text, *MEAL_WORDS)


RULES: List[Tuple[Predicate, Intent]] = [
    (is_preference_update, Intent.update_preference),
    (is_meal_log, Intent.log_meal),
    (is_planning, Intent.plan_meal),
    (is_planned_eaten, Intent.mark_planned_eaten),
]


def classify(message: str, has_image: bool = False) -> Intent:
    text = _normalise(message or "")
    for predicate, intent in RULES:
        if predicate(text, has_image):
            return intent
    return Intent.no_action


def meal_type_cue(message: str) -> str | None:
    """Meal-time word named in the message, or None.

    Only returns a value when exactly one distinct meal word is present, so
    "breakfast or lunch?" stays unresolved.
    """
    text = _normalise(message or "")
    found = [w for w in MEAL_WORDS if re.search(rf"\b{w}s?\b", text)]
    return found[0] if len(found) == 1 else None
