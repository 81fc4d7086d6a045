"""
core/preferences.py
────────────────────────────────────────────────────────────────────────
Pull a {type, subject, notes} preference out of preference-shaped text.

Patterns are tried in order inside each group; the first group with a hit
decides the preference type (allergy → dislike → diet → restriction).
"""
from __future__ import annotations

import re
from typing import List, Tuple

from core.models.preference import ParsedPreference, PreferenceType

_SUBJECT = r"([a-z][a-z\s'&-]*?)"
_END = r"(?=\s*(?:[.,!?;]|\bbut\b|\band\s+(?:i|it)\b|$))"

_ALLERGY = [
    rf"allergic\s+to\s+{_SUBJECT}{_END}",
    rf"allergy\s+to\s+{_SUBJECT}{_END}",
    r"([a-z][a-z-]*(?:\s+[a-z][a-z-]*)?)\s+allergy\b",
]
_DISLIKE = [
    rf"add\s+{_SUBJECT}\s+as\s+an?\s+(?:negative|dislike)",
    rf"\bdo(?:n'?t| not)\s+like\s+{_SUBJECT}{_END}",
    rf"not\s+a\s+fan\s+of\s+{_SUBJECT}{_END}",
    rf"\bhate\s+{_SUBJECT}{_END}",
    rf"can'?t\s+stand\s+{_SUBJECT}{_END}",
    rf"\bdislike\s+{_SUBJECT}{_END}",
    rf"{_SUBJECT}\s+makes?\s+me\s+feel\s+bad",
]
_RESTRICTION = [
    rf"\bavoid(?:ing)?\s+{_SUBJECT}{_END}",
    rf"restriction[:\s]+(?:on\s+|to\s+)?{_SUBJECT}{_END}",
]
_DIETS: List[Tuple[str, str, str]] = [
    ("vegan", "animal products", "Vegan diet"),
    ("vegetarian", "meat", "Vegetarian diet"),
]

_LEADING = re.compile(r"^(?:a\s+|an\s+|my\s+|i\s+|i'm\s+|im\s+|eating\s+|eat\s+|to\s+|the\s+|any\s+|all\s+)+")
_TRAILING = re.compile(r"\s+(?:please|anymore|at all|too|now)$")


def _clean(subject: str) -> str:
    subject = _LEADING.sub("", subject.strip())
    subject = _TRAILING.sub("", subject)
    return subject.strip(" '-")


def _first(patterns: List[str], text: str) -> str | None:
    for pattern in patterns:
        m = re.search(pattern, text)
        if m:
            subject = _clean(m.group(1))
            if subject:
                return subject
    return None


def parse_preference(message: str) -> ParsedPreference | None:
    text = (message or "").lower().replace("’", "'").strip()

    if "allerg" in text:
        subject = _first(_ALLERGY, text)
        if subject:
            return ParsedPreference(
                type=PreferenceType.allergy, subject=subject, notes="User reported allergy"
            )

    subject = _first(_DISLIKE, text)
    if subject:
        return ParsedPreference(
            type=PreferenceType.dislike,
            subject=subject,
            notes="User dislikes this food or it makes them feel bad",
        )

    for word, subject, notes in _DIETS:
        if re.search(rf"\b{word}\b", text):
            return ParsedPreference(
                type=PreferenceType.dietary_restriction, subject=subject, notes=notes
            )

    subject = _first(_RESTRICTION, text)
    if subject:
        return ParsedPreference(
            type=PreferenceType.dietary_restriction,
            subject=subject,
            notes="User wants to avoid this food",
        )
    return None
