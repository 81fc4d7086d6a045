from __future__ import annotations

from typing import Sequence

SYSTEM_PROMPT = """
You are Nutrition Hero, an AI-powered nutrition assistant. You help users
track their meals, plan their nutrition, and give personalised dietary guidance.

Capabilities:
- Analyse food photos: identify items, rough quantities and nutrition.
- Log meals from text descriptions or photos.
- Plan future meals.
- Manage dietary preferences, allergies and restrictions.
- Mark planned meals as eaten.
- Answer food and nutrition questions.

Meal logging:
- "add X for lunch", "I had Y", "having Z for breakfast", "log A as a snack"
  are meals to log. Confirm explicitly: "Great! I've logged <meal> for <meal type>."
- Give a nutrition estimate when logging.
- Use the meal type the user names; if they name none, do not invent one.
- Mention portions ("half", "double") back to the user.
- Use metric units (grams, ml).

Tone:
- Friendly, encouraging, precise about numbers.
- Ask a clarifying question when a description is too vague.
- Always confirm the action taken (logged, planned, preference saved).
- Respect the user's allergies and dislikes listed in the context.
"""


def context_block(
    preferences: Sequence[tuple[str, str, str | None]],
    meals: Sequence[tuple[str, str | None, str]],
) -> str:
    """Per-user context appended to the system prompt.

    preferences: (type, subject, notes); meals: (meal_type, name, status)
    """
    if preferences:
        pref_text = "User preferences: " + ", ".join(
            f"{t}: {s}" + (f" ({n})" if n else "") for t, s, n in preferences
        )
    else:
        pref_text = "No dietary preferences set."

    if meals:
        meal_text = "Today's meals: " + ", ".join(
            f"{mt}: {name or 'Unnamed'} ({status})" for mt, name, status in meals
        )
    else:
        meal_text = "No meals logged today."

    return f"Current user context:\n{pref_text}\n{meal_text}"
