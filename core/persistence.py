"""
core/persistence.py
────────────────────────────────────────────────────────────────────────
Write pipeline results to the store.

* one row per food, each committed on its own – a failed row is logged,
  rolled back and skipped; rows already saved stay saved
* unknown nutrition is stored as NULL, never 0
* meal date is the server's local calendar date at logging time
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import List, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.models.meal import MealRecord, MealStatus, MealType, NutritionVector, ResolvedFood
from core.models.preference import ParsedPreference
from core.portion import ceil_or_none
from services import db as store

_LOG = logging.getLogger(__name__)


def default_meal_type(now: datetime | None = None) -> MealType:
    """Meal slot for the current local hour."""
    hour = (now or datetime.now()).hour
    if hour < 11:
        return MealType.breakfast
    if hour < 15:
        return MealType.lunch
    if hour < 19:
        return MealType.dinner
    return MealType.snack


def nutrition_columns(n: NutritionVector) -> dict[str, int | None]:
    return {
        "calories": ceil_or_none(n.calories),
        "protein_g": ceil_or_none(n.protein_g),
        "carb_g": ceil_or_none(n.carb_g),
        "fat_g": ceil_or_none(n.fat_g),
    }


async def save_meals(
    db: AsyncSession,
    owner_id: str,
    resolved: Sequence[ResolvedFood],
    status: MealStatus,
    now: datetime | None = None,
) -> List[MealRecord]:
    """Persist each resolved food independently, in extraction order.

    Returns a snapshot of every row that committed.  A rollback expires the
    session's instances, so rows are captured right after their own commit.
    """
    now = now or datetime.now()
    fallback_type = default_meal_type(now)
    saved: List[MealRecord] = []
    for item in sorted(resolved, key=lambda r: r.index):
        fields = {
            "name": item.food.name,
            "meal_type": (item.food.meal_type or fallback_type).value,
            "date": now.date(),
            "portion": item.food.portion.value,
            "status": status.value,
            "source": item.source.value,
            "catalog_item_id": item.catalog_item_id,
            **nutrition_columns(item.nutrition),
        }
        try:
            meal = await store.add_meal(db, owner_id, **fields)
            saved.append(MealRecord.model_validate(meal))
        except SQLAlchemyError as exc:
            await db.rollback()
            _LOG.error("failed to save meal %r: %s", item.food.name, exc)
    if len(saved) < len(resolved):
        _LOG.warning("saved %d of %d meals", len(saved), len(resolved))
    return saved


async def save_preference(
    db: AsyncSession, owner_id: str, pref: ParsedPreference
) -> store.Preference:
    return await store.add_preference(
        db, owner_id, pref.type.value, pref.subject, pref.notes
    )


async def mark_planned_eaten(
    db: AsyncSession,
    owner_id: str,
    nutrition: NutritionVector | None = None,
    on: date | None = None,
    meal_type: str | None = None,
) -> store.Meal | None:
    """Flip today's earliest planned meal to logged.

    `meal_type` narrows the choice to that slot ("ate my planned lunch").
    No planned meal → None and nothing is written.  id and meal_type are
    untouched; known nutrition from `nutrition` replaces stored values.
    """
    planned = await store.meals_for_date(
        db, owner_id, on or date.today(), status=MealStatus.planned.value,
        meal_type=meal_type,
    )
    if not planned:
        return None
    meal = planned[0]
    fields: dict = {"status": MealStatus.logged.value}
    if nutrition is not None:
        fields.update(
            {k: v for k, v in nutrition_columns(nutrition).items() if v is not None}
        )
    return await store.update_meal(db, meal, **fields)
