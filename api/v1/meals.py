# api/v1/meals.py
from __future__ import annotations
from datetime import date

import pandas as pd
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.models.meal import MealSource, MealStatus
from core.persistence import mark_planned_eaten
from services.auth import current_owner
from services.db import (
    Meal,
    add_meal,
    delete_meal,
    get_owned_meal,
    get_session,
    meals_for_date,
    update_meal,
)
from api.v1.schemas import DailyTotals, MealIn, MealOut, MealPatch

router = APIRouter()

_MACROS = ["calories", "protein_g", "carb_g", "fat_g"]


async def _owned_or_404(db: AsyncSession, owner_id: str, meal_id: str) -> Meal:
    meal = await get_owned_meal(db, owner_id, meal_id)
    if meal is None:
        raise HTTPException(status_code=404, detail="Meal not found")
    return meal


@router.get(
    "",
    response_model=list[MealOut],
    summary="List meals for a day (default today)",
)
async def list_meals(
    on: date | None = Query(None, alias="date"),
    owner_id: str = Depends(current_owner),
    db: AsyncSession = Depends(get_session),
) -> list[MealOut]:
    meals = await meals_for_date(db, owner_id, on or date.today())
    return [MealOut.model_validate(m) for m in meals]


@router.get(
    "/totals",
    response_model=DailyTotals,
    summary="Sum of logged nutrition for a day",
)
async def daily_totals(
    on: date | None = Query(None, alias="date"),
    owner_id: str = Depends(current_owner),
    db: AsyncSession = Depends(get_session),
) -> DailyTotals:
    """
    Planned meals are not counted; unknown values count as nothing
    rather than zero-filled rows.
    """
    day = on or date.today()
    meals = await meals_for_date(db, owner_id, day, status=MealStatus.logged.value)
    df = pd.DataFrame(
        [{"meal_type": m.meal_type, **{k: getattr(m, k) for k in _MACROS}} for m in meals],
        columns=["meal_type", *_MACROS],
    )
    df[_MACROS] = df[_MACROS].apply(pd.to_numeric, errors="coerce")
    sums = df[_MACROS].sum(min_count=1).fillna(0)
    by_type = df.groupby("meal_type")["calories"].sum(min_count=1).fillna(0)
    return DailyTotals(
        date=day,
        meals=len(df),
        **{k: int(sums[k]) for k in _MACROS},
        by_meal_type={str(k): int(v) for k, v in by_type.items()},
    )


@router.post(
    "",
    response_model=MealOut,
    status_code=status.HTTP_201_CREATED,
    summary="Add a meal directly",
)
async def create_meal(
    body: MealIn,
    owner_id: str = Depends(current_owner),
    db: AsyncSession = Depends(get_session),
) -> MealOut:
    fields = body.model_dump(mode="json", exclude={"date"})
    meal = await add_meal(
        db, owner_id, date=body.date or date.today(),
        source=MealSource.estimate.value, **fields,
    )
    return MealOut.model_validate(meal)


@router.get("/{meal_id}", response_model=MealOut)
async def fetch_meal(
    meal_id: str,
    owner_id: str = Depends(current_owner),
    db: AsyncSession = Depends(get_session),
) -> MealOut:
    return MealOut.model_validate(await _owned_or_404(db, owner_id, meal_id))


@router.patch("/{meal_id}", response_model=MealOut, summary="Edit a meal")
async def edit_meal(
    meal_id: str,
    body: MealPatch,
    owner_id: str = Depends(current_owner),
    db: AsyncSession = Depends(get_session),
) -> MealOut:
    meal = await _owned_or_404(db, owner_id, meal_id)
    changes = body.model_dump(mode="json", exclude_unset=True)
    if (
        changes.get("status") == MealStatus.planned.value
        and meal.status == MealStatus.logged.value
    ):
        raise HTTPException(status_code=409, detail="A logged meal cannot go back to planned")
    meal = await update_meal(db, meal, **changes)
    return MealOut.model_validate(meal)


@router.post(
    "/planned/eaten",
    response_model=MealOut | None,
    summary="Mark today's next planned meal as eaten (no-op when none)",
)
async def eat_next_planned(
    owner_id: str = Depends(current_owner),
    db: AsyncSession = Depends(get_session),
) -> MealOut | None:
    meal = await mark_planned_eaten(db, owner_id)
    return MealOut.model_validate(meal) if meal else None


@router.post(
    "/{meal_id}/eaten",
    response_model=MealOut,
    summary="Mark a planned meal as logged",
)
async def eat_meal(
    meal_id: str,
    owner_id: str = Depends(current_owner),
    db: AsyncSession = Depends(get_session),
) -> MealOut:
    meal = await _owned_or_404(db, owner_id, meal_id)
    if meal.status != MealStatus.logged.value:
        meal = await update_meal(db, meal, status=MealStatus.logged.value)
    return MealOut.model_validate(meal)


@router.delete(
    "/{meal_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a meal",
)
async def remove_meal(
    meal_id: str,
    owner_id: str = Depends(current_owner),
    db: AsyncSession = Depends(get_session),
) -> Response:
    meal = await _owned_or_404(db, owner_id, meal_id)
    await delete_meal(db, meal)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
