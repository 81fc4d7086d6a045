from __future__ import annotations
import datetime as dt

from pydantic import BaseModel, Field, field_validator

from core.models.meal import MealRecord, MealStatus, MealType, Portion

# stored rows go out exactly as action events carry them
MealOut = MealRecord


class MealIn(BaseModel):
    """Direct entry, bypassing the chat pipeline."""

    name: str = Field(..., min_length=1)
    meal_type: MealType
    date: dt.date | None = None
    portion: Portion = Portion.full
    status: MealStatus = MealStatus.logged
    calories: int | None = Field(None, ge=0)
    protein_g: int | None = Field(None, ge=0)
    carb_g: int | None = Field(None, ge=0)
    fat_g: int | None = Field(None, ge=0)


class MealPatch(BaseModel):
    name: str | None = Field(None, min_length=1)
    meal_type: MealType | None = None
    portion: Portion | None = None
    status: MealStatus | None = None
    calories: int | None = Field(None, ge=0)
    protein_g: int | None = Field(None, ge=0)
    carb_g: int | None = Field(None, ge=0)
    fat_g: int | None = Field(None, ge=0)

    @field_validator("name", "meal_type", "portion", "status", mode="before")
    @classmethod
    def _not_null(cls, v):
        # omit a field to keep it; these columns cannot be cleared
        if v is None:
            raise ValueError("may be omitted but not null")
        return v


class DailyTotals(BaseModel):
    date: dt.date
    meals: int
    calories: int
    protein_g: int
    carb_g: int
    fat_g: int
    by_meal_type: dict[str, int]    # calories per slot
