from __future__ import annotations
import datetime as dt
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class MealType(str, Enum):
    breakfast = "breakfast"
    lunch = "lunch"
    dinner = "dinner"
    snack = "snack"


class Portion(str, Enum):
    quarter = "1/4"
    half = "1/2"
    three_quarters = "3/4"
    full = "full"
    double = "2x"


class MealStatus(str, Enum):
    planned = "planned"
    logged = "logged"


class MealSource(str, Enum):
    library = "library"     # matched catalog item
    estimate = "estimate"   # model estimate


class Confidence(str, Enum):
    high = "high"
    medium = "medium"
    low = "low"


class NutritionVector(BaseModel):
    """Per-serving (or per-portion) macros. Any field may be unknown."""

    calories: float | None = Field(None, ge=0)
    protein_g: float | None = Field(None, ge=0)
    carb_g: float | None = Field(None, ge=0)
    fat_g: float | None = Field(None, ge=0)

    model_config = ConfigDict(frozen=True)

    def is_empty(self) -> bool:
        return all(
            v is None for v in (self.calories, self.protein_g, self.carb_g, self.fat_g)
        )


class ExtractedFood(BaseModel):
    name: str
    meal_type: MealType | None = None      # None = no explicit cue in the message
    portion: Portion = Portion.full
    # filled only by the full-message fallback, which estimates in the same call
    nutrition: NutritionVector | None = None


class CatalogEntry(BaseModel):
    """Read-only view of a catalog row handed to the matcher."""

    id: str
    brand: str | None = None
    name: str
    description: str | None = None
    category: str | None = None
    nutrition: NutritionVector = NutritionVector()


class MatchResult(BaseModel):
    item: CatalogEntry | None = None
    confidence: Confidence = Confidence.low
    rationale: str = ""

    @property
    def accepted(self) -> bool:
        # only a high-confidence hit may populate a meal
        return self.item is not None and self.confidence is Confidence.high


class ResolvedFood(BaseModel):
    """Outcome of match / estimate / portion scaling for one extracted food."""

    index: int
    food: ExtractedFood
    nutrition: NutritionVector
    source: MealSource
    catalog_item_id: str | None = None


class MealRecord(BaseModel):
    """Stored meal as sent to clients (action events and REST)."""

    id: str
    name: str
    meal_type: MealType
    date: dt.date
    portion: Portion
    status: MealStatus
    calories: int | None = None
    protein_g: int | None = None
    carb_g: int | None = None
    fat_g: int | None = None
    source: MealSource
    catalog_item_id: str | None = None
    logged_at: dt.datetime
    updated_at: dt.datetime | None = None

    model_config = ConfigDict(from_attributes=True)
