"""
core/pipeline.py
────────────────────────────────────────────────────────────────────────
Intent → extraction → catalog match → estimate → portion → persistence.

A single `MealPipeline` covers every variant (with / without photos, with /
without portion scaling); the differences live in `PipelineConfig`.

Public entry point: `MealPipeline.process(...)`, which returns at most one
`Action` for the streaming coordinator.  Sub-step failures degrade to
empty results; only programming errors propagate, and the coordinator
turns those into "no action".
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, List, Sequence

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from core.catalog_match import match_food
from core.estimation import estimate_food, estimate_from_message
from core.extraction import extract_foods
from core.intent import Intent, classify, meal_type_cue
from core.models.meal import (
    CatalogEntry,
    ExtractedFood,
    MealRecord,
    MealSource,
    MealStatus,
    NutritionVector,
    Portion,
    ResolvedFood,
)
from core.models.preference import PreferenceRecord
from core.persistence import mark_planned_eaten, save_meals, save_preference
from core.portion import adjust
from core.preferences import parse_preference
from services import db as store

_LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineConfig:
    supports_image: bool = True
    supports_portion_adjustment: bool = True
    parallel_matching: bool = True
    catalog_prompt_limit: int = 60

    @classmethod
    def from_settings(cls, settings) -> "PipelineConfig":
        return cls(
            supports_image=settings.supports_image,
            supports_portion_adjustment=settings.supports_portion_adjustment,
            parallel_matching=settings.parallel_matching,
            catalog_prompt_limit=settings.catalog_prompt_limit,
        )


class Action(BaseModel):
    type: str      # meal_logged | meal_planned | meal_updated | preference_updated
    data: Any
    count: int | None = None


def catalog_entry(row: store.CatalogItem) -> CatalogEntry:
    return CatalogEntry(
        id=row.id,
        brand=row.brand,
        name=row.name,
        description=row.description,
        category=row.category,
        nutrition=NutritionVector(
            calories=row.calories,
            protein_g=row.protein_g,
            carb_g=row.carb_g,
            fat_g=row.fat_g,
        ),
    )


def _meals_action(kind: str, meals: Sequence[MealRecord]) -> Action | None:
    if not meals:
        return None
    records = [m.model_dump(mode="json") for m in meals]
    if len(records) == 1:
        return Action(type=kind, data=records[0], count=1)
    return Action(type=kind, data=records, count=len(records))


class MealPipeline:
    def __init__(self, service, config: PipelineConfig | None = None) -> None:
        self._service = service
        self._config = config or PipelineConfig()

    # ─────────────────────────── food resolution ─────────────────── #
    async def extract(self, message: str, image: str | None) -> List[ExtractedFood]:
        image = image if self._config.supports_image else None
        foods = await extract_foods(self._service, message, image)
        if foods:
            return foods
        _LOG.info("structured extraction empty → full-message fallback")
        return await estimate_from_message(self._service, message, image)

    async def _resolve_one(
        self, index: int, food: ExtractedFood, catalog: Sequence[CatalogEntry]
    ) -> ResolvedFood:
        match = await match_food(
            self._service, food.name, catalog, self._config.catalog_prompt_limit
        )
        if match.accepted:
            nutrition, source, item_id = match.item.nutrition, MealSource.library, match.item.id
        else:
            nutrition = food.nutrition
            if nutrition is None or nutrition.is_empty():
                nutrition = await estimate_food(self._service, food.name)
            source, item_id = MealSource.estimate, None

        if self._config.supports_portion_adjustment:
            nutrition = adjust(nutrition, food.portion)
        else:
            food = food.model_copy(update={"portion": Portion.full})
        return ResolvedFood(
            index=index, food=food, nutrition=nutrition,
            source=source, catalog_item_id=item_id,
        )

    async def resolve(
        self, foods: Sequence[ExtractedFood], catalog: Sequence[CatalogEntry]
    ) -> List[ResolvedFood]:
        if self._config.parallel_matching:
            resolved = await asyncio.gather(
                *(self._resolve_one(i, f, catalog) for i, f in enumerate(foods))
            )
        else:
            resolved = [await self._resolve_one(i, f, catalog) for i, f in enumerate(foods)]
        # downstream consumers rely on extraction order
        return sorted(resolved, key=lambda r: r.index)

    async def foods_for_message(
        self, db: AsyncSession, message: str, image: str | None
    ) -> List[ResolvedFood]:
        foods = await self.extract(message, image)
        if not foods:
            return []
        catalog = [catalog_entry(row) for row in await store.available_catalog(db)]
        return await self.resolve(foods, catalog)

    # ─────────────────────────── intent handlers ─────────────────── #
    async def _save_meals(
        self, db: AsyncSession, owner_id: str, message: str,
        image: str | None, status: MealStatus, kind: str,
    ) -> Action | None:
        resolved = await self.foods_for_message(db, message, image)
        if not resolved:
            _LOG.info("no meal data extracted from %.80r", message)
            return None
        saved = await save_meals(db, owner_id, resolved, status)
        return _meals_action(kind, saved)

    async def _update_preference(
        self, db: AsyncSession, owner_id: str, message: str
    ) -> Action | None:
        parsed = parse_preference(message)
        if parsed is None:
            _LOG.info("preference cue without a parsable subject: %.80r", message)
            return None
        pref = await save_preference(db, owner_id, parsed)
        record = PreferenceRecord.model_validate(pref).model_dump(mode="json")
        return Action(type="preference_updated", data=record)

    async def _mark_eaten(
        self, db: AsyncSession, owner_id: str, message: str, image: str | None
    ) -> Action | None:
        nutrition = None
        if image and self._config.supports_image:
            resolved = await self.foods_for_message(db, message, image)
            nutrition = resolved[0].nutrition if resolved else None
        meal = await mark_planned_eaten(
            db, owner_id, nutrition, meal_type=meal_type_cue(message)
        )
        if meal is None:
            _LOG.info("no planned meal to mark eaten for %s", owner_id)
            return None
        return Action(
            type="meal_updated",
            data=MealRecord.model_validate(meal).model_dump(mode="json"),
        )

    async def process(
        self,
        db: AsyncSession,
        owner_id: str,
        message: str,
        image: str | None = None,
        assistant_text: str = "",
    ) -> Action | None:
        """Classify `message` and carry out the matching action.

        `assistant_text` is the streamed reply; classification uses the
        user's words only so the assistant's phrasing cannot trigger writes.
        """
        intent = classify(message, has_image=bool(image) and self._config.supports_image)
        _LOG.debug("intent=%s reply_len=%d", intent.value, len(assistant_text))

        if intent is Intent.update_preference:
            return await self._update_preference(db, owner_id, message)
        if intent is Intent.log_meal:
            return await self._save_meals(
                db, owner_id, message, image, MealStatus.logged, "meal_logged"
            )
        if intent is Intent.plan_meal:
            return await self._save_meals(
                db, owner_id, message, image, MealStatus.planned, "meal_planned"
            )
        if intent is Intent.mark_planned_eaten:
            return await self._mark_eaten(db, owner_id, message, image)
        return None
