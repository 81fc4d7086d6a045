from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class CatalogItemIn(BaseModel):
    brand: str | None = None
    name: str = Field(..., min_length=1)
    description: str | None = None
    category: str | None = None
    serving_size: str | None = None
    calories: float | None = Field(None, ge=0)
    protein_g: float | None = Field(None, ge=0)
    carb_g: float | None = Field(None, ge=0)
    fat_g: float | None = Field(None, ge=0)
    is_available: bool = True


class CatalogItemOut(CatalogItemIn):
    id: str

    model_config = ConfigDict(from_attributes=True)
