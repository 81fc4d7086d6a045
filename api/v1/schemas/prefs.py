from __future__ import annotations

from pydantic import BaseModel, Field

from core.models.preference import PreferenceRecord, PreferenceType

PreferenceOut = PreferenceRecord


class PreferenceIn(BaseModel):
    type: PreferenceType = Field(..., examples=["allergy", "dislike"])
    subject: str = Field(..., min_length=1, examples=["shellfish"])
    notes: str | None = None
