from __future__ import annotations
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict


class PreferenceType(str, Enum):
    allergy = "allergy"
    dietary_restriction = "dietary_restriction"
    dislike = "dislike"
    goal = "goal"


class ParsedPreference(BaseModel):
    type: PreferenceType
    subject: str
    notes: str | None = None


class PreferenceRecord(BaseModel):
    id: str
    type: PreferenceType
    subject: str
    notes: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
