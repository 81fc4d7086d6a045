"""Re-export individual schema modules for easy imports."""

from .chat import ChatMessageOut, ChatRequest
from .catalog import CatalogItemIn, CatalogItemOut
from .meal import DailyTotals, MealIn, MealOut, MealPatch
from .prefs import PreferenceIn, PreferenceOut

__all__ = [
    "ChatMessageOut",
    "ChatRequest",
    "CatalogItemIn",
    "CatalogItemOut",
    "DailyTotals",
    "MealIn",
    "MealOut",
    "MealPatch",
    "PreferenceIn",
    "PreferenceOut",
]
