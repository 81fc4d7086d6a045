# api/v1/router.py
from fastapi import APIRouter

from . import catalog, chat, meals, prefs

api_router = APIRouter()

api_router.include_router(chat.router, prefix="/chat", tags=["Chat"])
api_router.include_router(meals.router, prefix="/meals", tags=["Meals"])
api_router.include_router(prefs.router, prefix="/preferences", tags=["Preferences"])
api_router.include_router(catalog.router, prefix="/catalog", tags=["Catalog"])
