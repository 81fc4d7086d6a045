"""
Centralised settings loader.

Every value can be overridden through the environment or a local `.env`
file (pydantic-settings, case-insensitive names).
"""

from __future__ import annotations
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# ------------------------------------------------------------------ #
#  Master settings model
# ------------------------------------------------------------------ #
class _Settings(BaseSettings):
    # ─── runtime / DB / auth ─────────────────────────────────────────
    env_name: str = "local"
    log_level: str = "INFO"
    database_url: str = "sqlite+aiosqlite:///./nutrition.db"
    jwt_secret: str = "changeme"
    jwt_ttl_minutes: int = 60 * 24

    # ─── Gemini ──────────────────────────────────────────────────────
    gemini_api_key: str | None = None
    chat_model: str = "models/gemini-2.0-flash"
    extraction_model: str = "models/gemini-2.0-flash"
    embed_model: str = "models/gemini-embedding-exp-03-07"
    completion_timeout_s: float = Field(30.0, gt=0)

    # ─── meal pipeline ───────────────────────────────────────────────
    catalog_prompt_limit: int = Field(60, ge=1)
    supports_image: bool = True
    supports_portion_adjustment: bool = True
    parallel_matching: bool = True

    # allow other teammates’ env-vars without crashing
    model_config = SettingsConfigDict(
        extra="ignore", env_file=".env", env_file_encoding="utf-8"
    )


# ------------------------------------------------------------------ #
#  Cached singleton accessor
# ------------------------------------------------------------------ #
@lru_cache
def _cached() -> _Settings:  # pragma: no cover
    return _Settings()  # type: ignore[call-arg]


settings: _Settings = _cached()
