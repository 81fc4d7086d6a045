"""
services/db.py
────────────────────────────────────────────────────────────────────────
* Async SQLAlchemy v2 setup
* Models for chat history, meals, preferences and the food catalog
* Small DAO helpers used by routers / the meal pipeline

Every helper is keyed by owner id and writes one row per commit; nothing
here relies on multi-row transactions.
"""
from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
import datetime as dt
from datetime import date, datetime
from typing import Any, AsyncGenerator, AsyncIterator, List, Sequence

from fastapi import Depends
from sqlalchemy import Boolean, Date, DateTime, Float, Integer, String, Text, select
from sqlalchemy.ext.asyncio import (
    AsyncAttrs,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

from config import settings

# ───────── connection helper ────────────────────────────────────────
_ENGINE: AsyncEngine | None = None


def _create_engine(url: str) -> AsyncEngine:
    if url.startswith("sqlite"):
        return create_async_engine(url)
    return create_async_engine(url, pool_pre_ping=True)


async def engine() -> AsyncEngine:
    global _ENGINE
    if _ENGINE is None:
        _ENGINE = _create_engine(settings.database_url)
    return _ENGINE


async def dispose_engine() -> None:
    global _ENGINE
    if _ENGINE is not None:
        await _ENGINE.dispose()
        _ENGINE = None


async def init_models(eng: AsyncEngine | None = None) -> None:
    eng = eng or await engine()
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now()


# ───────── declarative base ──────────────────────────────────────────
Base = declarative_base(cls=AsyncAttrs)


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    owner_id: Mapped[str] = mapped_column(String, index=True)
    role: Mapped[str] = mapped_column(String(16))          # user | assistant
    content: Mapped[str] = mapped_column(Text)
    date: Mapped[dt.date] = mapped_column(Date, default=dt.date.today)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)


class Meal(Base):
    __tablename__ = "meals"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    owner_id: Mapped[str] = mapped_column(String, index=True)
    name: Mapped[str] = mapped_column(String)
    meal_type: Mapped[str] = mapped_column(String(16))
    date: Mapped[dt.date] = mapped_column(Date, default=dt.date.today, index=True)
    portion: Mapped[str] = mapped_column(String(8), default="full")
    status: Mapped[str] = mapped_column(String(16), default="logged")
    # integers or NULL – unknown is never stored as 0
    calories: Mapped[int | None] = mapped_column(Integer)
    protein_g: Mapped[int | None] = mapped_column(Integer)
    carb_g: Mapped[int | None] = mapped_column(Integer)
    fat_g: Mapped[int | None] = mapped_column(Integer)
    source: Mapped[str] = mapped_column(String(16), default="estimate")
    catalog_item_id: Mapped[str | None] = mapped_column(String(36))
    logged_at: Mapped[datetime] = mapped_column(DateTime, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_now, onupdate=_now)


class Preference(Base):
    __tablename__ = "preferences"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    owner_id: Mapped[str] = mapped_column(String, index=True)
    type: Mapped[str] = mapped_column(String(32))
    subject: Mapped[str] = mapped_column(String)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)


class CatalogItem(Base):
    __tablename__ = "catalog_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    brand: Mapped[str | None] = mapped_column(String)
    name: Mapped[str] = mapped_column(String)
    description: Mapped[str | None] = mapped_column(Text)
    category: Mapped[str | None] = mapped_column(String)
    serving_size: Mapped[str | None] = mapped_column(String)
    calories: Mapped[float | None] = mapped_column(Float)
    protein_g: Mapped[float | None] = mapped_column(Float)
    carb_g: Mapped[float | None] = mapped_column(Float)
    fat_g: Mapped[float | None] = mapped_column(Float)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)


# ───────── session helpers ───────────────────────────────────────────
async def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Factory for code that outlives the request scope (chat streaming)."""
    return async_sessionmaker(await engine(), expire_on_commit=False)


async def get_session(
    sessions: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
) -> AsyncGenerator[AsyncSession, None]:
    async with sessions() as session:
        yield session


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """`async with session_scope() as db:` for scripts and workers."""
    sessions = await get_sessionmaker()
    async with sessions() as session:
        yield session


# ───────── chat messages ─────────────────────────────────────────────
async def add_chat_message(
    db: AsyncSession, owner_id: str, role: str, content: str
) -> ChatMessage:
    msg = ChatMessage(owner_id=owner_id, role=role, content=content, date=date.today())
    db.add(msg)
    await db.commit()
    return msg


async def recent_chat_messages(
    db: AsyncSession, owner_id: str, limit: int = 10, on: date | None = None
) -> List[ChatMessage]:
    """Newest `limit` messages, returned oldest first."""
    q = select(ChatMessage).where(ChatMessage.owner_id == owner_id)
    if on is not None:
        q = q.where(ChatMessage.date == on)
    q = q.order_by(ChatMessage.created_at.desc()).limit(limit)
    rows = (await db.execute(q)).scalars().all()
    return list(reversed(rows))


# ───────── meals ─────────────────────────────────────────────────────
async def add_meal(db: AsyncSession, owner_id: str, **fields: Any) -> Meal:
    meal = Meal(owner_id=owner_id, **fields)
    db.add(meal)
    await db.commit()
    return meal


async def update_meal(db: AsyncSession, meal: Meal, **fields: Any) -> Meal:
    for key, value in fields.items():
        setattr(meal, key, value)
    await db.commit()
    await db.refresh(meal)
    return meal


async def get_owned_meal(db: AsyncSession, owner_id: str, meal_id: str) -> Meal | None:
    meal = await db.get(Meal, meal_id)
    if meal is None or meal.owner_id != owner_id:
        return None
    return meal


async def meals_for_date(
    db: AsyncSession,
    owner_id: str,
    on: date,
    status: str | None = None,
    meal_type: str | None = None,
) -> List[Meal]:
    q = select(Meal).where(Meal.owner_id == owner_id, Meal.date == on)
    if status is not None:
        q = q.where(Meal.status == status)
    if meal_type is not None:
        q = q.where(Meal.meal_type == meal_type)
    q = q.order_by(Meal.logged_at)
    return list((await db.execute(q)).scalars().all())


async def delete_meal(db: AsyncSession, meal: Meal) -> None:
    await db.delete(meal)
    await db.commit()


# ───────── preferences ───────────────────────────────────────────────
async def add_preference(
    db: AsyncSession, owner_id: str, type: str, subject: str, notes: str | None = None
) -> Preference:
    pref = Preference(owner_id=owner_id, type=type, subject=subject, notes=notes)
    db.add(pref)
    await db.commit()
    return pref


async def list_preferences(db: AsyncSession, owner_id: str) -> List[Preference]:
    q = (
        select(Preference)
        .where(Preference.owner_id == owner_id)
        .order_by(Preference.created_at.desc())
    )
    return list((await db.execute(q)).scalars().all())


async def delete_preference(db: AsyncSession, owner_id: str, pref_id: str) -> bool:
    pref = await db.get(Preference, pref_id)
    if pref is None or pref.owner_id != owner_id:
        return False
    await db.delete(pref)
    await db.commit()
    return True


# ───────── catalog ───────────────────────────────────────────────────
async def available_catalog(db: AsyncSession) -> List[CatalogItem]:
    q = (
        select(CatalogItem)
        .where(CatalogItem.is_available.is_(True))
        .order_by(CatalogItem.brand, CatalogItem.name)
    )
    return list((await db.execute(q)).scalars().all())


async def add_catalog_items(db: AsyncSession, rows: Sequence[dict[str, Any]]) -> int:
    for row in rows:
        db.add(CatalogItem(**row))
    await db.commit()
    return len(rows)
