# api/v1/catalog.py
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from services.auth import current_owner
from services.db import add_catalog_items, available_catalog, get_session
from api.v1.schemas import CatalogItemIn, CatalogItemOut

router = APIRouter()


@router.get(
    "",
    response_model=list[CatalogItemOut],
    summary="Available catalog items the matcher can choose from",
)
async def list_catalog(
    _: str = Depends(current_owner),
    db: AsyncSession = Depends(get_session),
) -> list[CatalogItemOut]:
    return [CatalogItemOut.model_validate(c) for c in await available_catalog(db)]


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Add catalog items (brand menu import)",
)
async def import_catalog(
    items: list[CatalogItemIn],
    _: str = Depends(current_owner),
    db: AsyncSession = Depends(get_session),
) -> dict[str, int]:
    count = await add_catalog_items(db, [i.model_dump() for i in items])
    return {"imported": count}
