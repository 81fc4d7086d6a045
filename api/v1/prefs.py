from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from services.auth import current_owner
from services.db import add_preference, delete_preference, get_session, list_preferences
from api.v1.schemas import PreferenceIn, PreferenceOut

router = APIRouter()


# ───────────────────────── read ─────────────────────────────
@router.get(
    "",
    response_model=list[PreferenceOut],
    status_code=status.HTTP_200_OK,
)
async def get_preferences(
    owner_id: str = Depends(current_owner),
    db: AsyncSession = Depends(get_session),
) -> list[PreferenceOut]:
    return [PreferenceOut.model_validate(p) for p in await list_preferences(db, owner_id)]


# ───────────────────────── append ───────────────────────────
@router.post(
    "",
    response_model=PreferenceOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_preference(
    body: PreferenceIn,
    owner_id: str = Depends(current_owner),
    db: AsyncSession = Depends(get_session),
) -> PreferenceOut:
    pref = await add_preference(
        db, owner_id, body.type.value, body.subject.strip(), body.notes
    )
    return PreferenceOut.model_validate(pref)


# ───────────────────────── delete ───────────────────────────
@router.delete(
    "/{pref_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def remove_preference(
    pref_id: str,
    owner_id: str = Depends(current_owner),
    db: AsyncSession = Depends(get_session),
) -> Response:
    if not await delete_preference(db, owner_id, pref_id):
        raise HTTPException(status_code=404, detail="Preference not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
