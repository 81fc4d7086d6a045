# api/v1/chat.py
from __future__ import annotations
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.pipeline import MealPipeline, PipelineConfig
from core.streaming import ChatTurn
from services.auth import current_owner
from services.db import get_session, get_sessionmaker, recent_chat_messages
from services.gemini import get_completion_service
from api.v1.schemas import ChatMessageOut, ChatRequest

router = APIRouter()


def get_pipeline_config(request: Request) -> PipelineConfig:
    return request.app.state.pipeline_config


@router.post(
    "",
    status_code=status.HTTP_200_OK,
    summary="Send a message and stream the assistant's reply (SSE)",
    response_class=StreamingResponse,
)
async def chat(
    body: ChatRequest,
    owner_id: str = Depends(current_owner),
    sessions: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
    service=Depends(get_completion_service),
    config: PipelineConfig = Depends(get_pipeline_config),
) -> StreamingResponse:
    if not body.message.strip() and not body.image:
        raise HTTPException(status_code=400, detail="message or image is required")

    turn = ChatTurn(
        service,
        MealPipeline(service, config),
        sessions,
        owner_id,
        body.message.strip(),
        body.image,
    )
    await turn.start()
    return StreamingResponse(
        turn.frames(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.get(
    "/messages",
    response_model=list[ChatMessageOut],
    summary="Chat history, oldest first",
)
async def list_messages(
    on: date | None = Query(None, alias="date"),
    limit: int = Query(50, ge=1, le=500),
    owner_id: str = Depends(current_owner),
    db: AsyncSession = Depends(get_session),
) -> list[ChatMessageOut]:
    rows = await recent_chat_messages(db, owner_id, limit=limit, on=on)
    return [ChatMessageOut.model_validate(m) for m in rows]
