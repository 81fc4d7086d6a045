"""
core/streaming.py
────────────────────────────────────────────────────────────────────────
Chat turn coordinator.

    Idle → Streaming → IntentProcessing → ActionEmitted → Done
                 (any state) → Error

The turn runs in a producer task that pushes `StreamEvent`s onto a queue;
`ChatTurn.frames()` drains the queue as SSE frames.  If the client drops,
the consumer stops but the producer keeps going, so intent processing and
the assistant-message write still happen.

Frames on the wire:
    data: {"content": "..."}
    data: {"action": {"type": ..., "data": ..., "count": ...}}
    data: {"error": "..."}        (only when nothing was streamed yet)
    data: [DONE]
"""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import AsyncIterator, List, Set

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.pipeline import Action, MealPipeline
from core.prompt import SYSTEM_PROMPT, context_block
from services import db as store
from services.gemini import CompletionError

_LOG = logging.getLogger(__name__)

HISTORY_TURNS = 5

# strong refs so turns outliving their client are not garbage-collected
_IN_FLIGHT: Set[asyncio.Task] = set()


class TurnState(str, Enum):
    idle = "idle"
    streaming = "streaming"
    intent_processing = "intent_processing"
    action_emitted = "action_emitted"
    done = "done"
    error = "error"


@dataclass(frozen=True)
class StreamEvent:
    kind: str                      # content | action | done | error
    text: str | None = None
    action: Action | None = None

    @classmethod
    def content(cls, text: str) -> "StreamEvent":
        return cls("content", text=text)

    @classmethod
    def for_action(cls, action: Action) -> "StreamEvent":
        return cls("action", action=action)

    @classmethod
    def done(cls) -> "StreamEvent":
        return cls("done")

    @classmethod
    def error(cls, message: str) -> "StreamEvent":
        return cls("error", text=message)

    def frame(self) -> str:
        if self.kind == "done":
            return "data: [DONE]\n\n"
        if self.kind == "action":
            payload = {"action": self.action.model_dump(mode="json", exclude_none=True)}
        elif self.kind == "error":
            payload = {"error": self.text}
        else:
            payload = {"content": self.text}
        return f"data: {json.dumps(payload)}\n\n"


class ChatTurn:
    def __init__(
        self,
        service,
        pipeline: MealPipeline,
        sessions: async_sessionmaker[AsyncSession],
        owner_id: str,
        message: str,
        image: str | None = None,
    ) -> None:
        self._service = service
        self._pipeline = pipeline
        self._sessions = sessions
        self._owner = owner_id
        self._message = message
        self._image = image
        self._system = SYSTEM_PROMPT
        self._history: List[tuple[str, str]] = []
        self.state = TurnState.idle
        self.reply = ""

    # ─────────────────────────── request start ───────────────────── #
    async def start(self) -> None:
        """Persist the user message and load chat context.

        Runs before any frame is sent, so store errors here still become a
        regular HTTP error response.
        """
        async with self._sessions() as db:
            recent = await store.recent_chat_messages(db, self._owner, limit=HISTORY_TURNS)
            await store.add_chat_message(db, self._owner, "user", self._message)
            prefs = await store.list_preferences(db, self._owner)
            meals = await store.meals_for_date(db, self._owner, date.today())

        self._history = [(m.role, m.content) for m in recent]
        self._system = SYSTEM_PROMPT + "\n" + context_block(
            [(p.type, p.subject, p.notes) for p in prefs],
            [(m.meal_type, m.name, m.status) for m in meals],
        )

    # ─────────────────────────── producer ────────────────────────── #
    async def _stream_reply(self, queue: asyncio.Queue) -> bool:
        parts: List[str] = []
        try:
            async for token in self._service.stream_chat(
                self._system, self._history, self._message, self._image
            ):
                if self.state is TurnState.idle:
                    self.state = TurnState.streaming
                parts.append(token)
                await queue.put(StreamEvent.content(token))
        except CompletionError as exc:
            self.state = TurnState.error
            _LOG.error("chat stream failed after %d tokens: %s", len(parts), exc)
            if not parts:
                await queue.put(StreamEvent.error("The assistant is unavailable, please retry."))
            return False
        self.reply = "".join(parts)
        return True

    async def _process_intent(self, db: AsyncSession) -> Action | None:
        try:
            return await self._pipeline.process(
                db, self._owner, self._message, self._image, assistant_text=self.reply
            )
        except Exception:
            # reply already delivered; degrade to no action
            _LOG.exception("intent processing failed")
            await db.rollback()
            return None

    async def _produce(self, queue: asyncio.Queue) -> None:
        try:
            if not await self._stream_reply(queue):
                return

            self.state = TurnState.intent_processing
            async with self._sessions() as db:
                action = await self._process_intent(db)
                if action is not None:
                    await queue.put(StreamEvent.for_action(action))
                    self.state = TurnState.action_emitted
                try:
                    await store.add_chat_message(db, self._owner, "assistant", self.reply)
                except SQLAlchemyError as exc:
                    _LOG.error("failed to save assistant message: %s", exc)

            await queue.put(StreamEvent.done())
            self.state = TurnState.done
        except Exception:
            self.state = TurnState.error
            _LOG.exception("chat turn failed")
        finally:
            await queue.put(None)

    # ─────────────────────────── consumer ────────────────────────── #
    async def events(self) -> AsyncIterator[StreamEvent]:
        queue: asyncio.Queue = asyncio.Queue()
        task = asyncio.create_task(self._produce(queue))
        _IN_FLIGHT.add(task)
        task.add_done_callback(_IN_FLIGHT.discard)
        try:
            while True:
                event = await queue.get()
                if event is None:
                    return
                yield event
        finally:
            if not task.done():
                _LOG.info("client left mid-turn; finishing in background")

    async def frames(self) -> AsyncIterator[str]:
        async for event in self.events():
            yield event.frame()
