"""Шина событий для push-канала (WebSocket наблюдатели, логгеры)."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from loguru import logger

from bagsscan.models import now_ms

EventCallback = Callable[[dict[str, Any]], Awaitable[None]]

NEW_TOKEN = "new_token"
TOKEN_UPDATED = "token_updated"
TOKEN_ARCHIVED = "token_archived"
POSITION_OPENED = "position_opened"
POSITION_UPDATED = "position_updated"
POSITION_CLOSED = "position_closed"


class EventBus:
    """Publish/subscribe без глобального состояния: экземпляр владеет composition root."""

    def __init__(self) -> None:
        self._subscribers: set[EventCallback] = set()

    def subscribe(self, callback: EventCallback) -> None:
        self._subscribers.add(callback)

    def unsubscribe(self, callback: EventCallback) -> None:
        self._subscribers.discard(callback)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def publish(self, event_type: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        event = {"type": event_type, "timestamp": now_ms(), **(payload or {})}
        if self._subscribers:
            await asyncio.gather(*(self._safe_emit(cb, event) for cb in list(self._subscribers)))
        return event

    async def _safe_emit(self, callback: EventCallback, event: dict[str, Any]) -> None:
        try:
            await callback(event)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Подписчик EventBus упал: {error}", error=exc)


__all__ = [
    "EventBus",
    "EventCallback",
    "NEW_TOKEN",
    "POSITION_CLOSED",
    "POSITION_OPENED",
    "POSITION_UPDATED",
    "TOKEN_ARCHIVED",
    "TOKEN_UPDATED",
]
