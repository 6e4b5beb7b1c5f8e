"""Троттлинг и повторные попытки для внешних вызовов.

Каждый внешний сервис (RPC, bags.fm API, оракул) получает свой экземпляр
RateLimitedClient: между стартами вызовов выдерживается минимальный интервал,
а временные ошибки (429, rate-limit коды RPC, таймауты) повторяются
с экспоненциальной задержкой base * 2^attempt, ограниченной сверху.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, TypeVar

import aiohttp
from loguru import logger

from config.settings import RateLimitSettings

T = TypeVar("T")

RATE_LIMIT_RPC_CODES = frozenset({429, -32429, -32005})
RETRYABLE_HTTP_STATUSES = frozenset({429, 502, 503, 504})
_TRANSIENT_MARKERS = ("429", "too many requests", "rate limit")


class TransientError(RuntimeError):
    """Временная ошибка внешнего сервиса (имеет смысл повторить)."""


def is_transient(exc: BaseException) -> bool:
    """Классифицирует ошибку как временную."""

    if isinstance(exc, TransientError):
        return True
    if isinstance(exc, (asyncio.TimeoutError, aiohttp.ClientConnectionError)):
        return True
    status = getattr(exc, "status", None)
    if isinstance(status, int) and status in RETRYABLE_HTTP_STATUSES:
        return True
    code = getattr(exc, "code", None)
    if isinstance(code, int) and code in RATE_LIMIT_RPC_CODES:
        return True
    text = str(exc).lower()
    return any(marker in text for marker in _TRANSIENT_MARKERS)


class RateLimitedClient:
    """Обёртка call(operation) с минимальным интервалом и backoff."""

    def __init__(
        self,
        name: str,
        *,
        min_interval_sec: float,
        max_retries: int = 3,
        base_delay_sec: float = 1.0,
        max_delay_sec: float = 16.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.name = name
        self._min_interval = max(min_interval_sec, 0.0)
        self._max_retries = max(max_retries, 0)
        self._base_delay = base_delay_sec
        self._max_delay = max_delay_sec
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_call: float | None = None

    @classmethod
    def from_settings(
        cls,
        name: str,
        settings: RateLimitSettings,
        *,
        min_interval_sec: float | None = None,
    ) -> "RateLimitedClient":
        return cls(
            name,
            min_interval_sec=settings.min_interval_sec if min_interval_sec is None else min_interval_sec,
            max_retries=settings.max_retries,
            base_delay_sec=settings.base_delay_sec,
            max_delay_sec=settings.max_delay_sec,
        )

    def backoff_delay(self, attempt: int) -> float:
        return min(self._base_delay * (2**attempt), self._max_delay)

    async def call(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Выполняет operation() с троттлингом; ошибки не глушатся."""

        attempt = 0
        while True:
            await self._throttle()
            try:
                return await operation()
            except Exception as exc:
                if not is_transient(exc) or attempt >= self._max_retries:
                    raise
                delay = self.backoff_delay(attempt)
                attempt += 1
                logger.warning(
                    "{name}: временная ошибка ({error}), попытка {attempt}/{total} через {delay}s",
                    name=self.name,
                    error=str(exc) or type(exc).__name__,
                    attempt=attempt,
                    total=self._max_retries,
                    delay=delay,
                )
                await self._sleep(delay)

    async def _throttle(self) -> None:
        async with self._lock:
            if self._last_call is not None:
                wait = self._last_call + self._min_interval - self._clock()
                if wait > 0:
                    await self._sleep(wait)
            self._last_call = self._clock()


__all__ = [
    "RATE_LIMIT_RPC_CODES",
    "RateLimitedClient",
    "TransientError",
    "is_transient",
]
