"""Единая точка настройки aiocache."""

from __future__ import annotations

from typing import Any, Awaitable, Callable
from urllib.parse import urlparse

from aiocache import SimpleMemoryCache, caches
from aiocache.base import BaseCache

try:
    from aiocache import RedisCache
except (ImportError, AttributeError):  # pragma: no cover - optional dependency
    RedisCache = None  # type: ignore[assignment]

from config.settings import CacheSettings, get_settings

_configured = False


def configure_cache(settings: CacheSettings | None = None) -> None:
    """Настраивает aiocache в зависимости от backend (memory/redis)."""

    global _configured
    if _configured:
        return
    settings = settings or get_settings().cache

    if settings.backend == "redis":
        if RedisCache is None:
            raise RuntimeError(
                "Для использования RedisCache установите пакет 'redis' и aiocache[redis]"
            )
        caches.set_config(
            {
                "default": {
                    "cache": RedisCache,
                    **_build_redis_config(settings.redis_dsn),
                    "ttl": settings.ttl_seconds,
                }
            }
        )
    else:
        caches.set_config(
            {
                "default": {
                    "cache": SimpleMemoryCache,
                    "ttl": settings.ttl_seconds,
                }
            }
        )
    _configured = True


def get_cache(alias: str = "default") -> BaseCache:
    """Возвращает кеш по алиасу (предварительно гарантирует конфиг)."""

    configure_cache()
    return caches.get(alias)


async def cached_call(key: str, ttl: int, factory: Callable[[], Awaitable[Any]]) -> Any:
    """Если значения нет в кеше, вызывает factory и кладёт результат на ttl секунд."""

    if ttl <= 0:
        return await factory()
    cache = get_cache()
    value = await cache.get(key)
    if value is not None:
        return value
    value = await factory()
    if value is not None:
        await cache.set(key, value, ttl=ttl)
    return value


def _build_redis_config(dsn: str | None) -> dict[str, Any]:
    if not dsn:
        raise RuntimeError("CACHE__BACKEND=redis, но redis_dsn не указан")
    parsed = urlparse(dsn)
    if parsed.scheme not in {"redis", "rediss"}:
        raise ValueError(f"Неподдерживаемая схема Redis DSN: {parsed.scheme}")
    db = 0
    if parsed.path and parsed.path != "/":
        try:
            db = int(parsed.path.lstrip("/"))
        except ValueError:
            db = 0
    return {
        "endpoint": parsed.hostname or "localhost",
        "port": parsed.port or 6379,
        "password": parsed.password,
        "db": db,
        "ssl": parsed.scheme == "rediss",
    }


__all__ = ["cached_call", "configure_cache", "get_cache"]
