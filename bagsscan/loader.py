"""Loader bagsscan: запуск и мягкая остановка всех фоновых модулей."""

from __future__ import annotations

from typing import Any

from loguru import logger

from .context import AppContext
from .db import init_db
from .services.core.events import NEW_TOKEN, POSITION_CLOSED, POSITION_OPENED


async def on_startup(ctx: AppContext) -> None:
    """Схема БД, клиенты, подписка на логи, периодические задачи и цикл трейдинга."""

    logger.info("bagsscan стартует в окружении {env}", env=ctx.settings.environment)
    logger.debug("on_startup: init db")
    await init_db(ctx.db_engine)
    logger.debug("on_startup: start http clients")
    await ctx.bags.start()
    await ctx.oracle.start()
    await ctx.rpc.start()
    logger.debug("on_startup: attach event log subscriber")
    ctx.bus.subscribe(_log_notable_events)
    logger.debug("on_startup: start launch monitor")
    await ctx.monitor.start()
    logger.debug("on_startup: start periodic tasks")
    for task in ctx.tasks:
        task.start()
    if ctx.trading is None:
        logger.info("Торговый движок не создан, /trading/* отвечает 503")
    else:
        logger.debug("on_startup: start trading monitor")
        ctx.trading.start_monitoring()
    logger.info("on_startup завершён, сканер работает")


async def on_shutdown(ctx: AppContext) -> None:
    """Мягкое выключение сервиса."""

    await ctx.monitor.stop()
    for task in ctx.tasks:
        await task.stop()
    if ctx.trading is not None:
        await ctx.trading.stop_monitoring()
    ctx.bus.unsubscribe(_log_notable_events)
    await ctx.rpc.close()
    await ctx.bags.close()
    await ctx.oracle.close()
    await ctx.db_engine.dispose()
    logger.info("bagsscan корректно остановлен")


async def _log_notable_events(event: dict[str, Any]) -> None:
    """Простейший подписчик шины (логирует, пока нет UI)."""

    if event.get("type") == NEW_TOKEN:
        logger.info("Событие new_token: {mint}", mint=event.get("mint"))
    elif event.get("type") in (POSITION_OPENED, POSITION_CLOSED):
        position = event.get("position") or {}
        logger.info(
            "Событие {type}: {mint} ({status})",
            type=event["type"],
            mint=position.get("mintAddress"),
            status=position.get("status"),
        )


__all__ = ["on_shutdown", "on_startup"]
