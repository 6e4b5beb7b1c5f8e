from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from bagsscan.loader import on_shutdown, on_startup
from bagsscan.services.core.events import EventBus


def _client():
    return SimpleNamespace(start=AsyncMock(), close=AsyncMock())


def _task():
    return SimpleNamespace(start=MagicMock(), stop=AsyncMock())


def make_ctx(tmp_path, trading):
    tasks = (_task(), _task(), _task())
    return SimpleNamespace(
        settings=SimpleNamespace(environment="dev"),
        db_engine=create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'loader.db'}"),
        bus=EventBus(),
        bags=_client(),
        oracle=_client(),
        rpc=_client(),
        monitor=SimpleNamespace(start=AsyncMock(), stop=AsyncMock()),
        tasks=tasks,
        trading=trading,
    )


@pytest.mark.asyncio
async def test_startup_starts_trading_monitor(tmp_path):
    trading = SimpleNamespace(start_monitoring=MagicMock(), stop_monitoring=AsyncMock())
    ctx = make_ctx(tmp_path, trading)

    await on_startup(ctx)

    trading.start_monitoring.assert_called_once_with()
    ctx.monitor.start.assert_awaited_once()
    for task in ctx.tasks:
        task.start.assert_called_once_with()

    await on_shutdown(ctx)

    trading.stop_monitoring.assert_awaited_once()
    ctx.rpc.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_startup_without_trading_engine(tmp_path):
    ctx = make_ctx(tmp_path, None)

    await on_startup(ctx)
    await on_shutdown(ctx)

    ctx.monitor.stop.assert_awaited_once()
    for task in ctx.tasks:
        task.stop.assert_awaited_once()
