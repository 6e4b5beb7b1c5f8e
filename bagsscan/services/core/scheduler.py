"""Периодические фоновые задачи с флагом занятости и сигналом остановки."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from loguru import logger


class PeriodicTask:
    """Запускает func каждые interval_sec, не допуская наложения тиков.

    Если предыдущий тик ещё выполняется (например, ручной run_once из API),
    очередной тик пропускается. stop() будит ожидание сразу, без досыпания.
    """

    def __init__(
        self,
        name: str,
        interval_sec: float,
        func: Callable[[], Awaitable[Any]],
        *,
        run_immediately: bool = False,
    ) -> None:
        self.name = name
        self.interval_sec = interval_sec
        self._func = func
        self._run_immediately = run_immediately
        self._task: asyncio.Task[None] | None = None
        self._stop = asyncio.Event()
        self._busy = False

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def busy(self) -> bool:
        return self._busy

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._task = asyncio.create_task(self._run_loop(), name=self.name)
        logger.info("Задача {name} запущена (интервал {interval}s)", name=self.name, interval=self.interval_sec)

    async def stop(self) -> None:
        self._stop.set()
        task = self._task
        self._task = None
        if task is None:
            return
        try:
            await asyncio.wait_for(task, timeout=5)
        except asyncio.TimeoutError:
            task.cancel()
            logger.warning("Задача {name} не завершилась вовремя и отменена", name=self.name)
        logger.info("Задача {name} остановлена", name=self.name)

    async def run_once(self) -> bool:
        """Один тик; False, если предыдущий ещё не завершён."""

        if self._busy:
            logger.debug("{name}: предыдущий тик ещё выполняется, пропускаем", name=self.name)
            return False
        self._busy = True
        try:
            await self._func()
        except Exception as exc:  # noqa: BLE001
            logger.exception("Тик {name} упал: {error}", name=self.name, error=exc)
        finally:
            self._busy = False
        return True

    async def _run_loop(self) -> None:
        if self._run_immediately:
            await self.run_once()
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval_sec)
            except asyncio.TimeoutError:
                await self.run_once()


__all__ = ["PeriodicTask"]
