"""Утилита для первичной инициализации базы данных."""

from __future__ import annotations

import asyncio

from bagsscan.db import create_engine_from_settings, init_db
from config.settings import get_settings


async def _run() -> None:
    engine = create_engine_from_settings(get_settings().database)
    try:
        await init_db(engine)
    finally:
        await engine.dispose()


def main() -> None:
    asyncio.run(_run())


if __name__ == "__main__":
    main()
