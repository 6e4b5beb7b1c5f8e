"""Entry point for bagsscan service."""

from __future__ import annotations

import asyncio

import uvicorn
from loguru import logger

from config.settings import get_settings
from .context import build_context
from .logging_config import setup_logging
from .web.app import create_app


async def main() -> None:
    settings = get_settings()
    setup_logging(
        json=settings.logging.json_format,
        level=settings.logging.level,
        audit_path=settings.logging.audit_path,
    )
    ctx = build_context(settings)
    app = create_app(ctx)
    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=settings.api.host,
            port=settings.api.port,
            log_level="info",
        )
    )
    logger.info("Запуск API на {host}:{port}", host=settings.api.host, port=settings.api.port)
    await server.serve()
    logger.info("uvicorn завершён (server.serve вернул управление)")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
