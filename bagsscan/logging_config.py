"""Настройка loguru для продакшена."""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger


def _is_audit(record) -> bool:
    return bool(record["extra"].get("audit"))


def setup_logging(
    json: bool = False,
    level: str = "DEBUG",
    audit_path: Path | None = None,
) -> None:
    """Stdout-синк для всего сервиса + отдельный файл аудита сканера.

    В файл аудита попадают только записи, помеченные ``logger.bind(audit=True)``
    (упавшие транзакции программы запуска и прочий шум цепочки).
    """

    logger.remove()
    fmt = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}"
    if json:
        fmt = (
            "{{\"time\":\"{time:YYYY-MM-DDTHH:mm:ss}\","
            "\"level\":\"{level}\","
            "\"message\":{message},"
            "\"extra\":{extra}}}"
        )
    logger.add(
        sys.stdout,
        format=fmt,
        level=level,
        colorize=not json,
        backtrace=False,
        enqueue=True,
        filter=lambda record: not _is_audit(record),
    )
    if audit_path is not None:
        audit_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(audit_path),
            format="{time:YYYY-MM-DDTHH:mm:ss.SSS} | {message}",
            level="DEBUG",
            rotation="10 MB",
            retention=5,
            enqueue=True,
            filter=_is_audit,
        )


audit_logger = logger.bind(audit=True)


__all__ = ["audit_logger", "setup_logging"]
