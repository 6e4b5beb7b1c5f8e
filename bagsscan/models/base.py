"""Общие хелперы времени для SQLModel моделей.

Все отметки времени в таблицах хранятся как целые миллисекунды Unix,
чтобы запрос «ближайший снапшот к моменту T» сводился к сравнению чисел.
"""

from __future__ import annotations

import time


def now_ms() -> int:
    return int(time.time() * 1000)


__all__ = ["now_ms"]
