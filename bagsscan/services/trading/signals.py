"""Правила входа и выхода из позиции (чистые функции без I/O)."""

from __future__ import annotations

from bagsscan.models import PositionStatus
from bagsscan.services.core.analytics import growth_percent
from .config import TradingConfig


class ExitAction(str):
    TAKE_PROFIT_PARTIAL = "take_profit_partial"
    TAKE_PROFIT_FINAL = "take_profit_final"
    STOP_LOSS = "stop_loss"


def passes_signal_filters(
    config: TradingConfig,
    *,
    mcap_growth: float,
    holders: int,
    volume: float,
) -> bool:
    """Комбинация включённых фильтров.

    Один фильтр должен пройти сам, два должны пройти оба, из трёх достаточно
    любых двух. Ни одного включённого фильтра означает отказ от покупки.
    """

    checks: list[bool] = []
    if config.min_mcap_growth_enabled:
        checks.append(mcap_growth >= config.min_mcap_growth)
    if config.min_holders_enabled:
        checks.append(holders >= config.min_holders)
    if config.min_volume_enabled:
        checks.append(volume >= config.min_volume)
    if not checks:
        return False
    if len(checks) == 3:
        return sum(checks) >= 2
    return all(checks)


def profit_percent(entry_price: float, current_price: float) -> float:
    return growth_percent(current_price, entry_price)


def decide_exit(status: str, profit: float, config: TradingConfig) -> str | None:
    """Порядок проверки: второй тейк (partial) → стоп-лосс → первый тейк (open)."""

    if status == PositionStatus.PARTIAL and profit >= config.second_profit_target_percent:
        return ExitAction.TAKE_PROFIT_FINAL
    if status in PositionStatus.ACTIVE and profit <= config.stop_loss_percent:
        return ExitAction.STOP_LOSS
    if status == PositionStatus.OPEN and profit >= config.profit_target_percent:
        return ExitAction.TAKE_PROFIT_PARTIAL
    return None


__all__ = ["ExitAction", "decide_exit", "passes_signal_filters", "profit_percent"]
