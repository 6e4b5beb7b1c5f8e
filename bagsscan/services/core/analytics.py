"""Growth Analytics: рост капитализации и холдеров за окна 1m/5m/15m.

Базой для сравнения служит снапшот, ближайший к моменту «N минут назад»
(без интерполяции). Рост против нулевой или отсутствующей базы равен 0.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlmodel.ext.asyncio.session import AsyncSession

from bagsscan.models import Snapshot
from bagsscan.repositories import closest_snapshot, latest_snapshot

WINDOWS: dict[str, int] = {"1m": 60_000, "5m": 300_000, "15m": 900_000}


def growth_percent(latest: float | None, reference: float | None) -> float:
    if latest is None or reference is None or reference <= 0:
        return 0.0
    return ((latest - reference) / reference) * 100


@dataclass(slots=True)
class GrowthReport:
    """Последний снапшот токена и рост метрик по окнам."""

    address: str
    latest: Snapshot | None
    mcap_growth: dict[str, float] = field(default_factory=dict)
    holder_growth: dict[str, float] = field(default_factory=dict)

    @property
    def market_cap(self) -> float:
        return self.latest.market_cap if self.latest else 0.0

    @property
    def holder_count(self) -> int:
        return self.latest.holder_count if self.latest else 0

    @property
    def price_usd(self) -> float:
        return self.latest.price_usd if self.latest else 0.0

    @property
    def volume_24h(self) -> float | None:
        return self.latest.volume_24h if self.latest else None

    def mcap(self, window: str) -> float:
        return self.mcap_growth.get(window, 0.0)

    def holders(self, window: str) -> float:
        return self.holder_growth.get(window, 0.0)


class GrowthAnalytics:
    """Считает рост по данным хранилища снапшотов (без собственного состояния)."""

    def __init__(self, windows: dict[str, int] | None = None) -> None:
        self._windows = dict(windows or WINDOWS)

    @property
    def windows(self) -> tuple[str, ...]:
        return tuple(self._windows)

    async def report(self, session: AsyncSession, address: str, now_ms: int) -> GrowthReport:
        latest = await latest_snapshot(session, address)
        report = GrowthReport(address=address, latest=latest)
        for label, span in self._windows.items():
            if latest is None:
                report.mcap_growth[label] = 0.0
                report.holder_growth[label] = 0.0
                continue
            reference = await closest_snapshot(session, address, now_ms - span, now_ms)
            report.mcap_growth[label] = growth_percent(
                latest.market_cap, reference.market_cap if reference else None
            )
            report.holder_growth[label] = growth_percent(
                float(latest.holder_count), float(reference.holder_count) if reference else None
            )
        return report


__all__ = ["GrowthAnalytics", "GrowthReport", "WINDOWS", "growth_percent"]
