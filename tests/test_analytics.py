import pytest

from bagsscan.models import Snapshot
from bagsscan.repositories import record_snapshot
from bagsscan.services.core.analytics import GrowthAnalytics, growth_percent
from conftest import MINUTE, T0


def test_growth_percent_handles_missing_or_zero_reference():
    assert growth_percent(150.0, 100.0) == pytest.approx(50.0)
    assert growth_percent(50.0, 100.0) == pytest.approx(-50.0)
    assert growth_percent(150.0, 0.0) == 0.0
    assert growth_percent(150.0, None) == 0.0
    assert growth_percent(None, 100.0) == 0.0


async def _seed(session_maker, points):
    async with session_maker() as session:
        for ts, mcap, holders in points:
            await record_snapshot(
                session,
                Snapshot(asset_address="MintA", timestamp=ts, market_cap=mcap, holder_count=holders, price_usd=1.0),
            )


@pytest.mark.asyncio
async def test_report_uses_nearest_snapshot_per_window(session_maker):
    await _seed(
        session_maker,
        [(T0, 100.0, 10), (T0 + MINUTE, 150.0, 12), (T0 + 5 * MINUTE, 200.0, 20)],
    )
    now = T0 + 5 * MINUTE

    async with session_maker() as session:
        report = await GrowthAnalytics().report(session, "MintA", now)

    assert report.market_cap == 200.0
    assert report.holder_count == 20
    # 1m назад ближе всего сам последний снапшот
    assert report.mcap("1m") == 0.0
    assert report.mcap("5m") == pytest.approx(100.0)
    assert report.holders("5m") == pytest.approx(100.0)
    assert report.mcap("15m") == pytest.approx(100.0)


@pytest.mark.asyncio
async def test_report_single_snapshot_has_zero_growth(session_maker):
    await _seed(session_maker, [(T0, 100.0, 5)])

    async with session_maker() as session:
        report = await GrowthAnalytics().report(session, "MintA", T0 + 20 * MINUTE)

    assert report.mcap_growth == {"1m": 0.0, "5m": 0.0, "15m": 0.0}
    assert report.holder_growth == {"1m": 0.0, "5m": 0.0, "15m": 0.0}


@pytest.mark.asyncio
async def test_report_zero_baseline_is_zero_growth(session_maker):
    await _seed(session_maker, [(T0, 0.0, 0), (T0 + 5 * MINUTE, 500.0, 8)])

    async with session_maker() as session:
        report = await GrowthAnalytics().report(session, "MintA", T0 + 5 * MINUTE)

    assert report.mcap("5m") == 0.0
    assert report.holders("5m") == 0.0


@pytest.mark.asyncio
async def test_report_without_snapshots(session_maker):
    async with session_maker() as session:
        report = await GrowthAnalytics().report(session, "Nothing", T0)

    assert report.latest is None
    assert report.market_cap == 0.0
    assert report.volume_24h is None
    assert report.mcap("5m") == 0.0
