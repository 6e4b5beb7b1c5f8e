import pytest

from bagsscan.models import Snapshot
from bagsscan.repositories import (
    closest_snapshot,
    count_snapshots,
    delete_snapshots,
    first_snapshot,
    latest_snapshot,
    record_snapshot,
)
from conftest import MINUTE, T0


async def _seed(session_maker, address, points):
    async with session_maker() as session:
        for ts, mcap in points:
            await record_snapshot(
                session,
                Snapshot(asset_address=address, timestamp=ts, market_cap=mcap, holder_count=1, price_usd=0.0),
            )


@pytest.mark.asyncio
async def test_latest_and_first_snapshot(session_maker):
    await _seed(session_maker, "MintA", [(T0, 100.0), (T0 + MINUTE, 150.0), (T0 + 2 * MINUTE, 120.0)])
    await _seed(session_maker, "MintB", [(T0 + 5 * MINUTE, 999.0)])

    async with session_maker() as session:
        assert (await latest_snapshot(session, "MintA")).market_cap == 120.0
        assert (await first_snapshot(session, "MintA")).market_cap == 100.0
        assert await count_snapshots(session, "MintA") == 3
        assert await latest_snapshot(session, "MissingMint") is None


@pytest.mark.asyncio
async def test_closest_snapshot_ignores_future_points(session_maker):
    await _seed(session_maker, "MintA", [(T0, 100.0), (T0 + 10 * MINUTE, 500.0)])

    async with session_maker() as session:
        found = await closest_snapshot(session, "MintA", T0 + 9 * MINUTE, now_ms=T0 + 5 * MINUTE)

    assert found is not None
    assert found.market_cap == 100.0


@pytest.mark.asyncio
async def test_closest_snapshot_tie_prefers_earlier_insert(session_maker):
    await _seed(session_maker, "MintA", [(T0, 100.0), (T0 + 2 * MINUTE, 200.0)])

    async with session_maker() as session:
        found = await closest_snapshot(session, "MintA", T0 + MINUTE, now_ms=T0 + 2 * MINUTE)

    assert found.market_cap == 100.0


@pytest.mark.asyncio
async def test_closest_snapshot_with_single_point(session_maker):
    await _seed(session_maker, "MintA", [(T0, 42.0)])

    async with session_maker() as session:
        found = await closest_snapshot(session, "MintA", T0 - 15 * MINUTE, now_ms=T0)

    assert found.market_cap == 42.0


@pytest.mark.asyncio
async def test_delete_snapshots_only_touches_one_asset(session_maker):
    await _seed(session_maker, "MintA", [(T0, 1.0), (T0 + 1, 2.0)])
    await _seed(session_maker, "MintB", [(T0, 3.0)])

    async with session_maker() as session:
        await delete_snapshots(session, "MintA")
        assert await count_snapshots(session, "MintA") == 0
        assert await count_snapshots(session, "MintB") == 1
