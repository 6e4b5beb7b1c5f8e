"""Asset Registry: каталог отслеживаемых токенов и кладбище неактивных.

Реестр владеет жизненным циклом Asset: регистрация (с метаданными и
стартовым снапшотом), периодическое обновление метрик, ремонт метаданных,
архивирование по правилу неактивности и выборка с фильтрами/сортировкой.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Literal

from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from bagsscan.models import (
    ArchiveReason,
    ArchivedAsset,
    Asset,
    Snapshot,
    now_ms,
)
from bagsscan.repositories import (
    delete_asset,
    delete_closed_positions,
    delete_snapshots,
    first_snapshot,
    get_asset,
    insert_archived,
    insert_asset,
    is_archived,
    latest_snapshot,
    list_addresses,
    list_archived,
    list_assets,
    list_seen_between,
    list_unresolved_assets,
    record_snapshot,
    touch_asset,
    update_asset_metadata,
)
from bagsscan.services.solana.metadata import MetadataResolver
from bagsscan.services.solana.price_oracle import PriceOracle
from bagsscan.services.solana.rpc_client import SolanaRpcClient
from config.settings import ScannerSettings
from .analytics import GrowthAnalytics, GrowthReport
from .events import NEW_TOKEN, TOKEN_ARCHIVED, TOKEN_UPDATED, EventBus

MINUTE_MS = 60_000
CLEANUP_MIN_AGE_MS = 5 * MINUTE_MS
CLEANUP_MAX_AGE_MS = 60 * MINUTE_MS

SortField = Literal["market_cap", "mcap_growth", "holder_growth", "holder_count", "created_at"]


class AssetQuery(BaseModel):
    """Фильтры выборки токенов (рост считается по окну 5m)."""

    min_market_cap: float = 0.0
    max_market_cap: float | None = None
    min_holders: int = 0
    min_mcap_growth: float | None = None
    min_holder_growth: float | None = None
    max_age_hours: float | None = None
    sort_by: SortField = "market_cap"
    sort_order: Literal["asc", "desc"] = "desc"
    limit: int = Field(50, ge=1, le=1000)


@dataclass(slots=True)
class AssetView:
    """Токен + последние метрики + рост по окнам (ответ query)."""

    asset: Asset
    growth: GrowthReport

    def sort_value(self, field: SortField) -> float:
        if field == "mcap_growth":
            return self.growth.mcap("5m")
        if field == "holder_growth":
            return self.growth.holders("5m")
        if field == "holder_count":
            return float(self.growth.holder_count)
        if field == "created_at":
            return float(self.asset.created_at)
        return self.growth.market_cap

    def as_dict(self) -> dict[str, Any]:
        asset, growth = self.asset, self.growth
        return {
            "mintAddress": asset.address,
            "name": asset.name,
            "symbol": asset.symbol,
            "imageUrl": asset.image_url,
            "creatorAddress": asset.creator_address,
            "createdAt": asset.created_at,
            "firstSeenAt": asset.first_seen_at,
            "lastUpdatedAt": asset.last_updated_at,
            "marketCap": growth.market_cap,
            "holderCount": growth.holder_count,
            "priceUsd": growth.price_usd,
            "volume24h": growth.volume_24h,
            "mcapGrowth1m": round(growth.mcap("1m"), 4),
            "mcapGrowth5m": round(growth.mcap("5m"), 4),
            "mcapGrowth15m": round(growth.mcap("15m"), 4),
            "holderGrowth1m": round(growth.holders("1m"), 4),
            "holderGrowth5m": round(growth.holders("5m"), 4),
            "holderGrowth15m": round(growth.holders("15m"), 4),
        }


def archive_reason(first: Snapshot, latest: Snapshot) -> str | None:
    """Правило неактивности для токена возрастом 5-60 минут.

    Движение: рост капитализации, рост числа холдеров или любой объём торгов.
    """

    has_volume = (latest.volume_24h or 0.0) > 0
    if not has_volume:
        return ArchiveReason.NO_VOLUME
    mcap_grew = latest.market_cap > first.market_cap
    holders_grew = latest.holder_count > first.holder_count
    if not (mcap_grew or holders_grew or has_volume):
        return ArchiveReason.NO_MOVEMENT
    return None


class AssetRegistry:
    """Главный сервис каталога токенов."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        *,
        rpc: SolanaRpcClient,
        oracle: PriceOracle,
        metadata: MetadataResolver,
        analytics: GrowthAnalytics,
        bus: EventBus,
        settings: ScannerSettings,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._session_maker = session_maker
        self._rpc = rpc
        self._oracle = oracle
        self._metadata = metadata
        self._analytics = analytics
        self._bus = bus
        self._settings = settings
        self._excluded = set(settings.excluded_mints)
        self._clock = clock

    def is_excluded(self, address: str) -> bool:
        return address in self._excluded

    async def add(
        self,
        address: str,
        creator: str | None = None,
        *,
        source: str = "manual",
    ) -> Asset | None:
        """Регистрирует токен; None, если он исключён, уже отслеживается или в архиве."""

        if self.is_excluded(address):
            logger.debug("Токен {addr} в списке исключений, пропускаем", addr=address)
            return None
        async with self._session_maker() as session:
            if await get_asset(session, address) is not None:
                logger.debug("Токен {addr} уже отслеживается", addr=address)
                return None
            if await is_archived(session, address):
                logger.debug("Токен {addr} уже в архиве, повторно не трекаем", addr=address)
                return None
        metadata = await self._metadata.resolve(address)
        ts = self._clock()
        asset = Asset(
            address=address,
            name=metadata.name,
            symbol=metadata.symbol,
            image_url=metadata.image_url,
            creator_address=creator or "unknown",
            created_at=ts,
            first_seen_at=ts,
            last_updated_at=ts,
        )
        async with self._session_maker() as session:
            try:
                asset = await insert_asset(session, asset)
            except IntegrityError:
                await session.rollback()
                logger.debug("Токен {addr} зарегистрирован параллельно, дубль отброшен", addr=address)
                return None
        logger.info(
            "Новый токен {symbol} ({addr}), создатель {creator}, источник {source}",
            symbol=asset.symbol,
            addr=address,
            creator=asset.creator_address,
            source=source,
        )
        try:
            await self.refresh_snapshot(address)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Стартовый снапшот {addr} не снят: {error}", addr=address, error=exc)
        await self._bus.publish(
            NEW_TOKEN,
            {
                "mint": address,
                "creator": asset.creator_address,
                "name": asset.name,
                "symbol": asset.symbol,
                "source": source,
            },
        )
        return asset

    async def collect_metrics(self, address: str) -> Snapshot:
        """Снимает текущие метрики: supply и холдеры из RPC, цена и объём из оракула."""

        supply, holders, market = await asyncio.gather(
            self._rpc.get_token_supply(address),
            self._rpc.get_holder_count(address),
            self._oracle.get_market_data(address),
        )
        return Snapshot(
            asset_address=address,
            timestamp=self._clock(),
            market_cap=supply * market.price_usd,
            holder_count=holders,
            price_usd=market.price_usd,
            volume_24h=market.volume_24h,
        )

    async def refresh_snapshot(self, address: str) -> Snapshot:
        snapshot = await self.collect_metrics(address)
        async with self._session_maker() as session:
            await record_snapshot(session, snapshot, commit=False)
            await touch_asset(session, address, snapshot.timestamp, commit=False)
            await session.commit()
            await session.refresh(snapshot)
        return snapshot

    async def refresh_all(self) -> int:
        """Обновляет метрики всех токенов; ошибка одного не прерывает цикл."""

        async with self._session_maker() as session:
            addresses = await list_addresses(session)
        updated = 0
        for index, address in enumerate(addresses):
            if index and self._settings.per_token_delay_sec > 0:
                await asyncio.sleep(self._settings.per_token_delay_sec)
            try:
                await self.refresh_snapshot(address)
                updated += 1
            except Exception as exc:  # noqa: BLE001
                logger.warning("Обновление {addr} упало: {error}", addr=address, error=exc)
        logger.debug("Цикл обновления: {ok}/{total} токенов", ok=updated, total=len(addresses))
        await self._bus.publish(TOKEN_UPDATED, {"updated": updated, "total": len(addresses)})
        return updated

    async def refresh_unresolved(self) -> int:
        """Повторно ищет метаданные для токенов с плейсхолдером Unknown."""

        async with self._session_maker() as session:
            pending = await list_unresolved_assets(session)
        fixed = 0
        for asset in pending:
            metadata = await self._metadata.resolve(asset.address)
            if not metadata.resolved:
                continue
            async with self._session_maker() as session:
                await update_asset_metadata(
                    session,
                    address=asset.address,
                    name=metadata.name,
                    symbol=metadata.symbol,
                    image_url=metadata.image_url,
                    updated_at=self._clock(),
                )
            fixed += 1
            logger.info(
                "Метаданные {addr} обновлены: {name} ({symbol})",
                addr=asset.address,
                name=metadata.name,
                symbol=metadata.symbol,
            )
        return fixed

    async def archive(self, address: str, reason: str) -> ArchivedAsset | None:
        """Переносит токен с финальными метриками в архив и чистит его снапшоты."""

        ts = self._clock()
        async with self._session_maker() as session:
            asset = await get_asset(session, address)
            if asset is None:
                return None
            archived: ArchivedAsset | None = None
            if not await is_archived(session, address):
                latest = await latest_snapshot(session, address)
                archived = ArchivedAsset(
                    address=asset.address,
                    name=asset.name,
                    symbol=asset.symbol,
                    image_url=asset.image_url,
                    creator_address=asset.creator_address,
                    created_at=asset.created_at,
                    first_seen_at=asset.first_seen_at,
                    archived_at=ts,
                    reason=reason,
                    final_market_cap=latest.market_cap if latest else None,
                    final_holders=latest.holder_count if latest else None,
                    final_price=latest.price_usd if latest else None,
                    final_volume=latest.volume_24h if latest else None,
                )
                await insert_archived(session, archived, commit=False)
            await delete_snapshots(session, address, commit=False)
            await delete_asset(session, address, commit=False)
            await session.commit()
        await self._purge_positions(address)
        logger.info("Токен {addr} отправлен в архив: {reason}", addr=address, reason=reason)
        await self._bus.publish(TOKEN_ARCHIVED, {"mint": address, "reason": reason})
        return archived

    async def cleanup(self, now: int | None = None) -> list[tuple[str, str]]:
        """Архивирует неактивные токены, замеченные 5-60 минут назад."""

        now = self._clock() if now is None else now
        verdicts: list[tuple[str, str]] = []
        async with self._session_maker() as session:
            candidates = await list_seen_between(
                session, now - CLEANUP_MAX_AGE_MS, now - CLEANUP_MIN_AGE_MS
            )
            for asset in candidates:
                if await is_archived(session, asset.address):
                    continue
                first = await first_snapshot(session, asset.address)
                latest = await latest_snapshot(session, asset.address)
                if first is None or latest is None:
                    continue
                reason = archive_reason(first, latest)
                if reason:
                    verdicts.append((asset.address, reason))
        for address, reason in verdicts:
            try:
                await self.archive(address, reason)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Архивирование {addr} упало: {error}", addr=address, error=exc)
        if verdicts:
            logger.info("Очистка: в архив отправлено {count} токенов", count=len(verdicts))
        return verdicts

    async def query(self, filters: AssetQuery | None = None, now: int | None = None) -> list[AssetView]:
        """Выборка токенов по фильтрам с детерминированной сортировкой."""

        filters = filters or AssetQuery()
        now = self._clock() if now is None else now
        views: list[AssetView] = []
        async with self._session_maker() as session:
            assets = await list_assets(session)
            for asset in assets:
                if filters.max_age_hours is not None:
                    if asset.created_at < now - int(filters.max_age_hours * 3_600_000):
                        continue
                growth = await self._analytics.report(session, asset.address, now)
                view = AssetView(asset=asset, growth=growth)
                if self._matches(view, filters):
                    views.append(view)
        # list_assets отдаёт строки по id, сортировка стабильна: при равенстве
        # значений остаётся порядок вставки.
        views.sort(key=lambda view: view.sort_value(filters.sort_by), reverse=filters.sort_order == "desc")
        return views[: filters.limit]

    async def list_archived(self, limit: int = 100) -> list[ArchivedAsset]:
        async with self._session_maker() as session:
            return list(await list_archived(session, limit))

    @staticmethod
    def _matches(view: AssetView, filters: AssetQuery) -> bool:
        growth = view.growth
        if growth.latest is None:
            return False
        if growth.volume_24h is not None and growth.volume_24h == 0:
            return False
        if growth.market_cap < filters.min_market_cap:
            return False
        if filters.max_market_cap is not None and growth.market_cap > filters.max_market_cap:
            return False
        if growth.holder_count < filters.min_holders:
            return False
        if filters.min_mcap_growth is not None and growth.mcap("5m") < filters.min_mcap_growth:
            return False
        if filters.min_holder_growth is not None and growth.holders("5m") < filters.min_holder_growth:
            return False
        return True

    async def _purge_positions(self, address: str) -> None:
        try:
            async with self._session_maker() as session:
                await delete_closed_positions(session, address)
        except SQLAlchemyError as exc:
            logger.debug("Позиции {addr} не очищены: {error}", addr=address, error=exc)


__all__ = ["AssetQuery", "AssetRegistry", "AssetView", "archive_reason"]
