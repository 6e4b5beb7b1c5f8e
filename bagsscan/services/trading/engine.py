"""Trading Engine: поиск «раннеров» и жизненный цикл позиций.

Позиция проходит open → partial → sold или open|partial → stopped.
Сделка считается совершённой только после подтверждения в сети: любая
ошибка котировки, отправки или подтверждения оставляет позицию в прежнем
статусе до следующего цикла мониторинга.
"""

from __future__ import annotations

import asyncio
import base64
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from loguru import logger
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from bagsscan.models import PositionStatus, TradingPosition, now_ms
from bagsscan.repositories import (
    close_position,
    count_active_positions,
    get_active_position,
    get_position,
    list_active_positions,
    list_positions,
    list_seen_between,
    mark_partial,
    open_position_if_absent,
    update_position_price,
)
from bagsscan.services.core.analytics import GrowthAnalytics
from bagsscan.services.core.events import (
    POSITION_CLOSED,
    POSITION_OPENED,
    POSITION_UPDATED,
    EventBus,
)
from bagsscan.services.core.scheduler import PeriodicTask
from bagsscan.services.solana.bags_client import LAMPORTS_PER_SOL, BagsClient, SwapQuote
from bagsscan.services.solana.price_oracle import PriceOracle
from bagsscan.services.solana.rpc_client import SolanaRpcClient
from bagsscan.services.solana.tx_parser import SOL_MINT
from config.settings import TradingSettings
from .config import TradingConfig, merge
from .signals import ExitAction, decide_exit, passes_signal_filters, profit_percent
from .wallet import WalletSigner

PARTIAL_SELL_FRACTION = 0.5


@dataclass(slots=True)
class TradeResult:
    success: bool
    signature: str | None = None
    error: str | None = None
    position_id: int | None = None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success}
        if self.signature:
            payload["signature"] = self.signature
        if self.error:
            payload["error"] = self.error
        if self.position_id is not None:
            payload["positionId"] = self.position_id
        return payload


@dataclass(slots=True)
class Opportunity:
    address: str
    name: str
    symbol: str
    market_cap: float
    holder_count: int
    mcap_growth_5m: float
    volume_24h: float

    @property
    def reason(self) -> str:
        return (
            f"Meets runner criteria: {self.mcap_growth_5m:.2f}% growth, "
            f"{self.holder_count} holders"
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "mintAddress": self.address,
            "name": self.name,
            "symbol": self.symbol,
            "marketCap": self.market_cap,
            "holderCount": self.holder_count,
            "mcapGrowth5m": round(self.mcap_growth_5m, 4),
            "volume24h": self.volume_24h,
            "reason": self.reason,
        }


def position_as_dict(position: TradingPosition) -> dict[str, Any]:
    return {
        "id": position.id,
        "mintAddress": position.asset_address,
        "tokenName": position.token_name,
        "tokenSymbol": position.token_symbol,
        "status": position.status,
        "entryPrice": position.entry_price,
        "entryQuoteRate": position.entry_quote_rate,
        "entryAmountSol": position.entry_amount_sol,
        "entryAmountTokens": position.entry_amount_tokens,
        "entryTimestamp": position.entry_timestamp,
        "currentPrice": position.current_price,
        "profitPercent": position.profit_percent,
        "remainingTokens": position.remaining_tokens,
        "firstSellPrice": position.first_sell_price,
        "firstSellTimestamp": position.first_sell_timestamp,
        "sellPrice": position.sell_price,
        "sellTimestamp": position.sell_timestamp,
    }


class TradingEngine:
    """Оценка сигналов, покупки и сопровождение позиций агента."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        *,
        config: TradingConfig,
        venue: BagsClient,
        rpc: SolanaRpcClient,
        oracle: PriceOracle,
        analytics: GrowthAnalytics,
        signer: WalletSigner,
        bus: EventBus,
        settings: TradingSettings,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._session_maker = session_maker
        self._config = config
        self._venue = venue
        self._rpc = rpc
        self._oracle = oracle
        self._analytics = analytics
        self._signer = signer
        self._bus = bus
        self._settings = settings
        self._clock = clock
        self._trade_lock = asyncio.Lock()
        self._monitor = PeriodicTask("trading-monitor", settings.monitor_interval_sec, self.run_cycle)

    @property
    def config(self) -> TradingConfig:
        return self._config

    @property
    def is_monitoring(self) -> bool:
        return self._monitor.is_running

    @property
    def wallet(self) -> str:
        return self._signer.public_key

    def update_config(self, patch: Mapping[str, Any]) -> TradingConfig:
        self._config = merge(self._config, patch)
        logger.info("Конфигурация трейдинга обновлена: {config}", config=self._config.public_dict())
        return self._config

    def enable(self) -> None:
        self._config = merge(self._config, {"enabled": True})
        logger.info("Трейдинг ВКЛЮЧЁН, кошелёк {wallet}", wallet=self.wallet)

    def disable(self) -> None:
        self._config = merge(self._config, {"enabled": False})
        logger.info("Трейдинг выключен, индикаторы продолжают работать")

    def start_monitoring(self) -> None:
        if self.is_monitoring:
            logger.debug("Мониторинг трейдинга уже запущен")
            return
        self._monitor.start()

    async def stop_monitoring(self) -> None:
        """Останавливает цикл и выключает торговлю."""

        await self._monitor.stop()
        self._config = merge(self._config, {"enabled": False})

    def status(self) -> dict[str, Any]:
        return {
            "monitoring": self.is_monitoring,
            "enabled": self._config.enabled,
            "wallet": self.wallet,
            "config": self._config.public_dict(),
        }

    async def list_positions(self, status: str | None = None) -> list[TradingPosition]:
        if status is not None and status not in PositionStatus.ALL:
            raise ValueError(f"Неизвестный статус позиции: {status}")
        async with self._session_maker() as session:
            return list(await list_positions(session, status))

    async def run_cycle(self) -> None:
        """Тик мониторинга: индикаторы всегда, сопровождение позиций при enabled."""

        await self.check_for_runners()
        if self._config.enabled:
            await self.monitor_positions()

    async def should_buy(
        self,
        session: AsyncSession,
        address: str,
        *,
        market_cap: float,
        mcap_growth: float,
        holders: int,
        volume: float,
    ) -> bool:
        config = self._config
        if market_cap < config.min_mcap:
            return False
        if await get_active_position(session, address) is not None:
            return False
        if await count_active_positions(session) >= config.max_positions:
            return False
        return passes_signal_filters(config, mcap_growth=mcap_growth, holders=holders, volume=volume)

    async def get_opportunities(self, now: int | None = None) -> list[Opportunity]:
        """Оценка свежих токенов без исполнения сделок."""

        now = self._clock() if now is None else now
        since = now - self._settings.runner_window_minutes * 60_000
        opportunities: list[Opportunity] = []
        async with self._session_maker() as session:
            assets = await list_seen_between(session, since, now)
            for asset in assets:
                report = await self._analytics.report(session, asset.address, now)
                if report.latest is None or report.market_cap < self._config.min_mcap:
                    continue
                volume = report.volume_24h or 0.0
                if not await self.should_buy(
                    session,
                    asset.address,
                    market_cap=report.market_cap,
                    mcap_growth=report.mcap("5m"),
                    holders=report.holder_count,
                    volume=volume,
                ):
                    continue
                opportunities.append(
                    Opportunity(
                        address=asset.address,
                        name=asset.name,
                        symbol=asset.symbol,
                        market_cap=report.market_cap,
                        holder_count=report.holder_count,
                        mcap_growth_5m=report.mcap("5m"),
                        volume_24h=volume,
                    )
                )
        return opportunities

    async def check_for_runners(self) -> list[TradeResult]:
        opportunities = await self.get_opportunities()
        results: list[TradeResult] = []
        for opportunity in opportunities:
            logger.info(
                "Раннер: {symbol} ({addr}) {reason}",
                symbol=opportunity.symbol,
                addr=opportunity.address,
                reason=opportunity.reason,
            )
            if not self._config.enabled:
                continue
            results.append(await self.execute_buy(opportunity.address, opportunity.name, opportunity.symbol))
        return results

    async def execute_buy(self, address: str, name: str, symbol: str) -> TradeResult:
        """Покупка на buy_amount_sol; результат всегда структурированный."""

        async with self._trade_lock:
            try:
                return await self._execute_buy(address, name, symbol)
            except Exception as exc:  # noqa: BLE001
                logger.exception("Покупка {addr} не удалась: {error}", addr=address, error=exc)
                return TradeResult(success=False, error=str(exc) or type(exc).__name__)

    async def _execute_buy(self, address: str, name: str, symbol: str) -> TradeResult:
        config = self._config
        async with self._session_maker() as session:
            if await get_active_position(session, address) is not None:
                return TradeResult(success=False, error="Position already open for this token")
            if await count_active_positions(session) >= config.max_positions:
                return TradeResult(success=False, error="Max positions reached")

        balance_sol = await self._rpc.get_balance(self.wallet) / LAMPORTS_PER_SOL
        required = config.buy_amount_sol + self._settings.fee_reserve_sol
        if balance_sol < required:
            logger.warning(
                "Недостаточно SOL: {balance:.4f} < {required:.4f}",
                balance=balance_sol,
                required=required,
            )
            return TradeResult(
                success=False,
                error=f"Insufficient balance: {balance_sol:.4f} SOL (need {required:.4f})",
            )

        lamports = int(round(config.buy_amount_sol * LAMPORTS_PER_SOL))
        quote = await self._venue.get_quote(SOL_MINT, address, lamports)
        if quote.out_amount <= 0:
            return TradeResult(success=False, error="Quote returned zero output")
        if quote.price_impact_pct > self._settings.max_price_impact_pct:
            return TradeResult(
                success=False,
                error=f"Price impact too high: {quote.price_impact_pct:.2f}%",
            )

        signature = await self._swap(quote)
        market = await self._oracle.get_market_data(address)
        position = TradingPosition(
            asset_address=address,
            token_name=name,
            token_symbol=symbol,
            entry_price=market.price_usd,
            entry_quote_rate=quote.rate,
            entry_amount_sol=config.buy_amount_sol,
            entry_amount_tokens=quote.out_amount,
            entry_timestamp=self._clock(),
            entry_signature=signature,
            current_price=market.price_usd if market.has_price else None,
            profit_percent=0.0,
        )
        async with self._session_maker() as session:
            saved = await open_position_if_absent(session, position)
        if saved is None:
            logger.error("Сделка {sig} исполнена, но активная позиция по {addr} уже есть", sig=signature, addr=address)
            return TradeResult(success=False, signature=signature, error="Position already open for this token")
        logger.info(
            "Куплено {tokens} {symbol} за {sol} SOL, tx {sig}",
            tokens=quote.out_amount,
            symbol=symbol,
            sol=config.buy_amount_sol,
            sig=signature,
        )
        await self._bus.publish(POSITION_OPENED, {"position": position_as_dict(saved)})
        return TradeResult(success=True, signature=signature, position_id=saved.id)

    async def monitor_positions(self) -> None:
        """Пересчёт прибыли и проверка переходов для всех open/partial позиций."""

        async with self._session_maker() as session:
            positions = await list_active_positions(session)
        for position in positions:
            try:
                await self._evaluate_position(position.id)
            except Exception as exc:  # noqa: BLE001
                logger.exception("Сопровождение позиции {id} упало: {error}", id=position.id, error=exc)

    async def _evaluate_position(self, position_id: int | None) -> None:
        if position_id is None:
            return
        async with self._session_maker() as session:
            position = await get_position(session, position_id)
            if position is None or not position.is_active:
                return
            market = await self._oracle.get_market_data(position.asset_address)
            if not market.has_price:
                logger.debug("Нет цены для {addr}, позиция {id} ждёт", addr=position.asset_address, id=position_id)
                return
            price = market.price_usd
            if position.entry_price <= 0:
                position.entry_price = price
            profit = profit_percent(position.entry_price, price)
            position = await update_position_price(session, position, price=price, profit=profit)

        action = decide_exit(position.status, profit, self._config)
        if action == ExitAction.TAKE_PROFIT_PARTIAL:
            await self.sell_partial(position, price=price, profit=profit)
        elif action == ExitAction.TAKE_PROFIT_FINAL:
            await self.sell_all(position, price=price, profit=profit, stopped=False)
        elif action == ExitAction.STOP_LOSS:
            await self.sell_all(position, price=price, profit=profit, stopped=True)

    async def sell_partial(self, position: TradingPosition, *, price: float, profit: float) -> TradeResult:
        """Первый тейк-профит: продаёт половину (с округлением вниз)."""

        sold_tokens = int(position.entry_amount_tokens * PARTIAL_SELL_FRACTION)
        if sold_tokens <= 0:
            return TradeResult(success=False, error="Nothing to sell")
        try:
            async with self._trade_lock:
                signature = await self._sell(position.asset_address, sold_tokens)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Частичная продажа {addr} не удалась: {error}", addr=position.asset_address, error=exc)
            return TradeResult(success=False, error=str(exc) or type(exc).__name__)
        async with self._session_maker() as session:
            fresh = await get_position(session, position.id) if position.id is not None else None
            if fresh is None:
                return TradeResult(success=False, signature=signature, error="Position disappeared")
            updated = await mark_partial(
                session,
                fresh,
                sold_tokens=sold_tokens,
                price=price,
                profit=profit,
                timestamp=self._clock(),
                signature=signature,
            )
        logger.info(
            "Тейк-профит 1 по {symbol}: продано {tokens}, прибыль {profit:.1f}%",
            symbol=updated.token_symbol,
            tokens=sold_tokens,
            profit=profit,
        )
        await self._bus.publish(POSITION_UPDATED, {"position": position_as_dict(updated)})
        return TradeResult(success=True, signature=signature, position_id=updated.id)

    async def sell_all(
        self,
        position: TradingPosition,
        *,
        price: float,
        profit: float,
        stopped: bool,
    ) -> TradeResult:
        """Финальная продажа остатка: второй тейк-профит или стоп-лосс."""

        amount = position.held_tokens
        if amount <= 0:
            return TradeResult(success=False, error="Nothing to sell")
        try:
            async with self._trade_lock:
                signature = await self._sell(position.asset_address, amount)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Продажа {addr} не удалась: {error}", addr=position.asset_address, error=exc)
            return TradeResult(success=False, error=str(exc) or type(exc).__name__)
        status = PositionStatus.STOPPED if stopped else PositionStatus.SOLD
        async with self._session_maker() as session:
            fresh = await get_position(session, position.id) if position.id is not None else None
            if fresh is None:
                return TradeResult(success=False, signature=signature, error="Position disappeared")
            closed = await close_position(
                session,
                fresh,
                status=status,
                price=price,
                profit=profit,
                timestamp=self._clock(),
                signature=signature,
            )
        logger.info(
            "Позиция {symbol} закрыта ({status}), прибыль {profit:.1f}%",
            symbol=closed.token_symbol,
            status=status,
            profit=profit,
        )
        await self._bus.publish(POSITION_CLOSED, {"position": position_as_dict(closed)})
        return TradeResult(success=True, signature=signature, position_id=closed.id)

    async def _sell(self, address: str, amount_tokens: int) -> str:
        quote = await self._venue.get_quote(address, SOL_MINT, amount_tokens)
        if quote.out_amount <= 0:
            raise ValueError(f"Котировка продажи {address} вернула ноль")
        return await self._swap(quote)

    async def _swap(self, quote: SwapQuote) -> str:
        """create-swap → подпись → отправка → ожидание подтверждения."""

        unsigned = await self._venue.create_swap_transaction(quote, self.wallet)
        signed = self._signer.sign_transaction(unsigned)
        signature = await self._rpc.send_transaction(base64.b64encode(signed).decode())
        await self._rpc.confirm_transaction(signature, timeout_sec=self._settings.confirm_timeout_sec)
        return signature


__all__ = ["Opportunity", "TradeResult", "TradingEngine", "position_as_dict"]
