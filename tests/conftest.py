"""Общие фикстуры: временная БД на aiosqlite и фейковые внешние сервисы."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest

from bagsscan.db import build_session_maker, create_engine_from_settings, init_db
from bagsscan.services.core.analytics import GrowthAnalytics
from bagsscan.services.core.events import EventBus
from bagsscan.services.core.registry import AssetRegistry
from bagsscan.services.solana.bags_client import SwapQuote
from bagsscan.services.solana.metadata import TokenMetadata
from bagsscan.services.solana.price_oracle import MarketData
from config.settings import DatabaseSettings, ScannerSettings

T0 = 1_700_000_000_000
MINUTE = 60_000


class FakeClock:
    def __init__(self, now: int = T0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


class FakeRpc:
    """Минимальный RPC: supply/холдеры по минту, транзакции по сигнатуре."""

    def __init__(self) -> None:
        self.supply: dict[str, float] = {}
        self.holders: dict[str, int] = {}
        self.transactions: dict[str, list[dict[str, Any] | None]] = {}
        self.signatures: list[dict[str, Any]] = []
        self.balance_lamports = 10 * 1_000_000_000
        self.sent: list[str] = []
        self.confirm_error: Exception | None = None
        self.callbacks: list[Any] = []
        self.is_websocket_active = False

    def subscribe_logs(self, callback) -> None:
        self.callbacks.append(callback)

    async def get_token_supply(self, mint: str) -> float:
        return self.supply.get(mint, 1_000_000_000.0)

    async def get_holder_count(self, mint: str) -> int:
        return self.holders.get(mint, 1)

    async def get_transaction(self, signature: str) -> dict[str, Any] | None:
        queue = self.transactions.get(signature)
        if not queue:
            return None
        return queue.pop(0) if len(queue) > 1 else queue[0]

    async def get_signatures_for_address(self, address: str, limit: int = 100) -> list[dict[str, Any]]:
        return self.signatures[:limit]

    async def get_asset(self, mint: str) -> dict[str, Any] | None:
        return None

    async def get_account_info(self, address: str) -> dict[str, Any] | None:
        return None

    async def get_balance(self, address: str) -> int:
        return self.balance_lamports

    async def send_transaction(self, raw_tx_base64: str) -> str:
        self.sent.append(raw_tx_base64)
        return f"sig-{len(self.sent)}"

    async def confirm_transaction(self, signature: str, *, timeout_sec: float = 60.0) -> None:
        if self.confirm_error is not None:
            raise self.confirm_error


class FakeOracle:
    def __init__(self) -> None:
        self.market: dict[str, MarketData] = {}

    def set(self, mint: str, price: float, volume: float = 0.0) -> None:
        self.market[mint] = MarketData(price_usd=price, volume_24h=volume, pair_count=1 if price else 0)

    async def get_market_data(self, mint: str) -> MarketData:
        return self.market.get(mint, MarketData())


class FakeMetadata:
    def __init__(self) -> None:
        self.known: dict[str, TokenMetadata] = {}
        self.calls: list[str] = []

    async def resolve(self, mint: str) -> TokenMetadata:
        self.calls.append(mint)
        return self.known.get(mint) or TokenMetadata(name="Unknown", symbol="UNKNOWN")


@dataclass
class FakeVenue:
    """Торговая площадка: котировки по заданному курсу и влиянию на цену."""

    tokens_per_buy: int = 1_000
    sol_per_sell: int = 50_000_000
    price_impact_pct: float = 1.0
    quotes: list[tuple[str, str, int]] = field(default_factory=list)
    has_api_key: bool = True

    async def get_quote(self, input_mint: str, output_mint: str, amount: int, **kwargs: Any) -> SwapQuote:
        self.quotes.append((input_mint, output_mint, amount))
        out = self.tokens_per_buy if output_mint != "So11111111111111111111111111111111111111112" else self.sol_per_sell
        return SwapQuote(
            input_mint=input_mint,
            output_mint=output_mint,
            in_amount=amount,
            out_amount=out,
            min_out_amount=out,
            price_impact_pct=self.price_impact_pct,
            raw={"inAmount": str(amount), "outAmount": str(out)},
        )

    async def create_swap_transaction(self, quote: SwapQuote, user_public_key: str) -> str:
        return "unsigned-tx"


class FakeSigner:
    public_key = "AgentWa11et1111111111111111111111111111111"

    def sign_transaction(self, serialized: str) -> bytes:
        return b"signed:" + serialized.encode()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def session_maker(tmp_path):
    engine = create_engine_from_settings(DatabaseSettings(dsn=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"))
    await init_db(engine)
    try:
        yield build_session_maker(engine)
    finally:
        await engine.dispose()


@pytest.fixture
def rpc() -> FakeRpc:
    return FakeRpc()


@pytest.fixture
def oracle() -> FakeOracle:
    return FakeOracle()


@pytest.fixture
def metadata() -> FakeMetadata:
    return FakeMetadata()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def scanner_settings() -> ScannerSettings:
    return ScannerSettings(per_token_delay_sec=0, tx_retry_delay_sec=0, verify_backoff_sec=0)


@pytest.fixture
def registry(session_maker, rpc, oracle, metadata, bus, scanner_settings, clock) -> AssetRegistry:
    return AssetRegistry(
        session_maker,
        rpc=rpc,
        oracle=oracle,
        metadata=metadata,
        analytics=GrowthAnalytics(),
        bus=bus,
        settings=scanner_settings,
        clock=clock,
    )
