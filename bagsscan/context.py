"""Composition root bagsscan: все сервисы собираются здесь и передаются явно."""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config.settings import AppSettings, get_settings
from .db import build_session_maker, create_engine_from_settings
from .services.core.analytics import GrowthAnalytics
from .services.core.events import EventBus
from .services.core.rate_limiter import RateLimitedClient
from .services.core.registry import AssetRegistry
from .services.core.scheduler import PeriodicTask
from .services.solana.bags_client import BagsClient
from .services.solana.launch_monitor import LaunchMonitor
from .services.solana.metadata import MetadataResolver
from .services.solana.price_oracle import PriceOracle
from .services.solana.rpc_client import SolanaRpcClient
from .services.trading.config import TradingConfig
from .services.trading.engine import TradingEngine
from .services.trading.wallet import WalletSigner
from .utils.cache import configure_cache


@dataclass(slots=True)
class AppContext:
    settings: AppSettings
    db_engine: AsyncEngine
    session_maker: async_sessionmaker[AsyncSession]
    bus: EventBus
    rpc: SolanaRpcClient
    bags: BagsClient
    oracle: PriceOracle
    analytics: GrowthAnalytics
    registry: AssetRegistry
    monitor: LaunchMonitor
    trading: TradingEngine | None
    refresh_task: PeriodicTask
    cleanup_task: PeriodicTask
    metadata_task: PeriodicTask

    @property
    def tasks(self) -> tuple[PeriodicTask, ...]:
        return (self.refresh_task, self.cleanup_task, self.metadata_task)


def build_trading_engine(
    settings: AppSettings,
    session_maker: async_sessionmaker[AsyncSession],
    *,
    bags: BagsClient,
    rpc: SolanaRpcClient,
    oracle: PriceOracle,
    analytics: GrowthAnalytics,
    bus: EventBus,
) -> TradingEngine | None:
    """Движок создаётся только при наличии ключа кошелька и API-ключа bags.fm."""

    secret = settings.trading.agent_private_key
    if secret is None or not settings.trading_available:
        logger.warning("Трейдинг недоступен: задайте TRADING__AGENT_PRIVATE_KEY и BAGS__API_KEY")
        return None
    try:
        signer = WalletSigner.from_secret(secret.get_secret_value())
    except ValueError as exc:
        logger.error("Не удалось загрузить ключ кошелька агента: {error}", error=exc)
        return None
    engine = TradingEngine(
        session_maker,
        config=TradingConfig.from_defaults(settings.trading.default),
        venue=bags,
        rpc=rpc,
        oracle=oracle,
        analytics=analytics,
        signer=signer,
        bus=bus,
        settings=settings.trading,
    )
    logger.info("Торговый движок готов, кошелёк {wallet}", wallet=engine.wallet)
    return engine


def build_context(settings: AppSettings | None = None) -> AppContext:
    settings = settings or get_settings()
    configure_cache(settings.cache)

    db_engine = create_engine_from_settings(settings.database)
    session_maker = build_session_maker(db_engine)
    bus = EventBus()

    limits = settings.rate_limit
    rpc = SolanaRpcClient(
        settings.solana,
        RateLimitedClient.from_settings("solana-rpc", limits, min_interval_sec=limits.rpc_min_interval_sec),
    )
    bags = BagsClient(settings.bags, RateLimitedClient.from_settings("bags-api", limits))
    oracle = PriceOracle(
        settings.oracle,
        RateLimitedClient.from_settings("dexscreener", limits, min_interval_sec=limits.oracle_min_interval_sec),
    )
    analytics = GrowthAnalytics()
    registry = AssetRegistry(
        session_maker,
        rpc=rpc,
        oracle=oracle,
        metadata=MetadataResolver(rpc),
        analytics=analytics,
        bus=bus,
        settings=settings.scanner,
    )
    monitor = LaunchMonitor(
        rpc,
        bags,
        registry,
        settings.scanner,
        program_id=settings.solana.launch_program_id,
    )
    trading = build_trading_engine(
        settings,
        session_maker,
        bags=bags,
        rpc=rpc,
        oracle=oracle,
        analytics=analytics,
        bus=bus,
    )
    scanner = settings.scanner
    return AppContext(
        settings=settings,
        db_engine=db_engine,
        session_maker=session_maker,
        bus=bus,
        rpc=rpc,
        bags=bags,
        oracle=oracle,
        analytics=analytics,
        registry=registry,
        monitor=monitor,
        trading=trading,
        refresh_task=PeriodicTask("asset-refresh", scanner.update_interval_sec, registry.refresh_all),
        cleanup_task=PeriodicTask("asset-cleanup", scanner.cleanup_interval_sec, registry.cleanup),
        metadata_task=PeriodicTask(
            "metadata-repair",
            scanner.metadata_interval_sec,
            registry.refresh_unresolved,
            run_immediately=True,
        ),
    )


__all__ = ["AppContext", "build_context", "build_trading_engine"]
