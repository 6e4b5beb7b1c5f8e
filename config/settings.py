"""Глобальные настройки bagsscan.

Настройки разделены по доменам (Solana RPC, bags.fm API, оракул цен, сканер,
трейдинг и т.д.), чтобы каждый сервис получал только свою секцию.
Вся конфигурация загружается из переменных окружения через Pydantic Settings,
вложенные поля задаются через разделитель ``__`` (``SCANNER__UPDATE_INTERVAL_SEC=10``).
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import (
    AnyHttpUrl,
    AnyUrl,
    BaseModel,
    Field,
    PositiveFloat,
    SecretStr,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent.parent
ACCESSIBLE_ENV_FILE = BASE_DIR / "config" / "runtime.env"
DEFAULT_ENV_FILE = BASE_DIR / ".env"
ENV_FILE = ACCESSIBLE_ENV_FILE if ACCESSIBLE_ENV_FILE.exists() else DEFAULT_ENV_FILE

LAUNCH_PROGRAM_ID = "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P"


class SolanaSettings(BaseModel):
    """RPC/WebSocket точки Solana (Helius или любой совместимый провайдер)."""

    rpc_endpoint: AnyHttpUrl = Field(
        "https://api.mainnet-beta.solana.com",
        description="HTTP JSON-RPC (для Helius добавьте ?api-key=...)",
    )
    ws_endpoint: AnyUrl = Field(
        "wss://api.mainnet-beta.solana.com",
        description="WebSocket для logsSubscribe",
    )
    launch_program_id: str = Field(
        LAUNCH_PROGRAM_ID, description="Программа запуска токенов bags.fm"
    )
    log_commitment: Literal["processed", "confirmed", "finalized"] = "processed"
    tx_commitment: Literal["confirmed", "finalized"] = "confirmed"
    request_timeout: int = 15
    ws_reconnect_delay_sec: float = 3.0
    use_websocket: bool = Field(
        True, description="Слушать логи программы через WebSocket (иначе только scan-recent)"
    )


class BagsApiSettings(BaseModel):
    """Публичный API bags.fm: реестр создателей и торговые котировки."""

    api_url: AnyHttpUrl = Field("https://public-api-v2.bags.fm/api/v1")
    api_key: SecretStr | None = Field(None, description="x-api-key для bags.fm")
    request_timeout: int = 15

    @field_validator("api_key", mode="before")
    @classmethod
    def _empty_str_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class OracleSettings(BaseModel):
    """Конфигурация оракула цен/объёмов (DexScreener)."""

    base_url: AnyHttpUrl = Field(
        "https://api.dexscreener.com/latest/dex/tokens/",
        description="Эндпоинт DexScreener, адрес минта дописывается в конец",
    )
    request_timeout: int = 10
    cache_ttl_sec: int = 5


class RateLimitSettings(BaseModel):
    """Троттлинг и экспоненциальный backoff для внешних вызовов."""

    min_interval_sec: float = Field(1.0, description="Интервал между вызовами bags.fm API")
    rpc_min_interval_sec: float = 0.1
    oracle_min_interval_sec: float = 0.25
    max_retries: int = 3
    base_delay_sec: PositiveFloat = 1.0
    max_delay_sec: PositiveFloat = 16.0


class ScannerSettings(BaseModel):
    """Параметры сканера запусков и цикла обновления метрик."""

    update_interval_sec: float = 15.0
    per_token_delay_sec: float = 5.0
    cleanup_interval_sec: float = 60.0
    metadata_interval_sec: float = 300.0
    excluded_mints: list[str] = Field(
        default_factory=list, description="Минты, которые никогда не трекаем (токен платформы)"
    )
    required_markers: list[str] = Field(
        default_factory=lambda: ["Instruction: CreateV2", "Instruction: InitializeMint2"],
        description="Все маркеры должны встретиться в логах транзакции",
    )
    pool_init_markers: list[str] = Field(
        default_factory=lambda: [
            "initialize_virtual_pool_with_spl_token",
            "InitializeVirtualPoolWithSplToken",
            "Instruction: InitializeVirtualPool",
        ],
        description="Достаточно любого маркера инициализации пула",
    )
    tx_retry_delay_sec: float = 2.0
    verify_retries: int = 3
    verify_backoff_sec: float = 2.0
    recent_scan_limit: int = 20

    @field_validator("excluded_mints", mode="before")
    @classmethod
    def _split_csv(cls, value):
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value


class TradingDefaults(BaseModel):
    """Стартовые значения TradingConfig (безопасные: торговля выключена)."""

    enabled: bool = False
    min_mcap_growth: float = 5.0
    min_mcap_growth_enabled: bool = True
    min_holders: int = 20
    min_holders_enabled: bool = True
    min_volume: float = 1_000.0
    min_volume_enabled: bool = True
    buy_amount_sol: PositiveFloat = 0.1
    profit_target_percent: float = 50.0
    second_profit_target_percent: float = 100.0
    stop_loss_percent: float = -10.0
    max_positions: int = 5
    min_mcap: float = 3_000.0


class TradingSettings(BaseModel):
    """Параметры торгового движка и кошелька агента."""

    agent_private_key: SecretStr | None = Field(
        None, description="Секретный ключ кошелька (base58 или JSON-массив байт)"
    )
    monitor_interval_sec: float = 30.0
    max_price_impact_pct: float = 5.0
    fee_reserve_sol: float = 0.01
    confirm_timeout_sec: float = 60.0
    runner_window_minutes: int = 15
    default: TradingDefaults = TradingDefaults()

    @field_validator("agent_private_key", mode="before")
    @classmethod
    def _empty_str_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class CacheSettings(BaseModel):
    """Настройки кешей (aiocache поддерживает memory / redis)."""

    backend: Literal["memory", "redis"] = "memory"
    ttl_seconds: int = 30
    redis_dsn: str | None = None


class DatabaseSettings(BaseModel):
    """SQLModel + aiosqlite (по умолчанию) и готовность к Postgres."""

    dsn: str = Field(
        "sqlite+aiosqlite:///./database/bagsscan.db",
        description="Строка подключения SQLAlchemy/SQLModel",
    )
    echo: bool = False


class ApiSettings(BaseModel):
    """HTTP API и push-канал."""

    host: str = "0.0.0.0"
    port: int = 3001


class LoggingSettings(BaseModel):
    json_format: bool = False
    level: str = "INFO"
    audit_path: Path = BASE_DIR / "logs" / "scanner.log"


class AppSettings(BaseSettings):
    """Главный контейнер настроек bagsscan."""

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    environment: Literal["dev", "prod"] = "dev"
    solana: SolanaSettings = SolanaSettings()
    bags: BagsApiSettings = BagsApiSettings()
    oracle: OracleSettings = OracleSettings()
    rate_limit: RateLimitSettings = RateLimitSettings()
    scanner: ScannerSettings = ScannerSettings()
    trading: TradingSettings = TradingSettings()
    cache: CacheSettings = CacheSettings()
    database: DatabaseSettings = DatabaseSettings()
    api: ApiSettings = ApiSettings()
    logging: LoggingSettings = LoggingSettings()

    @property
    def is_production(self) -> bool:
        """True, если сервис запущен в продовой среде."""

        return self.environment == "prod"

    @property
    def trading_available(self) -> bool:
        """Есть ли всё необходимое для торгового движка (ключ кошелька и API-ключ)."""

        return self.trading.agent_private_key is not None and self.bags.api_key is not None


# Ленивый синглтон (избегаем глобальных переменных в модулях).
_settings: AppSettings | None = None


def get_settings() -> AppSettings:
    """Возвращает единый экземпляр настроек.

    Значения кэшируются, поэтому инициализация .env происходит ровно один раз за процесс.
    """

    global _settings
    if _settings is None:
        _settings = AppSettings()
    return _settings


__all__ = [
    "ApiSettings",
    "AppSettings",
    "BagsApiSettings",
    "CacheSettings",
    "DatabaseSettings",
    "LAUNCH_PROGRAM_ID",
    "LoggingSettings",
    "OracleSettings",
    "RateLimitSettings",
    "ScannerSettings",
    "SolanaSettings",
    "TradingDefaults",
    "TradingSettings",
    "get_settings",
]
