"""Chain Event Monitor: поиск новых запусков bags.fm в логах программы.

Каждое событие logsSubscribe проходит стадии
received → filtered → fetched → parsed → verified → registered
и может быть отброшено на любой из них. Ошибка одной стадии логируется,
событие выбрасывается, а подписка продолжает работать.
"""

from __future__ import annotations

import asyncio
from collections import OrderedDict
from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Callable

from loguru import logger

from bagsscan.logging_config import audit_logger
from bagsscan.models import Asset
from bagsscan.services.core.registry import AssetRegistry
from config.settings import ScannerSettings
from .bags_client import BagsClient, Creator, pick_creator
from .rpc_client import LogEvent, SolanaRpcClient
from .tx_parser import extract_new_mints, fee_payer, has_bags_suffix, is_launch_candidate

_SEEN_LIMIT = 2_000


@dataclass(slots=True)
class MonitorStats:
    received: int = 0
    failed_tx: int = 0
    filtered: int = 0
    fetched: int = 0
    parsed: int = 0
    verified: int = 0
    registered: int = 0
    dropped: int = 0


class LaunchMonitor:
    """Подписчик логов программы запуска + конвейер проверки кандидатов."""

    def __init__(
        self,
        rpc: SolanaRpcClient,
        bags: BagsClient,
        registry: AssetRegistry,
        settings: ScannerSettings,
        *,
        program_id: str,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._rpc = rpc
        self._bags = bags
        self._registry = registry
        self._settings = settings
        self._program_id = program_id
        self._sleep = sleep
        self._scanning = False
        self._subscribed = False
        self._seen: OrderedDict[str, None] = OrderedDict()
        self.stats = MonitorStats()

    @property
    def is_scanning(self) -> bool:
        return self._scanning

    async def start(self) -> None:
        if not self._subscribed:
            self._rpc.subscribe_logs(self.handle_log_event)
            self._subscribed = True
        if not self._bags.has_api_key:
            logger.warning("bags.fm API ключ не задан: верификация запусков будет отклонять всех кандидатов")
        self._scanning = True
        logger.info("LaunchMonitor слушает программу {program}", program=self._program_id)

    async def stop(self) -> None:
        """Делает обработчик инертным; сам WS закрывается вместе с RPC-клиентом."""

        self._scanning = False

    def status(self) -> dict[str, Any]:
        return {
            "isScanning": self._scanning,
            "isWebSocketActive": self._rpc.is_websocket_active,
            "intervalMs": int(self._settings.update_interval_sec * 1000),
            "stats": asdict(self.stats),
        }

    async def handle_log_event(self, event: LogEvent) -> Asset | None:
        """Стадии received → filtered; дальше общий конвейер по сигнатуре."""

        if not self._scanning:
            return None
        self.stats.received += 1
        if event.failed:
            self.stats.failed_tx += 1
            audit_logger.info("Транзакция {sig} упала: {err}", sig=event.signature, err=event.err)
            return None
        if not self._is_candidate(event.logs):
            return None
        self.stats.filtered += 1
        logger.debug("Кандидат запуска: {sig}", sig=event.signature)
        return await self.process_signature(event.signature)

    async def process_signature(self, signature: str, *, check_logs: bool = False) -> Asset | None:
        """fetched → parsed → verified → registered для одной транзакции.

        check_logs=True применяет фильтр маркеров к logMessages самой транзакции
        (для сигнатур, пришедших не из logsSubscribe).
        """

        if not self._remember(signature):
            return None
        try:
            tx = await self.fetch_transaction(signature)
            if tx is None:
                logger.debug("Транзакция {sig} так и не стала доступна", sig=signature)
                return self._drop()
            self.stats.fetched += 1
            if check_logs and not self._is_candidate((tx.get("meta") or {}).get("logMessages") or []):
                return None

            mints = extract_new_mints(tx)
            if not mints:
                logger.debug("В транзакции {sig} нет нового минта", sig=signature)
                return self._drop()
            self.stats.parsed += 1
            mint = mints[0]
            if has_bags_suffix(mint):
                logger.debug("Минт {mint} с суффиксом BAGS, проверяем в реестре", mint=mint)

            creators = await self.verify(mint)
            if not creators:
                logger.info("Минт {mint} не подтверждён реестром bags.fm, отбрасываем", mint=mint)
                return self._drop()
            self.stats.verified += 1

            creator = pick_creator(creators)
            creator_address = creator.wallet if creator else fee_payer(tx)
            asset = await self._registry.add(mint, creator_address, source="chain")
            if asset is None:
                return self._drop()
            self.stats.registered += 1
            return asset
        except Exception as exc:  # noqa: BLE001
            logger.exception("Обработка {sig} упала: {error}", sig=signature, error=exc)
            return self._drop()

    async def fetch_transaction(self, signature: str) -> dict[str, Any] | None:
        """getTransaction с одним повтором после задержки (лаг распространения)."""

        tx = await self._rpc.get_transaction(signature)
        if tx is None:
            await self._sleep(self._settings.tx_retry_delay_sec)
            tx = await self._rpc.get_transaction(signature)
        return tx

    async def verify(self, mint: str) -> list[Creator]:
        """Реестр создателей bags.fm: первая попытка и до verify_retries повторов.

        Перед повтором N пауза N * verify_backoff_sec (лаг индексации bags.fm).
        """

        retries = max(self._settings.verify_retries, 0)
        for attempt in range(retries + 1):
            if attempt:
                await self._sleep(attempt * self._settings.verify_backoff_sec)
            try:
                creators = await self._bags.get_creators(mint)
            except Exception as exc:  # noqa: BLE001
                logger.debug(
                    "Проверка {mint}, попытка {attempt}/{total}: {error}",
                    mint=mint,
                    attempt=attempt + 1,
                    total=retries + 1,
                    error=exc,
                )
                creators = []
            if creators:
                return creators
        return []

    async def scan_recent(self, limit: int | None = None) -> int:
        """Разовый проход по последним сигнатурам программы (без WebSocket)."""

        limit = limit or self._settings.recent_scan_limit
        signatures = await self._rpc.get_signatures_for_address(self._program_id, limit=limit)
        registered = 0
        for item in signatures[:limit]:
            signature = item.get("signature") if isinstance(item, dict) else None
            if not signature or item.get("err") is not None:
                continue
            if await self.process_signature(signature, check_logs=True) is not None:
                registered += 1
        logger.info(
            "Скан последних {count} сигнатур: зарегистрировано {registered}",
            count=len(signatures),
            registered=registered,
        )
        return registered

    def _is_candidate(self, logs: list[str]) -> bool:
        return is_launch_candidate(logs, self._settings.required_markers, self._settings.pool_init_markers)

    def _remember(self, signature: str) -> bool:
        if signature in self._seen:
            return False
        self._seen[signature] = None
        while len(self._seen) > _SEEN_LIMIT:
            self._seen.popitem(last=False)
        return True

    def _drop(self) -> None:
        self.stats.dropped += 1
        return None


__all__ = ["LaunchMonitor", "MonitorStats"]
