"""Прямой доступ к Solana JSON-RPC и подписка на логи программы.

SolanaRpcClient выполняет две задачи:
1. HTTP JSON-RPC вызовы (транзакции, токен-аккаунты, supply, DAS getAsset, отправка tx).
2. Постоянное WebSocket-подключение logsSubscribe к программе запуска bags.fm.

Все HTTP вызовы идут через RateLimitedClient, поэтому 429 от провайдера
повторяются с backoff, а не роняют фоновые циклы.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import aiohttp
from loguru import logger

from bagsscan.services.core.rate_limiter import RateLimitedClient
from config.settings import SolanaSettings

TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_ACCOUNT_SIZE = 165

LogCallback = Callable[["LogEvent"], Awaitable[None]]


class SolanaRpcError(RuntimeError):
    """Ошибка JSON-RPC (HTTP статус или поле error в ответе)."""

    def __init__(self, message: str, *, code: int | None = None, status: int | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.status = status


class ConfirmationError(SolanaRpcError):
    """Транзакция не подтвердилась (ошибка исполнения или таймаут)."""


@dataclass(slots=True)
class LogEvent:
    """Уведомление logsSubscribe по программе запуска."""

    signature: str
    logs: list[str]
    err: Any = None
    slot: int | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def failed(self) -> bool:
        return self.err is not None


@dataclass(slots=True)
class TokenAccount:
    owner: str
    amount: int


class SolanaRpcClient:
    """Лёгкий aiohttp-клиент Solana RPC + WebSocket поток логов."""

    def __init__(
        self,
        settings: SolanaSettings,
        limiter: RateLimitedClient,
    ) -> None:
        self._rpc_endpoint = str(settings.rpc_endpoint)
        self._ws_endpoint = str(settings.ws_endpoint)
        self._program_id = settings.launch_program_id
        self._log_commitment = settings.log_commitment
        self._tx_commitment = settings.tx_commitment
        self._timeout = settings.request_timeout
        self._use_websocket = settings.use_websocket
        self._ws_reconnect_delay = settings.ws_reconnect_delay_sec
        self._limiter = limiter
        self._session: aiohttp.ClientSession | None = None
        self._ws_task: asyncio.Task[None] | None = None
        self._ws_connected = False
        self._callbacks: set[LogCallback] = set()
        self._stop_event = asyncio.Event()
        self._pending: set[asyncio.Task[None]] = set()
        self._request_id = 0

    @property
    def is_websocket_active(self) -> bool:
        return self._ws_connected

    async def start(self) -> None:
        """Инициализирует HTTP session и (опционально) запускает WebSocket поток."""

        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout)
            )
        if self._use_websocket and (self._ws_task is None or self._ws_task.done()):
            self._stop_event.clear()
            self._ws_task = asyncio.create_task(self._run_ws_loop(), name="solana-logs-ws")
        logger.info(
            "SolanaRpcClient готов: RPC {rpc}, WS {ws}",
            rpc=self._rpc_endpoint.split("?")[0],
            ws="on" if self._use_websocket else "off",
        )

    async def close(self) -> None:
        """Останавливает подписку и закрывает HTTP-сессию."""

        self._stop_event.set()
        if self._ws_task:
            self._ws_task.cancel()
            self._ws_task = None
        for task in list(self._pending):
            task.cancel()
        self._ws_connected = False
        if self._session and not self._session.closed:
            await self._session.close()

    def subscribe_logs(self, callback: LogCallback) -> None:
        """Регистрирует обработчик уведомлений logsSubscribe."""

        self._callbacks.add(callback)

    async def rpc_call(
        self,
        method: str,
        params: list[Any] | dict[str, Any] | None = None,
    ) -> Any:
        """JSON-RPC вызов через лимитер (429 и rate-limit коды повторяются)."""

        return await self._limiter.call(lambda: self._post(method, params or []))

    async def _post(self, method: str, params: list[Any] | dict[str, Any]) -> Any:
        if self._session is None:
            raise SolanaRpcError("HTTP-сессия не инициализирована, вызовите start()")
        self._request_id += 1
        payload = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}
        async with self._session.post(self._rpc_endpoint, json=payload) as resp:
            if resp.status >= 400:
                text = await resp.text()
                raise SolanaRpcError(
                    f"RPC {method} завершился с HTTP {resp.status}: {text[:200]}",
                    status=resp.status,
                )
            data = await resp.json(content_type=None)
        if not isinstance(data, dict):
            raise SolanaRpcError(f"RPC {method}: неожиданный ответ {data!r}")
        error = data.get("error")
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            message = error.get("message") if isinstance(error, dict) else error
            raise SolanaRpcError(f"RPC ошибка {method}: {message}", code=code)
        return data.get("result")

    async def get_transaction(self, signature: str) -> dict[str, Any] | None:
        """Разобранная (jsonParsed) транзакция или None, если ещё не доступна."""

        return await self.rpc_call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "jsonParsed",
                    "maxSupportedTransactionVersion": 0,
                    "commitment": self._tx_commitment,
                },
            ],
        )

    async def get_token_accounts_by_mint(self, mint: str) -> list[TokenAccount]:
        """Все SPL токен-аккаунты минта (для подсчёта холдеров)."""

        result = await self.rpc_call(
            "getProgramAccounts",
            [
                TOKEN_PROGRAM_ID,
                {
                    "encoding": "jsonParsed",
                    "commitment": self._tx_commitment,
                    "filters": [
                        {"dataSize": TOKEN_ACCOUNT_SIZE},
                        {"memcmp": {"offset": 0, "bytes": mint}},
                    ],
                },
            ],
        )
        accounts: list[TokenAccount] = []
        for item in result or []:
            info = (
                item.get("account", {}).get("data", {}).get("parsed", {}).get("info", {})
                if isinstance(item, dict)
                else {}
            )
            amount = info.get("tokenAmount", {}).get("amount")
            try:
                parsed_amount = int(amount)
            except (TypeError, ValueError):
                parsed_amount = 0
            accounts.append(TokenAccount(owner=str(info.get("owner") or ""), amount=parsed_amount))
        return accounts

    async def get_holder_count(self, mint: str) -> int:
        accounts = await self.get_token_accounts_by_mint(mint)
        return sum(1 for account in accounts if account.amount > 0)

    async def get_token_supply(self, mint: str) -> float:
        """uiAmount выпуска токена (0, если RPC не вернул значение)."""

        result = await self.rpc_call("getTokenSupply", [mint, {"commitment": self._tx_commitment}])
        value = (result or {}).get("value") or {}
        ui_amount = value.get("uiAmount")
        if ui_amount is None:
            ui_amount = value.get("uiAmountString")
        try:
            return float(ui_amount or 0)
        except (TypeError, ValueError):
            return 0.0

    async def get_account_info(self, address: str) -> dict[str, Any] | None:
        result = await self.rpc_call(
            "getAccountInfo",
            [address, {"encoding": "base64", "commitment": self._tx_commitment}],
        )
        return (result or {}).get("value")

    async def get_asset(self, mint: str) -> dict[str, Any] | None:
        """DAS getAsset (Helius); у провайдеров без DAS вернёт ошибку."""

        return await self.rpc_call("getAsset", {"id": mint})

    async def get_signatures_for_address(self, address: str, limit: int = 100) -> list[dict[str, Any]]:
        result = await self.rpc_call(
            "getSignaturesForAddress",
            [address, {"limit": limit, "commitment": self._tx_commitment}],
        )
        return list(result or [])

    async def get_balance(self, address: str) -> int:
        """Баланс в лампортах."""

        result = await self.rpc_call("getBalance", [address, {"commitment": self._tx_commitment}])
        return int((result or {}).get("value") or 0)

    async def send_transaction(self, raw_tx_base64: str) -> str:
        return await self.rpc_call(
            "sendTransaction",
            [
                raw_tx_base64,
                {"encoding": "base64", "skipPreflight": False, "maxRetries": 3},
            ],
        )

    async def get_signature_status(self, signature: str) -> dict[str, Any] | None:
        result = await self.rpc_call(
            "getSignatureStatuses",
            [[signature], {"searchTransactionHistory": False}],
        )
        values = (result or {}).get("value") or [None]
        return values[0]

    async def confirm_transaction(
        self,
        signature: str,
        *,
        timeout_sec: float = 60.0,
        poll_interval_sec: float = 1.0,
    ) -> None:
        """Ждёт статуса confirmed/finalized; иначе ConfirmationError."""

        deadline = asyncio.get_running_loop().time() + timeout_sec
        while True:
            status = await self.get_signature_status(signature)
            if status:
                if status.get("err"):
                    raise ConfirmationError(f"Транзакция {signature} упала: {status['err']}")
                if status.get("confirmationStatus") in ("confirmed", "finalized"):
                    return
            if asyncio.get_running_loop().time() >= deadline:
                raise ConfirmationError(f"Транзакция {signature} не подтверждена за {timeout_sec}s")
            await asyncio.sleep(poll_interval_sec)

    async def _run_ws_loop(self) -> None:
        """Основной поток чтения WebSocket уведомлений logsSubscribe."""

        assert self._session is not None
        while not self._stop_event.is_set():
            try:
                async with self._session.ws_connect(self._ws_endpoint, heartbeat=20) as ws:
                    await ws.send_json(
                        {
                            "jsonrpc": "2.0",
                            "id": 1,
                            "method": "logsSubscribe",
                            "params": [
                                {"mentions": [self._program_id]},
                                {"commitment": self._log_commitment},
                            ],
                        }
                    )
                    self._ws_connected = True
                    logger.info("Подписка на логи программы {program} активирована", program=self._program_id)
                    async for msg in ws:
                        if msg.type == aiohttp.WSMsgType.TEXT:
                            await self._handle_ws_payload(msg.data)
                        elif msg.type == aiohttp.WSMsgType.ERROR:
                            raise SolanaRpcError(f"WS ошибка: {ws.exception()}")
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                if self._stop_event.is_set():
                    break
                logger.warning(
                    "WS Solana отвалился: {error}, переподключение через {delay}s",
                    error=str(exc),
                    delay=self._ws_reconnect_delay,
                )
            finally:
                self._ws_connected = False
            if not self._stop_event.is_set():
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self._ws_reconnect_delay)
                except asyncio.TimeoutError:
                    pass

    async def _handle_ws_payload(self, raw: str) -> None:
        event = parse_log_notification(raw)
        if event is not None:
            await self._dispatch_event(event)

    async def _dispatch_event(self, event: LogEvent) -> None:
        # Обработчик может долго ждать getTransaction и реестр, чтение WS не блокируем.
        for callback in list(self._callbacks):
            task = asyncio.create_task(self._safe_call(callback, event), name=f"log-{event.signature[:8]}")
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _safe_call(self, callback: LogCallback, event: LogEvent) -> None:
        try:
            await callback(event)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Обработчик логов упал: {error}", error=exc)


def parse_log_notification(raw: str) -> LogEvent | None:
    """Разбирает сообщение logsNotification; остальное (ack подписки) игнорируется."""

    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.debug("Не удалось декодировать WS сообщение: {raw}", raw=raw[:200])
        return None
    if not isinstance(data, dict) or data.get("method") != "logsNotification":
        return None
    result = (data.get("params") or {}).get("result") or {}
    value = result.get("value") or {}
    signature = value.get("signature")
    if not signature:
        return None
    return LogEvent(
        signature=signature,
        logs=[line for line in value.get("logs") or [] if isinstance(line, str)],
        err=value.get("err"),
        slot=(result.get("context") or {}).get("slot"),
        raw=data,
    )


__all__ = [
    "ConfirmationError",
    "LogEvent",
    "SolanaRpcClient",
    "SolanaRpcError",
    "TOKEN_PROGRAM_ID",
    "TokenAccount",
    "parse_log_notification",
]
