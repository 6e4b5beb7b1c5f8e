"""Клиент публичного API bags.fm: реестр создателей и торговые котировки.

Ответы API приходят в конверте {success, response, error}; всё, что ниже
этого слоя, работает с типизированными структурами (Creator, SwapQuote),
а отсутствующие/null поля превращаются в нули и пустые строки.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import aiohttp
from loguru import logger

from bagsscan.services.core.rate_limiter import RateLimitedClient
from config.settings import BagsApiSettings

LAMPORTS_PER_SOL = 1_000_000_000


class BagsApiError(RuntimeError):
    """Ошибка bags.fm API (HTTP статус или success=false)."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


@dataclass(slots=True)
class Creator:
    wallet: str
    is_creator: bool = False
    username: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "Creator | None":
        if not isinstance(payload, dict):
            return None
        wallet = payload.get("wallet") or payload.get("walletAddress")
        if not wallet:
            return None
        return cls(
            wallet=str(wallet),
            is_creator=bool(payload.get("isCreator")),
            username=payload.get("username") or payload.get("providerUsername"),
        )


@dataclass(slots=True)
class SwapQuote:
    """Котировка обмена; raw отправляется обратно при создании транзакции."""

    input_mint: str
    output_mint: str
    in_amount: int
    out_amount: int
    min_out_amount: int
    price_impact_pct: float
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Any, *, input_mint: str, output_mint: str) -> "SwapQuote":
        data = payload if isinstance(payload, dict) else {}
        return cls(
            input_mint=str(data.get("inputMint") or input_mint),
            output_mint=str(data.get("outputMint") or output_mint),
            in_amount=_as_int(data.get("inAmount")),
            out_amount=_as_int(data.get("outAmount")),
            min_out_amount=_as_int(data.get("minOutAmount")),
            price_impact_pct=_as_float(data.get("priceImpactPct")),
            raw=data,
        )

    @property
    def rate(self) -> float:
        """outAmount / inAmount, приведённое к нативным единицам (на 1 SOL)."""

        if self.in_amount <= 0:
            return 0.0
        return self.out_amount / self.in_amount * LAMPORTS_PER_SOL


def pick_creator(creators: list[Creator]) -> Creator | None:
    """Кошелёк с флагом isCreator, иначе первый в списке."""

    for creator in creators:
        if creator.is_creator:
            return creator
    return creators[0] if creators else None


class BagsClient:
    """aiohttp-клиент bags.fm с x-api-key и общим лимитером."""

    def __init__(self, settings: BagsApiSettings, limiter: RateLimitedClient) -> None:
        self._base_url = str(settings.api_url).rstrip("/")
        self._api_key = settings.api_key.get_secret_value() if settings.api_key else None
        self._timeout = settings.request_timeout
        self._limiter = limiter
        self._session: aiohttp.ClientSession | None = None

    @property
    def has_api_key(self) -> bool:
        return self._api_key is not None

    async def start(self) -> None:
        if self._session is None or self._session.closed:
            headers = {"x-api-key": self._api_key} if self._api_key else {}
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers=headers,
            )

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    async def get_creators(self, mint: str) -> list[Creator]:
        """Создатели токена по реестру bags.fm (пустой список: токен не из bags)."""

        payload = await self._limiter.call(
            lambda: self._request("GET", "/token-launch/creator/v3", params={"tokenMint": mint})
        )
        items = payload if isinstance(payload, list) else []
        return [creator for creator in map(Creator.from_payload, items) if creator is not None]

    async def get_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        *,
        slippage_mode: str = "auto",
    ) -> SwapQuote:
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(amount),
            "slippageMode": slippage_mode,
        }
        payload = await self._limiter.call(lambda: self._request("GET", "/trade/quote", params=params))
        return SwapQuote.from_payload(payload, input_mint=input_mint, output_mint=output_mint)

    async def create_swap_transaction(self, quote: SwapQuote, user_public_key: str) -> str:
        """Неподписанная транзакция обмена (base58, как её отдаёт API)."""

        body = {"quoteResponse": quote.raw, "userPublicKey": user_public_key}
        payload = await self._limiter.call(lambda: self._request("POST", "/trade/swap", json=body))
        tx = payload.get("swapTransaction") if isinstance(payload, dict) else None
        if not tx:
            raise BagsApiError("bags.fm не вернул swapTransaction")
        return str(tx)

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        if self._session is None:
            raise BagsApiError("HTTP-сессия не инициализирована, вызовите start()")
        url = f"{self._base_url}{path}"
        async with self._session.request(method, url, **kwargs) as resp:
            try:
                data = await resp.json(content_type=None)
            except ValueError:
                data = None
            if resp.status >= 400:
                message = _error_message(data) or resp.reason
                raise BagsApiError(f"bags.fm {path}: HTTP {resp.status} {message}", status=resp.status)
        if not isinstance(data, dict):
            raise BagsApiError(f"bags.fm {path}: ответ не JSON", status=resp.status)
        if not data.get("success", False):
            message = _error_message(data) or "success=false"
            logger.debug("bags.fm {path} вернул ошибку: {message}", path=path, message=message)
            raise BagsApiError(f"bags.fm {path}: {message}", status=resp.status)
        return data.get("response")


def _error_message(data: Any) -> str | None:
    if isinstance(data, dict):
        error = data.get("error") or data.get("message")
        return str(error) if error else None
    return None


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


__all__ = [
    "BagsApiError",
    "BagsClient",
    "Creator",
    "LAMPORTS_PER_SOL",
    "SwapQuote",
    "pick_creator",
]
