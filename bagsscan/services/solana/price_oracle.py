"""Оракул цен и объёмов (DexScreener).

Любая проблема источника (HTTP ошибка, не-JSON, пустой список пар) означает
«нет данных»: возвращается пустой MarketData, исключение наружу не летит.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import aiohttp
from loguru import logger

from bagsscan.services.core.rate_limiter import RateLimitedClient
from bagsscan.utils.cache import cached_call
from config.settings import OracleSettings


@dataclass(slots=True)
class MarketData:
    price_usd: float = 0.0
    volume_24h: float = 0.0
    pair_count: int = 0

    @property
    def has_price(self) -> bool:
        return self.price_usd > 0


def parse_market_data(data: Any) -> MarketData:
    """Цена берётся из первой пары, объём суммируется по всем парам."""

    pairs = data.get("pairs") if isinstance(data, dict) else None
    if not isinstance(pairs, list) or not pairs:
        return MarketData()
    pairs = [pair for pair in pairs if isinstance(pair, dict)]
    if not pairs:
        return MarketData()
    volume = 0.0
    for pair in pairs:
        volume += _as_float((pair.get("volume") or {}).get("h24"))
    return MarketData(
        price_usd=_as_float(pairs[0].get("priceUsd")),
        volume_24h=volume,
        pair_count=len(pairs),
    )


class PriceOracle:
    """get_market_data(mint) с коротким кешем aiocache."""

    def __init__(self, settings: OracleSettings, limiter: RateLimitedClient) -> None:
        self._base_url = str(settings.base_url)
        self._timeout = settings.request_timeout
        self._cache_ttl = settings.cache_ttl_sec
        self._limiter = limiter
        self._session: aiohttp.ClientSession | None = None

    async def start(self) -> None:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self._timeout))

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    async def get_market_data(self, mint: str) -> MarketData:
        return await cached_call(f"oracle:{mint}", self._cache_ttl, lambda: self._fetch_safe(mint))

    async def _fetch_safe(self, mint: str) -> MarketData:
        try:
            data = await self._limiter.call(lambda: self._fetch(mint))
        except Exception as exc:  # noqa: BLE001
            logger.debug("Оракул: нет данных по {mint}: {error}", mint=mint, error=exc)
            return MarketData()
        return parse_market_data(data)

    async def _fetch(self, mint: str) -> Any:
        if self._session is None:
            await self.start()
        assert self._session is not None
        url = f"{self._base_url.rstrip('/')}/{mint}"
        async with self._session.get(url) as resp:
            if resp.status == 429:
                raise aiohttp.ClientResponseError(
                    resp.request_info, resp.history, status=resp.status, message="Too Many Requests"
                )
            if resp.status != 200:
                logger.debug("Оракул ответил HTTP {status} для {mint}", status=resp.status, mint=mint)
                return None
            if "json" not in (resp.content_type or ""):
                logger.debug("Оракул вернул не-JSON ({ctype}) для {mint}", ctype=resp.content_type, mint=mint)
                return None
            return await resp.json()


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


__all__ = ["MarketData", "PriceOracle", "parse_market_data"]
