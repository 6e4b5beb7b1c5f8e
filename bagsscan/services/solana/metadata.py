"""Определение имени/символа/картинки токена.

Цепочка источников: DAS getAsset → прямой разбор аккаунта Metaplex Metadata
(PDA ["metadata", program, mint]) → плейсхолдер Unknown/UNKNOWN.
Сразу после запуска метаданные часто ещё не проиндексированы, поэтому
плейсхолдеры периодически перепроверяются реестром.
"""

from __future__ import annotations

import base64
import struct
from dataclasses import dataclass
from typing import Any

from loguru import logger
from solders.pubkey import Pubkey

from bagsscan.models import UNKNOWN_NAME, UNKNOWN_SYMBOL
from .rpc_client import SolanaRpcClient

METADATA_PROGRAM_ID = Pubkey.from_string("metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s")
# key(1) + update_authority(32) + mint(32)
_NAME_OFFSET = 65
_MIN_DATA_LEN = _NAME_OFFSET + 4
_PLACEHOLDERS = frozenset({"", UNKNOWN_NAME, UNKNOWN_SYMBOL})


@dataclass(slots=True)
class TokenMetadata:
    name: str
    symbol: str
    image_url: str | None = None
    source: str = "placeholder"

    @property
    def resolved(self) -> bool:
        return self.source != "placeholder"


def metadata_pda(mint: str) -> Pubkey:
    pda, _bump = Pubkey.find_program_address(
        [b"metadata", bytes(METADATA_PROGRAM_ID), bytes(Pubkey.from_string(mint))],
        METADATA_PROGRAM_ID,
    )
    return pda


def decode_metaplex_metadata(data: bytes) -> tuple[str, str] | None:
    """Достаёт name/symbol (borsh-строки) из сырых данных аккаунта Metadata."""

    if len(data) < _MIN_DATA_LEN:
        return None
    offset = _NAME_OFFSET
    try:
        (name_len,) = struct.unpack_from("<I", data, offset)
        offset += 4
        name = data[offset : offset + name_len]
        offset += name_len
        (symbol_len,) = struct.unpack_from("<I", data, offset)
        offset += 4
        symbol = data[offset : offset + symbol_len]
    except struct.error:
        return None
    return _clean(name), _clean(symbol)


def parse_das_asset(result: dict[str, Any] | None) -> TokenMetadata | None:
    """Разбирает ответ DAS getAsset; плейсхолдеры считаются отсутствием данных."""

    if not isinstance(result, dict):
        return None
    content = result.get("content") or {}
    meta = content.get("metadata") or {}
    name = str(meta.get("name") or "").strip()
    symbol = str(meta.get("symbol") or "").strip()
    if name in _PLACEHOLDERS or symbol in _PLACEHOLDERS:
        return None
    image = (content.get("links") or {}).get("image")
    if not image:
        files = content.get("files") or []
        if files and isinstance(files[0], dict):
            image = files[0].get("uri")
    return TokenMetadata(name=name, symbol=symbol, image_url=image or None, source="das")


class MetadataResolver:
    """DAS → Metaplex → плейсхолдер; ошибки источников не пробрасываются."""

    def __init__(self, rpc: SolanaRpcClient) -> None:
        self._rpc = rpc

    async def resolve(self, mint: str) -> TokenMetadata:
        metadata = await self._from_das(mint)
        if metadata is None:
            metadata = await self._from_metaplex(mint)
        if metadata is None:
            logger.debug("Метаданные {mint} пока недоступны, ставим плейсхолдер", mint=mint)
            return TokenMetadata(name=UNKNOWN_NAME, symbol=UNKNOWN_SYMBOL)
        return metadata

    async def _from_das(self, mint: str) -> TokenMetadata | None:
        try:
            result = await self._rpc.get_asset(mint)
        except Exception as exc:  # noqa: BLE001
            logger.debug("DAS getAsset {mint} не удался: {error}", mint=mint, error=exc)
            return None
        return parse_das_asset(result)

    async def _from_metaplex(self, mint: str) -> TokenMetadata | None:
        try:
            account = await self._rpc.get_account_info(str(metadata_pda(mint)))
        except Exception as exc:  # noqa: BLE001
            logger.debug("Metaplex metadata {mint} не прочитана: {error}", mint=mint, error=exc)
            return None
        data = _account_bytes(account)
        decoded = decode_metaplex_metadata(data) if data else None
        if decoded is None:
            return None
        name, symbol = decoded
        if name in _PLACEHOLDERS or symbol in _PLACEHOLDERS:
            return None
        return TokenMetadata(name=name, symbol=symbol, source="metaplex")


def _account_bytes(account: dict[str, Any] | None) -> bytes | None:
    if not account:
        return None
    data = account.get("data")
    if isinstance(data, list) and data and isinstance(data[0], str):
        try:
            return base64.b64decode(data[0])
        except ValueError:
            return None
    return None


def _clean(raw: bytes) -> str:
    return raw.decode("utf-8", errors="ignore").replace("\x00", "").strip()


__all__ = [
    "METADATA_PROGRAM_ID",
    "MetadataResolver",
    "TokenMetadata",
    "decode_metaplex_metadata",
    "metadata_pda",
    "parse_das_asset",
]
