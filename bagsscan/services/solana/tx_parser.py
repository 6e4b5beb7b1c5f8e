"""Разбор jsonParsed транзакций программы запуска.

Основной способ найти новый минт: инструкция spl-token initializeMint/initializeMint2
(во внешних и во внутренних инструкциях). Запасной: минты, которые есть
в postTokenBalances, но отсутствуют в preTokenBalances. Нативный SOL не считается.
"""

from __future__ import annotations

from typing import Any, Iterable, Iterator, Sequence

SOL_MINT = "So11111111111111111111111111111111111111112"
MINT_INIT_TYPES = frozenset({"initializeMint", "initializeMint2"})
TOKEN_PROGRAMS = frozenset({"spl-token", "spl-token-2022"})
BAGS_SUFFIX = "BAGS"


def is_launch_candidate(
    logs: Sequence[str],
    required: Sequence[str] = (),
    any_of: Sequence[str] = (),
) -> bool:
    """True, если в логах есть все required-маркеры или хотя бы один из any_of."""

    if not logs:
        return False
    text = "\n".join(logs)
    if required and all(marker in text for marker in required):
        return True
    return any(marker in text for marker in any_of)


def iter_instructions(tx: dict[str, Any]) -> Iterator[dict[str, Any]]:
    """Внешние инструкции, затем внутренние (CPI) в порядке следования."""

    message = (tx.get("transaction") or {}).get("message") or {}
    for ix in message.get("instructions") or []:
        if isinstance(ix, dict):
            yield ix
    for group in (tx.get("meta") or {}).get("innerInstructions") or []:
        for ix in (group or {}).get("instructions") or []:
            if isinstance(ix, dict):
                yield ix


def mints_from_instructions(tx: dict[str, Any]) -> list[str]:
    found: list[str] = []
    for ix in iter_instructions(tx):
        if ix.get("program") not in TOKEN_PROGRAMS:
            continue
        parsed = ix.get("parsed")
        if not isinstance(parsed, dict) or parsed.get("type") not in MINT_INIT_TYPES:
            continue
        mint = (parsed.get("info") or {}).get("mint")
        if mint and mint not in found:
            found.append(mint)
    return found


def mints_from_balance_diff(tx: dict[str, Any]) -> list[str]:
    meta = tx.get("meta") or {}
    before = {item.get("mint") for item in _balances(meta.get("preTokenBalances"))}
    found: list[str] = []
    for item in _balances(meta.get("postTokenBalances")):
        mint = item.get("mint")
        if mint and mint not in before and mint not in found:
            found.append(mint)
    return found


def extract_new_mints(tx: dict[str, Any] | None) -> list[str]:
    """Новые минты транзакции (без SOL), в порядке обнаружения."""

    if not tx:
        return []
    mints = [mint for mint in mints_from_instructions(tx) if mint != SOL_MINT]
    if mints:
        return mints
    return [mint for mint in mints_from_balance_diff(tx) if mint != SOL_MINT]


def fee_payer(tx: dict[str, Any] | None) -> str | None:
    """Первый ключ аккаунтов (плательщик комиссии): строка или {pubkey}."""

    if not tx:
        return None
    keys = ((tx.get("transaction") or {}).get("message") or {}).get("accountKeys") or []
    if not keys:
        return None
    first = keys[0]
    if isinstance(first, str):
        return first
    if isinstance(first, dict):
        return first.get("pubkey")
    return None


def has_bags_suffix(mint: str) -> bool:
    return mint.endswith(BAGS_SUFFIX)


def _balances(items: Iterable[Any] | None) -> Iterator[dict[str, Any]]:
    for item in items or []:
        if isinstance(item, dict):
            yield item


__all__ = [
    "BAGS_SUFFIX",
    "SOL_MINT",
    "extract_new_mints",
    "fee_payer",
    "has_bags_suffix",
    "is_launch_candidate",
    "iter_instructions",
    "mints_from_balance_diff",
    "mints_from_instructions",
]
