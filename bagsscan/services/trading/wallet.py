"""Кошелёк агента: загрузка ключа и подпись транзакций обмена."""

from __future__ import annotations

import json

import base58
from solders.keypair import Keypair
from solders.transaction import VersionedTransaction


class WalletSigner:
    def __init__(self, keypair: Keypair) -> None:
        self._keypair = keypair

    @classmethod
    def from_secret(cls, secret: str) -> "WalletSigner":
        """Принимает base58 строку или JSON-массив из 64 байт."""

        value = secret.strip()
        if value.startswith("["):
            return cls(Keypair.from_bytes(bytes(json.loads(value))))
        return cls(Keypair.from_base58_string(value))

    @property
    def public_key(self) -> str:
        return str(self._keypair.pubkey())

    def sign_transaction(self, serialized: str) -> bytes:
        """Подписывает base58-транзакцию, полученную от bags.fm."""

        unsigned = VersionedTransaction.from_bytes(base58.b58decode(serialized))
        signed = VersionedTransaction(unsigned.message, [self._keypair])
        return bytes(signed)


__all__ = ["WalletSigner"]
