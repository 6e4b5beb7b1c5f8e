"""Отслеживаемые токены (каталог сканера)."""

from __future__ import annotations

from typing import Optional

from sqlmodel import Field, SQLModel

UNKNOWN_NAME = "Unknown"
UNKNOWN_SYMBOL = "UNKNOWN"


class Asset(SQLModel, table=True):
    __tablename__ = "assets"

    id: Optional[int] = Field(default=None, primary_key=True)
    address: str = Field(max_length=64, unique=True, index=True)
    name: str = Field(default=UNKNOWN_NAME, max_length=128)
    symbol: str = Field(default=UNKNOWN_SYMBOL, max_length=32)
    image_url: Optional[str] = Field(default=None)
    creator_address: str = Field(default="unknown", max_length=64)
    created_at: int = Field(index=True)
    first_seen_at: int = Field(index=True)
    last_updated_at: int


__all__ = ["Asset", "UNKNOWN_NAME", "UNKNOWN_SYMBOL"]
