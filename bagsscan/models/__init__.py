"""SQLModel сущности bagsscan."""

from .archived_asset import ArchiveReason, ArchivedAsset  # noqa: F401
from .asset import UNKNOWN_NAME, UNKNOWN_SYMBOL, Asset  # noqa: F401
from .base import now_ms  # noqa: F401
from .position import PositionStatus, TradingPosition  # noqa: F401
from .snapshot import Snapshot  # noqa: F401

__all__ = [
    "ArchiveReason",
    "ArchivedAsset",
    "Asset",
    "PositionStatus",
    "Snapshot",
    "TradingPosition",
    "UNKNOWN_NAME",
    "UNKNOWN_SYMBOL",
    "now_ms",
]
