"""Репозитории для работы с БД."""

from .archive_repo import get_archived, insert_archived, is_archived, list_archived
from .asset_repo import (
    asset_exists,
    delete_asset,
    get_asset,
    insert_asset,
    list_addresses,
    list_assets,
    list_seen_between,
    list_unresolved_assets,
    touch_asset,
    update_asset_metadata,
)
from .position_repo import (
    close_position,
    count_active_positions,
    delete_closed_positions,
    get_active_position,
    get_position,
    list_active_positions,
    list_positions,
    mark_partial,
    open_position_if_absent,
    update_position_price,
)
from .snapshot_repo import (
    closest_snapshot,
    count_snapshots,
    delete_snapshots,
    first_snapshot,
    latest_snapshot,
    record_snapshot,
)

__all__ = [
    "asset_exists",
    "close_position",
    "closest_snapshot",
    "count_active_positions",
    "count_snapshots",
    "delete_asset",
    "delete_closed_positions",
    "delete_snapshots",
    "first_snapshot",
    "get_active_position",
    "get_archived",
    "get_asset",
    "get_position",
    "insert_archived",
    "insert_asset",
    "is_archived",
    "latest_snapshot",
    "list_active_positions",
    "list_addresses",
    "list_archived",
    "list_assets",
    "list_positions",
    "list_seen_between",
    "list_unresolved_assets",
    "mark_partial",
    "open_position_if_absent",
    "record_snapshot",
    "touch_asset",
    "update_asset_metadata",
]
