"""initial schema: assets, snapshots, archived_assets, trading_positions

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18 00:00:00
"""
from alembic import op
import sqlalchemy as sa
import sqlmodel

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "assets",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("address", sqlmodel.AutoString(length=64), nullable=False),
        sa.Column("name", sqlmodel.AutoString(length=128), nullable=False),
        sa.Column("symbol", sqlmodel.AutoString(length=32), nullable=False),
        sa.Column("image_url", sqlmodel.AutoString(), nullable=True),
        sa.Column("creator_address", sqlmodel.AutoString(length=64), nullable=False),
        sa.Column("created_at", sa.Integer(), nullable=False),
        sa.Column("first_seen_at", sa.Integer(), nullable=False),
        sa.Column("last_updated_at", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_assets_address", "assets", ["address"], unique=True)
    op.create_index("ix_assets_created_at", "assets", ["created_at"])
    op.create_index("ix_assets_first_seen_at", "assets", ["first_seen_at"])

    op.create_table(
        "snapshots",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("asset_address", sqlmodel.AutoString(length=64), nullable=False),
        sa.Column("timestamp", sa.Integer(), nullable=False),
        sa.Column("market_cap", sa.Float(), nullable=False),
        sa.Column("holder_count", sa.Integer(), nullable=False),
        sa.Column("price_usd", sa.Float(), nullable=False),
        sa.Column("volume_24h", sa.Float(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_snapshots_asset_address", "snapshots", ["asset_address"])
    op.create_index("ix_snapshots_timestamp", "snapshots", ["timestamp"])

    op.create_table(
        "archived_assets",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("address", sqlmodel.AutoString(length=64), nullable=False),
        sa.Column("name", sqlmodel.AutoString(length=128), nullable=False),
        sa.Column("symbol", sqlmodel.AutoString(length=32), nullable=False),
        sa.Column("image_url", sqlmodel.AutoString(), nullable=True),
        sa.Column("creator_address", sqlmodel.AutoString(length=64), nullable=False),
        sa.Column("created_at", sa.Integer(), nullable=False),
        sa.Column("first_seen_at", sa.Integer(), nullable=False),
        sa.Column("archived_at", sa.Integer(), nullable=False),
        sa.Column("reason", sqlmodel.AutoString(), nullable=False),
        sa.Column("final_market_cap", sa.Float(), nullable=True),
        sa.Column("final_holders", sa.Integer(), nullable=True),
        sa.Column("final_price", sa.Float(), nullable=True),
        sa.Column("final_volume", sa.Float(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_archived_assets_address", "archived_assets", ["address"], unique=True)
    op.create_index("ix_archived_assets_archived_at", "archived_assets", ["archived_at"])

    op.create_table(
        "trading_positions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("asset_address", sqlmodel.AutoString(length=64), nullable=False),
        sa.Column("active_key", sqlmodel.AutoString(length=64), nullable=True),
        sa.Column("token_name", sqlmodel.AutoString(length=128), nullable=False),
        sa.Column("token_symbol", sqlmodel.AutoString(length=32), nullable=False),
        sa.Column("entry_price", sa.Float(), nullable=False),
        sa.Column("entry_quote_rate", sa.Float(), nullable=False),
        sa.Column("entry_amount_sol", sa.Float(), nullable=False),
        sa.Column("entry_amount_tokens", sa.Integer(), nullable=False),
        sa.Column("entry_timestamp", sa.Integer(), nullable=False),
        sa.Column("entry_signature", sqlmodel.AutoString(length=128), nullable=True),
        sa.Column("current_price", sa.Float(), nullable=True),
        sa.Column("profit_percent", sa.Float(), nullable=True),
        sa.Column("status", sqlmodel.AutoString(), nullable=False),
        sa.Column("remaining_tokens", sa.Integer(), nullable=True),
        sa.Column("first_sell_price", sa.Float(), nullable=True),
        sa.Column("first_sell_timestamp", sa.Integer(), nullable=True),
        sa.Column("first_sell_signature", sqlmodel.AutoString(length=128), nullable=True),
        sa.Column("sell_price", sa.Float(), nullable=True),
        sa.Column("sell_timestamp", sa.Integer(), nullable=True),
        sa.Column("sell_signature", sqlmodel.AutoString(length=128), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("active_key"),
    )
    op.create_index("ix_trading_positions_asset_address", "trading_positions", ["asset_address"])
    op.create_index("ix_trading_positions_entry_timestamp", "trading_positions", ["entry_timestamp"])
    op.create_index("ix_trading_positions_status", "trading_positions", ["status"])


def downgrade() -> None:
    op.drop_table("trading_positions")
    op.drop_table("archived_assets")
    op.drop_table("snapshots")
    op.drop_table("assets")
