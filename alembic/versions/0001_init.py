from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "trades",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("token_name", sa.String(64)),
        sa.Column("token_address", sa.String(64), index=True),
        sa.Column("amount", sa.Float, default=0.0),
        sa.Column("profit", sa.Float, default=0.0),
        sa.Column("profit_percent", sa.Float, default=0.0),
        sa.Column("status", sa.String(16), default="pending", index=True),
        sa.Column("tx_hash", sa.String(100), index=True),
        sa.Column("entry_price", sa.Float),
        sa.Column("exit_price", sa.Float),
        sa.Column("slippage", sa.Float),
        sa.Column("error", sa.Text),
        sa.Column("created_at", sa.DateTime, nullable=False, index=True),
    )
    op.create_table(
        "watched_tokens",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("name", sa.String(64)),
        sa.Column("address", sa.String(64), unique=True, index=True),
        sa.Column("price", sa.Float, default=0.0),
        sa.Column("change_24h", sa.Float, default=0.0),
        sa.Column("liquidity", sa.Float, default=0.0),
        sa.Column("market_cap", sa.Float, default=0.0),
        sa.Column("holders", sa.Integer, default=0),
        sa.Column("is_eligible", sa.Boolean, default=False),
        sa.Column("added_at", sa.DateTime, nullable=False),
    )
    op.create_table(
        "alerts",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("type", sa.String(16), default="info"),
        sa.Column("title", sa.String(128)),
        sa.Column("message", sa.Text),
        sa.Column("is_read", sa.Boolean, default=False, index=True),
        sa.Column("created_at", sa.DateTime, nullable=False, index=True),
    )
    op.create_table(
        "bot_state",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("is_running", sa.Boolean, default=False),
        sa.Column("last_activity", sa.DateTime, nullable=False),
        sa.Column("config", sa.JSON, nullable=True),
    )


def downgrade():
    op.drop_table("bot_state")
    op.drop_table("alerts")
    op.drop_table("watched_tokens")
    op.drop_table("trades")
