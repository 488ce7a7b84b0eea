"""Marks ledger schema baseline

Revision ID: 20260301_01
Revises: None
Create Date: 2026-03-01
"""
# pylint: disable=no-member,invalid-name,wrong-import-order

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "20260301_01"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _raw_amount(name: str) -> sa.Column:
    return sa.Column(name, sa.Numeric(78, 0), nullable=False, server_default=sa.text("0"))


def _decimal_value(name: str) -> sa.Column:
    return sa.Column(name, sa.Numeric(), nullable=False, server_default=sa.text("0"))


def upgrade() -> None:
    """Upgrade schema."""

    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    op.create_table(
        "balance_record",
        sa.Column("source_kind", sa.Text(), nullable=False),
        sa.Column("source_address", sa.Text(), nullable=False),
        sa.Column("user_address", sa.Text(), nullable=False),
        _raw_amount("raw_balance"),
        _decimal_value("balance_usd"),
        _decimal_value("accrued_marks"),
        _decimal_value("total_marks_earned"),
        _decimal_value("marks_per_day"),
        sa.Column("first_seen_at", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_updated", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.PrimaryKeyConstraint("source_kind", "source_address", "user_address", name="pk_balance_record"),
        sa.CheckConstraint(
            "source_kind in ('anchor_token', 'sail_token', 'pool_collateral', 'pool_leveraged')",
            name="ck_balance_record_source_kind",
        ),
        sa.CheckConstraint("raw_balance >= 0", name="ck_balance_record_raw_balance_non_negative"),
    )
    op.create_index("ix_balance_record_user_address", "balance_record", ["user_address"])

    op.create_table(
        "boost_window",
        sa.Column("source_kind", sa.Text(), nullable=False),
        sa.Column("source_address", sa.Text(), nullable=False),
        sa.Column("start_timestamp", sa.BigInteger(), nullable=False),
        sa.Column("end_timestamp", sa.BigInteger(), nullable=False),
        sa.Column("multiplier", sa.Numeric(), nullable=False),
        sa.PrimaryKeyConstraint("source_kind", "source_address", name="pk_boost_window"),
        sa.CheckConstraint("end_timestamp >= start_timestamp", name="ck_boost_window_bounds"),
        sa.CheckConstraint("multiplier >= 1", name="ck_boost_window_multiplier"),
    )

    op.create_table(
        "source_user_registry",
        sa.Column("registry_address", sa.Text(), nullable=False),
        sa.Column("user_address", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("registry_address", "user_address", name="pk_source_user_registry"),
    )

    op.create_table(
        "campaign_position",
        sa.Column("campaign_address", sa.Text(), nullable=False),
        sa.Column("user_address", sa.Text(), nullable=False),
        _raw_amount("total_deposited"),
        _decimal_value("total_deposited_usd"),
        _raw_amount("current_deposit"),
        _decimal_value("current_deposit_usd"),
        _decimal_value("net_deposit_usd"),
        _decimal_value("current_marks"),
        _decimal_value("total_marks_earned"),
        _decimal_value("total_marks_forfeited"),
        _decimal_value("bonus_marks"),
        _decimal_value("early_bonus_marks"),
        sa.Column("qualifies_for_early_bonus", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _raw_amount("early_bonus_eligible_deposit"),
        _decimal_value("early_bonus_eligible_deposit_usd"),
        _decimal_value("marks_per_day"),
        sa.Column("genesis_start_date", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("genesis_end_date", sa.BigInteger(), nullable=True),
        sa.Column("genesis_ended", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("last_updated", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.PrimaryKeyConstraint("campaign_address", "user_address", name="pk_campaign_position"),
    )
    op.create_index("ix_campaign_position_user_address", "campaign_position", ["user_address"])

    op.create_table(
        "market_bonus_status",
        sa.Column("campaign_address", sa.Text(), primary_key=True),
        sa.Column("threshold_amount", sa.Numeric(78, 0), nullable=False),
        _raw_amount("cumulative_deposits"),
        sa.Column("threshold_reached", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("threshold_reached_at", sa.BigInteger(), nullable=True),
    )

    op.create_table(
        "campaign_end",
        sa.Column("campaign_address", sa.Text(), primary_key=True),
        sa.Column("ended_at", sa.BigInteger(), nullable=False),
        sa.Column("block_number", sa.BigInteger(), nullable=False),
    )

    op.create_table(
        "cost_basis_lot",
        sa.Column("token_address", sa.Text(), nullable=False),
        sa.Column("user_address", sa.Text(), nullable=False),
        sa.Column("lot_index", sa.Integer(), nullable=False),
        _raw_amount("token_amount"),
        _raw_amount("original_amount"),
        _decimal_value("cost_usd"),
        _decimal_value("original_cost_usd"),
        _decimal_value("price_per_token"),
        sa.Column("event_type", sa.Text(), nullable=False),
        sa.Column("is_fully_redeemed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("acquired_at", sa.BigInteger(), nullable=False),
        sa.Column("block_number", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("token_address", "user_address", "lot_index", name="pk_cost_basis_lot"),
        sa.CheckConstraint("event_type in ('mint', 'genesis')", name="ck_cost_basis_lot_event_type"),
        sa.CheckConstraint("token_amount <= original_amount", name="ck_cost_basis_lot_amount_bound"),
    )

    op.create_table(
        "sail_position",
        sa.Column("token_address", sa.Text(), nullable=False),
        sa.Column("user_address", sa.Text(), nullable=False),
        _raw_amount("balance"),
        _decimal_value("total_cost_basis_usd"),
        _decimal_value("average_cost_per_token"),
        _decimal_value("realized_pnl_usd"),
        _raw_amount("total_tokens_bought"),
        _raw_amount("total_tokens_sold"),
        _decimal_value("total_spent_usd"),
        _decimal_value("total_received_usd"),
        sa.Column("first_acquired_at", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_updated", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.PrimaryKeyConstraint("token_address", "user_address", name="pk_sail_position"),
    )
    op.create_index("ix_sail_position_user_address", "sail_position", ["user_address"])

    op.create_table(
        "marks_event",
        sa.Column("event_id", sa.Text(), primary_key=True),
        sa.Column("user_address", sa.Text(), nullable=False),
        sa.Column("source_kind", sa.Text(), nullable=False),
        sa.Column("source_address", sa.Text(), nullable=False),
        sa.Column("amount", sa.Numeric(), nullable=False),
        sa.Column("event_timestamp", sa.BigInteger(), nullable=False),
        sa.Column("block_number", sa.BigInteger(), nullable=False),
    )
    op.create_index(
        "ix_marks_event_user_timestamp",
        "marks_event",
        ["user_address", sa.text("event_timestamp desc")],
    )

    op.create_table(
        "price_point",
        sa.Column("block_number", sa.BigInteger(), nullable=False),
        sa.Column("log_index", sa.Integer(), nullable=False),
        sa.Column("token_address", sa.Text(), nullable=False),
        sa.Column("minter_address", sa.Text(), nullable=False),
        sa.Column("event_type", sa.Text(), nullable=False),
        sa.Column("event_timestamp", sa.BigInteger(), nullable=False),
        sa.Column("token_price_usd", sa.Numeric(), nullable=False),
        sa.Column("collateral_price_usd", sa.Numeric(), nullable=False),
        sa.Column("wrapped_rate", sa.Numeric(), nullable=False),
        sa.Column("collateral_amount", sa.Numeric(78, 0), nullable=False),
        sa.Column("token_amount", sa.Numeric(78, 0), nullable=False),
        sa.Column("implied_token_price", sa.Numeric(), nullable=False),
        sa.PrimaryKeyConstraint("block_number", "log_index", name="pk_price_point"),
    )
    op.create_index("ix_price_point_token_timestamp", "price_point", ["token_address", "event_timestamp"])

    op.create_table(
        "hourly_price_snapshot",
        sa.Column("token_address", sa.Text(), nullable=False),
        sa.Column("hour_timestamp", sa.BigInteger(), nullable=False),
        sa.Column("minter_address", sa.Text(), nullable=False),
        sa.Column("block_number", sa.BigInteger(), nullable=False),
        sa.Column("token_price_usd", sa.Numeric(), nullable=False),
        sa.Column("collateral_price_usd", sa.Numeric(), nullable=False),
        sa.Column("wrapped_rate", sa.Numeric(), nullable=False),
        sa.PrimaryKeyConstraint("token_address", "hour_timestamp", name="pk_hourly_price_snapshot"),
        sa.CheckConstraint("hour_timestamp % 3600 = 0", name="ck_hourly_price_snapshot_hour_aligned"),
    )

    op.create_table(
        "ledger_tracker",
        sa.Column("tracker_name", sa.Text(), primary_key=True),
        sa.Column("last_run_at", sa.BigInteger(), nullable=False),
    )

    op.create_table(
        "event_receipt",
        sa.Column("block_number", sa.BigInteger(), nullable=False),
        sa.Column("log_index", sa.Integer(), nullable=False),
        sa.Column("event_kind", sa.Text(), nullable=False),
        sa.Column("applied_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("block_number", "log_index", "event_kind", name="pk_event_receipt"),
    )

    op.create_table(
        "replay_run",
        sa.Column("replay_run_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("run_type", sa.Text(), nullable=False, server_default=sa.text("'manual'")),
        sa.Column("batch_path", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("started_at_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ended_at_utc", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_ms", sa.BigInteger(), nullable=True),
        sa.Column("error_code", sa.Text(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("diagnostics", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("created_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("status in ('started', 'success', 'failed')", name="ck_replay_run_status"),
        sa.CheckConstraint("run_type in ('manual', 'scheduled')", name="ck_replay_run_run_type"),
    )
    op.create_index(
        "ix_replay_run_started_replay_run",
        "replay_run",
        [sa.text("started_at_utc desc"), sa.text("replay_run_id desc")],
    )
    op.create_index("ix_replay_run_status_started", "replay_run", ["status", sa.text("started_at_utc desc")])


def downgrade() -> None:
    """Downgrade schema."""

    op.drop_index("ix_replay_run_status_started", table_name="replay_run")
    op.drop_index("ix_replay_run_started_replay_run", table_name="replay_run")
    op.drop_table("replay_run")

    op.drop_table("event_receipt")
    op.drop_table("ledger_tracker")
    op.drop_table("hourly_price_snapshot")

    op.drop_index("ix_price_point_token_timestamp", table_name="price_point")
    op.drop_table("price_point")

    op.drop_index("ix_marks_event_user_timestamp", table_name="marks_event")
    op.drop_table("marks_event")

    op.drop_index("ix_sail_position_user_address", table_name="sail_position")
    op.drop_table("sail_position")

    op.drop_table("cost_basis_lot")
    op.drop_table("campaign_end")
    op.drop_table("market_bonus_status")

    op.drop_index("ix_campaign_position_user_address", table_name="campaign_position")
    op.drop_table("campaign_position")

    op.drop_table("source_user_registry")
    op.drop_table("boost_window")

    op.drop_index("ix_balance_record_user_address", table_name="balance_record")
    op.drop_table("balance_record")
