"""SQLAlchemy-backed ledger record store.

Every statement issued inside `db_transaction()` runs on the same connection
opened with `engine.begin()`, so one event's reads and writes commit or roll
back together. Statements issued outside a transaction block run in their own
short transaction.
"""

from __future__ import annotations

from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Iterator

from sqlalchemy import Connection, Engine, text
from sqlalchemy.exc import SQLAlchemyError

from marks_ledger.domain import (
    BalanceRecord,
    BoostWindow,
    CampaignEndRecord,
    CampaignPosition,
    CostBasisLot,
    EventReceipt,
    HourlyPriceSnapshot,
    MarketBonusStatus,
    MarksEvent,
    PricePoint,
    UserSailPosition,
)

from .interfaces import LedgerStorePort

_BALANCE_RECORD_COLUMNS = (
    "source_kind, source_address, user_address, raw_balance, balance_usd, accrued_marks, "
    "total_marks_earned, marks_per_day, first_seen_at, last_updated "
)
_CAMPAIGN_POSITION_COLUMNS = (
    "campaign_address, user_address, total_deposited, total_deposited_usd, current_deposit, current_deposit_usd, "
    "net_deposit_usd, current_marks, total_marks_earned, total_marks_forfeited, bonus_marks, early_bonus_marks, "
    "qualifies_for_early_bonus, early_bonus_eligible_deposit, early_bonus_eligible_deposit_usd, marks_per_day, "
    "genesis_start_date, genesis_end_date, genesis_ended, last_updated "
)
_COST_BASIS_LOT_COLUMNS = (
    "token_address, user_address, lot_index, token_amount, original_amount, cost_usd, original_cost_usd, "
    "price_per_token, event_type, is_fully_redeemed, acquired_at, block_number "
)
_SAIL_POSITION_COLUMNS = (
    "token_address, user_address, balance, total_cost_basis_usd, average_cost_per_token, realized_pnl_usd, "
    "total_tokens_bought, total_tokens_sold, total_spent_usd, total_received_usd, first_acquired_at, last_updated "
)


class SQLAlchemyLedgerStore(LedgerStorePort):
    """SQLAlchemy implementation of ledger record persistence."""

    def __init__(self, engine: Engine):
        """Initialize ledger store.

        Args:
            engine: SQLAlchemy engine used for all persistence operations.

        Raises:
            ValueError: Raised when engine is None.
        """

        if engine is None:
            raise ValueError("engine must not be None")
        self._engine = engine
        self._active_connection: Connection | None = None

    @contextmanager
    def db_transaction(self) -> Iterator[None]:
        """Open one event-scoped transaction; nested blocks join the outer one.

        Raises:
            RuntimeError: Raised when the transaction cannot be opened or committed.
        """

        if self._active_connection is not None:
            yield
            return

        try:
            with self._engine.begin() as connection:
                self._active_connection = connection
                try:
                    yield
                finally:
                    self._active_connection = None
        except SQLAlchemyError as error:
            raise RuntimeError("ledger transaction failed") from error

    def db_get_balance_record(self, source_kind: str, source_address: str, user: str) -> BalanceRecord | None:
        row = self._db_fetch_one(
            "SELECT " + _BALANCE_RECORD_COLUMNS + "FROM balance_record "
            "WHERE source_kind = :source_kind AND source_address = :source_address AND user_address = :user_address",
            {"source_kind": source_kind, "source_address": source_address, "user_address": user},
            failure_message="balance record read failed",
        )
        return None if row is None else _map_balance_record(row)

    def db_put_balance_record(self, record: BalanceRecord) -> None:
        self._db_execute(
            "INSERT INTO balance_record ("
            "source_kind, source_address, user_address, raw_balance, balance_usd, accrued_marks, "
            "total_marks_earned, marks_per_day, first_seen_at, last_updated"
            ") VALUES ("
            ":source_kind, :source_address, :user_address, :raw_balance, :balance_usd, :accrued_marks, "
            ":total_marks_earned, :marks_per_day, :first_seen_at, :last_updated"
            ") ON CONFLICT (source_kind, source_address, user_address) DO UPDATE SET "
            "raw_balance = EXCLUDED.raw_balance, "
            "balance_usd = EXCLUDED.balance_usd, "
            "accrued_marks = EXCLUDED.accrued_marks, "
            "total_marks_earned = EXCLUDED.total_marks_earned, "
            "marks_per_day = EXCLUDED.marks_per_day, "
            "first_seen_at = EXCLUDED.first_seen_at, "
            "last_updated = EXCLUDED.last_updated",
            {
                "source_kind": record.source_kind,
                "source_address": record.source_address,
                "user_address": record.user,
                "raw_balance": record.raw_balance,
                "balance_usd": record.balance_usd,
                "accrued_marks": record.accrued_marks,
                "total_marks_earned": record.total_marks_earned,
                "marks_per_day": record.marks_per_day,
                "first_seen_at": record.first_seen_at,
                "last_updated": record.last_updated,
            },
            failure_message="balance record upsert failed",
        )

    def db_list_balance_records(self, user: str) -> list[BalanceRecord]:
        rows = self._db_fetch_all(
            "SELECT " + _BALANCE_RECORD_COLUMNS + "FROM balance_record "
            "WHERE user_address = :user_address "
            "ORDER BY source_kind ASC, source_address ASC",
            {"user_address": user},
            failure_message="balance record list failed",
        )
        return [_map_balance_record(row) for row in rows]

    def db_get_boost_window(self, source_kind: str, source_address: str) -> BoostWindow | None:
        row = self._db_fetch_one(
            "SELECT source_kind, source_address, start_timestamp, end_timestamp, multiplier "
            "FROM boost_window "
            "WHERE source_kind = :source_kind AND source_address = :source_address",
            {"source_kind": source_kind, "source_address": source_address},
            failure_message="boost window read failed",
        )
        if row is None:
            return None
        return BoostWindow(
            source_kind=row["source_kind"],
            source_address=row["source_address"],
            start_timestamp=int(row["start_timestamp"]),
            end_timestamp=int(row["end_timestamp"]),
            multiplier=Decimal(row["multiplier"]),
        )

    def db_put_boost_window(self, window: BoostWindow) -> None:
        self._db_execute(
            "INSERT INTO boost_window (source_kind, source_address, start_timestamp, end_timestamp, multiplier) "
            "VALUES (:source_kind, :source_address, :start_timestamp, :end_timestamp, :multiplier) "
            "ON CONFLICT (source_kind, source_address) DO UPDATE SET "
            "start_timestamp = EXCLUDED.start_timestamp, "
            "end_timestamp = EXCLUDED.end_timestamp, "
            "multiplier = EXCLUDED.multiplier",
            {
                "source_kind": window.source_kind,
                "source_address": window.source_address,
                "start_timestamp": window.start_timestamp,
                "end_timestamp": window.end_timestamp,
                "multiplier": window.multiplier,
            },
            failure_message="boost window upsert failed",
        )

    def db_registry_add_user(self, registry_address: str, user: str) -> None:
        self._db_execute(
            "INSERT INTO source_user_registry (registry_address, user_address) "
            "VALUES (:registry_address, :user_address) "
            "ON CONFLICT (registry_address, user_address) DO NOTHING",
            {"registry_address": registry_address, "user_address": user},
            failure_message="user registry insert failed",
        )

    def db_registry_list_users(self, registry_address: str) -> list[str]:
        rows = self._db_fetch_all(
            "SELECT user_address FROM source_user_registry "
            "WHERE registry_address = :registry_address "
            "ORDER BY user_address ASC",
            {"registry_address": registry_address},
            failure_message="user registry list failed",
        )
        return [row["user_address"] for row in rows]

    def db_get_campaign_position(self, campaign_address: str, user: str) -> CampaignPosition | None:
        row = self._db_fetch_one(
            "SELECT " + _CAMPAIGN_POSITION_COLUMNS + "FROM campaign_position "
            "WHERE campaign_address = :campaign_address AND user_address = :user_address",
            {"campaign_address": campaign_address, "user_address": user},
            failure_message="campaign position read failed",
        )
        return None if row is None else _map_campaign_position(row)

    def db_put_campaign_position(self, position: CampaignPosition) -> None:
        self._db_execute(
            "INSERT INTO campaign_position ("
            "campaign_address, user_address, total_deposited, total_deposited_usd, current_deposit, "
            "current_deposit_usd, net_deposit_usd, current_marks, total_marks_earned, total_marks_forfeited, "
            "bonus_marks, early_bonus_marks, qualifies_for_early_bonus, early_bonus_eligible_deposit, "
            "early_bonus_eligible_deposit_usd, marks_per_day, "
            "genesis_start_date, genesis_end_date, genesis_ended, last_updated"
            ") VALUES ("
            ":campaign_address, :user_address, :total_deposited, :total_deposited_usd, :current_deposit, "
            ":current_deposit_usd, :net_deposit_usd, :current_marks, :total_marks_earned, :total_marks_forfeited, "
            ":bonus_marks, :early_bonus_marks, :qualifies_for_early_bonus, :early_bonus_eligible_deposit, "
            ":early_bonus_eligible_deposit_usd, :marks_per_day, "
            ":genesis_start_date, :genesis_end_date, :genesis_ended, :last_updated"
            ") ON CONFLICT (campaign_address, user_address) DO UPDATE SET "
            "total_deposited = EXCLUDED.total_deposited, "
            "total_deposited_usd = EXCLUDED.total_deposited_usd, "
            "current_deposit = EXCLUDED.current_deposit, "
            "current_deposit_usd = EXCLUDED.current_deposit_usd, "
            "net_deposit_usd = EXCLUDED.net_deposit_usd, "
            "current_marks = EXCLUDED.current_marks, "
            "total_marks_earned = EXCLUDED.total_marks_earned, "
            "total_marks_forfeited = EXCLUDED.total_marks_forfeited, "
            "bonus_marks = EXCLUDED.bonus_marks, "
            "early_bonus_marks = EXCLUDED.early_bonus_marks, "
            "qualifies_for_early_bonus = EXCLUDED.qualifies_for_early_bonus, "
            "early_bonus_eligible_deposit = EXCLUDED.early_bonus_eligible_deposit, "
            "early_bonus_eligible_deposit_usd = EXCLUDED.early_bonus_eligible_deposit_usd, "
            "marks_per_day = EXCLUDED.marks_per_day, "
            "genesis_start_date = EXCLUDED.genesis_start_date, "
            "genesis_end_date = EXCLUDED.genesis_end_date, "
            "genesis_ended = EXCLUDED.genesis_ended, "
            "last_updated = EXCLUDED.last_updated",
            {
                "campaign_address": position.campaign_address,
                "user_address": position.user,
                "total_deposited": position.total_deposited,
                "total_deposited_usd": position.total_deposited_usd,
                "current_deposit": position.current_deposit,
                "current_deposit_usd": position.current_deposit_usd,
                "net_deposit_usd": position.net_deposit_usd,
                "current_marks": position.current_marks,
                "total_marks_earned": position.total_marks_earned,
                "total_marks_forfeited": position.total_marks_forfeited,
                "bonus_marks": position.bonus_marks,
                "early_bonus_marks": position.early_bonus_marks,
                "qualifies_for_early_bonus": position.qualifies_for_early_bonus,
                "early_bonus_eligible_deposit": position.early_bonus_eligible_deposit,
                "early_bonus_eligible_deposit_usd": position.early_bonus_eligible_deposit_usd,
                "marks_per_day": position.marks_per_day,
                "genesis_start_date": position.genesis_start_date,
                "genesis_end_date": position.genesis_end_date,
                "genesis_ended": position.genesis_ended,
                "last_updated": position.last_updated,
            },
            failure_message="campaign position upsert failed",
        )

    def db_list_campaign_positions(self, user: str) -> list[CampaignPosition]:
        rows = self._db_fetch_all(
            "SELECT " + _CAMPAIGN_POSITION_COLUMNS + "FROM campaign_position "
            "WHERE user_address = :user_address "
            "ORDER BY campaign_address ASC",
            {"user_address": user},
            failure_message="campaign position list failed",
        )
        return [_map_campaign_position(row) for row in rows]

    def db_get_bonus_status(self, campaign_address: str) -> MarketBonusStatus | None:
        row = self._db_fetch_one(
            "SELECT campaign_address, threshold_amount, cumulative_deposits, threshold_reached, threshold_reached_at "
            "FROM market_bonus_status WHERE campaign_address = :campaign_address",
            {"campaign_address": campaign_address},
            failure_message="bonus status read failed",
        )
        if row is None:
            return None
        return MarketBonusStatus(
            campaign_address=row["campaign_address"],
            threshold_amount=int(row["threshold_amount"]),
            cumulative_deposits=int(row["cumulative_deposits"]),
            threshold_reached=bool(row["threshold_reached"]),
            threshold_reached_at=_optional_int(row["threshold_reached_at"]),
        )

    def db_put_bonus_status(self, status: MarketBonusStatus) -> None:
        self._db_execute(
            "INSERT INTO market_bonus_status ("
            "campaign_address, threshold_amount, cumulative_deposits, threshold_reached, threshold_reached_at"
            ") VALUES ("
            ":campaign_address, :threshold_amount, :cumulative_deposits, :threshold_reached, :threshold_reached_at"
            ") ON CONFLICT (campaign_address) DO UPDATE SET "
            "threshold_amount = EXCLUDED.threshold_amount, "
            "cumulative_deposits = EXCLUDED.cumulative_deposits, "
            "threshold_reached = EXCLUDED.threshold_reached, "
            "threshold_reached_at = EXCLUDED.threshold_reached_at",
            {
                "campaign_address": status.campaign_address,
                "threshold_amount": status.threshold_amount,
                "cumulative_deposits": status.cumulative_deposits,
                "threshold_reached": status.threshold_reached,
                "threshold_reached_at": status.threshold_reached_at,
            },
            failure_message="bonus status upsert failed",
        )

    def db_get_campaign_end(self, campaign_address: str) -> CampaignEndRecord | None:
        row = self._db_fetch_one(
            "SELECT campaign_address, ended_at, block_number FROM campaign_end WHERE campaign_address = :campaign_address",
            {"campaign_address": campaign_address},
            failure_message="campaign end read failed",
        )
        if row is None:
            return None
        return CampaignEndRecord(
            campaign_address=row["campaign_address"],
            ended_at=int(row["ended_at"]),
            block_number=int(row["block_number"]),
        )

    def db_put_campaign_end(self, record: CampaignEndRecord) -> None:
        self._db_execute(
            "INSERT INTO campaign_end (campaign_address, ended_at, block_number) "
            "VALUES (:campaign_address, :ended_at, :block_number) "
            "ON CONFLICT (campaign_address) DO NOTHING",
            {
                "campaign_address": record.campaign_address,
                "ended_at": record.ended_at,
                "block_number": record.block_number,
            },
            failure_message="campaign end insert failed",
        )

    def db_list_cost_basis_lots(self, token_address: str, user: str) -> list[CostBasisLot]:
        rows = self._db_fetch_all(
            "SELECT " + _COST_BASIS_LOT_COLUMNS + "FROM cost_basis_lot "
            "WHERE token_address = :token_address AND user_address = :user_address "
            "ORDER BY lot_index ASC",
            {"token_address": token_address, "user_address": user},
            failure_message="cost basis lot list failed",
        )
        return [
            CostBasisLot(
                token_address=row["token_address"],
                user=row["user_address"],
                lot_index=int(row["lot_index"]),
                token_amount=int(row["token_amount"]),
                original_amount=int(row["original_amount"]),
                cost_usd=Decimal(row["cost_usd"]),
                original_cost_usd=Decimal(row["original_cost_usd"]),
                price_per_token=Decimal(row["price_per_token"]),
                event_type=row["event_type"],
                is_fully_redeemed=bool(row["is_fully_redeemed"]),
                acquired_at=int(row["acquired_at"]),
                block_number=int(row["block_number"]),
            )
            for row in rows
        ]

    def db_put_cost_basis_lots(self, lots: list[CostBasisLot]) -> None:
        if not lots:
            return
        self._db_execute(
            "INSERT INTO cost_basis_lot ("
            "token_address, user_address, lot_index, token_amount, original_amount, cost_usd, original_cost_usd, "
            "price_per_token, event_type, is_fully_redeemed, acquired_at, block_number"
            ") VALUES ("
            ":token_address, :user_address, :lot_index, :token_amount, :original_amount, :cost_usd, :original_cost_usd, "
            ":price_per_token, :event_type, :is_fully_redeemed, :acquired_at, :block_number"
            ") ON CONFLICT (token_address, user_address, lot_index) DO UPDATE SET "
            "token_amount = EXCLUDED.token_amount, "
            "cost_usd = EXCLUDED.cost_usd, "
            "is_fully_redeemed = EXCLUDED.is_fully_redeemed",
            [
                {
                    "token_address": lot.token_address,
                    "user_address": lot.user,
                    "lot_index": lot.lot_index,
                    "token_amount": lot.token_amount,
                    "original_amount": lot.original_amount,
                    "cost_usd": lot.cost_usd,
                    "original_cost_usd": lot.original_cost_usd,
                    "price_per_token": lot.price_per_token,
                    "event_type": lot.event_type,
                    "is_fully_redeemed": lot.is_fully_redeemed,
                    "acquired_at": lot.acquired_at,
                    "block_number": lot.block_number,
                }
                for lot in lots
            ],
            failure_message="cost basis lot upsert failed",
        )

    def db_get_sail_position(self, token_address: str, user: str) -> UserSailPosition | None:
        row = self._db_fetch_one(
            "SELECT " + _SAIL_POSITION_COLUMNS + "FROM sail_position "
            "WHERE token_address = :token_address AND user_address = :user_address",
            {"token_address": token_address, "user_address": user},
            failure_message="sail position read failed",
        )
        return None if row is None else _map_sail_position(row)

    def db_put_sail_position(self, position: UserSailPosition) -> None:
        self._db_execute(
            "INSERT INTO sail_position ("
            "token_address, user_address, balance, total_cost_basis_usd, average_cost_per_token, realized_pnl_usd, "
            "total_tokens_bought, total_tokens_sold, total_spent_usd, total_received_usd, first_acquired_at, last_updated"
            ") VALUES ("
            ":token_address, :user_address, :balance, :total_cost_basis_usd, :average_cost_per_token, :realized_pnl_usd, "
            ":total_tokens_bought, :total_tokens_sold, :total_spent_usd, :total_received_usd, :first_acquired_at, "
            ":last_updated"
            ") ON CONFLICT (token_address, user_address) DO UPDATE SET "
            "balance = EXCLUDED.balance, "
            "total_cost_basis_usd = EXCLUDED.total_cost_basis_usd, "
            "average_cost_per_token = EXCLUDED.average_cost_per_token, "
            "realized_pnl_usd = EXCLUDED.realized_pnl_usd, "
            "total_tokens_bought = EXCLUDED.total_tokens_bought, "
            "total_tokens_sold = EXCLUDED.total_tokens_sold, "
            "total_spent_usd = EXCLUDED.total_spent_usd, "
            "total_received_usd = EXCLUDED.total_received_usd, "
            "first_acquired_at = EXCLUDED.first_acquired_at, "
            "last_updated = EXCLUDED.last_updated",
            {
                "token_address": position.token_address,
                "user_address": position.user,
                "balance": position.balance,
                "total_cost_basis_usd": position.total_cost_basis_usd,
                "average_cost_per_token": position.average_cost_per_token,
                "realized_pnl_usd": position.realized_pnl_usd,
                "total_tokens_bought": position.total_tokens_bought,
                "total_tokens_sold": position.total_tokens_sold,
                "total_spent_usd": position.total_spent_usd,
                "total_received_usd": position.total_received_usd,
                "first_acquired_at": position.first_acquired_at,
                "last_updated": position.last_updated,
            },
            failure_message="sail position upsert failed",
        )

    def db_list_sail_positions(self, user: str) -> list[UserSailPosition]:
        rows = self._db_fetch_all(
            "SELECT " + _SAIL_POSITION_COLUMNS + "FROM sail_position "
            "WHERE user_address = :user_address "
            "ORDER BY token_address ASC",
            {"user_address": user},
            failure_message="sail position list failed",
        )
        return [_map_sail_position(row) for row in rows]

    def db_put_marks_event(self, event: MarksEvent) -> None:
        self._db_execute(
            "INSERT INTO marks_event ("
            "event_id, user_address, source_kind, source_address, amount, event_timestamp, block_number"
            ") VALUES ("
            ":event_id, :user_address, :source_kind, :source_address, :amount, :event_timestamp, :block_number"
            ") ON CONFLICT (event_id) DO NOTHING",
            {
                "event_id": event.event_id,
                "user_address": event.user,
                "source_kind": event.source_kind,
                "source_address": event.source_address,
                "amount": event.amount,
                "event_timestamp": event.timestamp,
                "block_number": event.block_number,
            },
            failure_message="marks event insert failed",
        )

    def db_list_marks_events(self, user: str, limit: int) -> list[MarksEvent]:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        rows = self._db_fetch_all(
            "SELECT event_id, user_address, source_kind, source_address, amount, event_timestamp, block_number "
            "FROM marks_event "
            "WHERE user_address = :user_address "
            "ORDER BY event_timestamp DESC, event_id DESC "
            "LIMIT :limit",
            {"user_address": user, "limit": limit},
            failure_message="marks event list failed",
        )
        return [
            MarksEvent(
                event_id=row["event_id"],
                user=row["user_address"],
                source_kind=row["source_kind"],
                source_address=row["source_address"],
                amount=Decimal(row["amount"]),
                timestamp=int(row["event_timestamp"]),
                block_number=int(row["block_number"]),
            )
            for row in rows
        ]

    def db_put_price_point(self, point: PricePoint) -> None:
        self._db_execute(
            "INSERT INTO price_point ("
            "block_number, log_index, token_address, minter_address, event_type, event_timestamp, token_price_usd, "
            "collateral_price_usd, wrapped_rate, collateral_amount, token_amount, implied_token_price"
            ") VALUES ("
            ":block_number, :log_index, :token_address, :minter_address, :event_type, :event_timestamp, "
            ":token_price_usd, :collateral_price_usd, :wrapped_rate, :collateral_amount, :token_amount, "
            ":implied_token_price"
            ") ON CONFLICT (block_number, log_index) DO NOTHING",
            {
                "block_number": point.block_number,
                "log_index": point.log_index,
                "token_address": point.token_address,
                "minter_address": point.minter_address,
                "event_type": point.event_type,
                "event_timestamp": point.timestamp,
                "token_price_usd": point.token_price_usd,
                "collateral_price_usd": point.collateral_price_usd,
                "wrapped_rate": point.wrapped_rate,
                "collateral_amount": point.collateral_amount,
                "token_amount": point.token_amount,
                "implied_token_price": point.implied_token_price,
            },
            failure_message="price point insert failed",
        )

    def db_put_hourly_snapshot(self, snapshot: HourlyPriceSnapshot) -> None:
        self._db_execute(
            "INSERT INTO hourly_price_snapshot ("
            "token_address, hour_timestamp, minter_address, block_number, token_price_usd, collateral_price_usd, "
            "wrapped_rate"
            ") VALUES ("
            ":token_address, :hour_timestamp, :minter_address, :block_number, :token_price_usd, :collateral_price_usd, "
            ":wrapped_rate"
            ") ON CONFLICT (token_address, hour_timestamp) DO NOTHING",
            {
                "token_address": snapshot.token_address,
                "hour_timestamp": snapshot.hour_timestamp,
                "minter_address": snapshot.minter_address,
                "block_number": snapshot.block_number,
                "token_price_usd": snapshot.token_price_usd,
                "collateral_price_usd": snapshot.collateral_price_usd,
                "wrapped_rate": snapshot.wrapped_rate,
            },
            failure_message="hourly snapshot insert failed",
        )

    def db_get_tracker(self, tracker_name: str) -> int | None:
        row = self._db_fetch_one(
            "SELECT last_run_at FROM ledger_tracker WHERE tracker_name = :tracker_name",
            {"tracker_name": tracker_name},
            failure_message="tracker read failed",
        )
        return None if row is None else int(row["last_run_at"])

    def db_put_tracker(self, tracker_name: str, last_run_at: int) -> None:
        self._db_execute(
            "INSERT INTO ledger_tracker (tracker_name, last_run_at) VALUES (:tracker_name, :last_run_at) "
            "ON CONFLICT (tracker_name) DO UPDATE SET last_run_at = EXCLUDED.last_run_at",
            {"tracker_name": tracker_name, "last_run_at": last_run_at},
            failure_message="tracker upsert failed",
        )

    def db_has_event_receipt(self, receipt: EventReceipt) -> bool:
        row = self._db_fetch_one(
            "SELECT 1 AS present FROM event_receipt "
            "WHERE block_number = :block_number AND log_index = :log_index AND event_kind = :event_kind",
            {"block_number": receipt.block_number, "log_index": receipt.log_index, "event_kind": receipt.event_kind},
            failure_message="event receipt read failed",
        )
        return row is not None

    def db_put_event_receipt(self, receipt: EventReceipt) -> None:
        self._db_execute(
            "INSERT INTO event_receipt (block_number, log_index, event_kind) "
            "VALUES (:block_number, :log_index, :event_kind) "
            "ON CONFLICT (block_number, log_index, event_kind) DO NOTHING",
            {"block_number": receipt.block_number, "log_index": receipt.log_index, "event_kind": receipt.event_kind},
            failure_message="event receipt insert failed",
        )

    @contextmanager
    def _db_connection(self) -> Iterator[Connection]:
        if self._active_connection is not None:
            yield self._active_connection
            return
        with self._engine.begin() as connection:
            yield connection

    def _db_execute(self, statement: str, parameters: dict[str, Any] | list[dict[str, Any]], failure_message: str) -> None:
        try:
            with self._db_connection() as connection:
                connection.execute(text(statement), parameters)
        except SQLAlchemyError as error:
            raise RuntimeError(failure_message) from error

    def _db_fetch_one(self, statement: str, parameters: dict[str, Any], failure_message: str) -> Any:
        try:
            with self._db_connection() as connection:
                return connection.execute(text(statement), parameters).mappings().first()
        except SQLAlchemyError as error:
            raise RuntimeError(failure_message) from error

    def _db_fetch_all(self, statement: str, parameters: dict[str, Any], failure_message: str) -> list[Any]:
        try:
            with self._db_connection() as connection:
                return list(connection.execute(text(statement), parameters).mappings().all())
        except SQLAlchemyError as error:
            raise RuntimeError(failure_message) from error


def _optional_int(value: Any) -> int | None:
    return None if value is None else int(value)


def _map_balance_record(row: Any) -> BalanceRecord:
    return BalanceRecord(
        source_kind=row["source_kind"],
        source_address=row["source_address"],
        user=row["user_address"],
        raw_balance=int(row["raw_balance"]),
        balance_usd=Decimal(row["balance_usd"]),
        accrued_marks=Decimal(row["accrued_marks"]),
        total_marks_earned=Decimal(row["total_marks_earned"]),
        marks_per_day=Decimal(row["marks_per_day"]),
        first_seen_at=int(row["first_seen_at"]),
        last_updated=int(row["last_updated"]),
    )


def _map_campaign_position(row: Any) -> CampaignPosition:
    return CampaignPosition(
        campaign_address=row["campaign_address"],
        user=row["user_address"],
        total_deposited=int(row["total_deposited"]),
        total_deposited_usd=Decimal(row["total_deposited_usd"]),
        current_deposit=int(row["current_deposit"]),
        current_deposit_usd=Decimal(row["current_deposit_usd"]),
        net_deposit_usd=Decimal(row["net_deposit_usd"]),
        current_marks=Decimal(row["current_marks"]),
        total_marks_earned=Decimal(row["total_marks_earned"]),
        total_marks_forfeited=Decimal(row["total_marks_forfeited"]),
        bonus_marks=Decimal(row["bonus_marks"]),
        early_bonus_marks=Decimal(row["early_bonus_marks"]),
        qualifies_for_early_bonus=bool(row["qualifies_for_early_bonus"]),
        early_bonus_eligible_deposit=int(row["early_bonus_eligible_deposit"]),
        early_bonus_eligible_deposit_usd=Decimal(row["early_bonus_eligible_deposit_usd"]),
        marks_per_day=Decimal(row["marks_per_day"]),
        genesis_start_date=int(row["genesis_start_date"]),
        genesis_end_date=_optional_int(row["genesis_end_date"]),
        genesis_ended=bool(row["genesis_ended"]),
        last_updated=int(row["last_updated"]),
    )


def _map_sail_position(row: Any) -> UserSailPosition:
    return UserSailPosition(
        token_address=row["token_address"],
        user=row["user_address"],
        balance=int(row["balance"]),
        total_cost_basis_usd=Decimal(row["total_cost_basis_usd"]),
        average_cost_per_token=Decimal(row["average_cost_per_token"]),
        realized_pnl_usd=Decimal(row["realized_pnl_usd"]),
        total_tokens_bought=int(row["total_tokens_bought"]),
        total_tokens_sold=int(row["total_tokens_sold"]),
        total_spent_usd=Decimal(row["total_spent_usd"]),
        total_received_usd=Decimal(row["total_received_usd"]),
        first_acquired_at=int(row["first_acquired_at"]),
        last_updated=int(row["last_updated"]),
    )
