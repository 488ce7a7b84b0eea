"""Typed interfaces for database-layer services.

All SQL access must remain in the db package and its submodules.
"""

from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from marks_ledger.domain import (
    BalanceRecord,
    BoostWindow,
    CampaignEndRecord,
    CampaignPosition,
    CostBasisLot,
    EventReceipt,
    HealthStatus,
    HourlyPriceSnapshot,
    MarketBonusStatus,
    MarksEvent,
    PricePoint,
    UserSailPosition,
)


class DatabaseHealthPort(Protocol):
    """Port definition for database connectivity verification."""

    def db_connection_label(self) -> str:
        """Return a stable label for the active database connection target.

        Returns:
            str: Database target label for diagnostics.

        Raises:
            RuntimeError: Raised when connection metadata is unavailable.
        """

    def db_check_health(self) -> HealthStatus:
        """Check database connectivity and return deterministic health payload.

        Returns:
            HealthStatus: Database health status payload.

        Raises:
            ConnectionError: Raised when database cannot be reached.
        """


class LedgerStorePort(Protocol):
    """Port definition for ledger record persistence.

    Every read and write issued inside one `db_transaction()` block belongs to
    the same transaction; leaving the block with an exception discards all of
    them.
    """

    def db_transaction(self) -> AbstractContextManager[None]:
        """Open one event-scoped transaction.

        Returns:
            AbstractContextManager[None]: Context manager committing on success.

        Raises:
            RuntimeError: Raised when the transaction cannot be opened or committed.
        """

    def db_get_balance_record(self, source_kind: str, source_address: str, user: str) -> BalanceRecord | None:
        """Fetch one balance record by its key."""

    def db_put_balance_record(self, record: BalanceRecord) -> None:
        """Insert or replace one balance record."""

    def db_list_balance_records(self, user: str) -> list[BalanceRecord]:
        """List every balance record of a user ordered by source kind and address."""

    def db_get_boost_window(self, source_kind: str, source_address: str) -> BoostWindow | None:
        """Fetch the boost window of one source."""

    def db_put_boost_window(self, window: BoostWindow) -> None:
        """Insert or replace the boost window of one source."""

    def db_registry_add_user(self, registry_address: str, user: str) -> None:
        """Add a user to the set registered under a source or campaign address."""

    def db_registry_list_users(self, registry_address: str) -> list[str]:
        """List users registered under an address in ascending order."""

    def db_get_campaign_position(self, campaign_address: str, user: str) -> CampaignPosition | None:
        """Fetch one campaign position by its key."""

    def db_put_campaign_position(self, position: CampaignPosition) -> None:
        """Insert or replace one campaign position."""

    def db_list_campaign_positions(self, user: str) -> list[CampaignPosition]:
        """List every campaign position of a user ordered by campaign address."""

    def db_get_bonus_status(self, campaign_address: str) -> MarketBonusStatus | None:
        """Fetch the early-bird status of one campaign."""

    def db_put_bonus_status(self, status: MarketBonusStatus) -> None:
        """Insert or replace the early-bird status of one campaign."""

    def db_get_campaign_end(self, campaign_address: str) -> CampaignEndRecord | None:
        """Fetch the end marker of one campaign."""

    def db_put_campaign_end(self, record: CampaignEndRecord) -> None:
        """Insert the end marker of one campaign."""

    def db_list_cost_basis_lots(self, token_address: str, user: str) -> list[CostBasisLot]:
        """List every lot of a position ordered by ascending lot index."""

    def db_put_cost_basis_lots(self, lots: list[CostBasisLot]) -> None:
        """Insert or replace lots keyed by `(token_address, user, lot_index)`."""

    def db_get_sail_position(self, token_address: str, user: str) -> UserSailPosition | None:
        """Fetch one leveraged-token position."""

    def db_put_sail_position(self, position: UserSailPosition) -> None:
        """Insert or replace one leveraged-token position."""

    def db_list_sail_positions(self, user: str) -> list[UserSailPosition]:
        """List every leveraged-token position of a user ordered by token address."""

    def db_put_marks_event(self, event: MarksEvent) -> None:
        """Insert one marks event, ignoring an existing id."""

    def db_list_marks_events(self, user: str, limit: int) -> list[MarksEvent]:
        """List the latest marks events of a user, newest first."""

    def db_put_price_point(self, point: PricePoint) -> None:
        """Insert one price point, ignoring an existing `(block_number, log_index)`."""

    def db_put_hourly_snapshot(self, snapshot: HourlyPriceSnapshot) -> None:
        """Insert one hourly snapshot, ignoring an existing `(token_address, hour_timestamp)`."""

    def db_get_tracker(self, tracker_name: str) -> int | None:
        """Fetch the `last_run_at` watermark of a named tracker."""

    def db_put_tracker(self, tracker_name: str, last_run_at: int) -> None:
        """Insert or replace the watermark of a named tracker."""

    def db_has_event_receipt(self, receipt: EventReceipt) -> bool:
        """Return whether an event with the same order key and kind was applied."""

    def db_put_event_receipt(self, receipt: EventReceipt) -> None:
        """Record that one event was applied."""


class ReplayRunAlreadyActiveError(RuntimeError):
    """Raised when a replay trigger is rejected because one run is already active."""


@dataclass(frozen=True)
class ReplayRunState:
    """Runtime lifecycle and outcome state for one replay run.

    Attributes:
        status: Run status (`started`, `success`, `failed`).
        started_at_utc: Run start timestamp in UTC.
        ended_at_utc: Optional run end timestamp in UTC.
        duration_ms: Optional run duration in milliseconds.
        error_code: Optional deterministic error code.
        error_message: Optional human-readable error message.
        diagnostics: Optional structured stage timeline.
    """

    status: str
    started_at_utc: datetime
    ended_at_utc: datetime | None
    duration_ms: int | None
    error_code: str | None
    error_message: str | None
    diagnostics: list[dict[str, Any]] | None


@dataclass(frozen=True)
class ReplayRunRecord:
    """Persistence model for one replay run row.

    Attributes:
        replay_run_id: Unique run identifier.
        run_type: Run trigger (`manual`, `scheduled`).
        batch_path: Event batch consumed by the run.
        state: Runtime lifecycle and outcome state values.
        created_at_utc: Persistence row creation timestamp in UTC.
    """

    replay_run_id: UUID
    run_type: str
    batch_path: str
    state: ReplayRunState
    created_at_utc: datetime


class ReplayRunRepositoryPort(Protocol):
    """Port definition for replay run lifecycle persistence."""

    def db_replay_run_create_started(self, run_type: str, batch_path: str) -> ReplayRunRecord:
        """Create one started run while enforcing the single-writer rule.

        Args:
            run_type: Trigger source (`manual`, `scheduled`).
            batch_path: Event batch consumed by the run.

        Returns:
            ReplayRunRecord: Newly created run.

        Raises:
            ReplayRunAlreadyActiveError: Raised when another run is active.
            RuntimeError: Raised when persistence fails.
        """

    def db_replay_run_finalize(
        self,
        replay_run_id: UUID,
        status: str,
        error_code: str | None,
        error_message: str | None,
        diagnostics: list[dict[str, Any]] | None,
    ) -> ReplayRunRecord:
        """Finalize one run with end timestamp, duration, and diagnostics.

        Raises:
            LookupError: Raised when run is not found.
            ValueError: Raised when final status is invalid.
            RuntimeError: Raised when persistence fails.
        """

    def db_replay_run_get_by_id(self, replay_run_id: UUID) -> ReplayRunRecord | None:
        """Fetch one run by id.

        Raises:
            RuntimeError: Raised when database read fails.
        """

    def db_replay_run_list(self, limit: int, offset: int) -> list[ReplayRunRecord]:
        """List runs newest first.

        Raises:
            ValueError: Raised when limit or offset are invalid.
            RuntimeError: Raised when database read fails.
        """
