"""Process-local ledger store used by replay tests and dry runs."""

from __future__ import annotations

import copy
from contextlib import contextmanager
from typing import Iterator

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


class InMemoryLedgerStore(LedgerStorePort):
    """Dictionary-backed `LedgerStorePort` with snapshot rollback.

    `db_transaction()` snapshots every table on entry and restores the
    snapshot when the block raises, which gives the same all-or-nothing
    event semantics as the SQL store.
    """

    def __init__(self) -> None:
        self._balance_records: dict[tuple[str, str, str], BalanceRecord] = {}
        self._boost_windows: dict[tuple[str, str], BoostWindow] = {}
        self._registry: dict[str, set[str]] = {}
        self._campaign_positions: dict[tuple[str, str], CampaignPosition] = {}
        self._bonus_statuses: dict[str, MarketBonusStatus] = {}
        self._campaign_ends: dict[str, CampaignEndRecord] = {}
        self._cost_basis_lots: dict[tuple[str, str, int], CostBasisLot] = {}
        self._sail_positions: dict[tuple[str, str], UserSailPosition] = {}
        self._marks_events: dict[str, MarksEvent] = {}
        self._price_points: dict[tuple[int, int], PricePoint] = {}
        self._hourly_snapshots: dict[tuple[str, int], HourlyPriceSnapshot] = {}
        self._trackers: dict[str, int] = {}
        self._event_receipts: set[EventReceipt] = set()
        self._transaction_depth = 0

    @contextmanager
    def db_transaction(self) -> Iterator[None]:
        if self._transaction_depth > 0:
            yield
            return

        snapshot = copy.deepcopy(self.__dict__)
        self._transaction_depth = 1
        try:
            yield
        except BaseException:
            self.__dict__.update(snapshot)
            raise
        finally:
            self._transaction_depth = 0

    def db_get_balance_record(self, source_kind: str, source_address: str, user: str) -> BalanceRecord | None:
        return self._balance_records.get((source_kind, source_address, user))

    def db_put_balance_record(self, record: BalanceRecord) -> None:
        self._balance_records[(record.source_kind, record.source_address, record.user)] = record

    def db_list_balance_records(self, user: str) -> list[BalanceRecord]:
        return [self._balance_records[key] for key in sorted(self._balance_records) if key[2] == user]

    def db_get_boost_window(self, source_kind: str, source_address: str) -> BoostWindow | None:
        return self._boost_windows.get((source_kind, source_address))

    def db_put_boost_window(self, window: BoostWindow) -> None:
        self._boost_windows[(window.source_kind, window.source_address)] = window

    def db_registry_add_user(self, registry_address: str, user: str) -> None:
        self._registry.setdefault(registry_address, set()).add(user)

    def db_registry_list_users(self, registry_address: str) -> list[str]:
        return sorted(self._registry.get(registry_address, set()))

    def db_get_campaign_position(self, campaign_address: str, user: str) -> CampaignPosition | None:
        return self._campaign_positions.get((campaign_address, user))

    def db_put_campaign_position(self, position: CampaignPosition) -> None:
        self._campaign_positions[(position.campaign_address, position.user)] = position

    def db_list_campaign_positions(self, user: str) -> list[CampaignPosition]:
        return [self._campaign_positions[key] for key in sorted(self._campaign_positions) if key[1] == user]

    def db_get_bonus_status(self, campaign_address: str) -> MarketBonusStatus | None:
        return self._bonus_statuses.get(campaign_address)

    def db_put_bonus_status(self, status: MarketBonusStatus) -> None:
        self._bonus_statuses[status.campaign_address] = status

    def db_get_campaign_end(self, campaign_address: str) -> CampaignEndRecord | None:
        return self._campaign_ends.get(campaign_address)

    def db_put_campaign_end(self, record: CampaignEndRecord) -> None:
        self._campaign_ends.setdefault(record.campaign_address, record)

    def db_list_cost_basis_lots(self, token_address: str, user: str) -> list[CostBasisLot]:
        return [
            self._cost_basis_lots[key]
            for key in sorted(self._cost_basis_lots)
            if key[0] == token_address and key[1] == user
        ]

    def db_put_cost_basis_lots(self, lots: list[CostBasisLot]) -> None:
        for lot in lots:
            self._cost_basis_lots[(lot.token_address, lot.user, lot.lot_index)] = lot

    def db_get_sail_position(self, token_address: str, user: str) -> UserSailPosition | None:
        return self._sail_positions.get((token_address, user))

    def db_put_sail_position(self, position: UserSailPosition) -> None:
        self._sail_positions[(position.token_address, position.user)] = position

    def db_list_sail_positions(self, user: str) -> list[UserSailPosition]:
        return [self._sail_positions[key] for key in sorted(self._sail_positions) if key[1] == user]

    def db_put_marks_event(self, event: MarksEvent) -> None:
        self._marks_events.setdefault(event.event_id, event)

    def db_list_marks_events(self, user: str, limit: int) -> list[MarksEvent]:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        events = [event for event in self._marks_events.values() if event.user == user]
        events.sort(key=lambda event: (event.timestamp, event.event_id), reverse=True)
        return events[:limit]

    def db_put_price_point(self, point: PricePoint) -> None:
        self._price_points.setdefault((point.block_number, point.log_index), point)

    def db_put_hourly_snapshot(self, snapshot: HourlyPriceSnapshot) -> None:
        self._hourly_snapshots.setdefault((snapshot.token_address, snapshot.hour_timestamp), snapshot)

    def db_get_tracker(self, tracker_name: str) -> int | None:
        return self._trackers.get(tracker_name)

    def db_put_tracker(self, tracker_name: str, last_run_at: int) -> None:
        self._trackers[tracker_name] = last_run_at

    def db_has_event_receipt(self, receipt: EventReceipt) -> bool:
        return receipt in self._event_receipts

    def db_put_event_receipt(self, receipt: EventReceipt) -> None:
        self._event_receipts.add(receipt)

    def db_list_price_points(self) -> list[PricePoint]:
        """Return stored price points in order-key order."""

        return [self._price_points[key] for key in sorted(self._price_points)]

    def db_list_hourly_snapshots(self, token_address: str) -> list[HourlyPriceSnapshot]:
        """Return stored hourly snapshots of one token in hour order."""

        return [
            self._hourly_snapshots[key]
            for key in sorted(self._hourly_snapshots)
            if key[0] == token_address
        ]
