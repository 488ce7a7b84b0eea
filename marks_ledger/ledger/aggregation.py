"""Read-only per-user marks rollup across every reward source."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from marks_ledger.config import MarketTable
from marks_ledger.db import LedgerStorePort
from marks_ledger.domain import (
    POOL_DEPOSIT_SOURCE_KINDS,
    SOURCE_KIND_ANCHOR_TOKEN,
    SOURCE_KIND_GENESIS,
    SOURCE_KIND_SAIL_TOKEN,
    BalanceRecord,
    CampaignPosition,
    domain_normalize_address,
)

from .accrual import accrual_compute_marks

ZERO = Decimal("0")


@dataclass(frozen=True)
class UserMarksSummary:
    """Per-category marks totals of one user.

    Attributes:
        user: Normalized user address.
        anchor_token_marks: Marks from pegged token holdings.
        sail_token_marks: Marks from leveraged token holdings.
        stability_pool_marks: Marks from both stability pool kinds.
        genesis_marks: Marks from campaign positions, bonuses included.
        total_marks: Sum of every category.
        total_marks_per_day: Sum of projected daily marks.
        as_of: Projection timestamp, `None` when only settled marks are reported.
    """

    user: str
    anchor_token_marks: Decimal
    sail_token_marks: Decimal
    stability_pool_marks: Decimal
    genesis_marks: Decimal
    total_marks: Decimal
    total_marks_per_day: Decimal
    as_of: int | None = None


@dataclass(frozen=True)
class UserMarksSources:
    """Every marks-bearing record of one user."""

    user: str
    balance_records: list[BalanceRecord]
    campaign_positions: list[CampaignPosition]


class AggregationView:
    """Sum a user's marks across all sources on read.

    Balance sources contribute `accrued_marks` and campaigns contribute
    `current_marks`. With `as_of` the pending accrual since each record's
    last settlement is added without mutating any record.
    """

    def __init__(self, store: LedgerStorePort, market_table: MarketTable):
        if store is None:
            raise ValueError("store must not be None")
        if market_table is None:
            raise ValueError("market_table must not be None")
        self._store = store
        self._rules = market_table.reward_rules

    def aggregation_user_sources(self, user: str) -> UserMarksSources:
        """Return the balance records and campaign positions of one user."""

        normalized_user = domain_normalize_address(user)
        return UserMarksSources(
            user=normalized_user,
            balance_records=self._store.db_list_balance_records(normalized_user),
            campaign_positions=self._store.db_list_campaign_positions(normalized_user),
        )

    def aggregation_user_summary(self, user: str, as_of: int | None = None) -> UserMarksSummary:
        """Build the marks rollup of one user.

        Args:
            user: User address.
            as_of: Optional projection timestamp.

        Returns:
            UserMarksSummary: Category and total marks.

        Raises:
            ValueError: Raised when user is invalid or `as_of` is negative.
        """

        if as_of is not None and as_of < 0:
            raise ValueError("as_of must be >= 0")

        sources = self.aggregation_user_sources(user)
        category_marks = {
            SOURCE_KIND_ANCHOR_TOKEN: ZERO,
            SOURCE_KIND_SAIL_TOKEN: ZERO,
            "stability_pool": ZERO,
            SOURCE_KIND_GENESIS: ZERO,
        }
        total_marks_per_day = ZERO

        for record in sources.balance_records:
            category = "stability_pool" if record.source_kind in POOL_DEPOSIT_SOURCE_KINDS else record.source_kind
            category_marks[category] += record.accrued_marks + self._aggregation_pending_balance_marks(record, as_of)
            total_marks_per_day += record.marks_per_day

        for position in sources.campaign_positions:
            category_marks[SOURCE_KIND_GENESIS] += position.current_marks + self._aggregation_pending_campaign_marks(
                position,
                as_of,
            )
            total_marks_per_day += position.marks_per_day

        return UserMarksSummary(
            user=sources.user,
            anchor_token_marks=category_marks[SOURCE_KIND_ANCHOR_TOKEN],
            sail_token_marks=category_marks[SOURCE_KIND_SAIL_TOKEN],
            stability_pool_marks=category_marks["stability_pool"],
            genesis_marks=category_marks[SOURCE_KIND_GENESIS],
            total_marks=sum(category_marks.values(), ZERO),
            total_marks_per_day=total_marks_per_day,
            as_of=as_of,
        )

    def _aggregation_pending_balance_marks(self, record: BalanceRecord, as_of: int | None) -> Decimal:
        if as_of is None or record.raw_balance == 0:
            return ZERO
        return accrual_compute_marks(
            last_updated=record.last_updated,
            now=as_of,
            balance_usd=record.balance_usd,
            base_rate=self._rules.rules_base_rate(record.source_kind, as_of),
            window=self._store.db_get_boost_window(record.source_kind, record.source_address),
        )

    def _aggregation_pending_campaign_marks(self, position: CampaignPosition, as_of: int | None) -> Decimal:
        if as_of is None or position.genesis_ended:
            return ZERO
        return accrual_compute_marks(
            last_updated=position.last_updated,
            now=as_of,
            balance_usd=position.current_deposit_usd,
            base_rate=self._rules.rules_base_rate(SOURCE_KIND_GENESIS, as_of),
        )
