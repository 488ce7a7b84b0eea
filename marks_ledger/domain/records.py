"""Ledger record contracts persisted by the db layer.

Records are immutable; ledgers derive updated copies with `dataclasses.replace`
so every mutation inside one event is explicit and replay-stable. Raw token
amounts are integers in 18-decimal base units, USD and marks values are
`Decimal`, and timestamps are unix seconds with `0` meaning unset.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

ZERO = Decimal("0")


@dataclass(frozen=True)
class BalanceRecord:
    """Per (source, user) holding or pool-deposit accrual state.

    Attributes:
        source_kind: Reward source kind.
        source_address: Token or pool contract address.
        user: Holder address.
        raw_balance: Last authoritative raw balance.
        balance_usd: USD valuation as of `last_updated`.
        accrued_marks: Marks accrued while the balance stayed non-zero.
        total_marks_earned: Lifetime marks, never decreases.
        marks_per_day: Projected current daily marks.
        first_seen_at: First non-zero observation timestamp.
        last_updated: Last settlement timestamp.
    """

    source_kind: str
    source_address: str
    user: str
    raw_balance: int = 0
    balance_usd: Decimal = ZERO
    accrued_marks: Decimal = ZERO
    total_marks_earned: Decimal = ZERO
    marks_per_day: Decimal = ZERO
    first_seen_at: int = 0
    last_updated: int = 0


@dataclass(frozen=True)
class BoostWindow:
    """Market-wide multiplier window for one reward source.

    Attributes:
        source_kind: Reward source kind.
        source_address: Token or pool contract address.
        start_timestamp: Inclusive window start.
        end_timestamp: Exclusive window end.
        multiplier: Accrual multiplier applied inside the window.
    """

    source_kind: str
    source_address: str
    start_timestamp: int
    end_timestamp: int
    multiplier: Decimal


@dataclass(frozen=True)
class CampaignPosition:
    """Per (campaign, user) genesis deposit and marks state."""

    campaign_address: str
    user: str
    total_deposited: int = 0
    total_deposited_usd: Decimal = ZERO
    current_deposit: int = 0
    current_deposit_usd: Decimal = ZERO
    net_deposit_usd: Decimal = ZERO
    current_marks: Decimal = ZERO
    total_marks_earned: Decimal = ZERO
    total_marks_forfeited: Decimal = ZERO
    bonus_marks: Decimal = ZERO
    early_bonus_marks: Decimal = ZERO
    qualifies_for_early_bonus: bool = False
    early_bonus_eligible_deposit: int = 0
    early_bonus_eligible_deposit_usd: Decimal = ZERO
    marks_per_day: Decimal = ZERO
    genesis_start_date: int = 0
    genesis_end_date: int | None = None
    genesis_ended: bool = False
    last_updated: int = 0


@dataclass(frozen=True)
class MarketBonusStatus:
    """Early-bird race state of one campaign, tracked in raw token units."""

    campaign_address: str
    threshold_amount: int
    cumulative_deposits: int = 0
    threshold_reached: bool = False
    threshold_reached_at: int | None = None


@dataclass(frozen=True)
class CampaignEndRecord:
    """Once-only campaign end marker."""

    campaign_address: str
    ended_at: int
    block_number: int


@dataclass(frozen=True)
class CostBasisLot:
    """One FIFO acquisition lot of a leveraged-token position.

    Attributes:
        token_address: Leveraged token address.
        user: Position owner.
        lot_index: Monotonic lot index inside the position.
        token_amount: Remaining raw token amount.
        original_amount: Raw token amount at acquisition.
        cost_usd: Remaining USD cost.
        original_cost_usd: USD cost at acquisition.
        price_per_token: Acquisition USD price per whole token.
        event_type: Acquisition kind (`mint` or `genesis`).
        is_fully_redeemed: Whether the lot is fully consumed.
        acquired_at: Acquisition timestamp.
        block_number: Acquisition block number.
    """

    token_address: str
    user: str
    lot_index: int
    token_amount: int
    original_amount: int
    cost_usd: Decimal
    original_cost_usd: Decimal
    price_per_token: Decimal
    event_type: str
    is_fully_redeemed: bool = False
    acquired_at: int = 0
    block_number: int = 0


@dataclass(frozen=True)
class UserSailPosition:
    """Aggregate leveraged-token position derived from its lots."""

    token_address: str
    user: str
    balance: int = 0
    total_cost_basis_usd: Decimal = ZERO
    average_cost_per_token: Decimal = ZERO
    realized_pnl_usd: Decimal = ZERO
    total_tokens_bought: int = 0
    total_tokens_sold: int = 0
    total_spent_usd: Decimal = ZERO
    total_received_usd: Decimal = ZERO
    first_acquired_at: int = 0
    last_updated: int = 0


@dataclass(frozen=True)
class MarksEvent:
    """Marks credited to one user by a periodic sweep."""

    event_id: str
    user: str
    source_kind: str
    source_address: str
    amount: Decimal
    timestamp: int
    block_number: int


@dataclass(frozen=True)
class PricePoint:
    """Prices observed on one mint or redeem event."""

    token_address: str
    minter_address: str
    event_type: str
    block_number: int
    log_index: int
    timestamp: int
    token_price_usd: Decimal
    collateral_price_usd: Decimal
    wrapped_rate: Decimal
    collateral_amount: int
    token_amount: int
    implied_token_price: Decimal


@dataclass(frozen=True)
class HourlyPriceSnapshot:
    """Per-token hourly price snapshot."""

    token_address: str
    minter_address: str
    hour_timestamp: int
    block_number: int
    token_price_usd: Decimal
    collateral_price_usd: Decimal
    wrapped_rate: Decimal


@dataclass(frozen=True)
class EventReceipt:
    """Marker that one ordered event was already applied."""

    block_number: int
    log_index: int
    event_kind: str
