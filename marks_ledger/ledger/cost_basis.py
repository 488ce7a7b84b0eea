"""FIFO cost-basis lot primitives for leveraged-token positions."""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from typing import Sequence

from marks_ledger.domain import TOKEN_UNIT, CostBasisLot, UserSailPosition

ZERO = Decimal("0")
_TOKEN_UNIT_DECIMAL = Decimal(TOKEN_UNIT)

LOT_EVENT_TYPE_MINT = "mint"
LOT_EVENT_TYPE_GENESIS = "genesis"


def cost_basis_append_lot(
    lots: Sequence[CostBasisLot],
    token_address: str,
    user: str,
    token_amount: int,
    cost_usd: Decimal,
    event_type: str,
    acquired_at: int,
    block_number: int,
) -> tuple[CostBasisLot, ...]:
    """Append one acquisition lot at index `len(lots)`.

    Args:
        lots: Existing lots of the position in ascending index order.
        token_address: Leveraged token address.
        user: Position owner.
        token_amount: Raw acquired token amount.
        cost_usd: USD cost of the acquisition.
        event_type: Acquisition kind (`mint` or `genesis`).
        acquired_at: Acquisition timestamp.
        block_number: Acquisition block number.

    Returns:
        tuple[CostBasisLot, ...]: Lots including the appended one.

    Raises:
        ValueError: Raised when amount or cost is negative or event type is unsupported.
    """

    if lots is None:
        raise ValueError("lots must not be None")
    if token_amount < 0:
        raise ValueError("token_amount must be >= 0")
    if cost_usd < ZERO:
        raise ValueError("cost_usd must not be negative")
    if event_type not in {LOT_EVENT_TYPE_MINT, LOT_EVENT_TYPE_GENESIS}:
        raise ValueError(f"unsupported lot event_type={event_type}")

    token_units = Decimal(token_amount) / _TOKEN_UNIT_DECIMAL
    price_per_token = cost_usd / token_units if token_units > ZERO else ZERO
    appended_lot = CostBasisLot(
        token_address=token_address,
        user=user,
        lot_index=len(lots),
        token_amount=token_amount,
        original_amount=token_amount,
        cost_usd=cost_usd,
        original_cost_usd=cost_usd,
        price_per_token=price_per_token,
        event_type=event_type,
        is_fully_redeemed=False,
        acquired_at=acquired_at,
        block_number=block_number,
    )
    return tuple(lots) + (appended_lot,)


def cost_basis_consume_fifo(
    lots: Sequence[CostBasisLot],
    tokens_to_consume: int,
) -> tuple[tuple[CostBasisLot, ...], Decimal]:
    """Consume open lots in ascending index order.

    A lot whose remaining amount fits inside the request is fully retired and
    its whole remaining cost is consumed. The lot that straddles the request is
    reduced by the exact fraction `remaining / lot.token_amount`, applied to
    both amount and cost. Consumption stops when the request is met or the
    open lots are exhausted.

    Args:
        lots: Position lots in ascending index order.
        tokens_to_consume: Raw token amount being redeemed.

    Returns:
        tuple[tuple[CostBasisLot, ...], Decimal]: Updated lots and total cost consumed.

    Raises:
        ValueError: Raised when lots is None or amount is negative.
    """

    if lots is None:
        raise ValueError("lots must not be None")
    if tokens_to_consume < 0:
        raise ValueError("tokens_to_consume must be >= 0")

    remaining = tokens_to_consume
    total_cost_consumed = ZERO
    updated_lots: list[CostBasisLot] = []
    for lot in sorted(lots, key=lambda item: item.lot_index):
        if remaining == 0 or lot.is_fully_redeemed or lot.token_amount == 0:
            updated_lots.append(lot)
            continue

        if lot.token_amount <= remaining:
            total_cost_consumed += lot.cost_usd
            remaining -= lot.token_amount
            updated_lots.append(replace(lot, token_amount=0, cost_usd=ZERO, is_fully_redeemed=True))
            continue

        consumed_fraction = Decimal(remaining) / Decimal(lot.token_amount)
        consumed_cost = lot.cost_usd * consumed_fraction
        total_cost_consumed += consumed_cost
        updated_lots.append(
            replace(
                lot,
                token_amount=lot.token_amount - remaining,
                cost_usd=lot.cost_usd - consumed_cost,
            )
        )
        remaining = 0

    return tuple(updated_lots), total_cost_consumed


def cost_basis_open_amount(lots: Sequence[CostBasisLot]) -> int:
    """Return the raw token amount held across non-retired lots."""

    return sum(lot.token_amount for lot in lots if not lot.is_fully_redeemed)


def cost_basis_fold_position(position: UserSailPosition, lots: Sequence[CostBasisLot]) -> UserSailPosition:
    """Recompute balance, cost basis, and average cost from the open lots.

    Args:
        position: Position carrying the cumulative counters.
        lots: Every lot of the position.

    Returns:
        UserSailPosition: Position with aggregates folded from `lots`.

    Raises:
        ValueError: Raised when position or lots is None.
    """

    if position is None:
        raise ValueError("position must not be None")
    if lots is None:
        raise ValueError("lots must not be None")

    open_lots = [lot for lot in lots if not lot.is_fully_redeemed]
    balance = sum(lot.token_amount for lot in open_lots)
    total_cost_basis_usd = sum((lot.cost_usd for lot in open_lots), ZERO)
    token_units = Decimal(balance) / _TOKEN_UNIT_DECIMAL
    average_cost_per_token = total_cost_basis_usd / token_units if token_units > ZERO else ZERO
    return replace(
        position,
        balance=balance,
        total_cost_basis_usd=total_cost_basis_usd,
        average_cost_per_token=average_cost_per_token,
    )
