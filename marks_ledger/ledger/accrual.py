"""Time-weighted marks accrual with boost window splitting."""

from __future__ import annotations

from decimal import Decimal

from marks_ledger.domain import SECONDS_PER_DAY, BoostWindow

ZERO = Decimal("0")
_SECONDS_PER_DAY_DECIMAL = Decimal(SECONDS_PER_DAY)


def accrual_compute_marks(
    last_updated: int,
    now: int,
    balance_usd: Decimal,
    base_rate: Decimal,
    window: BoostWindow | None = None,
) -> Decimal:
    """Compute marks earned over `[last_updated, now)`.

    The interval is split at the window boundaries: the overlap with
    `[window.start, window.end)` accrues at `base_rate * multiplier`, the rest at
    `base_rate`. `balance_usd` must be the valuation held during the interval,
    that is the record's value before the current event mutates it.

    Args:
        last_updated: Previous settlement timestamp, `0` when never settled.
        now: Current settlement timestamp.
        balance_usd: USD value held over the interval.
        base_rate: Marks per dollar per day.
        window: Optional boost window of the source.

    Returns:
        Decimal: Non-negative marks earned.

    Raises:
        ValueError: Raised when balance or rate is negative.
    """

    if balance_usd < ZERO:
        raise ValueError("balance_usd must not be negative")
    if base_rate < ZERO:
        raise ValueError("base_rate must not be negative")

    if last_updated == 0 or now <= last_updated:
        return ZERO

    total_seconds = now - last_updated
    if window is None:
        return balance_usd * base_rate * (Decimal(total_seconds) / _SECONDS_PER_DAY_DECIMAL)

    boosted_start = max(last_updated, window.start_timestamp)
    boosted_end = min(now, window.end_timestamp)
    boosted_seconds = max(0, boosted_end - boosted_start)
    unboosted_seconds = total_seconds - boosted_seconds

    unboosted_marks = balance_usd * base_rate * (Decimal(unboosted_seconds) / _SECONDS_PER_DAY_DECIMAL)
    boosted_marks = balance_usd * base_rate * (Decimal(boosted_seconds) / _SECONDS_PER_DAY_DECIMAL) * window.multiplier
    return unboosted_marks + boosted_marks


def accrual_marks_per_day(balance_usd: Decimal, base_rate: Decimal, multiplier: Decimal) -> Decimal:
    """Return the projected daily marks of a balance at the active multiplier."""

    return balance_usd * base_rate * multiplier
