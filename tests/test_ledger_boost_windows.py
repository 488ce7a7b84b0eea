"""Tests for the store-backed boost window registry."""

from __future__ import annotations

from decimal import Decimal

import pytest

from marks_ledger.db import InMemoryLedgerStore
from marks_ledger.domain import SOURCE_KIND_POOL_COLLATERAL
from marks_ledger.ledger import BoostWindowRegistry

POOL = "0x" + "5" * 40


def test_boost_lazy_window_is_created_once() -> None:
    """Later activity reuses the first window instead of restarting it.

    Returns:
        None: Assertions validate lazy creation.

    Raises:
        AssertionError: Raised when the window moves.
    """

    registry = BoostWindowRegistry(store=InMemoryLedgerStore(), boost_duration_seconds=100)

    created = registry.get_or_create_window(SOURCE_KIND_POOL_COLLATERAL, POOL, 1_000, Decimal("10"))
    reused = registry.get_or_create_window(SOURCE_KIND_POOL_COLLATERAL, POOL, 5_000, Decimal("3"))

    assert (created.start_timestamp, created.end_timestamp) == (1_000, 1_100)
    assert reused == created


def test_boost_open_window_replaces_existing_window() -> None:
    registry = BoostWindowRegistry(store=InMemoryLedgerStore(), boost_duration_seconds=100)
    registry.get_or_create_window(SOURCE_KIND_POOL_COLLATERAL, POOL, 1_000, Decimal("10"))

    registry.open_window(SOURCE_KIND_POOL_COLLATERAL, POOL, 2_000, 3_000, Decimal("4"))

    window = registry.get_window(SOURCE_KIND_POOL_COLLATERAL, POOL)
    assert (window.start_timestamp, window.end_timestamp, window.multiplier) == (2_000, 3_000, Decimal("4"))


def test_boost_active_multiplier_uses_half_open_bounds() -> None:
    """The multiplier applies on `[start, end)` and is `1` outside or without a window.

    Returns:
        None: Assertions validate window bounds.

    Raises:
        AssertionError: Raised when boundary handling is wrong.
    """

    registry = BoostWindowRegistry(store=InMemoryLedgerStore(), boost_duration_seconds=100)
    assert registry.active_multiplier(SOURCE_KIND_POOL_COLLATERAL, POOL, 1_000) == Decimal("1")

    registry.open_window(SOURCE_KIND_POOL_COLLATERAL, POOL, 1_000, 1_100, Decimal("10"))

    assert registry.active_multiplier(SOURCE_KIND_POOL_COLLATERAL, POOL, 999) == Decimal("1")
    assert registry.active_multiplier(SOURCE_KIND_POOL_COLLATERAL, POOL, 1_000) == Decimal("10")
    assert registry.active_multiplier(SOURCE_KIND_POOL_COLLATERAL, POOL, 1_099) == Decimal("10")
    assert registry.active_multiplier(SOURCE_KIND_POOL_COLLATERAL, POOL, 1_100) == Decimal("1")


def test_boost_rejects_invalid_windows() -> None:
    """Reject inverted bounds, sub-unit multipliers, and unknown source kinds.

    Returns:
        None: Assertions validate window validation.

    Raises:
        AssertionError: Raised when invalid windows are accepted.
    """

    registry = BoostWindowRegistry(store=InMemoryLedgerStore())

    with pytest.raises(ValueError, match="start_timestamp"):
        registry.open_window(SOURCE_KIND_POOL_COLLATERAL, POOL, 2_000, 1_000, Decimal("2"))
    with pytest.raises(ValueError, match="multiplier"):
        registry.open_window(SOURCE_KIND_POOL_COLLATERAL, POOL, 1_000, 2_000, Decimal("0.5"))
    with pytest.raises(ValueError, match="source_kind"):
        registry.open_window("vault", POOL, 1_000, 2_000, Decimal("2"))
    with pytest.raises(ValueError, match="boost_duration_seconds"):
        BoostWindowRegistry(store=InMemoryLedgerStore(), boost_duration_seconds=-1)
