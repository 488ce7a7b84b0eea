"""Tests for token-holding and pool-deposit balance accrual."""

from __future__ import annotations

from decimal import Decimal

from marks_ledger.domain import (
    SOURCE_KIND_ANCHOR_TOKEN,
    SOURCE_KIND_POOL_COLLATERAL,
    SOURCE_KIND_SAIL_TOKEN,
    TOKEN_UNIT,
    ZERO_ADDRESS,
    PoolDeposit,
    PoolDepositChange,
    TokenTransfer,
)

T0 = 1_700_000_000
DAY = 86_400
USER_A = "0x" + "a" * 40
USER_B = "0x" + "b" * 40


def _build_transfer(token: str, sender: str, receiver: str, amount: int, timestamp: int, block: int) -> TokenTransfer:
    """Build one transfer event.

    Args:
        token: Token address.
        sender: Sender address.
        receiver: Receiver address.
        amount: Raw amount.
        timestamp: Block timestamp.
        block: Block number.

    Returns:
        TokenTransfer: Event fixture.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    return TokenTransfer(
        block_number=block,
        log_index=0,
        block_timestamp=timestamp,
        token_address=token,
        from_address=sender,
        to_address=receiver,
        amount=amount,
    )


def test_balance_transfer_settles_sender_before_revaluing(build_ledger_stack) -> None:
    """Accrue at the pre-transfer value, then revalue both parties.

    Returns:
        None: Assertions validate settle-then-revalue ordering.

    Raises:
        AssertionError: Raised when accrual or balances are wrong.
    """

    stack = build_ledger_stack()
    token = stack.market.pegged_token_address
    stack.chain.set_token_balance(token, USER_A, 100 * TOKEN_UNIT)
    stack.balance_ledger.balance_apply_transfer(_build_transfer(token, ZERO_ADDRESS, USER_A, 100 * TOKEN_UNIT, T0, 1))

    stack.chain.set_token_balance(token, USER_A, 50 * TOKEN_UNIT)
    stack.chain.set_token_balance(token, USER_B, 50 * TOKEN_UNIT)
    settlements = stack.balance_ledger.balance_apply_transfer(
        _build_transfer(token, USER_A, USER_B, 50 * TOKEN_UNIT, T0 + DAY, 2)
    )

    assert [settlement.record.user for settlement in settlements] == [USER_A, USER_B]
    sender_record = stack.store.db_get_balance_record(SOURCE_KIND_ANCHOR_TOKEN, token, USER_A)
    receiver_record = stack.store.db_get_balance_record(SOURCE_KIND_ANCHOR_TOKEN, token, USER_B)
    assert sender_record.accrued_marks == Decimal("100")
    assert sender_record.balance_usd == Decimal("50")
    assert sender_record.raw_balance == 50 * TOKEN_UNIT
    assert sender_record.first_seen_at == T0
    assert sender_record.last_updated == T0 + DAY
    assert receiver_record.accrued_marks == Decimal("0")
    assert receiver_record.balance_usd == Decimal("50")
    assert receiver_record.first_seen_at == T0 + DAY


def test_balance_mint_leg_skips_zero_address(build_ledger_stack) -> None:
    stack = build_ledger_stack()
    token = stack.market.pegged_token_address
    stack.chain.set_token_balance(token, USER_A, 10 * TOKEN_UNIT)

    settlements = stack.balance_ledger.balance_apply_transfer(
        _build_transfer(token, ZERO_ADDRESS, USER_A, 10 * TOKEN_UNIT, T0, 1)
    )

    assert len(settlements) == 1
    assert stack.store.db_get_balance_record(SOURCE_KIND_ANCHOR_TOKEN, token, ZERO_ADDRESS) is None


def test_balance_replayed_transfer_leaves_records_unchanged(build_ledger_stack) -> None:
    """Re-applying the same transfer is a no-op because balances are re-read.

    Returns:
        None: Assertions validate replay safety.

    Raises:
        AssertionError: Raised when replay changes stored state.
    """

    stack = build_ledger_stack()
    token = stack.market.pegged_token_address
    stack.chain.set_token_balance(token, USER_A, 100 * TOKEN_UNIT)
    transfer = _build_transfer(token, ZERO_ADDRESS, USER_A, 100 * TOKEN_UNIT, T0, 1)
    stack.balance_ledger.balance_apply_transfer(transfer)
    follow_up = _build_transfer(token, ZERO_ADDRESS, USER_A, 0, T0 + DAY, 2)
    stack.balance_ledger.balance_apply_transfer(follow_up)
    first_pass = stack.store.db_get_balance_record(SOURCE_KIND_ANCHOR_TOKEN, token, USER_A)

    stack.balance_ledger.balance_apply_transfer(follow_up)

    assert stack.store.db_get_balance_record(SOURCE_KIND_ANCHOR_TOKEN, token, USER_A) == first_pass
    assert first_pass.accrued_marks == Decimal("100")


def test_balance_full_exit_resets_accrued_but_keeps_lifetime_total(build_ledger_stack) -> None:
    """Zero balance resets accrued marks while lifetime marks never decrease.

    Returns:
        None: Assertions validate monotonic lifetime marks.

    Raises:
        AssertionError: Raised when lifetime marks shrink or accrued survives exit.
    """

    stack = build_ledger_stack()
    token = stack.market.pegged_token_address
    stack.chain.set_token_balance(token, USER_A, 100 * TOKEN_UNIT)
    stack.balance_ledger.balance_apply_transfer(_build_transfer(token, ZERO_ADDRESS, USER_A, 100 * TOKEN_UNIT, T0, 1))
    stack.chain.set_token_balance(token, USER_A, 50 * TOKEN_UNIT)
    stack.balance_ledger.balance_apply_transfer(_build_transfer(token, USER_A, ZERO_ADDRESS, 50 * TOKEN_UNIT, T0 + DAY, 2))
    lifetime_before_exit = stack.store.db_get_balance_record(SOURCE_KIND_ANCHOR_TOKEN, token, USER_A).total_marks_earned

    stack.chain.set_token_balance(token, USER_A, 0)
    stack.balance_ledger.balance_apply_transfer(
        _build_transfer(token, USER_A, ZERO_ADDRESS, 50 * TOKEN_UNIT, T0 + 2 * DAY, 3)
    )

    record = stack.store.db_get_balance_record(SOURCE_KIND_ANCHOR_TOKEN, token, USER_A)
    assert record.raw_balance == 0
    assert record.balance_usd == Decimal("0")
    assert record.accrued_marks == Decimal("0")
    assert record.first_seen_at == 0
    assert record.total_marks_earned == Decimal("150")
    assert record.total_marks_earned >= lifetime_before_exit


def test_balance_price_failure_keeps_prior_valuation(build_ledger_stack) -> None:
    """A failed NAV read must not raise or zero the stored valuation.

    Returns:
        None: Assertions validate the zero-price sentinel path.

    Raises:
        AssertionError: Raised when valuation is lost or an exception escapes.
    """

    stack = build_ledger_stack()
    token = stack.market.leveraged_token_address
    stack.chain.leveraged_nav = 2 * TOKEN_UNIT
    stack.chain.set_token_balance(token, USER_A, 10 * TOKEN_UNIT)
    stack.balance_ledger.balance_apply_transfer(_build_transfer(token, ZERO_ADDRESS, USER_A, 10 * TOKEN_UNIT, T0, 1))

    stack.chain.failing_reads.add("chain_read_leveraged_nav")
    stack.chain.set_token_balance(token, USER_A, 20 * TOKEN_UNIT)
    stack.balance_ledger.balance_apply_transfer(
        _build_transfer(token, ZERO_ADDRESS, USER_A, 10 * TOKEN_UNIT, T0 + DAY, 2)
    )

    record = stack.store.db_get_balance_record(SOURCE_KIND_SAIL_TOKEN, token, USER_A)
    assert record.raw_balance == 20 * TOKEN_UNIT
    assert record.balance_usd == Decimal("20")
    assert record.accrued_marks == Decimal("100")
    assert record.last_updated == T0 + DAY


def test_balance_read_failure_keeps_prior_raw_balance(build_ledger_stack) -> None:
    stack = build_ledger_stack()
    token = stack.market.pegged_token_address
    stack.chain.set_token_balance(token, USER_A, 30 * TOKEN_UNIT)
    stack.balance_ledger.balance_apply_transfer(_build_transfer(token, ZERO_ADDRESS, USER_A, 30 * TOKEN_UNIT, T0, 1))

    stack.chain.failing_reads.add("chain_read_token_balance")
    stack.balance_ledger.balance_apply_transfer(_build_transfer(token, ZERO_ADDRESS, USER_A, 5 * TOKEN_UNIT, T0 + DAY, 2))

    record = stack.store.db_get_balance_record(SOURCE_KIND_ANCHOR_TOKEN, token, USER_A)
    assert record.raw_balance == 30 * TOKEN_UNIT
    assert record.accrued_marks == Decimal("30")


def test_balance_first_activity_opens_lazy_boost_window(build_ledger_stack) -> None:
    """First activity on a source opens `[now, now + duration)` at the default multiplier.

    Returns:
        None: Assertions validate lazy window creation and boosted accrual.

    Raises:
        AssertionError: Raised when the window or boosted marks are wrong.
    """

    stack = build_ledger_stack(boost_duration_seconds=8 * DAY)
    token = stack.market.pegged_token_address
    stack.chain.set_token_balance(token, USER_A, 100 * TOKEN_UNIT)

    settlements = stack.balance_ledger.balance_apply_transfer(
        _build_transfer(token, ZERO_ADDRESS, USER_A, 100 * TOKEN_UNIT, T0, 1)
    )

    window = stack.store.db_get_boost_window(SOURCE_KIND_ANCHOR_TOKEN, token)
    assert window.start_timestamp == T0
    assert window.end_timestamp == T0 + 8 * DAY
    assert window.multiplier == Decimal("10")
    assert settlements[0].record.marks_per_day == Decimal("1000")
    assert stack.store.db_get_boost_window(SOURCE_KIND_SAIL_TOKEN, stack.market.leveraged_token_address) is None

    later = stack.balance_ledger.balance_apply_transfer(
        _build_transfer(token, ZERO_ADDRESS, USER_A, 0, T0 + DAY, 2)
    )
    assert later[0].earned_marks == Decimal("1000")


def test_balance_sail_promo_doubles_leveraged_rate(build_ledger_stack) -> None:
    """Apply the promo multiplier once the promo start has passed.

    Returns:
        None: Assertions validate promo accrual.

    Raises:
        AssertionError: Raised when promo rate is not applied.
    """

    stack = build_ledger_stack(sail_promo_start_timestamp=T0 + DAY, sail_promo_multiplier=Decimal("2"))
    token = stack.market.leveraged_token_address
    stack.chain.set_token_balance(token, USER_A, 10 * TOKEN_UNIT)
    first = stack.balance_ledger.balance_apply_transfer(_build_transfer(token, ZERO_ADDRESS, USER_A, 10 * TOKEN_UNIT, T0, 1))

    second = stack.balance_ledger.balance_apply_transfer(_build_transfer(token, ZERO_ADDRESS, USER_A, 0, T0 + DAY, 2))

    assert first[0].record.marks_per_day == Decimal("50")
    assert second[0].earned_marks == Decimal("100")
    assert second[0].record.marks_per_day == Decimal("100")


def test_balance_pool_deposit_reads_pool_and_change_uses_event_amount(build_ledger_stack) -> None:
    """Pool deposits read the pool; deposit changes trust the carried amount.

    Returns:
        None: Assertions validate both pool paths.

    Raises:
        AssertionError: Raised when pool balances are wrong.
    """

    stack = build_ledger_stack()
    pool = stack.market.collateral_pool_address
    stack.chain.set_pool_deposit(pool, USER_A, 80 * TOKEN_UNIT)

    deposit = stack.balance_ledger.balance_apply_pool_deposit(
        PoolDeposit(block_number=1, log_index=0, block_timestamp=T0, pool_address=pool, user=USER_A)
    )
    change = stack.balance_ledger.balance_apply_pool_deposit_change(
        PoolDepositChange(
            block_number=2,
            log_index=0,
            block_timestamp=T0 + DAY,
            pool_address=pool,
            user=USER_A,
            new_deposit_amount=40 * TOKEN_UNIT,
        )
    )

    assert deposit.record.balance_usd == Decimal("80")
    assert change.earned_marks == Decimal("80")
    assert change.record.raw_balance == 40 * TOKEN_UNIT
    assert change.record.balance_usd == Decimal("40")
    assert stack.chain.read_counts["chain_read_pool_deposit"] == 1
    assert stack.store.db_get_balance_record(SOURCE_KIND_POOL_COLLATERAL, pool, USER_A) == change.record


def test_balance_unconfigured_token_is_skipped(build_ledger_stack) -> None:
    stack = build_ledger_stack()

    settlements = stack.balance_ledger.balance_apply_transfer(
        _build_transfer("0x" + "9" * 40, ZERO_ADDRESS, USER_A, TOKEN_UNIT, T0, 1)
    )

    assert settlements == []
    assert stack.store.db_list_balance_records(USER_A) == []
