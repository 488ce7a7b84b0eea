"""Tests for event routing, replay receipts, the daily sweep watermark, and rollback."""

from __future__ import annotations

from decimal import Decimal

import pytest

from marks_ledger.domain import (
    SOURCE_KIND_ANCHOR_TOKEN,
    TOKEN_UNIT,
    ZERO_ADDRESS,
    BlockTick,
    CampaignDeposit,
    CampaignEnd,
    CampaignWithdraw,
    ChainEvent,
    EventReceipt,
    TokenMint,
    TokenTransfer,
)
from marks_ledger.jobs import DAILY_MARKS_TRACKER

T0 = 1_700_000_000
DAY = 86_400
USER_A = "0x" + "a" * 40
USER_B = "0x" + "b" * 40


def _tick(timestamp: int, block: int) -> BlockTick:
    return BlockTick(block_number=block, log_index=0, block_timestamp=timestamp)


def _deposit(campaign: str, timestamp: int, block: int, log_index: int = 0) -> CampaignDeposit:
    return CampaignDeposit(
        block_number=block,
        log_index=log_index,
        block_timestamp=timestamp,
        campaign_address=campaign,
        user=USER_A,
        amount_in=100 * TOKEN_UNIT,
    )


def test_router_skips_delta_event_with_existing_receipt(build_ledger_stack) -> None:
    """A replayed campaign deposit is skipped instead of double counted.

    Returns:
        None: Assertions validate receipt-based idempotence.

    Raises:
        AssertionError: Raised when the deposit is applied twice.
    """

    stack = build_ledger_stack()
    campaign = stack.market.campaign_address
    deposit = _deposit(campaign, T0, 10, log_index=3)

    assert stack.event_router.router_apply_event(deposit) is True
    assert stack.event_router.router_apply_event(deposit) is False

    position = stack.store.db_get_campaign_position(campaign, USER_A)
    assert position.current_deposit == 100 * TOKEN_UNIT
    assert stack.store.db_get_bonus_status(campaign).cumulative_deposits == 100 * TOKEN_UNIT
    assert stack.store.db_has_event_receipt(EventReceipt(block_number=10, log_index=3, event_kind="CampaignDeposit"))


def test_router_reapplies_transfer_without_receipt(build_ledger_stack) -> None:
    stack = build_ledger_stack()
    token = stack.market.pegged_token_address
    stack.chain.set_token_balance(token, USER_A, 10 * TOKEN_UNIT)
    transfer = TokenTransfer(
        block_number=1,
        log_index=0,
        block_timestamp=T0,
        token_address=token,
        from_address=ZERO_ADDRESS,
        to_address=USER_A,
        amount=10 * TOKEN_UNIT,
    )

    assert stack.event_router.router_apply_event(transfer) is True
    first_record = stack.store.db_get_balance_record(SOURCE_KIND_ANCHOR_TOKEN, token, USER_A)
    assert stack.event_router.router_apply_event(transfer) is True

    assert stack.store.db_get_balance_record(SOURCE_KIND_ANCHOR_TOKEN, token, USER_A) == first_record


def test_router_daily_sweep_runs_once_per_day_before_the_event(build_ledger_stack) -> None:
    """The first event seeds the watermark; a day later the sweep settles holders.

    Returns:
        None: Assertions validate the daily watermark.

    Raises:
        AssertionError: Raised when sweeps run at the wrong time.
    """

    stack = build_ledger_stack()
    token = stack.market.pegged_token_address
    stack.chain.set_token_balance(token, USER_A, 100 * TOKEN_UNIT)
    router = stack.event_router

    router.router_apply_event(
        TokenTransfer(
            block_number=1,
            log_index=0,
            block_timestamp=T0,
            token_address=token,
            from_address=ZERO_ADDRESS,
            to_address=USER_A,
            amount=100 * TOKEN_UNIT,
        )
    )
    assert stack.store.db_get_tracker(DAILY_MARKS_TRACKER) == T0

    router.router_apply_event(_tick(T0 + 3_600, 2))
    assert stack.store.db_get_tracker(DAILY_MARKS_TRACKER) == T0
    assert stack.store.db_list_marks_events(USER_A, 10) == []

    router.router_apply_event(_tick(T0 + DAY, 3))
    assert stack.store.db_get_tracker(DAILY_MARKS_TRACKER) == T0 + DAY
    marks_events = stack.store.db_list_marks_events(USER_A, 10)
    assert len(marks_events) == 1
    assert marks_events[0].amount == Decimal("100")
    assert marks_events[0].timestamp == T0 + DAY

    router.router_apply_event(_tick(T0 + DAY + 10, 4))
    router.router_apply_event(_tick(T0 + 10, 5))
    assert stack.store.db_get_tracker(DAILY_MARKS_TRACKER) == T0 + DAY
    assert len(stack.store.db_list_marks_events(USER_A, 10)) == 1
    record = stack.store.db_get_balance_record(SOURCE_KIND_ANCHOR_TOKEN, token, USER_A)
    assert record.accrued_marks == Decimal("100")
    assert record.last_updated == T0 + DAY


def test_router_rolls_back_every_write_of_a_failed_event(build_ledger_stack, monkeypatch) -> None:
    """A persistence failure mid-event discards its lots, prices, tracker, and receipt.

    Returns:
        None: Assertions validate per-event atomicity.

    Raises:
        AssertionError: Raised when partial writes survive.
    """

    stack = build_ledger_stack()
    token = stack.market.leveraged_token_address
    mint = TokenMint(
        block_number=7,
        log_index=1,
        block_timestamp=T0,
        minter_address=stack.market.minter_address,
        user=USER_A,
        collateral_in=10 * TOKEN_UNIT,
        token_out=10 * TOKEN_UNIT,
    )

    def _failing_put_sail_position(position) -> None:
        raise RuntimeError("sail position upsert failed")

    monkeypatch.setattr(stack.store, "db_put_sail_position", _failing_put_sail_position)
    with pytest.raises(RuntimeError, match="sail position upsert failed"):
        stack.event_router.router_apply_event(mint)

    assert stack.store.db_list_cost_basis_lots(token, USER_A) == []
    assert stack.store.db_list_price_points() == []
    assert stack.store.db_get_tracker(DAILY_MARKS_TRACKER) is None
    assert not stack.store.db_has_event_receipt(EventReceipt(block_number=7, log_index=1, event_kind="TokenMint"))

    monkeypatch.undo()
    assert stack.event_router.router_apply_event(mint) is True
    assert len(stack.store.db_list_cost_basis_lots(token, USER_A)) == 1


def test_router_batch_counts_applied_and_skipped(build_ledger_stack) -> None:
    stack = build_ledger_stack()
    campaign = stack.market.campaign_address
    deposit = _deposit(campaign, T0, 10)

    result = stack.event_router.router_apply_batch([deposit, deposit, _tick(T0 + 5, 11)])

    assert result.applied_count == 2
    assert result.skipped_count == 1
    assert result.last_order_key == (11, 0)


def test_router_rejects_unsupported_event_type(build_ledger_stack) -> None:
    stack = build_ledger_stack()

    with pytest.raises(ValueError, match="unsupported event type"):
        stack.event_router.router_apply_event(ChainEvent(block_number=1, log_index=0, block_timestamp=T0))


def _lifetime_totals(stack, users: tuple[str, ...]) -> dict[tuple[str, str, str], tuple[Decimal, Decimal]]:
    """Collect lifetime earned and forfeited marks of every record held by the users.

    Args:
        stack: Ledger stack under test.
        users: Users whose balance records and campaign positions are read.

    Returns:
        dict[tuple[str, str, str], tuple[Decimal, Decimal]]: `(earned, forfeited)` by record key.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    totals: dict[tuple[str, str, str], tuple[Decimal, Decimal]] = {}
    for user in users:
        for record in stack.store.db_list_balance_records(user):
            totals[(record.source_kind, record.source_address, user)] = (record.total_marks_earned, Decimal("0"))
        for position in stack.store.db_list_campaign_positions(user):
            totals[("genesis", position.campaign_address, user)] = (
                position.total_marks_earned,
                position.total_marks_forfeited,
            )
    return totals


def test_router_lifetime_marks_never_decrease(build_ledger_stack) -> None:
    """Lifetime earned and forfeited marks only grow across a mixed event sequence.

    Returns:
        None: Assertions validate monotonic lifetime totals after every event.

    Raises:
        AssertionError: Raised when any lifetime total shrinks or a record vanishes.
    """

    stack = build_ledger_stack(boost_duration_seconds=DAY)
    market = stack.market
    campaign = market.campaign_address
    token = market.pegged_token_address

    def _campaign_move(event_type, user: str, amount: int, timestamp: int, block: int):
        amount_field = "amount_in" if event_type is CampaignDeposit else "amount_out"
        return event_type(
            block_number=block,
            log_index=0,
            block_timestamp=timestamp,
            campaign_address=campaign,
            user=user,
            **{amount_field: amount},
        )

    def _transfer(from_address: str, to_address: str, amount: int, timestamp: int, block: int) -> TokenTransfer:
        return TokenTransfer(
            block_number=block,
            log_index=0,
            block_timestamp=timestamp,
            token_address=token,
            from_address=from_address,
            to_address=to_address,
            amount=amount,
        )

    steps = [
        ({}, _campaign_move(CampaignDeposit, USER_A, 400 * TOKEN_UNIT, T0, 1)),
        ({}, _campaign_move(CampaignDeposit, USER_B, 800 * TOKEN_UNIT, T0 + 3_600, 2)),
        ({USER_A: 50}, _transfer(ZERO_ADDRESS, USER_A, 50 * TOKEN_UNIT, T0 + 7_200, 3)),
        ({}, _campaign_move(CampaignWithdraw, USER_A, 100 * TOKEN_UNIT, T0 + DAY + 60, 4)),
        ({USER_A: 30, USER_B: 20}, _transfer(USER_A, USER_B, 20 * TOKEN_UNIT, T0 + DAY + 120, 5)),
        ({}, _tick(T0 + 2 * DAY + 10, 6)),
        ({}, CampaignEnd(block_number=7, log_index=0, block_timestamp=T0 + 2 * DAY + 100, campaign_address=campaign)),
        ({}, _campaign_move(CampaignWithdraw, USER_B, 300 * TOKEN_UNIT, T0 + 3 * DAY + 5, 8)),
        ({USER_A: 50, USER_B: 0}, _transfer(USER_B, USER_A, 20 * TOKEN_UNIT, T0 + 3 * DAY + 50, 9)),
        ({}, _tick(T0 + 4 * DAY + 10, 10)),
    ]

    previous_totals = _lifetime_totals(stack, (USER_A, USER_B))
    for balances, event in steps:
        for user, whole_tokens in balances.items():
            stack.chain.set_token_balance(token, user, whole_tokens * TOKEN_UNIT)
        stack.event_router.router_apply_event(event)

        current_totals = _lifetime_totals(stack, (USER_A, USER_B))
        for record_key, (earned_before, forfeited_before) in previous_totals.items():
            assert record_key in current_totals
            earned_after, forfeited_after = current_totals[record_key]
            assert earned_after >= earned_before, (event.event_kind, record_key)
            assert forfeited_after >= forfeited_before, (event.event_kind, record_key)
        previous_totals = current_totals

    assert any(forfeited > 0 for _, forfeited in previous_totals.values())
    assert all(earned > 0 for earned, _ in previous_totals.values())
