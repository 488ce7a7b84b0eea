"""Tests for leveraged-token mint and redeem cost basis and price history."""

from __future__ import annotations

from decimal import Decimal

from marks_ledger.domain import (
    SECONDS_PER_HOUR,
    TOKEN_UNIT,
    CampaignEndRecord,
    CampaignPosition,
    TokenMint,
    TokenRedeem,
)
from marks_ledger.ledger import LOT_EVENT_TYPE_GENESIS, LOT_EVENT_TYPE_MINT

T0 = 1_700_000_000
USER_A = "0x" + "a" * 40


def _mint(minter: str, collateral_in: int, token_out: int, timestamp: int, block: int) -> TokenMint:
    return TokenMint(
        block_number=block,
        log_index=0,
        block_timestamp=timestamp,
        minter_address=minter,
        user=USER_A,
        collateral_in=collateral_in,
        token_out=token_out,
    )


def _redeem(minter: str, token_burned: int, collateral_out: int, timestamp: int, block: int) -> TokenRedeem:
    return TokenRedeem(
        block_number=block,
        log_index=0,
        block_timestamp=timestamp,
        minter_address=minter,
        user=USER_A,
        token_burned=token_burned,
        collateral_out=collateral_out,
    )


def test_position_mints_then_redeem_realizes_fifo_pnl(build_ledger_stack) -> None:
    """Two mints at $2 and $3, then a 75-token redeem at $3 realizes $50.

    Returns:
        None: Assertions validate FIFO cost basis and realized P&L.

    Raises:
        AssertionError: Raised when position aggregates are wrong.
    """

    stack = build_ledger_stack()
    stack.chain.leveraged_nav = 2 * TOKEN_UNIT
    minter = stack.market.minter_address
    token = stack.market.leveraged_token_address

    stack.position_service.position_apply_mint(_mint(minter, 100 * TOKEN_UNIT, 50 * TOKEN_UNIT, T0, 1))
    stack.position_service.position_apply_mint(_mint(minter, 300 * TOKEN_UNIT, 100 * TOKEN_UNIT, T0 + 60, 2))
    position = stack.position_service.position_apply_redeem(
        _redeem(minter, 75 * TOKEN_UNIT, 225 * TOKEN_UNIT, T0 + 120, 3)
    )

    assert position.balance == 75 * TOKEN_UNIT
    assert position.total_cost_basis_usd == Decimal("225")
    assert position.average_cost_per_token == Decimal("3")
    assert position.realized_pnl_usd == Decimal("50")
    assert position.total_tokens_bought == 150 * TOKEN_UNIT
    assert position.total_tokens_sold == 75 * TOKEN_UNIT
    assert position.total_spent_usd == Decimal("400")
    assert position.total_received_usd == Decimal("225")
    assert position.first_acquired_at == T0
    assert stack.store.db_get_sail_position(token, USER_A) == position

    lots = stack.store.db_list_cost_basis_lots(token, USER_A)
    assert [lot.event_type for lot in lots] == [LOT_EVENT_TYPE_MINT, LOT_EVENT_TYPE_MINT]
    assert lots[0].is_fully_redeemed is True
    assert lots[1].token_amount == 75 * TOKEN_UNIT
    assert lots[1].cost_usd == Decimal("225")


def test_position_records_price_points_and_one_snapshot_per_hour(build_ledger_stack) -> None:
    """Every mint and redeem writes a price point; snapshots are hour-deduplicated.

    Returns:
        None: Assertions validate price history writes.

    Raises:
        AssertionError: Raised when price rows are wrong.
    """

    stack = build_ledger_stack()
    stack.chain.leveraged_nav = 2 * TOKEN_UNIT
    minter = stack.market.minter_address
    token = stack.market.leveraged_token_address

    stack.position_service.position_apply_mint(_mint(minter, 100 * TOKEN_UNIT, 50 * TOKEN_UNIT, T0, 1))
    stack.position_service.position_apply_redeem(_redeem(minter, 10 * TOKEN_UNIT, 20 * TOKEN_UNIT, T0 + 60, 2))

    price_points = stack.store.db_list_price_points()
    assert [point.event_type for point in price_points] == ["mint", "redeem"]
    assert price_points[0].token_price_usd == Decimal("2")
    assert price_points[0].collateral_price_usd == Decimal("1")
    assert price_points[0].implied_token_price == Decimal("2")
    snapshots = stack.store.db_list_hourly_snapshots(token)
    assert len(snapshots) == 1
    assert snapshots[0].hour_timestamp == T0 - T0 % SECONDS_PER_HOUR


def test_position_mint_values_from_token_side_when_oracle_fails(build_ledger_stack) -> None:
    """Fall back to `token_out * NAV * peg` when the collateral oracle is down.

    Returns:
        None: Assertions validate the mint valuation fallback.

    Raises:
        AssertionError: Raised when the fallback cost is wrong.
    """

    stack = build_ledger_stack()
    stack.chain.leveraged_nav = 2 * TOKEN_UNIT
    stack.chain.failing_reads.add("chain_read_oracle")

    position = stack.position_service.position_apply_mint(
        _mint(stack.market.minter_address, 100 * TOKEN_UNIT, 50 * TOKEN_UNIT, T0, 1)
    )

    assert position.total_cost_basis_usd == Decimal("100")
    price_point = stack.store.db_list_price_points()[0]
    assert price_point.token_price_usd == Decimal("2")
    assert price_point.wrapped_rate == Decimal("1")


def test_position_seeds_genesis_lot_once_after_campaign_end(build_ledger_stack) -> None:
    """Campaign participants get one genesis lot priced at half their net deposit.

    Returns:
        None: Assertions validate genesis lot seeding.

    Raises:
        AssertionError: Raised when the genesis lot is missing or duplicated.
    """

    stack = build_ledger_stack()
    campaign = stack.market.campaign_address
    token = stack.market.leveraged_token_address
    stack.store.db_put_campaign_end(CampaignEndRecord(campaign_address=campaign, ended_at=T0 - 10, block_number=1))
    stack.store.db_put_campaign_position(
        CampaignPosition(campaign_address=campaign, user=USER_A, net_deposit_usd=Decimal("100"), genesis_ended=True)
    )
    stack.chain.genesis_claimable[(campaign, USER_A)] = 40 * TOKEN_UNIT
    stack.chain.leveraged_nav = 2 * TOKEN_UNIT

    first = stack.position_service.position_apply_mint(
        _mint(stack.market.minter_address, 100 * TOKEN_UNIT, 50 * TOKEN_UNIT, T0, 2)
    )
    second = stack.position_service.position_apply_mint(
        _mint(stack.market.minter_address, 10 * TOKEN_UNIT, 5 * TOKEN_UNIT, T0 + 60, 3)
    )

    lots = stack.store.db_list_cost_basis_lots(token, USER_A)
    assert [lot.event_type for lot in lots] == [LOT_EVENT_TYPE_GENESIS, LOT_EVENT_TYPE_MINT, LOT_EVENT_TYPE_MINT]
    assert lots[0].token_amount == 40 * TOKEN_UNIT
    assert lots[0].cost_usd == Decimal("50")
    assert first.balance == 90 * TOKEN_UNIT
    assert first.total_cost_basis_usd == Decimal("150")
    assert second.balance == 95 * TOKEN_UNIT
    assert stack.chain.read_counts["chain_read_genesis_claimable_leveraged"] == 1


def test_position_skips_genesis_lot_before_campaign_end(build_ledger_stack) -> None:
    stack = build_ledger_stack()
    stack.store.db_put_campaign_position(
        CampaignPosition(campaign_address=stack.market.campaign_address, user=USER_A, net_deposit_usd=Decimal("100"))
    )

    stack.position_service.position_apply_mint(_mint(stack.market.minter_address, TOKEN_UNIT, TOKEN_UNIT, T0, 1))

    lots = stack.store.db_list_cost_basis_lots(stack.market.leveraged_token_address, USER_A)
    assert [lot.event_type for lot in lots] == [LOT_EVENT_TYPE_MINT]
    assert stack.chain.read_counts["chain_read_genesis_claimable_leveraged"] == 0


def test_position_hourly_snapshots_from_block_ticks(build_ledger_stack) -> None:
    """Block ticks write at most one snapshot per token per hour.

    Returns:
        None: Assertions validate hourly snapshot deduplication.

    Raises:
        AssertionError: Raised when snapshot counts are wrong.
    """

    stack = build_ledger_stack()

    first = stack.position_service.position_record_hourly_snapshots(now=T0, block_number=1)
    same_hour = stack.position_service.position_record_hourly_snapshots(now=T0 + 100, block_number=2)
    next_hour = stack.position_service.position_record_hourly_snapshots(now=T0 + SECONDS_PER_HOUR, block_number=3)

    assert len(first) == 1
    assert same_hour == []
    assert len(next_hour) == 1
    assert len(stack.store.db_list_hourly_snapshots(stack.market.leveraged_token_address)) == 2


def test_position_skips_snapshot_without_token_price(build_ledger_stack) -> None:
    stack = build_ledger_stack()
    stack.chain.failing_reads.add("chain_read_leveraged_nav")

    assert stack.position_service.position_record_hourly_snapshots(now=T0, block_number=1) == []


def test_position_unknown_minter_is_skipped(build_ledger_stack) -> None:
    stack = build_ledger_stack()

    assert stack.position_service.position_apply_redeem(_redeem("0x" + "9" * 40, 1, 1, T0, 1)) is None
