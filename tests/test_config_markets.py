"""Tests for the market table, address indexes, and reward rules."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest
from pydantic import ValidationError

from marks_ledger.config import MarketConfig, MarketConfigLoadError, MarketTable, RewardRules, config_load_market_table
from marks_ledger.domain import (
    SOURCE_KIND_ANCHOR_TOKEN,
    SOURCE_KIND_GENESIS,
    SOURCE_KIND_POOL_COLLATERAL,
    SOURCE_KIND_SAIL_TOKEN,
)

REPOSITORY_ROOT = Path(__file__).resolve().parents[1]


def test_market_table_indexes_every_address(build_market_table) -> None:
    """Resolve tokens, pools, minters, and campaigns case-insensitively.

    Returns:
        None: Assertions validate address lookups.

    Raises:
        AssertionError: Raised when lookups resolve the wrong owner.
    """

    market_table = build_market_table()
    market = market_table.markets[0]

    pegged_source = market_table.market_find_source(market.pegged_token_address.upper().replace("0X", "0x"))
    assert pegged_source.source_kind == SOURCE_KIND_ANCHOR_TOKEN
    assert market_table.market_find_source(market.collateral_pool_address).source_kind == SOURCE_KIND_POOL_COLLATERAL
    assert market_table.market_find_leveraged_token(market.leveraged_token_address) == market
    assert market_table.market_find_leveraged_token(market.pegged_token_address) is None
    assert market_table.market_find_minter(market.minter_address) == market
    assert market_table.market_find_campaign(market.campaign_address) == market
    assert market_table.market_find_source("0x" + "9" * 40) is None
    assert len(market_table.market_list_balance_sources()) == 4
    assert market_table.market_list_campaigns() == [market]


def test_market_table_rejects_shared_addresses() -> None:
    shared_address = "0x" + "3" * 40

    with pytest.raises(ValidationError, match="configured more than once"):
        MarketTable(
            markets=[
                MarketConfig(
                    market_id="first",
                    peg_asset="usd",
                    oracle_address="0x" + "1" * 40,
                    minter_address="0x" + "2" * 40,
                    pegged_token_address=shared_address,
                    leveraged_token_address="0x" + "4" * 40,
                ),
                MarketConfig(
                    market_id="second",
                    peg_asset="eth",
                    oracle_address="0x" + "5" * 40,
                    minter_address="0x" + "6" * 40,
                    pegged_token_address=shared_address,
                    leveraged_token_address="0x" + "8" * 40,
                ),
            ]
        )


def test_market_config_rejects_malformed_address() -> None:
    with pytest.raises(ValidationError, match="20 bytes"):
        MarketConfig(
            market_id="broken",
            peg_asset="usd",
            oracle_address="0x1234",
            minter_address="0x" + "2" * 40,
            pegged_token_address="0x" + "3" * 40,
            leveraged_token_address="0x" + "4" * 40,
        )


def test_reward_rules_fold_sail_promo_into_base_rate() -> None:
    """The leveraged-token base rate doubles once the promo starts.

    Returns:
        None: Assertions validate promo rate resolution.

    Raises:
        AssertionError: Raised when effective rates are wrong.
    """

    rules = RewardRules(sail_promo_start_timestamp=1_000)

    assert rules.rules_base_rate(SOURCE_KIND_SAIL_TOKEN, 999) == Decimal("5")
    assert rules.rules_base_rate(SOURCE_KIND_SAIL_TOKEN, 1_000) == Decimal("10")
    assert rules.rules_base_rate(SOURCE_KIND_ANCHOR_TOKEN, 1_000) == Decimal("1")
    assert rules.rules_base_rate(SOURCE_KIND_GENESIS, 0) == Decimal("10")
    assert rules.rules_boost_multiplier(SOURCE_KIND_SAIL_TOKEN) == Decimal("2")
    with pytest.raises(ValueError, match="source_kind"):
        rules.rules_base_rate("vault", 0)


def test_reward_rules_reject_sub_unit_boost_multiplier() -> None:
    with pytest.raises(ValidationError, match="at least 1"):
        RewardRules(boost_multipliers={SOURCE_KIND_ANCHOR_TOKEN: Decimal("0.5")})


def test_config_load_market_table_reads_example_file() -> None:
    market_table = config_load_market_table(REPOSITORY_ROOT / "markets.example.json")

    assert [market.market_id for market in market_table.markets] == ["eth-fxusd", "btc-fxusd"]
    assert market_table.peg_feeds.eth_usd_feed == "0x5f4ec3df9cbd43714fe2740f5e3616155c5b8419"
    assert market_table.reward_rules.boost_duration_seconds == 691_200
    assert market_table.reward_rules.sail_promo_multiplier == Decimal("2")


def test_config_load_market_table_wraps_read_and_validation_errors(tmp_path) -> None:
    """Missing files and invalid JSON both raise `MarketConfigLoadError`.

    Returns:
        None: Assertions validate load error wrapping.

    Raises:
        AssertionError: Raised when raw errors leak.
    """

    with pytest.raises(MarketConfigLoadError, match="could not be read"):
        config_load_market_table(tmp_path / "missing.json")

    invalid_path = tmp_path / "markets.json"
    invalid_path.write_text('{"markets": [{"market_id": ""}]}', encoding="utf-8")
    with pytest.raises(MarketConfigLoadError, match="validation failed"):
        config_load_market_table(invalid_path)
