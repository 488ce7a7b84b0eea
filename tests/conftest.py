"""Shared ledger fixtures: a scripted chain stub and a one-market ledger stack."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from decimal import Decimal

import pytest

from marks_ledger.adapters import ChainReadError
from marks_ledger.config import MarketConfig, MarketTable, RewardRules
from marks_ledger.db import InMemoryLedgerStore
from marks_ledger.domain import TOKEN_UNIT, ScalarPriceReading, WrappedRatePriceReading
from marks_ledger.jobs import EventRouter
from marks_ledger.ledger import (
    AggregationView,
    BalanceLedger,
    BoostWindowRegistry,
    CampaignLedger,
    SailPositionService,
)
from marks_ledger.pricing import PriceNormalizer

TEST_MARKET = {
    "market_id": "usd-test",
    "peg_asset": "usd",
    "oracle_address": "0x" + "1" * 40,
    "minter_address": "0x" + "2" * 40,
    "pegged_token_address": "0x" + "3" * 40,
    "leveraged_token_address": "0x" + "4" * 40,
    "collateral_pool_address": "0x" + "5" * 40,
    "leveraged_pool_address": "0x" + "6" * 40,
    "campaign_address": "0x" + "7" * 40,
    "early_bonus_threshold_amount": 1_000 * TOKEN_UNIT,
}


def _default_test_rules() -> dict[str, object]:
    return {
        "base_rates": {
            "anchor_token": Decimal("1"),
            "sail_token": Decimal("5"),
            "pool_collateral": Decimal("1"),
            "pool_leveraged": Decimal("2"),
            "genesis": Decimal("1"),
        },
        "sail_promo_start_timestamp": 2_000_000_000,
        "boost_duration_seconds": 0,
    }


class ChainStub:
    """Scripted `ChainStatePort` holding balances and prices in dictionaries.

    Reads named in `failing_reads` raise `ChainReadError`; every read is
    counted in `read_counts` by method name.
    """

    def __init__(self) -> None:
        self.token_balances: dict[tuple[str, str], int] = {}
        self.pool_deposits: dict[tuple[str, str], int] = {}
        self.oracle_reading = WrappedRatePriceReading(
            min_underlying=TOKEN_UNIT,
            max_underlying=TOKEN_UNIT,
            min_rate=TOKEN_UNIT,
            max_rate=TOKEN_UNIT,
        )
        self.feed_readings: dict[str, ScalarPriceReading] = {}
        self.leveraged_nav = TOKEN_UNIT
        self.genesis_claimable: dict[tuple[str, str], int] = {}
        self.failing_reads: set[str] = set()
        self.read_counts: Counter[str] = Counter()

    def set_token_balance(self, token_address: str, user: str, raw_balance: int) -> None:
        self.token_balances[(token_address.lower(), user.lower())] = raw_balance

    def set_pool_deposit(self, pool_address: str, user: str, raw_deposit: int) -> None:
        self.pool_deposits[(pool_address.lower(), user.lower())] = raw_deposit

    def chain_read_token_balance(self, token_address: str, user: str, block_number: int | None = None) -> int:
        self._stub_record_read("chain_read_token_balance")
        return self.token_balances.get((token_address.lower(), user.lower()), 0)

    def chain_read_pool_deposit(self, pool_address: str, user: str, block_number: int | None = None) -> int:
        self._stub_record_read("chain_read_pool_deposit")
        return self.pool_deposits.get((pool_address.lower(), user.lower()), 0)

    def chain_read_oracle(self, oracle_address: str, oracle_kind: str, block_number: int | None = None):
        self._stub_record_read("chain_read_oracle")
        return self.oracle_reading

    def chain_read_feed(self, feed_address: str, block_number: int | None = None) -> ScalarPriceReading:
        self._stub_record_read("chain_read_feed")
        reading = self.feed_readings.get(feed_address.lower())
        if reading is None:
            raise ChainReadError("feed not scripted", contract_address=feed_address)
        return reading

    def chain_read_leveraged_nav(self, minter_address: str, block_number: int | None = None) -> int:
        self._stub_record_read("chain_read_leveraged_nav")
        return self.leveraged_nav

    def chain_read_genesis_claimable_leveraged(
        self,
        campaign_address: str,
        user: str,
        block_number: int | None = None,
    ) -> int:
        self._stub_record_read("chain_read_genesis_claimable_leveraged")
        return self.genesis_claimable.get((campaign_address.lower(), user.lower()), 0)

    def _stub_record_read(self, read_name: str) -> None:
        self.read_counts[read_name] += 1
        if read_name in self.failing_reads:
            raise ChainReadError(f"{read_name} unavailable")


@dataclass
class LedgerStack:
    """Every ledger component wired over one in-memory store."""

    store: InMemoryLedgerStore
    chain: ChainStub
    market_table: MarketTable
    price_normalizer: PriceNormalizer
    boost_registry: BoostWindowRegistry
    balance_ledger: BalanceLedger
    campaign_ledger: CampaignLedger
    position_service: SailPositionService
    event_router: EventRouter
    aggregation_view: AggregationView

    @property
    def market(self) -> MarketConfig:
        return self.market_table.markets[0]


@pytest.fixture
def chain_stub() -> ChainStub:
    return ChainStub()


@pytest.fixture
def build_market_table():
    """Return a factory building the one-market table with rule overrides."""

    def _build(**rule_overrides) -> MarketTable:
        rules = _default_test_rules()
        rules.update(rule_overrides)
        return MarketTable(
            markets=[MarketConfig(**TEST_MARKET)],
            reward_rules=RewardRules(**rules),
        )

    return _build


@pytest.fixture
def build_ledger_stack(chain_stub, build_market_table):
    """Return a factory wiring a full ledger stack with rule overrides."""

    def _build(**rule_overrides) -> LedgerStack:
        store = InMemoryLedgerStore()
        market_table = build_market_table(**rule_overrides)
        price_normalizer = PriceNormalizer(chain=chain_stub, market_table=market_table)
        boost_registry = BoostWindowRegistry(
            store=store,
            boost_duration_seconds=market_table.reward_rules.boost_duration_seconds,
        )
        balance_ledger = BalanceLedger(store, market_table, chain_stub, price_normalizer, boost_registry)
        campaign_ledger = CampaignLedger(store, market_table, price_normalizer, boost_registry)
        position_service = SailPositionService(store, market_table, chain_stub, price_normalizer)
        return LedgerStack(
            store=store,
            chain=chain_stub,
            market_table=market_table,
            price_normalizer=price_normalizer,
            boost_registry=boost_registry,
            balance_ledger=balance_ledger,
            campaign_ledger=campaign_ledger,
            position_service=position_service,
            event_router=EventRouter(store, balance_ledger, campaign_ledger, position_service),
            aggregation_view=AggregationView(store, market_table),
        )

    return _build
