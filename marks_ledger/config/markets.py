"""Static market table loaded once at startup.

The table maps every configured contract address (tokens, pools, campaigns,
minters) to its market so ledgers resolve ownership through dictionary
lookups rather than address branching.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, PrivateAttr, ValidationError, field_validator, model_validator

from marks_ledger.domain import (
    ORACLE_KIND_FXUSD_PRICE,
    PEG_ASSET_ETH,
    SECONDS_PER_DAY,
    SOURCE_KIND_ANCHOR_TOKEN,
    SOURCE_KIND_GENESIS,
    SOURCE_KIND_POOL_COLLATERAL,
    SOURCE_KIND_POOL_LEVERAGED,
    SOURCE_KIND_SAIL_TOKEN,
    domain_normalize_address,
    domain_validate_source_kind,
)


class MarketConfigLoadError(RuntimeError):
    """Raised when the market table file cannot be read or validated."""


class MarketConfig(BaseModel):
    """Address set and peg metadata of one market.

    Attributes:
        market_id: Stable market label, for example `eth-fxusd`.
        peg_asset: Asset tracked by the pegged token.
        oracle_address: Wrapped collateral price oracle.
        oracle_kind: Oracle return shape.
        minter_address: Minter emitting mint and redeem events.
        pegged_token_address: Pegged ("anchor") token.
        leveraged_token_address: Leveraged ("sail") token.
        collateral_pool_address: Optional collateral stability pool.
        leveraged_pool_address: Optional leveraged stability pool.
        campaign_address: Optional genesis campaign contract.
        early_bonus_threshold_amount: Early-bird threshold in raw collateral units.
    """

    market_id: str = Field(min_length=1)
    peg_asset: Literal["usd", "eth", "btc", "eur"]
    oracle_address: str
    oracle_kind: Literal["wrapped_rate", "fxusd_price"] = "wrapped_rate"
    minter_address: str
    pegged_token_address: str
    leveraged_token_address: str
    collateral_pool_address: str | None = None
    leveraged_pool_address: str | None = None
    campaign_address: str | None = None
    early_bonus_threshold_amount: int = Field(default=0, ge=0)

    @field_validator(
        "oracle_address",
        "minter_address",
        "pegged_token_address",
        "leveraged_token_address",
        "collateral_pool_address",
        "leveraged_pool_address",
        "campaign_address",
    )
    @classmethod
    def _normalize_address(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return domain_normalize_address(value)

    @property
    def collateral_peg_asset(self) -> str:
        """Return the asset the wrapped collateral oracle is denominated in."""

        if self.oracle_kind == ORACLE_KIND_FXUSD_PRICE:
            return PEG_ASSET_ETH
        return self.peg_asset

    def market_source_addresses(self) -> list[tuple[str, str]]:
        """Return `(source_kind, source_address)` pairs of every configured balance source."""

        sources = [
            (SOURCE_KIND_ANCHOR_TOKEN, self.pegged_token_address),
            (SOURCE_KIND_SAIL_TOKEN, self.leveraged_token_address),
        ]
        if self.collateral_pool_address is not None:
            sources.append((SOURCE_KIND_POOL_COLLATERAL, self.collateral_pool_address))
        if self.leveraged_pool_address is not None:
            sources.append((SOURCE_KIND_POOL_LEVERAGED, self.leveraged_pool_address))
        return sources


class PegFeedConfig(BaseModel):
    """Chainlink-style peg/USD feed addresses (8 decimals)."""

    eth_usd_feed: str | None = None
    btc_usd_feed: str | None = None
    eur_usd_feed: str | None = None

    @field_validator("eth_usd_feed", "btc_usd_feed", "eur_usd_feed")
    @classmethod
    def _normalize_address(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return domain_normalize_address(value)

    def feed_for_peg(self, peg_asset: str) -> str | None:
        """Return the feed address for a non-USD peg asset, `None` when unconfigured."""

        return {
            "eth": self.eth_usd_feed,
            "btc": self.btc_usd_feed,
            "eur": self.eur_usd_feed,
        }.get(peg_asset)


def _default_base_rates() -> dict[str, Decimal]:
    return {
        SOURCE_KIND_ANCHOR_TOKEN: Decimal("1"),
        SOURCE_KIND_SAIL_TOKEN: Decimal("5"),
        SOURCE_KIND_POOL_COLLATERAL: Decimal("1"),
        SOURCE_KIND_POOL_LEVERAGED: Decimal("2"),
        SOURCE_KIND_GENESIS: Decimal("10"),
    }


def _default_boost_multipliers() -> dict[str, Decimal]:
    return {
        SOURCE_KIND_ANCHOR_TOKEN: Decimal("10"),
        SOURCE_KIND_SAIL_TOKEN: Decimal("2"),
        SOURCE_KIND_POOL_COLLATERAL: Decimal("10"),
        SOURCE_KIND_POOL_LEVERAGED: Decimal("10"),
        SOURCE_KIND_GENESIS: Decimal("10"),
    }


class RewardRules(BaseModel):
    """Marks rates, bonus rates, boost defaults, and price cache TTLs.

    Attributes:
        base_rates: Marks per dollar per day keyed by source kind.
        sail_promo_start_timestamp: Start of the leveraged-token holding promo.
        sail_promo_multiplier: Promo multiplier applied on top of boost windows.
        end_bonus_rate: Campaign end bonus marks per deposited dollar.
        early_bonus_rate: Early-bird bonus marks per eligible dollar.
        boost_duration_seconds: Boost window length.
        boost_multipliers: Boost multiplier keyed by source kind.
        genesis_cost_ratio: Share of net campaign deposit used as genesis lot cost.
        price_cache_ttl_seconds: Default cache TTL for oracle reads.
        peg_feed_cache_ttl_seconds: Cache TTL for ETH and BTC peg feeds.
    """

    base_rates: dict[str, Decimal] = Field(default_factory=_default_base_rates)
    sail_promo_start_timestamp: int = Field(default=1_768_355_397, ge=0)
    sail_promo_multiplier: Decimal = Field(default=Decimal("2"), ge=1)
    end_bonus_rate: Decimal = Field(default=Decimal("100"), ge=0)
    early_bonus_rate: Decimal = Field(default=Decimal("100"), ge=0)
    boost_duration_seconds: int = Field(default=8 * SECONDS_PER_DAY, ge=0)
    boost_multipliers: dict[str, Decimal] = Field(default_factory=_default_boost_multipliers)
    genesis_cost_ratio: Decimal = Field(default=Decimal("0.5"), ge=0, le=1)
    price_cache_ttl_seconds: int = Field(default=3_600, ge=0)
    peg_feed_cache_ttl_seconds: int = Field(default=300, ge=0)

    @field_validator("base_rates", "boost_multipliers")
    @classmethod
    def _validate_source_kind_keys(cls, value: dict[str, Decimal]) -> dict[str, Decimal]:
        for source_kind, rate in value.items():
            domain_validate_source_kind(source_kind)
            if rate < 0:
                raise ValueError(f"rate for {source_kind} must not be negative")
        return value

    @field_validator("boost_multipliers")
    @classmethod
    def _validate_multiplier_floor(cls, value: dict[str, Decimal]) -> dict[str, Decimal]:
        for source_kind, multiplier in value.items():
            if multiplier < 1:
                raise ValueError(f"boost multiplier for {source_kind} must be at least 1")
        return value

    def rules_base_rate(self, source_kind: str, at_timestamp: int) -> Decimal:
        """Return marks per dollar per day for a source kind at a timestamp.

        The sail promo multiplier is folded into the leveraged-token base rate
        once the promo has started.

        Args:
            source_kind: Reward source kind.
            at_timestamp: Timestamp the rate applies at.

        Returns:
            Decimal: Effective base rate, `0` for unconfigured kinds.

        Raises:
            ValueError: Raised when source kind is unknown.
        """

        domain_validate_source_kind(source_kind)
        base_rate = self.base_rates.get(source_kind, Decimal("0"))
        if source_kind == SOURCE_KIND_SAIL_TOKEN and at_timestamp >= self.sail_promo_start_timestamp:
            return base_rate * self.sail_promo_multiplier
        return base_rate

    def rules_boost_multiplier(self, source_kind: str) -> Decimal:
        """Return the default boost multiplier for a source kind."""

        domain_validate_source_kind(source_kind)
        return self.boost_multipliers.get(source_kind, Decimal("1"))


@dataclass(frozen=True)
class MarketSource:
    """Resolved balance source owned by one market."""

    market: MarketConfig
    source_kind: str
    source_address: str


class MarketTable(BaseModel):
    """All configured markets with address indexes built once on load."""

    markets: list[MarketConfig] = Field(default_factory=list)
    peg_feeds: PegFeedConfig = Field(default_factory=PegFeedConfig)
    reward_rules: RewardRules = Field(default_factory=RewardRules)

    _sources_by_address: dict[str, MarketSource] = PrivateAttr(default_factory=dict)
    _markets_by_campaign: dict[str, MarketConfig] = PrivateAttr(default_factory=dict)
    _markets_by_minter: dict[str, MarketConfig] = PrivateAttr(default_factory=dict)

    @model_validator(mode="after")
    def _validate_unique_addresses(self) -> "MarketTable":
        seen_addresses: set[str] = set()
        seen_market_ids: set[str] = set()
        for market in self.markets:
            if market.market_id in seen_market_ids:
                raise ValueError(f"duplicate market_id={market.market_id}")
            seen_market_ids.add(market.market_id)
            owned_addresses = [address for _, address in market.market_source_addresses()]
            owned_addresses.append(market.minter_address)
            if market.campaign_address is not None:
                owned_addresses.append(market.campaign_address)
            for address in owned_addresses:
                if address in seen_addresses:
                    raise ValueError(f"address {address} is configured more than once")
                seen_addresses.add(address)
        return self

    def model_post_init(self, __context) -> None:
        for market in self.markets:
            for source_kind, source_address in market.market_source_addresses():
                self._sources_by_address[source_address] = MarketSource(
                    market=market,
                    source_kind=source_kind,
                    source_address=source_address,
                )
            self._markets_by_minter[market.minter_address] = market
            if market.campaign_address is not None:
                self._markets_by_campaign[market.campaign_address] = market

    def market_find_source(self, address: str) -> MarketSource | None:
        """Resolve a token or pool address to its balance source, `None` when unknown."""

        return self._sources_by_address.get(address.lower())

    def market_find_campaign(self, campaign_address: str) -> MarketConfig | None:
        """Resolve a campaign contract address to its market."""

        return self._markets_by_campaign.get(campaign_address.lower())

    def market_find_minter(self, minter_address: str) -> MarketConfig | None:
        """Resolve a minter contract address to its market."""

        return self._markets_by_minter.get(minter_address.lower())

    def market_find_leveraged_token(self, token_address: str) -> MarketConfig | None:
        """Resolve a leveraged token address to its market."""

        source = self.market_find_source(token_address)
        if source is None or source.source_kind != SOURCE_KIND_SAIL_TOKEN:
            return None
        return source.market

    def market_list_balance_sources(self) -> list[MarketSource]:
        """Return every configured balance source in stable address order."""

        return [self._sources_by_address[address] for address in sorted(self._sources_by_address)]

    def market_list_campaigns(self) -> list[MarketConfig]:
        """Return every market that runs a campaign in stable address order."""

        return [self._markets_by_campaign[address] for address in sorted(self._markets_by_campaign)]


def config_load_market_table(path: str | Path) -> MarketTable:
    """Load and validate the JSON market table.

    Args:
        path: Market table file path.

    Returns:
        MarketTable: Validated market table with address indexes.

    Raises:
        MarketConfigLoadError: Raised when the file cannot be read or fails validation.
    """

    if path is None:
        raise ValueError("path must not be None")

    market_path = Path(path)
    try:
        raw_text = market_path.read_text(encoding="utf-8")
    except OSError as error:
        raise MarketConfigLoadError(f"market table could not be read from {market_path}") from error

    try:
        return MarketTable.model_validate_json(raw_text)
    except ValidationError as error:
        raise MarketConfigLoadError(f"market table validation failed for {market_path}. Details: {error}") from error
