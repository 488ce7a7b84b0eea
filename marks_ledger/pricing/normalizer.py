"""USD price normalization over shape-resolved oracle readings.

`pricing_reading_to_usd` is the pure conversion. `PriceNormalizer` layers the
per-market price rules, the read cache, and the zero-price failure sentinel
on top of a `ChainStatePort`.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Callable

from loguru import logger

from marks_ledger.adapters import ChainReadError, ChainStatePort
from marks_ledger.config import MarketConfig, MarketSource, MarketTable
from marks_ledger.domain import (
    PEG_ASSET_BTC,
    PEG_ASSET_ETH,
    PEG_ASSET_EUR,
    PEG_ASSET_USD,
    POOL_DEPOSIT_SOURCE_KINDS,
    SOURCE_KIND_ANCHOR_TOKEN,
    SOURCE_KIND_SAIL_TOKEN,
    TOKEN_UNIT,
    PriceReading,
    ScalarPriceReading,
    WrappedRatePriceReading,
)

ZERO = Decimal("0")
ONE = Decimal("1")
_TOKEN_UNIT_DECIMAL = Decimal(TOKEN_UNIT)


def pricing_reading_to_usd(reading: PriceReading, peg_usd: Decimal) -> Decimal:
    """Convert one oracle reading into a USD price.

    Scalar readings are USD-denominated already and ignore `peg_usd`. Wrapped-rate
    readings use the conventional upper bounds: `max_underlying * max_rate * peg_usd`.

    Args:
        reading: Shape-resolved oracle reading.
        peg_usd: USD price of the peg asset the reading is denominated in.

    Returns:
        Decimal: USD price, or `0` when any input is non-positive.

    Raises:
        ValueError: Raised when reading is None or of an unsupported shape.
    """

    if reading is None:
        raise ValueError("reading must not be None")

    if isinstance(reading, ScalarPriceReading):
        if reading.answer <= 0:
            return ZERO
        return Decimal(reading.answer) / (Decimal(10) ** reading.decimals)

    if isinstance(reading, WrappedRatePriceReading):
        if reading.max_underlying <= 0 or reading.max_rate <= 0 or peg_usd <= ZERO:
            return ZERO
        underlying = Decimal(reading.max_underlying) / _TOKEN_UNIT_DECIMAL
        rate = Decimal(reading.max_rate) / _TOKEN_UNIT_DECIMAL
        return underlying * rate * peg_usd

    raise ValueError(f"unsupported price reading type={type(reading).__name__}")


@dataclass(frozen=True)
class _PriceCacheEntry:
    fetched_at: int
    value: Decimal


class PriceNormalizer:
    """Per-market USD prices with TTL caching and zero-price degradation.

    Every public price returns `Decimal("0")` instead of raising when the
    underlying chain read fails or yields a non-positive value. Zero results
    are never cached, so the next call retries the read.
    """

    def __init__(self, chain: ChainStatePort, market_table: MarketTable):
        """Initialize the price normalizer.

        Args:
            chain: Read-only chain state port.
            market_table: Static market and peg feed configuration.

        Raises:
            ValueError: Raised when dependencies are missing.
        """

        if chain is None:
            raise ValueError("chain must not be None")
        if market_table is None:
            raise ValueError("market_table must not be None")

        self._chain = chain
        self._market_table = market_table
        self._rules = market_table.reward_rules
        self._cache: dict[tuple[str, str], _PriceCacheEntry] = {}
        self._wrapped_rates: dict[str, Decimal] = {}

    def pricing_price_usd(self, token_or_feed: str, at_timestamp: int, block_number: int | None = None) -> Decimal:
        """Return the USD price of a configured token, pool, oracle, or peg feed.

        Args:
            token_or_feed: Configured token, pool, oracle, or peg feed address.
            at_timestamp: Block timestamp the price is requested for.
            block_number: Optional block to read at.

        Returns:
            Decimal: USD price, `0` when unavailable or the address is unknown.

        Raises:
            RuntimeError: This method does not raise runtime errors.
        """

        address = token_or_feed.lower()
        source = self._market_table.market_find_source(address)
        if source is not None:
            return self.pricing_source_usd(source, at_timestamp, block_number)

        for peg_asset in (PEG_ASSET_ETH, PEG_ASSET_BTC, PEG_ASSET_EUR):
            if self._market_table.peg_feeds.feed_for_peg(peg_asset) == address:
                return self.pricing_peg_usd(peg_asset, at_timestamp, block_number)

        for market in self._market_table.markets:
            if market.oracle_address == address:
                return self.pricing_wrapped_collateral_usd(market, at_timestamp, block_number)

        logger.warning("price requested for unconfigured address={}", address)
        return ZERO

    def pricing_source_usd(self, source: MarketSource, at_timestamp: int, block_number: int | None = None) -> Decimal:
        """Return the USD price of one whole unit held in a balance source."""

        if source.source_kind == SOURCE_KIND_ANCHOR_TOKEN:
            return self.pricing_pegged_token_usd(source.market, at_timestamp, block_number)
        if source.source_kind == SOURCE_KIND_SAIL_TOKEN:
            return self.pricing_leveraged_token_usd(source.market, at_timestamp, block_number)
        if source.source_kind in POOL_DEPOSIT_SOURCE_KINDS:
            return self.pricing_pool_deposit_usd(source.market, at_timestamp, block_number)
        raise ValueError(f"unsupported source_kind={source.source_kind}")

    def pricing_peg_usd(self, peg_asset: str, at_timestamp: int, block_number: int | None = None) -> Decimal:
        """Return the USD price of a peg asset; USD pegs are exactly `1`."""

        if peg_asset == PEG_ASSET_USD:
            return ONE

        feed_address = self._market_table.peg_feeds.feed_for_peg(peg_asset)
        if feed_address is None:
            logger.warning("no peg feed configured for peg_asset={}", peg_asset)
            return ZERO

        ttl_seconds = (
            self._rules.peg_feed_cache_ttl_seconds
            if peg_asset in (PEG_ASSET_ETH, PEG_ASSET_BTC)
            else self._rules.price_cache_ttl_seconds
        )
        return self._pricing_read_cached(
            cache_key=("feed", feed_address),
            ttl_seconds=ttl_seconds,
            at_timestamp=at_timestamp,
            loader=lambda: pricing_reading_to_usd(self._chain.chain_read_feed(feed_address, block_number), ONE),
        )

    def pricing_wrapped_collateral_usd(
        self,
        market: MarketConfig,
        at_timestamp: int,
        block_number: int | None = None,
    ) -> Decimal:
        """Return the USD price of one whole wrapped collateral token of a market."""

        peg_usd = self.pricing_peg_usd(market.collateral_peg_asset, at_timestamp, block_number)
        if peg_usd <= ZERO:
            return ZERO
        price_in_peg = self._pricing_read_cached(
            cache_key=("oracle", market.oracle_address),
            ttl_seconds=self._rules.price_cache_ttl_seconds,
            at_timestamp=at_timestamp,
            loader=lambda: self._pricing_load_oracle(market, block_number),
        )
        return price_in_peg * peg_usd

    def pricing_wrapped_rate(self, market: MarketConfig) -> Decimal:
        """Return the last observed wrapped-to-underlying rate, `0` when never read."""

        return self._wrapped_rates.get(market.oracle_address, ZERO)

    def pricing_pegged_token_usd(self, market: MarketConfig, at_timestamp: int, block_number: int | None = None) -> Decimal:
        return self.pricing_peg_usd(market.peg_asset, at_timestamp, block_number)

    def pricing_pool_deposit_usd(self, market: MarketConfig, at_timestamp: int, block_number: int | None = None) -> Decimal:
        # Stability pools hold the market's pegged token.
        return self.pricing_pegged_token_usd(market, at_timestamp, block_number)

    def pricing_leveraged_nav(self, market: MarketConfig, at_timestamp: int, block_number: int | None = None) -> Decimal:
        """Return the leveraged token NAV in peg units, `0` when unavailable."""

        return self._pricing_read_cached(
            cache_key=("nav", market.minter_address),
            ttl_seconds=self._rules.price_cache_ttl_seconds,
            at_timestamp=at_timestamp,
            loader=lambda: Decimal(self._chain.chain_read_leveraged_nav(market.minter_address, block_number))
            / _TOKEN_UNIT_DECIMAL,
        )

    def pricing_leveraged_token_usd(
        self,
        market: MarketConfig,
        at_timestamp: int,
        block_number: int | None = None,
    ) -> Decimal:
        """Return leveraged token USD as `NAV * peg USD`."""

        nav = self.pricing_leveraged_nav(market, at_timestamp, block_number)
        if nav <= ZERO:
            return ZERO
        return nav * self.pricing_peg_usd(market.peg_asset, at_timestamp, block_number)

    def _pricing_load_oracle(self, market: MarketConfig, block_number: int | None) -> Decimal:
        reading = self._chain.chain_read_oracle(market.oracle_address, market.oracle_kind, block_number)
        if isinstance(reading, WrappedRatePriceReading) and reading.max_rate > 0:
            self._wrapped_rates[market.oracle_address] = Decimal(reading.max_rate) / _TOKEN_UNIT_DECIMAL
        return pricing_reading_to_usd(reading, ONE)

    def _pricing_read_cached(
        self,
        cache_key: tuple[str, str],
        ttl_seconds: int,
        at_timestamp: int,
        loader: Callable[[], Decimal],
    ) -> Decimal:
        """Return a cached positive price or load a fresh one.

        Args:
            cache_key: `(read kind, address)` cache key.
            ttl_seconds: Freshness window of a cached value.
            at_timestamp: Block timestamp of the request.
            loader: Callable performing the chain read.

        Returns:
            Decimal: Positive price, or `0` when the read failed or was non-positive.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        cached_entry = self._cache.get(cache_key)
        if (
            cached_entry is not None
            and cached_entry.fetched_at <= at_timestamp
            and at_timestamp - cached_entry.fetched_at < ttl_seconds
        ):
            return cached_entry.value

        try:
            loaded_value = loader()
        except ChainReadError as error:
            logger.warning("price read failed | kind={} | address={} | error={}", cache_key[0], cache_key[1], error)
            return ZERO

        if loaded_value <= ZERO:
            logger.warning("price read returned non-positive value | kind={} | address={}", cache_key[0], cache_key[1])
            return ZERO

        self._cache[cache_key] = _PriceCacheEntry(fetched_at=at_timestamp, value=loaded_value)
        return loaded_value
