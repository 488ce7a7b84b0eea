"""Leveraged-token position service: mint and redeem cost basis plus price history."""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal

from loguru import logger

from marks_ledger.adapters import ChainReadError, ChainStatePort
from marks_ledger.config import MarketConfig, MarketTable
from marks_ledger.db import LedgerStorePort
from marks_ledger.domain import (
    SECONDS_PER_HOUR,
    TOKEN_UNIT,
    CostBasisLot,
    HourlyPriceSnapshot,
    PricePoint,
    TokenMint,
    TokenRedeem,
    UserSailPosition,
    domain_normalize_address,
)
from marks_ledger.pricing import PriceNormalizer

from .cost_basis import (
    LOT_EVENT_TYPE_GENESIS,
    LOT_EVENT_TYPE_MINT,
    cost_basis_append_lot,
    cost_basis_consume_fifo,
    cost_basis_fold_position,
    cost_basis_open_amount,
)

ZERO = Decimal("0")
ONE = Decimal("1")
_TOKEN_UNIT_DECIMAL = Decimal(TOKEN_UNIT)

PRICE_EVENT_TYPE_MINT = "mint"
PRICE_EVENT_TYPE_REDEEM = "redeem"


def position_hourly_tracker_name(token_address: str) -> str:
    """Return the tracker name holding the last hourly snapshot of a token."""

    return f"hourly_price:{token_address}"


@dataclass(frozen=True)
class MarketPriceQuote:
    """Prices of one market resolved for a single event.

    Attributes:
        token_price_usd: Leveraged token USD price, `0` when unavailable.
        collateral_price_usd: Underlying collateral USD price, peg USD when the oracle is unavailable.
        wrapped_rate: Wrapped-to-underlying rate, `1` when unavailable.
        wrapped_collateral_usd: Wrapped collateral USD price, `0` when unavailable.
    """

    token_price_usd: Decimal
    collateral_price_usd: Decimal
    wrapped_rate: Decimal
    wrapped_collateral_usd: Decimal


class SailPositionService:
    """Apply mint and redeem events to FIFO cost-basis positions.

    Positions are keyed by `(leveraged_token, user)`. Aggregates are refolded
    from the lots after every lot mutation.
    """

    def __init__(
        self,
        store: LedgerStorePort,
        market_table: MarketTable,
        chain: ChainStatePort,
        price_normalizer: PriceNormalizer,
    ):
        """Initialize position service dependencies.

        Args:
            store: Ledger record store.
            market_table: Static market table.
            chain: Read-only chain state port for genesis claimable reads.
            price_normalizer: USD price source.

        Raises:
            ValueError: Raised when any dependency is None.
        """

        if store is None:
            raise ValueError("store must not be None")
        if market_table is None:
            raise ValueError("market_table must not be None")
        if chain is None:
            raise ValueError("chain must not be None")
        if price_normalizer is None:
            raise ValueError("price_normalizer must not be None")

        self._store = store
        self._market_table = market_table
        self._rules = market_table.reward_rules
        self._chain = chain
        self._price_normalizer = price_normalizer

    def position_apply_mint(self, event: TokenMint) -> UserSailPosition | None:
        """Value a mint, append its lot, and record its price point.

        Args:
            event: Leveraged token mint event.

        Returns:
            UserSailPosition | None: Persisted position, or None for unknown minters.

        Raises:
            ValueError: Raised when event is None or amounts are negative.
        """

        if event is None:
            raise ValueError("event must not be None")
        if event.collateral_in < 0 or event.token_out < 0:
            raise ValueError("mint amounts must be >= 0")

        market = self._position_resolve_market(event.minter_address, event.event_kind)
        if market is None:
            return None

        user = domain_normalize_address(event.user)
        now = event.block_timestamp
        quote = self.position_quote_market(market, now, event.block_number)
        collateral_value_usd = self._position_value_collateral(quote, event.collateral_in, event.token_out)

        self._position_record_prices(
            market=market,
            quote=quote,
            event_type=PRICE_EVENT_TYPE_MINT,
            block_number=event.block_number,
            log_index=event.log_index,
            timestamp=now,
            collateral_amount=event.collateral_in,
            token_amount=event.token_out,
            value_usd=collateral_value_usd,
        )

        token_address = market.leveraged_token_address
        position, lots = self._position_load(token_address, user)
        position, lots = self._position_apply_genesis_lot(market, position, lots, now, event.block_number)

        lots = cost_basis_append_lot(
            lots,
            token_address=token_address,
            user=user,
            token_amount=event.token_out,
            cost_usd=collateral_value_usd,
            event_type=LOT_EVENT_TYPE_MINT,
            acquired_at=now,
            block_number=event.block_number,
        )
        self._store.db_put_cost_basis_lots([lots[-1]])

        position = replace(
            position,
            total_tokens_bought=position.total_tokens_bought + event.token_out,
            total_spent_usd=position.total_spent_usd + collateral_value_usd,
            first_acquired_at=position.first_acquired_at or now,
            last_updated=max(position.last_updated, now),
        )
        position = cost_basis_fold_position(position, lots)
        self._store.db_put_sail_position(position)
        return position

    def position_apply_redeem(self, event: TokenRedeem) -> UserSailPosition | None:
        """Value a redemption, consume lots FIFO, and realize P&L.

        Args:
            event: Leveraged token redeem event.

        Returns:
            UserSailPosition | None: Persisted position, or None for unknown minters.

        Raises:
            ValueError: Raised when event is None or amounts are negative.
        """

        if event is None:
            raise ValueError("event must not be None")
        if event.token_burned < 0 or event.collateral_out < 0:
            raise ValueError("redeem amounts must be >= 0")

        market = self._position_resolve_market(event.minter_address, event.event_kind)
        if market is None:
            return None

        user = domain_normalize_address(event.user)
        now = event.block_timestamp
        quote = self.position_quote_market(market, now, event.block_number)
        proceeds_usd = self._position_value_collateral(quote, event.collateral_out, event.token_burned)

        self._position_record_prices(
            market=market,
            quote=quote,
            event_type=PRICE_EVENT_TYPE_REDEEM,
            block_number=event.block_number,
            log_index=event.log_index,
            timestamp=now,
            collateral_amount=event.collateral_out,
            token_amount=event.token_burned,
            value_usd=proceeds_usd,
        )

        token_address = market.leveraged_token_address
        position, lots = self._position_load(token_address, user)
        position, lots = self._position_apply_genesis_lot(market, position, lots, now, event.block_number)

        open_amount = cost_basis_open_amount(lots)
        if event.token_burned > open_amount:
            logger.warning(
                "redeem exceeds open lots, consuming available lots only | token={} | user={} | open={} | burned={}",
                token_address,
                user,
                open_amount,
                event.token_burned,
            )

        lots, consumed_cost_usd = cost_basis_consume_fifo(lots, event.token_burned)
        self._store.db_put_cost_basis_lots(list(lots))

        realized_pnl_usd = proceeds_usd - consumed_cost_usd
        position = replace(
            position,
            realized_pnl_usd=position.realized_pnl_usd + realized_pnl_usd,
            total_tokens_sold=position.total_tokens_sold + event.token_burned,
            total_received_usd=position.total_received_usd + proceeds_usd,
            last_updated=max(position.last_updated, now),
        )
        position = cost_basis_fold_position(position, lots)
        self._store.db_put_sail_position(position)
        return position

    def position_record_hourly_snapshots(self, now: int, block_number: int) -> list[HourlyPriceSnapshot]:
        """Write one snapshot per market for the current hour when none exists yet.

        Args:
            now: Block timestamp.
            block_number: Block number.

        Returns:
            list[HourlyPriceSnapshot]: Snapshots written by this call.

        Raises:
            RuntimeError: Raised when persistence fails.
        """

        written_snapshots: list[HourlyPriceSnapshot] = []
        for market in self._market_table.markets:
            quote = self.position_quote_market(market, now, block_number)
            snapshot = self._position_maybe_write_hourly_snapshot(market, quote, now, block_number)
            if snapshot is not None:
                written_snapshots.append(snapshot)
        return written_snapshots

    def position_quote_market(self, market: MarketConfig, at_timestamp: int, block_number: int | None) -> MarketPriceQuote:
        """Resolve token and collateral prices of one market with display fallbacks.

        The token price is `NAV * wrapped collateral USD`, falling back to
        `NAV * peg USD` when the collateral oracle is unavailable.

        Args:
            market: Market to price.
            at_timestamp: Block timestamp.
            block_number: Optional block to read at.

        Returns:
            MarketPriceQuote: Resolved prices.

        Raises:
            RuntimeError: This method does not raise runtime errors.
        """

        peg_usd = self._price_normalizer.pricing_peg_usd(market.peg_asset, at_timestamp, block_number)
        wrapped_collateral_usd = self._price_normalizer.pricing_wrapped_collateral_usd(market, at_timestamp, block_number)
        wrapped_rate = self._price_normalizer.pricing_wrapped_rate(market)
        nav = self._price_normalizer.pricing_leveraged_nav(market, at_timestamp, block_number)

        token_price_usd = nav * wrapped_collateral_usd
        if token_price_usd <= ZERO:
            token_price_usd = nav * peg_usd

        collateral_price_usd = ZERO
        if wrapped_collateral_usd > ZERO and wrapped_rate > ZERO:
            collateral_price_usd = wrapped_collateral_usd / wrapped_rate
        if collateral_price_usd <= ZERO:
            collateral_price_usd = peg_usd
        if wrapped_rate <= ZERO:
            wrapped_rate = ONE

        return MarketPriceQuote(
            token_price_usd=token_price_usd,
            collateral_price_usd=collateral_price_usd,
            wrapped_rate=wrapped_rate,
            wrapped_collateral_usd=wrapped_collateral_usd,
        )

    def _position_load(self, token_address: str, user: str) -> tuple[UserSailPosition, tuple[CostBasisLot, ...]]:
        position = self._store.db_get_sail_position(token_address, user) or UserSailPosition(
            token_address=token_address,
            user=user,
        )
        lots = tuple(self._store.db_list_cost_basis_lots(token_address, user))
        return position, lots

    def _position_apply_genesis_lot(
        self,
        market: MarketConfig,
        position: UserSailPosition,
        lots: tuple[CostBasisLot, ...],
        now: int,
        block_number: int,
    ) -> tuple[UserSailPosition, tuple[CostBasisLot, ...]]:
        """Seed a genesis lot for campaign participants once their campaign ended.

        Args:
            market: Market owning the leveraged token.
            position: Current position.
            lots: Current lots of the position.
            now: Event timestamp.
            block_number: Event block used for the claimable read.

        Returns:
            tuple[UserSailPosition, tuple[CostBasisLot, ...]]: Position and lots, unchanged when no lot applies.

        Raises:
            RuntimeError: Raised when persistence fails.
        """

        campaign_address = market.campaign_address
        if campaign_address is None:
            return position, lots
        if self._store.db_get_campaign_end(campaign_address) is None:
            return position, lots
        if any(lot.event_type == LOT_EVENT_TYPE_GENESIS for lot in lots):
            return position, lots

        campaign_position = self._store.db_get_campaign_position(campaign_address, position.user)
        if campaign_position is None or campaign_position.net_deposit_usd <= ZERO:
            return position, lots

        try:
            claimable_amount = self._chain.chain_read_genesis_claimable_leveraged(
                campaign_address,
                position.user,
                block_number,
            )
        except ChainReadError as error:
            logger.warning(
                "genesis claimable read failed, deferring genesis lot | campaign={} | user={} | error={}",
                campaign_address,
                position.user,
                error,
            )
            return position, lots
        if claimable_amount <= 0:
            return position, lots

        cost_usd = campaign_position.net_deposit_usd * self._rules.genesis_cost_ratio
        lots = cost_basis_append_lot(
            lots,
            token_address=position.token_address,
            user=position.user,
            token_amount=claimable_amount,
            cost_usd=cost_usd,
            event_type=LOT_EVENT_TYPE_GENESIS,
            acquired_at=now,
            block_number=block_number,
        )
        self._store.db_put_cost_basis_lots([lots[-1]])
        logger.info(
            "genesis lot seeded | token={} | user={} | amount={} | cost_usd={}",
            position.token_address,
            position.user,
            claimable_amount,
            cost_usd,
        )

        position = replace(
            position,
            total_tokens_bought=position.total_tokens_bought + claimable_amount,
            total_spent_usd=position.total_spent_usd + cost_usd,
            first_acquired_at=position.first_acquired_at or now,
        )
        return cost_basis_fold_position(position, lots), lots

    @staticmethod
    def _position_value_collateral(quote: MarketPriceQuote, collateral_amount: int, token_amount: int) -> Decimal:
        """Value collateral in USD, approximating from the token side when the oracle is unavailable."""

        if collateral_amount > 0 and quote.wrapped_collateral_usd > ZERO:
            return Decimal(collateral_amount) / _TOKEN_UNIT_DECIMAL * quote.wrapped_collateral_usd
        if token_amount > 0 and quote.token_price_usd > ZERO:
            return Decimal(token_amount) / _TOKEN_UNIT_DECIMAL * quote.token_price_usd
        return ZERO

    def _position_record_prices(
        self,
        market: MarketConfig,
        quote: MarketPriceQuote,
        event_type: str,
        block_number: int,
        log_index: int,
        timestamp: int,
        collateral_amount: int,
        token_amount: int,
        value_usd: Decimal,
    ) -> None:
        token_units = Decimal(token_amount) / _TOKEN_UNIT_DECIMAL
        self._store.db_put_price_point(
            PricePoint(
                token_address=market.leveraged_token_address,
                minter_address=market.minter_address,
                event_type=event_type,
                block_number=block_number,
                log_index=log_index,
                timestamp=timestamp,
                token_price_usd=quote.token_price_usd,
                collateral_price_usd=quote.collateral_price_usd,
                wrapped_rate=quote.wrapped_rate,
                collateral_amount=collateral_amount,
                token_amount=token_amount,
                implied_token_price=value_usd / token_units if token_units > ZERO else ZERO,
            )
        )
        self._position_maybe_write_hourly_snapshot(market, quote, timestamp, block_number)

    def _position_maybe_write_hourly_snapshot(
        self,
        market: MarketConfig,
        quote: MarketPriceQuote,
        now: int,
        block_number: int,
    ) -> HourlyPriceSnapshot | None:
        if quote.token_price_usd <= ZERO or quote.collateral_price_usd <= ZERO:
            return None

        token_address = market.leveraged_token_address
        hour_timestamp = now - now % SECONDS_PER_HOUR
        tracker_name = position_hourly_tracker_name(token_address)
        last_hour_timestamp = self._store.db_get_tracker(tracker_name)
        if last_hour_timestamp is not None and last_hour_timestamp >= hour_timestamp:
            return None

        snapshot = HourlyPriceSnapshot(
            token_address=token_address,
            minter_address=market.minter_address,
            hour_timestamp=hour_timestamp,
            block_number=block_number,
            token_price_usd=quote.token_price_usd,
            collateral_price_usd=quote.collateral_price_usd,
            wrapped_rate=quote.wrapped_rate,
        )
        self._store.db_put_hourly_snapshot(snapshot)
        self._store.db_put_tracker(tracker_name, hour_timestamp)
        return snapshot

    def _position_resolve_market(self, minter_address: str, event_kind: str) -> MarketConfig | None:
        market = self._market_table.market_find_minter(minter_address)
        if market is None:
            logger.warning("skipping {} for unconfigured minter={}", event_kind, minter_address)
        return market
