"""Genesis campaign ledger: deposits, forfeiture, end bonuses, and the early-bird race."""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal

from loguru import logger

from marks_ledger.config import MarketConfig, MarketTable
from marks_ledger.db import LedgerStorePort
from marks_ledger.domain import (
    SOURCE_KIND_GENESIS,
    TOKEN_UNIT,
    CampaignDeposit,
    CampaignEnd,
    CampaignEndRecord,
    CampaignPosition,
    CampaignWithdraw,
    MarketBonusStatus,
    MarksEvent,
    domain_normalize_address,
)
from marks_ledger.pricing import PriceNormalizer

from .accrual import accrual_compute_marks
from .boost_windows import BoostWindowRegistry

ZERO = Decimal("0")
ONE = Decimal("1")
_TOKEN_UNIT_DECIMAL = Decimal(TOKEN_UNIT)


class CampaignLedger:
    """Maintain per (campaign, user) positions of genesis deposit campaigns.

    Campaign positions accrue at the flat genesis rate with no boost window.
    Once a campaign ends every position is closed exactly once: accrual is
    settled through the end timestamp, the end and early-bird bonuses are
    awarded, and `marks_per_day` is pinned to zero.
    """

    def __init__(
        self,
        store: LedgerStorePort,
        market_table: MarketTable,
        price_normalizer: PriceNormalizer,
        boost_registry: BoostWindowRegistry,
    ):
        """Initialize campaign ledger dependencies.

        Args:
            store: Ledger record store.
            market_table: Static market table.
            price_normalizer: USD price source for wrapped collateral.
            boost_registry: Registry used to open post-campaign windows.

        Raises:
            ValueError: Raised when any dependency is None.
        """

        if store is None:
            raise ValueError("store must not be None")
        if market_table is None:
            raise ValueError("market_table must not be None")
        if price_normalizer is None:
            raise ValueError("price_normalizer must not be None")
        if boost_registry is None:
            raise ValueError("boost_registry must not be None")

        self._store = store
        self._market_table = market_table
        self._rules = market_table.reward_rules
        self._price_normalizer = price_normalizer
        self._boost_registry = boost_registry

    def campaign_apply_deposit(self, event: CampaignDeposit) -> CampaignPosition | None:
        """Settle accrual, run the early-bird race, and add one deposit.

        Args:
            event: Campaign deposit event.

        Returns:
            CampaignPosition | None: Persisted position, or None for unknown campaigns.

        Raises:
            ValueError: Raised when event is None or amount is negative.
        """

        if event is None:
            raise ValueError("event must not be None")
        if event.amount_in < 0:
            raise ValueError("amount_in must be >= 0")

        market = self._campaign_resolve_market(event.campaign_address, event.event_kind)
        if market is None:
            return None

        campaign_address = market.campaign_address
        user = domain_normalize_address(event.user)
        now = event.block_timestamp
        self._store.db_registry_add_user(campaign_address, user)

        position = self._campaign_load_position(campaign_address, user)
        amount_usd = self._campaign_collateral_usd(market, event.amount_in, now, event.block_number)

        if position.genesis_start_date == 0:
            position = replace(position, genesis_start_date=now)

        if position.genesis_ended:
            # Ended campaigns only track totals.
            updated_position = replace(
                position,
                total_deposited=position.total_deposited + event.amount_in,
                total_deposited_usd=position.total_deposited_usd + amount_usd,
                current_deposit=position.current_deposit + event.amount_in,
                current_deposit_usd=position.current_deposit_usd + amount_usd,
                net_deposit_usd=position.net_deposit_usd + amount_usd,
                marks_per_day=ZERO,
                last_updated=max(position.last_updated, now),
            )
            self._store.db_put_campaign_position(updated_position)
            return updated_position

        position, _ = self._campaign_settle(position, now)
        qualifying_amount = self._campaign_run_early_bird_race(market, event.amount_in, now)
        qualifying_usd = ZERO
        if qualifying_amount > 0:
            qualifying_usd = Decimal(qualifying_amount) / Decimal(event.amount_in) * amount_usd

        early_bonus_eligible_deposit_usd = position.early_bonus_eligible_deposit_usd + qualifying_usd
        current_deposit_usd = position.current_deposit_usd + amount_usd
        updated_position = replace(
            position,
            total_deposited=position.total_deposited + event.amount_in,
            total_deposited_usd=position.total_deposited_usd + amount_usd,
            current_deposit=position.current_deposit + event.amount_in,
            current_deposit_usd=current_deposit_usd,
            net_deposit_usd=position.net_deposit_usd + amount_usd,
            early_bonus_eligible_deposit=position.early_bonus_eligible_deposit + qualifying_amount,
            early_bonus_eligible_deposit_usd=early_bonus_eligible_deposit_usd,
            qualifies_for_early_bonus=position.qualifies_for_early_bonus or qualifying_amount > 0,
            marks_per_day=current_deposit_usd * self._campaign_rate(now),
            last_updated=max(position.last_updated, now),
        )
        self._store.db_put_campaign_position(updated_position)
        return updated_position

    def campaign_apply_withdraw(self, event: CampaignWithdraw) -> CampaignPosition | None:
        """Settle accrual, forfeit marks proportionally, and shrink the deposit.

        Args:
            event: Campaign withdraw event.

        Returns:
            CampaignPosition | None: Persisted position, or None for unknown campaigns.

        Raises:
            ValueError: Raised when event is None or amount is negative.
        """

        if event is None:
            raise ValueError("event must not be None")
        if event.amount_out < 0:
            raise ValueError("amount_out must be >= 0")

        market = self._campaign_resolve_market(event.campaign_address, event.event_kind)
        if market is None:
            return None

        campaign_address = market.campaign_address
        user = domain_normalize_address(event.user)
        now = event.block_timestamp
        self._store.db_registry_add_user(campaign_address, user)

        position = self._campaign_load_position(campaign_address, user)
        if not position.genesis_ended:
            position, _ = self._campaign_settle(position, now)

        deposit_before = position.current_deposit
        current_marks = max(position.current_marks, ZERO)
        remaining_deposit = max(0, deposit_before - event.amount_out)
        early_bonus_eligible_deposit = position.early_bonus_eligible_deposit
        if deposit_before <= 0:
            # Nothing deposited, nothing to forfeit.
            withdrawal_fraction = ZERO
        else:
            withdrawal_fraction = min(ONE, Decimal(event.amount_out) / Decimal(deposit_before))
            early_bonus_eligible_deposit = early_bonus_eligible_deposit * remaining_deposit // deposit_before
        if event.amount_out > deposit_before:
            logger.warning(
                "campaign withdraw exceeds deposit, clamping | campaign={} | user={} | deposit={} | amount_out={}",
                campaign_address,
                user,
                deposit_before,
                event.amount_out,
            )

        forfeited_marks = current_marks * withdrawal_fraction
        remaining_fraction = ONE - withdrawal_fraction
        early_bonus_eligible_deposit_usd = position.early_bonus_eligible_deposit_usd * remaining_fraction
        current_deposit_usd = position.current_deposit_usd * remaining_fraction
        marks_per_day = ZERO if position.genesis_ended else current_deposit_usd * self._campaign_rate(now)

        updated_position = replace(
            position,
            current_deposit=remaining_deposit,
            current_deposit_usd=current_deposit_usd,
            net_deposit_usd=position.net_deposit_usd * remaining_fraction,
            current_marks=current_marks - forfeited_marks,
            total_marks_forfeited=position.total_marks_forfeited + forfeited_marks,
            early_bonus_eligible_deposit=early_bonus_eligible_deposit,
            early_bonus_eligible_deposit_usd=early_bonus_eligible_deposit_usd,
            qualifies_for_early_bonus=position.qualifies_for_early_bonus and early_bonus_eligible_deposit > 0,
            marks_per_day=marks_per_day,
            last_updated=max(position.last_updated, now),
        )
        self._store.db_put_campaign_position(updated_position)
        return updated_position

    def campaign_apply_end(self, event: CampaignEnd) -> list[CampaignPosition]:
        """Close every position of a campaign and open the market's boost windows.

        The stored end marker makes this idempotent: a repeated end event for
        the same campaign changes nothing.

        Args:
            event: Campaign end event.

        Returns:
            list[CampaignPosition]: Positions closed by this event.

        Raises:
            ValueError: Raised when event is None.
        """

        if event is None:
            raise ValueError("event must not be None")

        market = self._campaign_resolve_market(event.campaign_address, event.event_kind)
        if market is None:
            return []

        campaign_address = market.campaign_address
        end_timestamp = event.block_timestamp
        if self._store.db_get_campaign_end(campaign_address) is not None:
            logger.debug("campaign end already applied | campaign={}", campaign_address)
            return []

        self._store.db_put_campaign_end(
            CampaignEndRecord(
                campaign_address=campaign_address,
                ended_at=end_timestamp,
                block_number=event.block_number,
            )
        )

        collateral_usd = self._price_normalizer.pricing_wrapped_collateral_usd(market, end_timestamp, event.block_number)
        closed_positions: list[CampaignPosition] = []
        for user in self._store.db_registry_list_users(campaign_address):
            position = self._store.db_get_campaign_position(campaign_address, user)
            if position is None or position.genesis_ended:
                continue
            closed_positions.append(self._campaign_close_position(position, end_timestamp, collateral_usd))

        for source_kind, source_address in market.market_source_addresses():
            self._boost_registry.open_window(
                source_kind=source_kind,
                source_address=source_address,
                start_timestamp=end_timestamp,
                end_timestamp=end_timestamp + self._rules.boost_duration_seconds,
                multiplier=self._rules.rules_boost_multiplier(source_kind),
            )

        logger.info(
            "campaign ended | market_id={} | campaign={} | at={} | closed_positions={}",
            market.market_id,
            campaign_address,
            end_timestamp,
            len(closed_positions),
        )
        return closed_positions

    def campaign_run_daily_sweep(self, now: int, block_number: int) -> list[MarksEvent]:
        """Settle open positions and revalue every position at the current price.

        Args:
            now: Sweep timestamp.
            block_number: Block of the event that triggered the sweep.

        Returns:
            list[MarksEvent]: Marks events written for positive accruals.

        Raises:
            RuntimeError: Raised when persistence fails.
        """

        marks_events: list[MarksEvent] = []
        swept_count = 0
        for market in self._market_table.market_list_campaigns():
            campaign_address = market.campaign_address
            collateral_usd = self._price_normalizer.pricing_wrapped_collateral_usd(market, now, block_number)
            for user in self._store.db_registry_list_users(campaign_address):
                position = self._store.db_get_campaign_position(campaign_address, user)
                if position is None:
                    continue

                earned_marks = ZERO
                if not position.genesis_ended:
                    position, earned_marks = self._campaign_settle(position, now)

                position = self._campaign_revalue(position, collateral_usd)
                marks_per_day = ZERO if position.genesis_ended else position.current_deposit_usd * self._campaign_rate(now)

                self._store.db_put_campaign_position(replace(position, marks_per_day=marks_per_day))
                swept_count += 1

                if earned_marks <= ZERO:
                    continue
                marks_event = MarksEvent(
                    event_id=f"{user}-{campaign_address}-{now}-{SOURCE_KIND_GENESIS}",
                    user=user,
                    source_kind=SOURCE_KIND_GENESIS,
                    source_address=campaign_address,
                    amount=earned_marks,
                    timestamp=now,
                    block_number=block_number,
                )
                self._store.db_put_marks_event(marks_event)
                marks_events.append(marks_event)

        logger.info(
            "campaign sweep completed | at={} | swept_positions={} | marks_events={}",
            now,
            swept_count,
            len(marks_events),
        )
        return marks_events

    def _campaign_load_position(self, campaign_address: str, user: str) -> CampaignPosition:
        """Load a position, applying a pending campaign end to it first.

        Args:
            campaign_address: Campaign contract address.
            user: Normalized user address.

        Returns:
            CampaignPosition: Stored or new position, closed when the campaign already ended.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        position = self._store.db_get_campaign_position(campaign_address, user) or CampaignPosition(
            campaign_address=campaign_address,
            user=user,
        )
        if position.genesis_ended:
            return position

        end_record = self._store.db_get_campaign_end(campaign_address)
        if end_record is None:
            return position
        return self._campaign_close_position(position, end_record.ended_at)

    def _campaign_close_position(
        self,
        position: CampaignPosition,
        end_timestamp: int,
        collateral_usd: Decimal = ZERO,
    ) -> CampaignPosition:
        position, _ = self._campaign_settle(position, end_timestamp)
        position = self._campaign_revalue(position, collateral_usd)

        bonus_marks = ZERO
        if position.current_deposit_usd > ZERO:
            bonus_marks = position.current_deposit_usd * self._rules.end_bonus_rate
        early_bonus_marks = ZERO
        if position.qualifies_for_early_bonus and position.early_bonus_eligible_deposit_usd > ZERO:
            early_bonus_marks = position.early_bonus_eligible_deposit_usd * self._rules.early_bonus_rate

        awarded_marks = bonus_marks + early_bonus_marks
        closed_position = replace(
            position,
            genesis_ended=True,
            genesis_end_date=end_timestamp,
            bonus_marks=bonus_marks,
            early_bonus_marks=early_bonus_marks,
            current_marks=position.current_marks + awarded_marks,
            total_marks_earned=position.total_marks_earned + awarded_marks,
            marks_per_day=ZERO,
            last_updated=end_timestamp,
        )
        self._store.db_put_campaign_position(closed_position)
        return closed_position

    def _campaign_settle(self, position: CampaignPosition, now: int) -> tuple[CampaignPosition, Decimal]:
        earned_marks = accrual_compute_marks(
            last_updated=position.last_updated,
            now=now,
            balance_usd=position.current_deposit_usd,
            base_rate=self._campaign_rate(now),
        )
        settled_position = replace(
            position,
            current_marks=position.current_marks + earned_marks,
            total_marks_earned=position.total_marks_earned + earned_marks,
            last_updated=max(position.last_updated, now),
        )
        return settled_position, earned_marks

    def _campaign_revalue(self, position: CampaignPosition, collateral_usd: Decimal) -> CampaignPosition:
        """Reprice the current and early-bird eligible deposits from their raw amounts.

        A non-positive price keeps the stored USD values.
        """

        if collateral_usd <= ZERO:
            return position
        return replace(
            position,
            current_deposit_usd=Decimal(position.current_deposit) / _TOKEN_UNIT_DECIMAL * collateral_usd,
            early_bonus_eligible_deposit_usd=(
                Decimal(position.early_bonus_eligible_deposit) / _TOKEN_UNIT_DECIMAL * collateral_usd
            ),
        )

    def _campaign_run_early_bird_race(
        self,
        market: MarketConfig,
        amount: int,
        now: int,
    ) -> int:
        """Advance the campaign's early-bird race and return the qualifying amount.

        Args:
            market: Market running the campaign.
            amount: Raw deposited amount.
            now: Deposit timestamp.

        Returns:
            int: Raw part of the deposit that fell under the threshold.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        campaign_address = market.campaign_address
        status = self._store.db_get_bonus_status(campaign_address) or MarketBonusStatus(
            campaign_address=campaign_address,
            threshold_amount=market.early_bonus_threshold_amount,
        )

        remaining = max(0, status.threshold_amount - status.cumulative_deposits)
        qualifying_amount = min(amount, remaining)

        cumulative_deposits = status.cumulative_deposits + amount
        updated_status = replace(status, cumulative_deposits=cumulative_deposits)
        if not status.threshold_reached and cumulative_deposits >= status.threshold_amount:
            updated_status = replace(updated_status, threshold_reached=True, threshold_reached_at=now)
            logger.info(
                "early bonus threshold reached | campaign={} | at={} | cumulative_deposits={}",
                campaign_address,
                now,
                cumulative_deposits,
            )
        self._store.db_put_bonus_status(updated_status)
        return qualifying_amount

    def _campaign_collateral_usd(self, market: MarketConfig, amount: int, now: int, block_number: int) -> Decimal:
        if amount == 0:
            return ZERO
        unit_price_usd = self._price_normalizer.pricing_wrapped_collateral_usd(market, now, block_number)
        if unit_price_usd <= ZERO:
            logger.warning(
                "collateral price unavailable, recording zero deposit value | campaign={} | amount={}",
                market.campaign_address,
                amount,
            )
            return ZERO
        return Decimal(amount) / _TOKEN_UNIT_DECIMAL * unit_price_usd

    def _campaign_rate(self, now: int) -> Decimal:
        return self._rules.rules_base_rate(SOURCE_KIND_GENESIS, now)

    def _campaign_resolve_market(self, campaign_address: str, event_kind: str) -> MarketConfig | None:
        market = self._market_table.market_find_campaign(campaign_address)
        if market is None:
            logger.warning("skipping {} for unconfigured campaign={}", event_kind, campaign_address)
            return None
        return market
