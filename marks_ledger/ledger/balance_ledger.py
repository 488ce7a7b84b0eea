"""Token-holding and pool-deposit marks ledger."""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal

from loguru import logger

from marks_ledger.adapters import ChainReadError, ChainStatePort
from marks_ledger.config import MarketSource, MarketTable
from marks_ledger.db import LedgerStorePort
from marks_ledger.domain import (
    POOL_DEPOSIT_SOURCE_KINDS,
    TOKEN_HOLDING_SOURCE_KINDS,
    TOKEN_UNIT,
    ZERO_ADDRESS,
    BalanceRecord,
    MarksEvent,
    PoolDeposit,
    PoolDepositChange,
    PoolWithdraw,
    TokenTransfer,
    domain_normalize_address,
)
from marks_ledger.pricing import PriceNormalizer

from .accrual import accrual_compute_marks, accrual_marks_per_day
from .boost_windows import BoostWindowRegistry

ZERO = Decimal("0")
_TOKEN_UNIT_DECIMAL = Decimal(TOKEN_UNIT)


@dataclass(frozen=True)
class BalanceSettlement:
    """Outcome of settling one balance record.

    Attributes:
        record: Persisted record after the update.
        earned_marks: Marks accrued over the settled interval.
    """

    record: BalanceRecord
    earned_marks: Decimal


class BalanceLedger:
    """Maintain per (source, user) balance records and their accrued marks.

    Every update follows the same order: settle accrual with the pre-event
    USD value, re-read the authoritative balance, revalue it, then recompute
    the projected daily rate.
    """

    def __init__(
        self,
        store: LedgerStorePort,
        market_table: MarketTable,
        chain: ChainStatePort,
        price_normalizer: PriceNormalizer,
        boost_registry: BoostWindowRegistry,
    ):
        """Initialize balance ledger dependencies.

        Args:
            store: Ledger record store.
            market_table: Static market table.
            chain: Read-only chain state port for balance reads.
            price_normalizer: USD price source.
            boost_registry: Boost window registry.

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
        if boost_registry is None:
            raise ValueError("boost_registry must not be None")

        self._store = store
        self._market_table = market_table
        self._rules = market_table.reward_rules
        self._chain = chain
        self._price_normalizer = price_normalizer
        self._boost_registry = boost_registry

    def balance_apply_transfer(self, event: TokenTransfer) -> list[BalanceSettlement]:
        """Settle and refresh the sender and receiver of one token transfer.

        Mint and burn legs (zero address) are skipped.

        Args:
            event: Token transfer event.

        Returns:
            list[BalanceSettlement]: Settlements in sender, receiver order.

        Raises:
            ValueError: Raised when event is None.
        """

        if event is None:
            raise ValueError("event must not be None")

        source = self._balance_resolve_source(event.token_address, TOKEN_HOLDING_SOURCE_KINDS, event.event_kind)
        if source is None:
            return []

        settlements: list[BalanceSettlement] = []
        touched_users: list[str] = []
        for party in (event.from_address, event.to_address):
            user = domain_normalize_address(party)
            if user == ZERO_ADDRESS or user in touched_users:
                continue
            touched_users.append(user)
            settlements.append(
                self.balance_settle(
                    source=source,
                    user=user,
                    now=event.block_timestamp,
                    block_number=event.block_number,
                )
            )
        return settlements

    def balance_apply_pool_deposit(self, event: PoolDeposit) -> BalanceSettlement | None:
        if event is None:
            raise ValueError("event must not be None")
        return self._balance_apply_pool_event(
            pool_address=event.pool_address,
            user=event.user,
            now=event.block_timestamp,
            block_number=event.block_number,
            event_kind=event.event_kind,
        )

    def balance_apply_pool_withdraw(self, event: PoolWithdraw) -> BalanceSettlement | None:
        if event is None:
            raise ValueError("event must not be None")
        return self._balance_apply_pool_event(
            pool_address=event.pool_address,
            user=event.user,
            now=event.block_timestamp,
            block_number=event.block_number,
            event_kind=event.event_kind,
        )

    def balance_apply_pool_deposit_change(self, event: PoolDepositChange) -> BalanceSettlement | None:
        """Settle a pool position using the new deposit amount carried by the event.

        Args:
            event: Pool deposit change event.

        Returns:
            BalanceSettlement | None: Settlement, or None for unknown pools.

        Raises:
            ValueError: Raised when event is None or amount is negative.
        """

        if event is None:
            raise ValueError("event must not be None")
        if event.new_deposit_amount < 0:
            raise ValueError("new_deposit_amount must be >= 0")

        source = self._balance_resolve_source(event.pool_address, POOL_DEPOSIT_SOURCE_KINDS, event.event_kind)
        if source is None:
            return None
        return self.balance_settle(
            source=source,
            user=domain_normalize_address(event.user),
            now=event.block_timestamp,
            block_number=event.block_number,
            observed_raw_balance=event.new_deposit_amount,
        )

    def balance_settle(
        self,
        source: MarketSource,
        user: str,
        now: int,
        block_number: int | None,
        observed_raw_balance: int | None = None,
    ) -> BalanceSettlement:
        """Settle accrual through `now` and refresh one balance record.

        Args:
            source: Resolved balance source.
            user: Normalized holder address.
            now: Event timestamp.
            block_number: Event block used for ground-truth reads.
            observed_raw_balance: Authoritative balance carried by the event; read from chain when None.

        Returns:
            BalanceSettlement: Persisted record and the marks earned.

        Raises:
            RuntimeError: Raised when persistence fails.
        """

        source_kind = source.source_kind
        source_address = source.source_address
        window = self._boost_registry.get_or_create_window(
            source_kind,
            source_address,
            now,
            self._rules.rules_boost_multiplier(source_kind),
        )
        self._store.db_registry_add_user(source_address, user)

        record = self._store.db_get_balance_record(source_kind, source_address, user) or BalanceRecord(
            source_kind=source_kind,
            source_address=source_address,
            user=user,
        )

        base_rate = self._rules.rules_base_rate(source_kind, now)
        earned_marks = accrual_compute_marks(
            last_updated=record.last_updated,
            now=now,
            balance_usd=record.balance_usd,
            base_rate=base_rate,
            window=window,
        )

        if observed_raw_balance is None:
            raw_balance = self._balance_read_raw(source, user, block_number, fallback=record.raw_balance)
        else:
            raw_balance = observed_raw_balance

        balance_usd = self._balance_value_usd(source, user, raw_balance, record.balance_usd, now, block_number)
        accrued_marks = record.accrued_marks + earned_marks
        first_seen_at = record.first_seen_at
        if raw_balance > 0 and first_seen_at == 0:
            first_seen_at = now
        if raw_balance == 0:
            accrued_marks = ZERO
            first_seen_at = 0

        marks_per_day = accrual_marks_per_day(
            balance_usd,
            base_rate,
            self._boost_registry.active_multiplier(source_kind, source_address, now),
        )

        updated_record = replace(
            record,
            raw_balance=raw_balance,
            balance_usd=balance_usd,
            accrued_marks=accrued_marks,
            total_marks_earned=record.total_marks_earned + earned_marks,
            marks_per_day=marks_per_day,
            first_seen_at=first_seen_at,
            last_updated=max(record.last_updated, now),
        )
        self._store.db_put_balance_record(updated_record)
        return BalanceSettlement(record=updated_record, earned_marks=earned_marks)

    def balance_run_daily_sweep(self, now: int, block_number: int) -> list[MarksEvent]:
        """Settle and revalue every registered non-zero balance.

        Args:
            now: Sweep timestamp.
            block_number: Block of the event that triggered the sweep.

        Returns:
            list[MarksEvent]: Marks events written for positive accruals.

        Raises:
            RuntimeError: Raised when persistence fails.
        """

        marks_events: list[MarksEvent] = []
        settled_count = 0
        for source in self._market_table.market_list_balance_sources():
            for user in self._store.db_registry_list_users(source.source_address):
                record = self._store.db_get_balance_record(source.source_kind, source.source_address, user)
                if record is None or record.raw_balance == 0:
                    continue
                settlement = self.balance_settle(source=source, user=user, now=now, block_number=block_number)
                settled_count += 1
                if settlement.earned_marks <= ZERO:
                    continue
                marks_event = MarksEvent(
                    event_id=f"{user}-{source.source_address}-{now}-{source.source_kind}",
                    user=user,
                    source_kind=source.source_kind,
                    source_address=source.source_address,
                    amount=settlement.earned_marks,
                    timestamp=now,
                    block_number=block_number,
                )
                self._store.db_put_marks_event(marks_event)
                marks_events.append(marks_event)

        logger.info(
            "balance sweep completed | at={} | settled_records={} | marks_events={}",
            now,
            settled_count,
            len(marks_events),
        )
        return marks_events

    def _balance_apply_pool_event(
        self,
        pool_address: str,
        user: str,
        now: int,
        block_number: int,
        event_kind: str,
    ) -> BalanceSettlement | None:
        source = self._balance_resolve_source(pool_address, POOL_DEPOSIT_SOURCE_KINDS, event_kind)
        if source is None:
            return None
        return self.balance_settle(
            source=source,
            user=domain_normalize_address(user),
            now=now,
            block_number=block_number,
        )

    def _balance_resolve_source(
        self,
        address: str,
        allowed_kinds: frozenset[str],
        event_kind: str,
    ) -> MarketSource | None:
        source = self._market_table.market_find_source(address)
        if source is None or source.source_kind not in allowed_kinds:
            logger.warning("skipping {} for unconfigured source={}", event_kind, address)
            return None
        return source

    def _balance_read_raw(self, source: MarketSource, user: str, block_number: int | None, fallback: int) -> int:
        """Read the authoritative raw balance, keeping `fallback` when the read fails.

        Args:
            source: Resolved balance source.
            user: Holder address.
            block_number: Block to read at.
            fallback: Previously recorded raw balance.

        Returns:
            int: Authoritative or fallback raw balance.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        try:
            if source.source_kind in TOKEN_HOLDING_SOURCE_KINDS:
                return self._chain.chain_read_token_balance(source.source_address, user, block_number)
            return self._chain.chain_read_pool_deposit(source.source_address, user, block_number)
        except ChainReadError as error:
            logger.warning(
                "balance read failed, keeping prior balance | source_kind={} | source={} | user={} | error={}",
                source.source_kind,
                source.source_address,
                user,
                error,
            )
            return fallback

    def _balance_value_usd(
        self,
        source: MarketSource,
        user: str,
        raw_balance: int,
        prior_balance_usd: Decimal,
        now: int,
        block_number: int | None,
    ) -> Decimal:
        if raw_balance == 0:
            return ZERO

        unit_price_usd = self._price_normalizer.pricing_source_usd(source, now, block_number)
        if unit_price_usd <= ZERO:
            logger.warning(
                "price unavailable, keeping prior valuation | source_kind={} | source={} | user={}",
                source.source_kind,
                source.source_address,
                user,
            )
            return prior_balance_usd
        return Decimal(raw_balance) / _TOKEN_UNIT_DECIMAL * unit_price_usd
