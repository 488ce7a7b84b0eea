"""Route ordered chain events to the ledger that owns them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from loguru import logger

from marks_ledger.db import LedgerStorePort
from marks_ledger.domain import (
    DOMAIN_DELTA_EVENT_KINDS,
    SECONDS_PER_DAY,
    BlockTick,
    CampaignDeposit,
    CampaignEnd,
    CampaignWithdraw,
    ChainEvent,
    EventReceipt,
    PoolDeposit,
    PoolDepositChange,
    PoolWithdraw,
    TokenMint,
    TokenRedeem,
    TokenTransfer,
)
from marks_ledger.ledger import BalanceLedger, CampaignLedger, SailPositionService

DAILY_MARKS_TRACKER = "daily_marks"


@dataclass(frozen=True)
class RouterBatchResult:
    """Counters of one routed batch.

    Attributes:
        applied_count: Events applied to a ledger.
        skipped_count: Events skipped because a receipt already existed.
        last_order_key: Order key of the last routed event.
    """

    applied_count: int
    skipped_count: int
    last_order_key: tuple[int, int] | None


class EventRouter:
    """Single-writer event dispatcher.

    Every event runs inside one store transaction: the daily sweep check,
    the owning ledger's handler and the receipt write commit together.
    """

    def __init__(
        self,
        store: LedgerStorePort,
        balance_ledger: BalanceLedger,
        campaign_ledger: CampaignLedger,
        position_service: SailPositionService,
    ):
        """Initialize router dependencies.

        Args:
            store: Ledger record store.
            balance_ledger: Holding and pool-deposit ledger.
            campaign_ledger: Genesis campaign ledger.
            position_service: Leveraged-token position service.

        Raises:
            ValueError: Raised when a dependency is None.
        """

        if store is None:
            raise ValueError("store must not be None")
        if balance_ledger is None:
            raise ValueError("balance_ledger must not be None")
        if campaign_ledger is None:
            raise ValueError("campaign_ledger must not be None")
        if position_service is None:
            raise ValueError("position_service must not be None")

        self._store = store
        self._balance_ledger = balance_ledger
        self._campaign_ledger = campaign_ledger
        self._position_service = position_service
        self._handlers: dict[type[ChainEvent], Callable[[ChainEvent], object]] = {
            TokenTransfer: balance_ledger.balance_apply_transfer,
            PoolDeposit: balance_ledger.balance_apply_pool_deposit,
            PoolWithdraw: balance_ledger.balance_apply_pool_withdraw,
            PoolDepositChange: balance_ledger.balance_apply_pool_deposit_change,
            CampaignDeposit: campaign_ledger.campaign_apply_deposit,
            CampaignWithdraw: campaign_ledger.campaign_apply_withdraw,
            CampaignEnd: campaign_ledger.campaign_apply_end,
            TokenMint: position_service.position_apply_mint,
            TokenRedeem: position_service.position_apply_redeem,
            BlockTick: self._router_apply_block_tick,
        }

    def router_apply_event(self, event: ChainEvent) -> bool:
        """Apply one event inside its own transaction.

        Args:
            event: Ordered chain event.

        Returns:
            bool: False when the event was already applied and got skipped.

        Raises:
            ValueError: Raised when event is None or of an unsupported type.
            RuntimeError: Raised when persistence fails; the event's writes are discarded.
        """

        if event is None:
            raise ValueError("event must not be None")
        handler = self._handlers.get(type(event))
        if handler is None:
            raise ValueError(f"unsupported event type={type(event).__name__}")

        receipt = None
        if event.event_kind in DOMAIN_DELTA_EVENT_KINDS:
            receipt = EventReceipt(
                block_number=event.block_number,
                log_index=event.log_index,
                event_kind=event.event_kind,
            )

        with self._store.db_transaction():
            if receipt is not None and self._store.db_has_event_receipt(receipt):
                logger.debug(
                    "skipping already applied event | kind={} | block={} | log_index={}",
                    event.event_kind,
                    event.block_number,
                    event.log_index,
                )
                return False

            self._router_run_daily_tick(event)
            handler(event)
            if receipt is not None:
                self._store.db_put_event_receipt(receipt)
        return True

    def router_apply_batch(self, events: list[ChainEvent]) -> RouterBatchResult:
        """Apply events in the given order, one transaction per event."""

        applied_count = 0
        skipped_count = 0
        last_order_key = None
        for event in events:
            if self.router_apply_event(event):
                applied_count += 1
            else:
                skipped_count += 1
            last_order_key = event.event_order_key()
        return RouterBatchResult(
            applied_count=applied_count,
            skipped_count=skipped_count,
            last_order_key=last_order_key,
        )

    def _router_run_daily_tick(self, event: ChainEvent) -> None:
        now = event.block_timestamp
        last_run_at = self._store.db_get_tracker(DAILY_MARKS_TRACKER)
        if last_run_at is None:
            self._store.db_put_tracker(DAILY_MARKS_TRACKER, now)
            return
        if now <= last_run_at:
            logger.debug("daily tick not after watermark | at={} | last_run_at={}", now, last_run_at)
            return
        if now - last_run_at < SECONDS_PER_DAY:
            return

        self._balance_ledger.balance_run_daily_sweep(now=now, block_number=event.block_number)
        self._campaign_ledger.campaign_run_daily_sweep(now=now, block_number=event.block_number)
        self._store.db_put_tracker(DAILY_MARKS_TRACKER, now)

    def _router_apply_block_tick(self, event: BlockTick) -> None:
        self._position_service.position_record_hourly_snapshots(
            now=event.block_timestamp,
            block_number=event.block_number,
        )
