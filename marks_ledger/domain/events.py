"""Inbound on-chain event contracts consumed by the ledger layer.

Every event carries its block timestamp plus the `(block_number, log_index)`
total-order key guaranteed by the upstream indexing pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ChainEvent:
    """Base contract shared by every inbound event.

    Attributes:
        block_number: Block number of the emitting transaction.
        log_index: Log index inside the block.
        block_timestamp: Block time in unix seconds.
    """

    block_number: int
    log_index: int
    block_timestamp: int

    @property
    def event_kind(self) -> str:
        """Return the event kind label used for routing and receipts."""

        return type(self).__name__

    def event_order_key(self) -> tuple[int, int]:
        """Return the replay order key of this event."""

        return (self.block_number, self.log_index)


@dataclass(frozen=True)
class TokenTransfer(ChainEvent):
    """ERC-20 transfer of a pegged or leveraged token.

    Attributes:
        token_address: Emitting token contract.
        from_address: Sender, zero address on mint.
        to_address: Receiver, zero address on burn.
        amount: Raw transferred amount (18 decimals).
    """

    token_address: str
    from_address: str
    to_address: str
    amount: int


@dataclass(frozen=True)
class PoolDeposit(ChainEvent):
    """Stability pool deposit for one user."""

    pool_address: str
    user: str


@dataclass(frozen=True)
class PoolWithdraw(ChainEvent):
    """Stability pool withdrawal for one user."""

    pool_address: str
    user: str


@dataclass(frozen=True)
class PoolDepositChange(ChainEvent):
    """Internal pool balance change (for example a liquidation) with the new deposit amount."""

    pool_address: str
    user: str
    new_deposit_amount: int


@dataclass(frozen=True)
class CampaignDeposit(ChainEvent):
    """Genesis campaign deposit of wrapped collateral."""

    campaign_address: str
    user: str
    amount_in: int


@dataclass(frozen=True)
class CampaignWithdraw(ChainEvent):
    """Genesis campaign withdrawal of wrapped collateral."""

    campaign_address: str
    user: str
    amount_out: int


@dataclass(frozen=True)
class CampaignEnd(ChainEvent):
    """Genesis campaign end trigger."""

    campaign_address: str


@dataclass(frozen=True)
class TokenMint(ChainEvent):
    """Leveraged token mint through a market minter.

    Attributes:
        minter_address: Emitting minter contract.
        user: Receiver of minted tokens.
        collateral_in: Raw wrapped collateral paid in.
        token_out: Raw leveraged tokens minted.
    """

    minter_address: str
    user: str
    collateral_in: int
    token_out: int


@dataclass(frozen=True)
class TokenRedeem(ChainEvent):
    """Leveraged token redemption through a market minter.

    Attributes:
        minter_address: Emitting minter contract.
        user: Redeeming user.
        token_burned: Raw leveraged tokens burned.
        collateral_out: Raw wrapped collateral paid out.
    """

    minter_address: str
    user: str
    token_burned: int
    collateral_out: int


@dataclass(frozen=True)
class BlockTick(ChainEvent):
    """Block heartbeat that drives periodic re-valuation sweeps."""


DOMAIN_EVENT_TYPES: dict[str, type[ChainEvent]] = {
    event_type.__name__: event_type
    for event_type in (
        TokenTransfer,
        PoolDeposit,
        PoolWithdraw,
        PoolDepositChange,
        CampaignDeposit,
        CampaignWithdraw,
        CampaignEnd,
        TokenMint,
        TokenRedeem,
        BlockTick,
    )
}

# Handlers for these kinds apply deltas and need receipts to stay replay-safe.
DOMAIN_DELTA_EVENT_KINDS = frozenset({"CampaignDeposit", "CampaignWithdraw", "TokenMint", "TokenRedeem"})
