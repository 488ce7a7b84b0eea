"""Typed interfaces for adapter-layer responsibilities."""

from typing import Protocol

from marks_ledger.domain import PriceReading, ScalarPriceReading


class ChainStatePort(Protocol):
    """Port definition for read-only contract state queries.

    Every read accepts an optional block number; `None` reads the latest state.
    Raw amounts are returned in 18-decimal base units.
    """

    def chain_read_token_balance(self, token_address: str, user: str, block_number: int | None = None) -> int:
        """Read an ERC-20 `balanceOf` value.

        Args:
            token_address: Token contract address.
            user: Holder address.
            block_number: Optional block to read at.

        Returns:
            int: Raw token balance.

        Raises:
            ChainReadError: Raised when the read fails or reverts.
        """

    def chain_read_pool_deposit(self, pool_address: str, user: str, block_number: int | None = None) -> int:
        """Read a stability pool `assetBalanceOf` value.

        Args:
            pool_address: Stability pool address.
            user: Depositor address.
            block_number: Optional block to read at.

        Returns:
            int: Raw deposited amount.

        Raises:
            ChainReadError: Raised when the read fails or reverts.
        """

    def chain_read_oracle(self, oracle_address: str, oracle_kind: str, block_number: int | None = None) -> PriceReading:
        """Read a wrapped collateral oracle and resolve its return shape.

        Args:
            oracle_address: Oracle contract address.
            oracle_kind: Oracle return shape (`wrapped_rate` or `fxusd_price`).
            block_number: Optional block to read at.

        Returns:
            PriceReading: Shape-resolved oracle reading.

        Raises:
            ChainReadError: Raised when the read fails or reverts.
            ValueError: Raised when oracle kind is unsupported.
        """

    def chain_read_feed(self, feed_address: str, block_number: int | None = None) -> ScalarPriceReading:
        """Read a Chainlink-style aggregator answer.

        Args:
            feed_address: Aggregator address.
            block_number: Optional block to read at.

        Returns:
            ScalarPriceReading: Signed answer with its decimal count.

        Raises:
            ChainReadError: Raised when the read fails or reverts.
        """

    def chain_read_leveraged_nav(self, minter_address: str, block_number: int | None = None) -> int:
        """Read the leveraged token NAV (18 decimals, peg units) from a minter.

        Raises:
            ChainReadError: Raised when the read fails or reverts.
        """

    def chain_read_genesis_claimable_leveraged(
        self,
        campaign_address: str,
        user: str,
        block_number: int | None = None,
    ) -> int:
        """Read the leveraged amount claimable by a user from an ended campaign.

        Raises:
            ChainReadError: Raised when the read fails or reverts.
        """
