"""Project-native typed exceptions for JSON-RPC chain read failures."""

from __future__ import annotations


class ChainReadError(Exception):
    """Base exception for adapter-level chain read failures.

    Attributes:
        contract_address: Optional contract targeted by the failed read.
        function_signature: Optional function signature of the failed read.
    """

    def __init__(
        self,
        message: str,
        contract_address: str | None = None,
        function_signature: str | None = None,
    ):
        super().__init__(message)
        self.contract_address = contract_address
        self.function_signature = function_signature


class ChainReadConnectionError(ChainReadError, ConnectionError):
    """Transport-level connectivity failure during JSON-RPC communication."""


class ChainReadTimeoutError(ChainReadError, TimeoutError):
    """Transport timeout while waiting for a JSON-RPC response."""


class ChainReadRevertedError(ChainReadError):
    """Call reverted or targeted an address without contract code."""
