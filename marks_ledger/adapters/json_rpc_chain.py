"""JSON-RPC `eth_call` adapter implementation for contract state reads."""

from __future__ import annotations

from typing import Final

import httpx
from eth_utils import keccak

from marks_ledger.domain import (
    ORACLE_KIND_FXUSD_PRICE,
    ORACLE_KIND_WRAPPED_RATE,
    TOKEN_UNIT,
    PriceReading,
    ScalarPriceReading,
    WrappedRatePriceReading,
    domain_normalize_address,
)

from .chain_errors import ChainReadConnectionError, ChainReadError, ChainReadRevertedError, ChainReadTimeoutError
from .interfaces import ChainStatePort

_WORD_HEX_LENGTH: Final[int] = 64
_INT256_SIGN_BIT: Final[int] = 2**255
_INT256_MODULUS: Final[int] = 2**256
_CHAINLINK_DECIMALS: Final[int] = 8


def _adapter_function_selector(function_signature: str) -> str:
    """Return the 4-byte selector of a canonical function signature as hex."""

    return keccak(text=function_signature)[:4].hex()


class JsonRpcChainStateAdapter(ChainStatePort):
    """Adapter implementation that reads contract state through `eth_call`."""

    _SIGNATURE_BALANCE_OF: Final[str] = "balanceOf(address)"
    _SIGNATURE_ASSET_BALANCE_OF: Final[str] = "assetBalanceOf(address)"
    _SIGNATURE_LATEST_ANSWER: Final[str] = "latestAnswer()"
    _SIGNATURE_GET_PRICE: Final[str] = "getPrice()"
    _SIGNATURE_LEVERAGED_TOKEN_PRICE: Final[str] = "leveragedTokenPrice()"
    _SIGNATURE_CLAIMABLE: Final[str] = "claimable(address)"

    def __init__(
        self,
        rpc_url: str,
        request_timeout_seconds: float = 20.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize JSON-RPC chain state adapter.

        Args:
            rpc_url: JSON-RPC endpoint URL.
            request_timeout_seconds: HTTP request timeout in seconds.
            transport: Optional httpx transport override, used by tests.

        Raises:
            ValueError: Raised when required config values are invalid.
        """

        normalized_rpc_url = rpc_url.strip()
        if not normalized_rpc_url:
            raise ValueError("rpc_url must not be blank")
        if request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be > 0")

        self._rpc_url = normalized_rpc_url
        self._client = httpx.Client(timeout=httpx.Timeout(request_timeout_seconds), transport=transport)
        self._request_id = 0

    def adapter_close(self) -> None:
        """Close the underlying HTTP client."""

        self._client.close()

    def chain_read_token_balance(self, token_address: str, user: str, block_number: int | None = None) -> int:
        words = self._adapter_call(
            contract_address=token_address,
            function_signature=self._SIGNATURE_BALANCE_OF,
            encoded_arguments=self._adapter_encode_address(user),
            block_number=block_number,
            expected_words=1,
        )
        return words[0]

    def chain_read_pool_deposit(self, pool_address: str, user: str, block_number: int | None = None) -> int:
        words = self._adapter_call(
            contract_address=pool_address,
            function_signature=self._SIGNATURE_ASSET_BALANCE_OF,
            encoded_arguments=self._adapter_encode_address(user),
            block_number=block_number,
            expected_words=1,
        )
        return words[0]

    def chain_read_oracle(self, oracle_address: str, oracle_kind: str, block_number: int | None = None) -> PriceReading:
        """Read a wrapped collateral oracle and resolve its return shape.

        `wrapped_rate` oracles return the `(min_underlying, max_underlying,
        min_rate, max_rate)` tuple. `fxusd_price` oracles expose `getPrice()`
        in ETH; the single value becomes a tuple with a unit rate so callers
        price it against the ETH peg.

        Raises:
            ChainReadError: Raised when the read fails or reverts.
            ValueError: Raised when oracle kind is unsupported.
        """

        if oracle_kind == ORACLE_KIND_WRAPPED_RATE:
            words = self._adapter_call(
                contract_address=oracle_address,
                function_signature=self._SIGNATURE_LATEST_ANSWER,
                encoded_arguments="",
                block_number=block_number,
                expected_words=4,
            )
            return WrappedRatePriceReading(
                min_underlying=words[0],
                max_underlying=words[1],
                min_rate=words[2],
                max_rate=words[3],
            )

        if oracle_kind == ORACLE_KIND_FXUSD_PRICE:
            words = self._adapter_call(
                contract_address=oracle_address,
                function_signature=self._SIGNATURE_GET_PRICE,
                encoded_arguments="",
                block_number=block_number,
                expected_words=1,
            )
            return WrappedRatePriceReading(
                min_underlying=words[0],
                max_underlying=words[0],
                min_rate=TOKEN_UNIT,
                max_rate=TOKEN_UNIT,
            )

        raise ValueError(f"unsupported oracle_kind={oracle_kind}")

    def chain_read_feed(self, feed_address: str, block_number: int | None = None) -> ScalarPriceReading:
        words = self._adapter_call(
            contract_address=feed_address,
            function_signature=self._SIGNATURE_LATEST_ANSWER,
            encoded_arguments="",
            block_number=block_number,
            expected_words=1,
        )
        answer = words[0]
        if answer >= _INT256_SIGN_BIT:
            answer -= _INT256_MODULUS
        return ScalarPriceReading(answer=answer, decimals=_CHAINLINK_DECIMALS)

    def chain_read_leveraged_nav(self, minter_address: str, block_number: int | None = None) -> int:
        words = self._adapter_call(
            contract_address=minter_address,
            function_signature=self._SIGNATURE_LEVERAGED_TOKEN_PRICE,
            encoded_arguments="",
            block_number=block_number,
            expected_words=1,
        )
        return words[0]

    def chain_read_genesis_claimable_leveraged(
        self,
        campaign_address: str,
        user: str,
        block_number: int | None = None,
    ) -> int:
        # claimable(address) returns (peggedAmount, leveragedAmount)
        words = self._adapter_call(
            contract_address=campaign_address,
            function_signature=self._SIGNATURE_CLAIMABLE,
            encoded_arguments=self._adapter_encode_address(user),
            block_number=block_number,
            expected_words=2,
        )
        return words[1]

    def _adapter_call(
        self,
        contract_address: str,
        function_signature: str,
        encoded_arguments: str,
        block_number: int | None,
        expected_words: int,
    ) -> list[int]:
        """Execute one `eth_call` and decode its static uint256 return words.

        Args:
            contract_address: Target contract address.
            function_signature: Canonical function signature.
            encoded_arguments: ABI-encoded argument hex without `0x`.
            block_number: Optional block to read at.
            expected_words: Minimum number of 32-byte return words.

        Returns:
            list[int]: Decoded unsigned return words.

        Raises:
            ChainReadConnectionError: Raised for network and non-success HTTP status.
            ChainReadTimeoutError: Raised when the request times out.
            ChainReadRevertedError: Raised when the call reverts or returns no data.
            ChainReadError: Raised when the response contract is invalid.
        """

        normalized_address = domain_normalize_address(contract_address)
        call_data = f"0x{_adapter_function_selector(function_signature)}{encoded_arguments}"
        block_tag = hex(block_number) if block_number is not None else "latest"
        self._request_id += 1
        request_payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": "eth_call",
            "params": [{"to": normalized_address, "data": call_data}, block_tag],
        }

        try:
            response = self._client.post(self._rpc_url, json=request_payload)
        except httpx.TimeoutException as error:
            raise ChainReadTimeoutError(
                "JSON-RPC request timed out",
                contract_address=normalized_address,
                function_signature=function_signature,
            ) from error
        except httpx.TransportError as error:
            raise ChainReadConnectionError(
                "JSON-RPC transport request failed",
                contract_address=normalized_address,
                function_signature=function_signature,
            ) from error

        if response.status_code >= 400:
            raise ChainReadConnectionError(
                f"JSON-RPC upstream returned HTTP {response.status_code}",
                contract_address=normalized_address,
                function_signature=function_signature,
            )

        try:
            response_body = response.json()
        except ValueError as error:
            raise ChainReadError(
                "JSON-RPC response is not valid JSON",
                contract_address=normalized_address,
                function_signature=function_signature,
            ) from error

        if "error" in response_body:
            rpc_error = response_body["error"] or {}
            error_message = str(rpc_error.get("message", "unknown error"))
            if rpc_error.get("code") == 3 or "revert" in error_message.lower():
                raise ChainReadRevertedError(
                    f"call reverted: {error_message}",
                    contract_address=normalized_address,
                    function_signature=function_signature,
                )
            raise ChainReadError(
                f"JSON-RPC error: code={rpc_error.get('code')}, message={error_message}",
                contract_address=normalized_address,
                function_signature=function_signature,
            )

        return self._adapter_decode_words(
            result_hex=response_body.get("result"),
            expected_words=expected_words,
            contract_address=normalized_address,
            function_signature=function_signature,
        )

    def _adapter_decode_words(
        self,
        result_hex: object,
        expected_words: int,
        contract_address: str,
        function_signature: str,
    ) -> list[int]:
        """Split an `eth_call` result into unsigned 32-byte words.

        Raises:
            ChainReadRevertedError: Raised when the call returned no data.
            ChainReadError: Raised when the result is malformed or too short.
        """

        if not isinstance(result_hex, str) or not result_hex.startswith("0x"):
            raise ChainReadError(
                "JSON-RPC result must be a 0x-prefixed hex string",
                contract_address=contract_address,
                function_signature=function_signature,
            )

        payload_hex = result_hex[2:]
        if not payload_hex:
            raise ChainReadRevertedError(
                "call returned no data",
                contract_address=contract_address,
                function_signature=function_signature,
            )
        if len(payload_hex) < expected_words * _WORD_HEX_LENGTH:
            raise ChainReadError(
                f"call returned {len(payload_hex) // _WORD_HEX_LENGTH} words, expected {expected_words}",
                contract_address=contract_address,
                function_signature=function_signature,
            )

        try:
            return [
                int(payload_hex[index * _WORD_HEX_LENGTH : (index + 1) * _WORD_HEX_LENGTH], 16)
                for index in range(expected_words)
            ]
        except ValueError as error:
            raise ChainReadError(
                "call returned non-hex data",
                contract_address=contract_address,
                function_signature=function_signature,
            ) from error

    @staticmethod
    def _adapter_encode_address(address: str) -> str:
        """ABI-encode one address argument as a left-padded 32-byte word."""

        return domain_normalize_address(address)[2:].rjust(_WORD_HEX_LENGTH, "0")
