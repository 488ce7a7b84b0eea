"""Reward source kinds and address normalization helpers."""

from __future__ import annotations

SOURCE_KIND_ANCHOR_TOKEN = "anchor_token"
SOURCE_KIND_SAIL_TOKEN = "sail_token"
SOURCE_KIND_POOL_COLLATERAL = "pool_collateral"
SOURCE_KIND_POOL_LEVERAGED = "pool_leveraged"
SOURCE_KIND_GENESIS = "genesis"

BALANCE_SOURCE_KINDS = frozenset(
    {
        SOURCE_KIND_ANCHOR_TOKEN,
        SOURCE_KIND_SAIL_TOKEN,
        SOURCE_KIND_POOL_COLLATERAL,
        SOURCE_KIND_POOL_LEVERAGED,
    }
)
TOKEN_HOLDING_SOURCE_KINDS = frozenset({SOURCE_KIND_ANCHOR_TOKEN, SOURCE_KIND_SAIL_TOKEN})
POOL_DEPOSIT_SOURCE_KINDS = frozenset({SOURCE_KIND_POOL_COLLATERAL, SOURCE_KIND_POOL_LEVERAGED})
ALL_SOURCE_KINDS = BALANCE_SOURCE_KINDS | {SOURCE_KIND_GENESIS}

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

SECONDS_PER_DAY = 86_400
SECONDS_PER_HOUR = 3_600
TOKEN_UNIT = 10**18


def domain_normalize_address(address: str) -> str:
    """Normalize one hex address into lowercase `0x`-prefixed form.

    Args:
        address: Candidate hex address.

    Returns:
        str: Lowercase address.

    Raises:
        ValueError: Raised when address is blank or not a 20-byte hex string.
    """

    if not isinstance(address, str) or not address.strip():
        raise ValueError("address must be a non-empty string")

    normalized_address = address.strip().lower()
    if not normalized_address.startswith("0x"):
        normalized_address = f"0x{normalized_address}"
    if len(normalized_address) != 42:
        raise ValueError(f"address must be 20 bytes of hex: {address}")
    try:
        int(normalized_address[2:], 16)
    except ValueError as error:
        raise ValueError(f"address must be hex encoded: {address}") from error
    return normalized_address


def domain_validate_source_kind(source_kind: str) -> str:
    """Validate one reward source kind value.

    Args:
        source_kind: Candidate source kind.

    Returns:
        str: Validated source kind.

    Raises:
        ValueError: Raised when source kind is unknown.
    """

    if source_kind not in ALL_SOURCE_KINDS:
        raise ValueError(f"unsupported source_kind={source_kind}")
    return source_kind
