"""Tagged price-reading contracts resolved once at the adapter boundary."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

PEG_ASSET_USD = "usd"
PEG_ASSET_ETH = "eth"
PEG_ASSET_BTC = "btc"
PEG_ASSET_EUR = "eur"

ORACLE_KIND_WRAPPED_RATE = "wrapped_rate"
ORACLE_KIND_FXUSD_PRICE = "fxusd_price"


@dataclass(frozen=True)
class ScalarPriceReading:
    """Direct aggregator answer denominated in USD.

    Attributes:
        answer: Signed integer answer.
        decimals: Fixed decimal count of the answer, commonly 8.
    """

    answer: int
    decimals: int = 8


@dataclass(frozen=True)
class WrappedRatePriceReading:
    """Wrapped-rate oracle tuple with all values in 18-decimal fixed point.

    Attributes:
        min_underlying: Lower bound underlying price in peg units.
        max_underlying: Upper bound underlying price in peg units.
        min_rate: Lower bound wrapped-to-underlying rate.
        max_rate: Upper bound wrapped-to-underlying rate.
    """

    min_underlying: int
    max_underlying: int
    min_rate: int
    max_rate: int


PriceReading = Union[ScalarPriceReading, WrappedRatePriceReading]
