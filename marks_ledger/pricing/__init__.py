"""Pricing layer package for USD normalization boundaries."""

from .normalizer import PriceNormalizer, pricing_reading_to_usd

__all__ = ["PriceNormalizer", "pricing_reading_to_usd"]
