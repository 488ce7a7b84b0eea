"""Configuration package for runtime settings, market table, and logging setup."""

from .logging import config_setup_logging
from .markets import (
	MarketConfig,
	MarketConfigLoadError,
	MarketSource,
	MarketTable,
	PegFeedConfig,
	RewardRules,
	config_load_market_table,
)
from .settings import AppSettings, SettingsLoadError, config_load_database_url, config_load_settings

__all__ = [
	"AppSettings",
	"SettingsLoadError",
	"config_load_settings",
	"config_load_database_url",
	"config_setup_logging",
	"MarketConfig",
	"MarketConfigLoadError",
	"MarketSource",
	"MarketTable",
	"PegFeedConfig",
	"RewardRules",
	"config_load_market_table",
]
