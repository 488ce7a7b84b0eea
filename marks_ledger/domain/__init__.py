"""Domain contracts shared across ledger, db, job, and API layers."""

from .diagnostics import HealthStatus, domain_build_stage_event
from .events import (
	DOMAIN_DELTA_EVENT_KINDS,
	DOMAIN_EVENT_TYPES,
	BlockTick,
	CampaignDeposit,
	CampaignEnd,
	CampaignWithdraw,
	ChainEvent,
	PoolDeposit,
	PoolDepositChange,
	PoolWithdraw,
	TokenMint,
	TokenRedeem,
	TokenTransfer,
)
from .prices import (
	ORACLE_KIND_FXUSD_PRICE,
	ORACLE_KIND_WRAPPED_RATE,
	PEG_ASSET_BTC,
	PEG_ASSET_ETH,
	PEG_ASSET_EUR,
	PEG_ASSET_USD,
	PriceReading,
	ScalarPriceReading,
	WrappedRatePriceReading,
)
from .records import (
	BalanceRecord,
	BoostWindow,
	CampaignEndRecord,
	CampaignPosition,
	CostBasisLot,
	EventReceipt,
	HourlyPriceSnapshot,
	MarketBonusStatus,
	MarksEvent,
	PricePoint,
	UserSailPosition,
)
from .sources import (
	ALL_SOURCE_KINDS,
	BALANCE_SOURCE_KINDS,
	POOL_DEPOSIT_SOURCE_KINDS,
	SECONDS_PER_DAY,
	SECONDS_PER_HOUR,
	SOURCE_KIND_ANCHOR_TOKEN,
	SOURCE_KIND_GENESIS,
	SOURCE_KIND_POOL_COLLATERAL,
	SOURCE_KIND_POOL_LEVERAGED,
	SOURCE_KIND_SAIL_TOKEN,
	TOKEN_HOLDING_SOURCE_KINDS,
	TOKEN_UNIT,
	ZERO_ADDRESS,
	domain_normalize_address,
	domain_validate_source_kind,
)

__all__ = [
	"HealthStatus",
	"domain_build_stage_event",
	"ChainEvent",
	"TokenTransfer",
	"PoolDeposit",
	"PoolWithdraw",
	"PoolDepositChange",
	"CampaignDeposit",
	"CampaignWithdraw",
	"CampaignEnd",
	"TokenMint",
	"TokenRedeem",
	"BlockTick",
	"DOMAIN_EVENT_TYPES",
	"DOMAIN_DELTA_EVENT_KINDS",
	"PriceReading",
	"ScalarPriceReading",
	"WrappedRatePriceReading",
	"PEG_ASSET_USD",
	"PEG_ASSET_ETH",
	"PEG_ASSET_BTC",
	"PEG_ASSET_EUR",
	"ORACLE_KIND_WRAPPED_RATE",
	"ORACLE_KIND_FXUSD_PRICE",
	"BalanceRecord",
	"BoostWindow",
	"CampaignPosition",
	"MarketBonusStatus",
	"CampaignEndRecord",
	"CostBasisLot",
	"UserSailPosition",
	"MarksEvent",
	"PricePoint",
	"HourlyPriceSnapshot",
	"EventReceipt",
	"SOURCE_KIND_ANCHOR_TOKEN",
	"SOURCE_KIND_SAIL_TOKEN",
	"SOURCE_KIND_POOL_COLLATERAL",
	"SOURCE_KIND_POOL_LEVERAGED",
	"SOURCE_KIND_GENESIS",
	"BALANCE_SOURCE_KINDS",
	"TOKEN_HOLDING_SOURCE_KINDS",
	"POOL_DEPOSIT_SOURCE_KINDS",
	"ALL_SOURCE_KINDS",
	"ZERO_ADDRESS",
	"SECONDS_PER_DAY",
	"SECONDS_PER_HOUR",
	"TOKEN_UNIT",
	"domain_normalize_address",
	"domain_validate_source_kind",
]
