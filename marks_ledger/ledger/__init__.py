"""Ledger layer package for marks accrual, campaigns, and leveraged-token cost basis."""

from .accrual import accrual_compute_marks, accrual_marks_per_day
from .aggregation import AggregationView, UserMarksSources, UserMarksSummary
from .balance_ledger import BalanceLedger, BalanceSettlement
from .boost_windows import BoostWindowRegistry
from .campaign_ledger import CampaignLedger
from .cost_basis import (
	LOT_EVENT_TYPE_GENESIS,
	LOT_EVENT_TYPE_MINT,
	cost_basis_append_lot,
	cost_basis_consume_fifo,
	cost_basis_fold_position,
	cost_basis_open_amount,
)
from .position_service import MarketPriceQuote, SailPositionService, position_hourly_tracker_name

__all__ = [
	"accrual_compute_marks",
	"accrual_marks_per_day",
	"AggregationView",
	"UserMarksSources",
	"UserMarksSummary",
	"BalanceLedger",
	"BalanceSettlement",
	"BoostWindowRegistry",
	"CampaignLedger",
	"LOT_EVENT_TYPE_GENESIS",
	"LOT_EVENT_TYPE_MINT",
	"cost_basis_append_lot",
	"cost_basis_consume_fifo",
	"cost_basis_fold_position",
	"cost_basis_open_amount",
	"MarketPriceQuote",
	"SailPositionService",
	"position_hourly_tracker_name",
]
