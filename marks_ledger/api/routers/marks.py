"""Marks API router composition for per-user rollups and source breakdowns."""

from __future__ import annotations

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse

from marks_ledger.domain import BalanceRecord, CampaignPosition, domain_normalize_address
from marks_ledger.ledger import AggregationView, UserMarksSummary


def api_create_marks_router(aggregation_view: AggregationView) -> APIRouter:
    """Create marks router exposing per-user totals and per-source records.

    Args:
        aggregation_view: Ledger-layer read-only rollup.

    Returns:
        APIRouter: Router exposing marks endpoints.

    Raises:
        ValueError: Raised when aggregation_view is invalid.
    """

    if aggregation_view is None:
        raise ValueError("aggregation_view must not be None")

    router = APIRouter(prefix="/marks", tags=["marks"])

    @router.get("/users/{user}")
    def api_marks_user_summary(
        user: str,
        as_of: int | None = Query(default=None, ge=0),
    ) -> JSONResponse:
        """Return the marks rollup of one user.

        Args:
            user: User address.
            as_of: Optional projection timestamp in unix seconds.

        Returns:
            JSONResponse: Summary payload or 400 for invalid addresses.

        Raises:
            RuntimeError: Raised when store reads fail.
        """

        try:
            summary = aggregation_view.aggregation_user_summary(user, as_of=as_of)
        except ValueError as error:
            payload = {"status": "error", "message": str(error)}
            return JSONResponse(content=payload, status_code=status.HTTP_400_BAD_REQUEST)
        return JSONResponse(content=api_serialize_marks_summary(summary), status_code=status.HTTP_200_OK)

    @router.get("/users/{user}/sources")
    def api_marks_user_sources(user: str) -> JSONResponse:
        try:
            normalized_user = domain_normalize_address(user)
        except ValueError as error:
            payload = {"status": "error", "message": str(error)}
            return JSONResponse(content=payload, status_code=status.HTTP_400_BAD_REQUEST)

        sources = aggregation_view.aggregation_user_sources(normalized_user)
        payload = {
            "user": sources.user,
            "balance_records": [api_serialize_balance_record(record) for record in sources.balance_records],
            "campaign_positions": [api_serialize_campaign_position(position) for position in sources.campaign_positions],
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    return router


def api_serialize_marks_summary(summary: UserMarksSummary) -> dict[str, object]:
    """Serialize a marks rollup with decimal values rendered as strings.

    Args:
        summary: Aggregated marks summary.

    Returns:
        dict[str, object]: JSON-safe payload.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    return {
        "user": summary.user,
        "anchor_token_marks": str(summary.anchor_token_marks),
        "sail_token_marks": str(summary.sail_token_marks),
        "stability_pool_marks": str(summary.stability_pool_marks),
        "genesis_marks": str(summary.genesis_marks),
        "total_marks": str(summary.total_marks),
        "total_marks_per_day": str(summary.total_marks_per_day),
        "as_of": summary.as_of,
    }


def api_serialize_balance_record(record: BalanceRecord) -> dict[str, object]:
    return {
        "source_kind": record.source_kind,
        "source_address": record.source_address,
        "raw_balance": str(record.raw_balance),
        "balance_usd": str(record.balance_usd),
        "accrued_marks": str(record.accrued_marks),
        "total_marks_earned": str(record.total_marks_earned),
        "marks_per_day": str(record.marks_per_day),
        "first_seen_at": record.first_seen_at,
        "last_updated": record.last_updated,
    }


def api_serialize_campaign_position(position: CampaignPosition) -> dict[str, object]:
    return {
        "campaign_address": position.campaign_address,
        "user": position.user,
        "total_deposited": str(position.total_deposited),
        "total_deposited_usd": str(position.total_deposited_usd),
        "current_deposit": str(position.current_deposit),
        "current_deposit_usd": str(position.current_deposit_usd),
        "net_deposit_usd": str(position.net_deposit_usd),
        "current_marks": str(position.current_marks),
        "total_marks_earned": str(position.total_marks_earned),
        "total_marks_forfeited": str(position.total_marks_forfeited),
        "bonus_marks": str(position.bonus_marks),
        "early_bonus_marks": str(position.early_bonus_marks),
        "qualifies_for_early_bonus": position.qualifies_for_early_bonus,
        "early_bonus_eligible_deposit": str(position.early_bonus_eligible_deposit),
        "early_bonus_eligible_deposit_usd": str(position.early_bonus_eligible_deposit_usd),
        "marks_per_day": str(position.marks_per_day),
        "genesis_start_date": position.genesis_start_date,
        "genesis_end_date": position.genesis_end_date,
        "genesis_ended": position.genesis_ended,
        "last_updated": position.last_updated,
    }
