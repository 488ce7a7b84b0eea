"""Campaign API router composition for genesis positions and early-bird status."""

from __future__ import annotations

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from marks_ledger.db import LedgerStorePort
from marks_ledger.domain import MarketBonusStatus, domain_normalize_address

from .marks import api_serialize_campaign_position


def api_create_campaigns_router(store: LedgerStorePort) -> APIRouter:
    """Create campaigns router exposing positions and market bonus status.

    Args:
        store: Ledger record store.

    Returns:
        APIRouter: Router exposing campaign endpoints.

    Raises:
        ValueError: Raised when store is invalid.
    """

    if store is None:
        raise ValueError("store must not be None")

    router = APIRouter(prefix="/campaigns", tags=["campaigns"])

    @router.get("/{campaign}/users/{user}")
    def api_campaign_user_position(campaign: str, user: str) -> JSONResponse:
        """Return one campaign position with its bonus eligibility flags.

        Args:
            campaign: Campaign address.
            user: User address.

        Returns:
            JSONResponse: Position payload, 400 for invalid addresses or 404 when absent.

        Raises:
            RuntimeError: Raised when store reads fail.
        """

        try:
            normalized_campaign = domain_normalize_address(campaign)
            normalized_user = domain_normalize_address(user)
        except ValueError as error:
            payload = {"status": "error", "message": str(error)}
            return JSONResponse(content=payload, status_code=status.HTTP_400_BAD_REQUEST)

        position = store.db_get_campaign_position(normalized_campaign, normalized_user)
        if position is None:
            payload = {"status": "error", "message": "campaign position not found"}
            return JSONResponse(content=payload, status_code=status.HTTP_404_NOT_FOUND)

        campaign_end = store.db_get_campaign_end(normalized_campaign)
        payload = {
            **api_serialize_campaign_position(position),
            "campaign_ended_at": None if campaign_end is None else campaign_end.ended_at,
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    @router.get("/{campaign}/bonus-status")
    def api_campaign_bonus_status(campaign: str) -> JSONResponse:
        try:
            normalized_campaign = domain_normalize_address(campaign)
        except ValueError as error:
            payload = {"status": "error", "message": str(error)}
            return JSONResponse(content=payload, status_code=status.HTTP_400_BAD_REQUEST)

        bonus_status = store.db_get_bonus_status(normalized_campaign)
        if bonus_status is None:
            payload = {"status": "error", "message": "bonus status not found"}
            return JSONResponse(content=payload, status_code=status.HTTP_404_NOT_FOUND)
        return JSONResponse(content=api_serialize_bonus_status(bonus_status), status_code=status.HTTP_200_OK)

    return router


def api_serialize_bonus_status(bonus_status: MarketBonusStatus) -> dict[str, object]:
    return {
        "campaign_address": bonus_status.campaign_address,
        "threshold_amount": str(bonus_status.threshold_amount),
        "cumulative_deposits": str(bonus_status.cumulative_deposits),
        "threshold_reached": bonus_status.threshold_reached,
        "threshold_reached_at": bonus_status.threshold_reached_at,
    }
