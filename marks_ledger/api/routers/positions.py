"""Leveraged-token position API router composition."""

from __future__ import annotations

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from marks_ledger.db import LedgerStorePort
from marks_ledger.domain import CostBasisLot, UserSailPosition, domain_normalize_address


def api_create_positions_router(store: LedgerStorePort) -> APIRouter:
    """Create positions router exposing sail positions and their FIFO lots.

    Args:
        store: Ledger record store.

    Returns:
        APIRouter: Router exposing position endpoints.

    Raises:
        ValueError: Raised when store is invalid.
    """

    if store is None:
        raise ValueError("store must not be None")

    router = APIRouter(prefix="/positions", tags=["positions"])

    @router.get("/users/{user}")
    def api_positions_user_list(user: str) -> JSONResponse:
        """Return every leveraged-token position of one user with realized P&L.

        Args:
            user: User address.

        Returns:
            JSONResponse: Positions payload or 400 for invalid addresses.

        Raises:
            RuntimeError: Raised when store reads fail.
        """

        try:
            normalized_user = domain_normalize_address(user)
        except ValueError as error:
            payload = {"status": "error", "message": str(error)}
            return JSONResponse(content=payload, status_code=status.HTTP_400_BAD_REQUEST)

        positions = store.db_list_sail_positions(normalized_user)
        payload = {
            "user": normalized_user,
            "items": [api_serialize_sail_position(position) for position in positions],
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    @router.get("/{token}/users/{user}/lots")
    def api_positions_lot_list(token: str, user: str) -> JSONResponse:
        """Return one position and its lots in FIFO order.

        Args:
            token: Leveraged token address.
            user: User address.

        Returns:
            JSONResponse: Lots payload, 400 for invalid addresses or 404 when absent.

        Raises:
            RuntimeError: Raised when store reads fail.
        """

        try:
            normalized_token = domain_normalize_address(token)
            normalized_user = domain_normalize_address(user)
        except ValueError as error:
            payload = {"status": "error", "message": str(error)}
            return JSONResponse(content=payload, status_code=status.HTTP_400_BAD_REQUEST)

        position = store.db_get_sail_position(normalized_token, normalized_user)
        if position is None:
            payload = {"status": "error", "message": "position not found"}
            return JSONResponse(content=payload, status_code=status.HTTP_404_NOT_FOUND)

        lots = store.db_list_cost_basis_lots(normalized_token, normalized_user)
        payload = {
            "position": api_serialize_sail_position(position),
            "lots": [api_serialize_cost_basis_lot(lot) for lot in lots],
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    return router


def api_serialize_sail_position(position: UserSailPosition) -> dict[str, object]:
    return {
        "token_address": position.token_address,
        "user": position.user,
        "balance": str(position.balance),
        "total_cost_basis_usd": str(position.total_cost_basis_usd),
        "average_cost_per_token": str(position.average_cost_per_token),
        "realized_pnl_usd": str(position.realized_pnl_usd),
        "total_tokens_bought": str(position.total_tokens_bought),
        "total_tokens_sold": str(position.total_tokens_sold),
        "total_spent_usd": str(position.total_spent_usd),
        "total_received_usd": str(position.total_received_usd),
        "first_acquired_at": position.first_acquired_at,
        "last_updated": position.last_updated,
    }


def api_serialize_cost_basis_lot(lot: CostBasisLot) -> dict[str, object]:
    return {
        "lot_index": lot.lot_index,
        "event_type": lot.event_type,
        "token_amount": str(lot.token_amount),
        "original_amount": str(lot.original_amount),
        "cost_usd": str(lot.cost_usd),
        "original_cost_usd": str(lot.original_cost_usd),
        "price_per_token": str(lot.price_per_token),
        "is_fully_redeemed": lot.is_fully_redeemed,
        "acquired_at": lot.acquired_at,
        "block_number": lot.block_number,
    }
