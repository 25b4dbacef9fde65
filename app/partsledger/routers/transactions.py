"""
Ledger transaction router.

Returnable-quantity lookups for the returns workflow and owner decisions on
manager-submitted (PENDING) entries.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, HTTPException, Request

from partsledger.models import TransactionStatus
from partsledger.services.approvals import InvalidTransitionError, decide
from partsledger.services.ledger import (
    fetch_return_candidates,
    fetch_returns_for,
    fetch_transaction,
    save_decision,
)
from partsledger.services.obo_auth import get_user_identity
from partsledger.services.returns import remaining_returnable, returnable_sales

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/transactions", tags=["transactions"])


# ---------------------------------------------------------------------------
# GET /returnable
# ---------------------------------------------------------------------------
@router.get(
    "/returnable",
    summary="Approved sales that still have units left to return",
)
async def list_returnable_sales() -> dict[str, Any]:
    try:
        sales = returnable_sales(fetch_return_candidates())
        return {"count": len(sales), "data": sales}
    except Exception as exc:
        logger.exception("Failed to list returnable sales")
        raise HTTPException(status_code=500, detail=str(exc)) from exc


# ---------------------------------------------------------------------------
# GET /{transaction_id}/returnable
# ---------------------------------------------------------------------------
@router.get(
    "/{transaction_id}/returnable",
    summary="Remaining returnable quantity for one sale",
)
async def get_returnable_quantity(transaction_id: str) -> dict[str, Any]:
    """Return sold, returned and remaining quantities for a SALE.

    Pending returns already count against the sale.
    """
    try:
        sale = fetch_transaction(transaction_id)
        if sale is None:
            raise HTTPException(
                status_code=404,
                detail=f"Transaction '{transaction_id}' not found",
            )

        returns = fetch_returns_for(transaction_id)
        try:
            remaining = remaining_returnable(sale, returns)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        return {
            "transaction_id": sale.id,
            "part_number": sale.part_number,
            "status": sale.status,
            "sold_quantity": sale.quantity,
            "returned_quantity": sale.quantity - remaining,
            "remaining": remaining,
            "returnable": remaining > 0 and sale.status is TransactionStatus.APPROVED,
        }
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Failed to resolve returnable quantity for %s", transaction_id)
        raise HTTPException(status_code=500, detail=str(exc)) from exc


# ---------------------------------------------------------------------------
# POST /{transaction_id}/approve  and  /{transaction_id}/reject
# ---------------------------------------------------------------------------
def _apply_decision(
    request: Request,
    transaction_id: str,
    decision: TransactionStatus,
) -> dict[str, Any]:
    identity = get_user_identity(request)
    if not identity["is_owner"]:
        raise HTTPException(
            status_code=403,
            detail="Only an owner can approve or reject transactions",
        )

    transaction = fetch_transaction(transaction_id)
    if transaction is None:
        raise HTTPException(
            status_code=404,
            detail=f"Transaction '{transaction_id}' not found",
        )

    try:
        updated = decide(
            transaction,
            decision,
            identity["user_email"],
            datetime.now(timezone.utc),
        )
        save_decision(updated)
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    return {"status": "success", "transaction": updated}


@router.post(
    "/{transaction_id}/approve",
    summary="Approve a pending transaction",
)
async def approve_transaction(transaction_id: str, request: Request) -> dict[str, Any]:
    try:
        return _apply_decision(request, transaction_id, TransactionStatus.APPROVED)
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Failed to approve transaction %s", transaction_id)
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@router.post(
    "/{transaction_id}/reject",
    summary="Reject a pending transaction",
)
async def reject_transaction(transaction_id: str, request: Request) -> dict[str, Any]:
    try:
        return _apply_decision(request, transaction_id, TransactionStatus.REJECTED)
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Failed to reject transaction %s", transaction_id)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
