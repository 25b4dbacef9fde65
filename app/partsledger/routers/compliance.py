"""
Purchase-price compliance router.

Serves the margin-leakage report: net sales, purchases, realised profit and
the leakage caused by purchases made below the benchmark basic discount,
broken down by SKU, vendor and brand.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, HTTPException, Query

from partsledger.models import Brand, ComplianceReport, SkuOrder, TransactionStatus
from partsledger.services.compliance import as_utc, build_compliance_report, order_skus
from partsledger.services.ledger import fetch_catalog, fetch_transactions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/compliance", tags=["compliance"])


def _load_report(
    window_start: datetime | None,
    window_end: datetime | None,
    brand: Brand | None,
    sku_order: SkuOrder = SkuOrder.IMPACT,
) -> ComplianceReport:
    if window_start and window_end and as_utc(window_end) <= as_utc(window_start):
        raise HTTPException(
            status_code=400,
            detail="window_end must be later than window_start",
        )

    transactions = fetch_transactions(TransactionStatus.APPROVED, window_start, window_end)
    catalog = fetch_catalog()
    return build_compliance_report(
        transactions,
        catalog,
        window_start,
        window_end,
        brand,
        sku_order=sku_order,
    )


# ---------------------------------------------------------------------------
# GET /report
# ---------------------------------------------------------------------------
@router.get(
    "/report",
    response_model=ComplianceReport,
    summary="Full compliance and profit report for a window",
)
async def get_compliance_report(
    window_start: datetime | None = Query(None, description="Inclusive start of the window"),
    window_end: datetime | None = Query(None, description="Exclusive end of the window"),
    brand: Brand | None = Query(None, description="Restrict to one brand"),
    sku_order: SkuOrder = Query(SkuOrder.IMPACT, description="impact or offenders"),
) -> ComplianceReport:
    """Return totals plus SKU, vendor and brand breakdowns."""
    try:
        return _load_report(window_start, window_end, brand, sku_order)
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Failed to build compliance report")
        raise HTTPException(status_code=500, detail=str(exc)) from exc


# ---------------------------------------------------------------------------
# GET /vendors
# ---------------------------------------------------------------------------
@router.get(
    "/vendors",
    summary="Vendors ranked by purchase leakage",
)
async def get_vendor_leakage(
    window_start: datetime | None = Query(None, description="Inclusive start of the window"),
    window_end: datetime | None = Query(None, description="Exclusive end of the window"),
    brand: Brand | None = Query(None, description="Restrict to one brand"),
) -> dict[str, Any]:
    """Return vendors whose invoices were priced above the benchmark."""
    try:
        report = _load_report(window_start, window_end, brand)
        return {
            "count": len(report.by_vendor),
            "total_leakage": report.total_leakage,
            "filters": {
                "window_start": window_start,
                "window_end": window_end,
                "brand": brand,
            },
            "data": report.by_vendor,
        }
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Failed to fetch vendor leakage")
        raise HTTPException(status_code=500, detail=str(exc)) from exc


# ---------------------------------------------------------------------------
# GET /offenders
# ---------------------------------------------------------------------------
@router.get(
    "/offenders",
    summary="Parts with the largest purchase leakage",
)
async def get_leakage_offenders(
    window_start: datetime | None = Query(None, description="Inclusive start of the window"),
    window_end: datetime | None = Query(None, description="Exclusive end of the window"),
    brand: Brand | None = Query(None, description="Restrict to one brand"),
    limit: int = Query(20, ge=1, le=500, description="Max rows returned"),
) -> dict[str, Any]:
    """Return leaking SKUs, worst first."""
    try:
        report = _load_report(window_start, window_end, brand)
        offenders = [
            row for row in order_skus(report.by_sku, SkuOrder.OFFENDERS) if row.leakage > 0
        ]
        return {
            "count": len(offenders[:limit]),
            "total_leakage": report.total_leakage,
            "data": offenders[:limit],
        }
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Failed to fetch leakage offenders")
        raise HTTPException(status_code=500, detail=str(exc)) from exc
