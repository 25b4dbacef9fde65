"""
Profit analysis router.

Period profit is valued at a per-part cost basis (latest purchase price,
falling back to the benchmark price) rather than against same-window
purchases; see :mod:`partsledger.services.profit`.
"""

from __future__ import annotations

import logging
from datetime import datetime
from zoneinfo import ZoneInfo

from fastapi import APIRouter, HTTPException, Query

from partsledger.models import Period, ProfitAnalysis, SalesSummary, TransactionStatus
from partsledger.services.compliance import as_utc
from partsledger.services.ledger import fetch_catalog, fetch_transactions
from partsledger.services.profit import build_profit_analysis, summarize_sales
from partsledger.utils.config import SHOP_TIMEZONE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/profit", tags=["profit"])


# ---------------------------------------------------------------------------
# GET /analysis
# ---------------------------------------------------------------------------
@router.get(
    "/analysis",
    response_model=ProfitAnalysis,
    summary="Earnings, cost of sales and per-part profit for a period",
)
async def get_profit_analysis(
    period: Period = Query(Period.MONTH, description="TODAY, WEEK, MONTH or YEAR"),
) -> ProfitAnalysis:
    """Aggregate approved entries since the start of *period* in shop time."""
    try:
        now = datetime.now(ZoneInfo(SHOP_TIMEZONE))
        # Full ledger: the cost basis needs purchases older than the period.
        transactions = fetch_transactions(TransactionStatus.APPROVED)
        catalog = fetch_catalog()
        return build_profit_analysis(transactions, catalog, period, now)
    except Exception as exc:
        logger.exception("Failed to build profit analysis for %s", period)
        raise HTTPException(status_code=500, detail=str(exc)) from exc


# ---------------------------------------------------------------------------
# GET /sales-summary
# ---------------------------------------------------------------------------
@router.get(
    "/sales-summary",
    response_model=SalesSummary,
    summary="Gross sales, returns and purchases with top-selling parts",
)
async def get_sales_summary(
    window_start: datetime | None = Query(None, description="Inclusive start of the window"),
    window_end: datetime | None = Query(None, description="Exclusive end of the window"),
) -> SalesSummary:
    if window_start and window_end and as_utc(window_end) <= as_utc(window_start):
        raise HTTPException(
            status_code=400,
            detail="window_end must be later than window_start",
        )

    try:
        transactions = fetch_transactions(TransactionStatus.APPROVED, window_start, window_end)
        catalog = fetch_catalog()
        return summarize_sales(transactions, catalog, window_start, window_end)
    except Exception as exc:
        logger.exception("Failed to build sales summary")
        raise HTTPException(status_code=500, detail=str(exc)) from exc
