"""
Cost-of-sales profit analysis and sales summaries.

Where the compliance report compares *sales against purchases* made in the
same window, the profit analysis here values each unit sold at a per-part
cost basis:

1. Every catalog part starts at MRP less the benchmark discount.
2. The most recent purchase price recorded anywhere in the ledger overrides
   that default.

Net profit for a period is then ``earnings - cost of sales``, with returns
reversing both their revenue and their cost.

All functions are pure; the reference time ``now`` is always passed in.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable

from partsledger.models import (
    CatalogItem,
    PartPerformance,
    Period,
    ProfitAnalysis,
    SalesSummary,
    SoldItem,
    Transaction,
    TransactionType,
)
from partsledger.services.compliance import (
    UNREGISTERED_PART,
    as_utc,
    build_catalog_index,
    expected_purchase_price,
    in_window,
)
from partsledger.utils.config import BENCHMARK_DISCOUNT_PERCENT

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Periods
# ---------------------------------------------------------------------------
def period_start(period: Period | str, now: datetime) -> datetime:
    """Return the start of *period* relative to *now* (same timezone as *now*).

    Weeks start on Monday.
    """
    period = Period(period)
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)

    if period is Period.TODAY:
        return midnight
    if period is Period.WEEK:
        return midnight - timedelta(days=now.weekday())
    if period is Period.MONTH:
        return midnight.replace(day=1)
    return midnight.replace(month=1, day=1)


# ---------------------------------------------------------------------------
# Cost basis
# ---------------------------------------------------------------------------
def build_cost_basis(
    transactions: Iterable[Transaction],
    catalog: Iterable[CatalogItem],
    benchmark_discount_pct: float = BENCHMARK_DISCOUNT_PERCENT,
) -> dict[str, float]:
    """Unit cost per upper-cased part number.

    Seeded from the benchmark purchase price and overridden by the latest
    recorded purchase price for the part.
    """
    cost: dict[str, float] = {
        pn: expected_purchase_price(item.price, benchmark_discount_pct)
        for pn, item in build_catalog_index(catalog).items()
    }

    purchases = sorted(
        (tx for tx in transactions if tx.type.is_purchase),
        key=lambda tx: as_utc(tx.created_at),
    )
    for tx in purchases:
        cost[tx.part_number.strip().upper()] = tx.price

    return cost


# ---------------------------------------------------------------------------
# Profit analysis
# ---------------------------------------------------------------------------
def build_profit_analysis(
    transactions: Iterable[Transaction],
    catalog: Iterable[CatalogItem],
    period: Period | str,
    now: datetime,
    *,
    benchmark_discount_pct: float = BENCHMARK_DISCOUNT_PERCENT,
) -> ProfitAnalysis:
    """Compute earnings, cost of sales and per-part profit for *period*.

    Parameters
    ----------
    transactions:
        APPROVED ledger entries.  The whole list feeds the cost basis; only
        entries created on or after the period start are aggregated.
    catalog:
        Current catalog snapshot.
    period:
        One of ``TODAY``, ``WEEK``, ``MONTH``, ``YEAR``.
    now:
        Reference time used to resolve the period start.
    """
    ledger = list(transactions)
    catalog_items = list(catalog)
    index = build_catalog_index(catalog_items)
    cost_basis = build_cost_basis(ledger, catalog_items, benchmark_discount_pct)

    period = Period(period)
    start = period_start(period, now)

    total_earnings = 0.0
    total_purchase_value = 0.0
    total_cost_of_sales = 0.0
    sales_count = 0
    returns_count = 0
    sku: dict[str, dict[str, float]] = {}

    for tx in ledger:
        if not in_window(tx.created_at, start, None):
            continue

        pn = tx.part_number.strip().upper()
        amount = tx.price * tx.quantity
        unit_cost = cost_basis.get(pn, 0.0)

        if tx.type is TransactionType.SALE:
            total_earnings += amount
            total_cost_of_sales += unit_cost * tx.quantity
            sales_count += 1
            row = sku.setdefault(pn, {"qty": 0, "rev": 0.0})
            row["qty"] += tx.quantity
            row["rev"] += amount
        elif tx.type is TransactionType.RETURN:
            total_earnings -= amount
            total_cost_of_sales -= unit_cost * tx.quantity
            returns_count += 1
            row = sku.setdefault(pn, {"qty": 0, "rev": 0.0})
            row["qty"] -= tx.quantity
            row["rev"] -= amount
        elif tx.type.is_purchase:
            total_purchase_value += amount

    net_profit = total_earnings - total_cost_of_sales
    margin = (net_profit / total_earnings) * 100 if total_earnings > 0 else 0.0

    parts: list[PartPerformance] = []
    for pn, data in sku.items():
        basis = cost_basis.get(pn, 0.0)
        qty = int(data["qty"])
        rev = data["rev"]
        profit = rev - basis * qty
        item = index.get(pn)
        parts.append(
            PartPerformance(
                part_number=pn,
                name=item.name if item is not None and item.name else UNREGISTERED_PART,
                qty_sold=qty,
                avg_sell_price=rev / qty if qty != 0 else 0.0,
                cost_basis=basis,
                total_revenue=rev,
                total_profit=profit,
                margin=(profit / rev) * 100 if rev != 0 else 0.0,
            )
        )
    parts.sort(key=lambda p: p.total_profit, reverse=True)

    return ProfitAnalysis(
        period=period,
        period_start=start,
        total_earnings=total_earnings,
        total_purchase_value=total_purchase_value,
        total_cost_of_sales=total_cost_of_sales,
        net_profit=net_profit,
        margin=margin,
        is_earning_more_than_spending=total_earnings > total_purchase_value,
        sales_count=sales_count,
        returns_count=returns_count,
        parts=parts,
    )


# ---------------------------------------------------------------------------
# Sales summary
# ---------------------------------------------------------------------------
def summarize_sales(
    transactions: Iterable[Transaction],
    catalog: Iterable[CatalogItem],
    window_start: datetime | None = None,
    window_end: datetime | None = None,
) -> SalesSummary:
    """Gross sales, returns and purchases in a window, with top-selling parts."""
    index = build_catalog_index(catalog)

    total_sales = 0.0
    total_returns = 0.0
    total_purchases = 0.0
    sales_count = 0
    return_count = 0
    sold: dict[str, dict[str, float]] = {}

    for tx in transactions:
        if not in_window(tx.created_at, window_start, window_end):
            continue
        amount = tx.price * tx.quantity

        if tx.type is TransactionType.SALE:
            total_sales += amount
            sales_count += 1
            row = sold.setdefault(tx.part_number.strip().upper(), {"qty": 0, "rev": 0.0})
            row["qty"] += tx.quantity
            row["rev"] += amount
        elif tx.type is TransactionType.RETURN:
            total_returns += amount
            return_count += 1
        elif tx.type.is_purchase:
            total_purchases += amount

    sold_items = [
        SoldItem(
            part_number=pn,
            name=index[pn].name if pn in index and index[pn].name else UNREGISTERED_PART,
            quantity_sold=int(data["qty"]),
            total_revenue=data["rev"],
        )
        for pn, data in sold.items()
    ]
    sold_items.sort(key=lambda s: s.total_revenue, reverse=True)

    logger.debug("Sales summary: %d sales, %d returns", sales_count, return_count)
    return SalesSummary(
        total_sales=total_sales,
        total_returns=total_returns,
        total_purchases=total_purchases,
        net_revenue=total_sales - total_returns,
        sales_count=sales_count,
        return_count=return_count,
        sold_items=sold_items,
    )
