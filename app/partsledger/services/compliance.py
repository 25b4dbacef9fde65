"""
Purchase-price compliance and margin-leakage aggregator.

Every purchase is expected to land at the catalog MRP less the standard basic
discount (``BENCHMARK_DISCOUNT_PERCENT``).  Paying more than that benchmark is
*leakage*: margin given away to the vendor.  This module folds an APPROVED
ledger slice and a catalog snapshot into a :class:`ComplianceReport` holding

- net sales (sales less returns), purchases, realised profit and margin,
- total leakage with per-SKU, per-vendor and per-brand breakdowns.

The aggregation is a single pure pass over in-memory records.  It performs no
I/O, reads no clock, and never raises on data-quality problems: parts missing
from the catalog still count towards cost but contribute no leakage, and an
empty ledger yields an all-zero report.

The benchmark is always computed from the *current* catalog MRP, so an MRP
revision after a purchase shifts that purchase's leakage.  The recorded
purchase price itself is never adjusted.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable

from partsledger.models import (
    Brand,
    BrandBreakdown,
    CatalogItem,
    ComplianceReport,
    SkuBreakdown,
    SkuOrder,
    Transaction,
    TransactionType,
    VendorLeakage,
    VendorRating,
)
from partsledger.utils.config import (
    BENCHMARK_DISCOUNT_PERCENT,
    LEAKAGE_TOLERANCE,
    POOR_DISCOUNT_THRESHOLD_PCT,
)

logger = logging.getLogger(__name__)

UNREGISTERED_PART = "Unregistered Part"
UNKNOWN_VENDOR = "UNKNOWN VENDOR"


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------
def as_utc(ts: datetime) -> datetime:
    """Interpret naive timestamps as UTC so mixed inputs stay comparable."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def in_window(
    ts: datetime,
    window_start: datetime | None,
    window_end: datetime | None,
) -> bool:
    """Return True when ``window_start <= ts < window_end``.

    A ``None`` bound leaves that side of the window open.
    """
    ts = as_utc(ts)
    if window_start is not None and ts < as_utc(window_start):
        return False
    if window_end is not None and ts >= as_utc(window_end):
        return False
    return True


def build_catalog_index(catalog: Iterable[CatalogItem]) -> dict[str, CatalogItem]:
    """Index catalog items by upper-cased part number (last duplicate wins)."""
    return {item.part_number.strip().upper(): item for item in catalog}


def expected_purchase_price(
    mrp: float,
    benchmark_discount_pct: float = BENCHMARK_DISCOUNT_PERCENT,
) -> float:
    """Unit price a purchase should land at under the benchmark discount."""
    return mrp * (1 - benchmark_discount_pct / 100.0)


def purchase_leakage(
    price: float,
    quantity: int,
    mrp: float,
    benchmark_discount_pct: float = BENCHMARK_DISCOUNT_PERCENT,
    tolerance: float = LEAKAGE_TOLERANCE,
) -> float:
    """Margin lost on one purchase line; never negative.

    Returns ``(price - expected) * quantity`` when the per-unit overpayment
    exceeds *tolerance*, otherwise ``0``.  Lines without a usable MRP
    (``mrp <= 0``) have no benchmark and therefore no leakage.
    """
    if mrp <= 0:
        return 0.0
    deviation = price - expected_purchase_price(mrp, benchmark_discount_pct)
    if deviation > tolerance:
        return deviation * quantity
    return 0.0


def normalise_vendor(name: str | None) -> str:
    """Vendor identity used for grouping: trimmed and upper-cased."""
    cleaned = (name or "").strip().upper()
    return cleaned or UNKNOWN_VENDOR


def order_skus(
    rows: list[SkuBreakdown],
    sku_order: SkuOrder | str = SkuOrder.IMPACT,
) -> list[SkuBreakdown]:
    """Return *rows* sorted for the requested view.

    ``impact`` sorts by absolute profit, ``offenders`` by leakage; both
    descending.  Ties keep their original relative order.
    """
    order = SkuOrder(sku_order)
    if order is SkuOrder.OFFENDERS:
        return sorted(rows, key=lambda r: r.leakage, reverse=True)
    return sorted(rows, key=lambda r: abs(r.profit), reverse=True)


def _new_totals() -> dict[str, Any]:
    return {
        "net_sales": 0.0,
        "cost": 0.0,
        "leakage": 0.0,
        "qty_sold": 0,
        "qty_bought": 0,
    }


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def build_compliance_report(
    transactions: Iterable[Transaction],
    catalog: Iterable[CatalogItem],
    window_start: datetime | None = None,
    window_end: datetime | None = None,
    brand: Brand | None = None,
    *,
    sku_order: SkuOrder | str = SkuOrder.IMPACT,
    benchmark_discount_pct: float = BENCHMARK_DISCOUNT_PERCENT,
    tolerance: float = LEAKAGE_TOLERANCE,
) -> ComplianceReport:
    """Aggregate a ledger slice into a compliance report.

    Parameters
    ----------
    transactions:
        Ledger entries already restricted to APPROVED status by the caller.
    catalog:
        Current catalog snapshot (MRP and brand per part).
    window_start / window_end:
        Inclusive / exclusive bounds on ``created_at``.  ``None`` is open.
    brand:
        When given, only parts whose catalog brand equals it are counted.
        Parts missing from the catalog resolve to ``Brand.UNKNOWN``.
    sku_order:
        ``"impact"`` or ``"offenders"`` ordering for ``by_sku``.
    benchmark_discount_pct / tolerance:
        Override the configured benchmark discount and leakage tolerance.

    Returns
    -------
    ComplianceReport
        Scalar totals plus SKU, vendor and brand breakdowns.
    """
    index = build_catalog_index(catalog)

    gross_sales = 0.0
    total_returns = 0.0
    total_purchases = 0.0
    total_leakage = 0.0
    sales_count = 0
    return_count = 0
    purchase_count = 0

    parts: dict[str, dict[str, Any]] = {}
    vendors: dict[str, dict[str, Any]] = {}
    brands: dict[Brand, dict[str, Any]] = {}

    for tx in transactions:
        if tx.type is TransactionType.ADJUSTMENT:
            continue
        if not in_window(tx.created_at, window_start, window_end):
            continue

        pn = tx.part_number.strip().upper()
        item = index.get(pn)
        tx_brand = item.brand if item is not None else Brand.UNKNOWN
        if brand is not None and tx_brand != brand:
            continue

        amount = tx.price * tx.quantity
        part = parts.setdefault(pn, _new_totals())
        brand_totals = brands.setdefault(tx_brand, _new_totals())

        if tx.type is TransactionType.SALE:
            gross_sales += amount
            sales_count += 1
            part["net_sales"] += amount
            part["qty_sold"] += tx.quantity
            brand_totals["net_sales"] += amount

        elif tx.type is TransactionType.RETURN:
            total_returns += amount
            return_count += 1
            part["net_sales"] -= amount
            part["qty_sold"] -= tx.quantity
            brand_totals["net_sales"] -= amount

        elif tx.type.is_purchase:
            total_purchases += amount
            purchase_count += 1
            part["cost"] += amount
            part["qty_bought"] += tx.quantity
            brand_totals["cost"] += amount

            if item is None:
                continue
            leak = purchase_leakage(
                tx.price,
                tx.quantity,
                item.price,
                benchmark_discount_pct=benchmark_discount_pct,
                tolerance=tolerance,
            )
            if leak <= 0:
                continue

            total_leakage += leak
            part["leakage"] += leak
            brand_totals["leakage"] += leak

            vendor = vendors.setdefault(
                normalise_vendor(tx.customer_name),
                {"cost": 0.0, "leakage": 0.0, "invoice_count": 0},
            )
            vendor["cost"] += amount
            vendor["leakage"] += leak
            vendor["invoice_count"] += 1

    net_sales = gross_sales - total_returns
    net_profit = net_sales - total_purchases
    margin = (net_profit / net_sales) * 100 if net_sales != 0 else 0.0

    by_sku = [
        SkuBreakdown(
            part_number=pn,
            name=index[pn].name if pn in index and index[pn].name else UNREGISTERED_PART,
            net_sales=data["net_sales"],
            cost=data["cost"],
            profit=data["net_sales"] - data["cost"],
            leakage=data["leakage"],
            qty_sold=data["qty_sold"],
            qty_bought=data["qty_bought"],
        )
        for pn, data in parts.items()
    ]

    by_vendor = []
    for name, data in vendors.items():
        leakage_pct = (data["leakage"] / data["cost"]) * 100 if data["cost"] > 0 else 0.0
        by_vendor.append(
            VendorLeakage(
                vendor=name,
                cost=data["cost"],
                leakage=data["leakage"],
                invoice_count=data["invoice_count"],
                leakage_pct=leakage_pct,
                rating=(
                    VendorRating.POOR_DISCOUNT
                    if leakage_pct > POOR_DISCOUNT_THRESHOLD_PCT
                    else VendorRating.QUALITY
                ),
            )
        )
    by_vendor.sort(key=lambda v: v.leakage, reverse=True)

    by_brand = [
        BrandBreakdown(
            brand=b,
            net_sales=brands[b]["net_sales"],
            cost=brands[b]["cost"],
            profit=brands[b]["net_sales"] - brands[b]["cost"],
            leakage=brands[b]["leakage"],
        )
        for b in Brand
        if b in brands
    ]

    order = SkuOrder(sku_order)
    logger.debug(
        "Compliance pass: %d parts, %d leaking vendors, leakage %.2f",
        len(parts),
        len(vendors),
        total_leakage,
    )

    return ComplianceReport(
        window_start=window_start,
        window_end=window_end,
        brand=brand,
        benchmark_discount_pct=benchmark_discount_pct,
        tolerance=tolerance,
        sku_order=order,
        gross_sales=gross_sales,
        total_returns=total_returns,
        net_sales=net_sales,
        total_purchases=total_purchases,
        net_profit=net_profit,
        margin=margin,
        total_leakage=total_leakage,
        sales_count=sales_count,
        return_count=return_count,
        purchase_count=purchase_count,
        by_sku=order_skus(by_sku, order),
        by_vendor=by_vendor,
        by_brand=by_brand,
    )
