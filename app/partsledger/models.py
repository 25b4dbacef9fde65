"""
Pydantic data models for the PartsLedger Intelligence API.

Ledger and catalog records as read from the warehouse, plus every report
schema produced by the analytics services.  Shared across routers, services,
and tests.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------
class TransactionType(str, Enum):
    """Kind of stock / money movement recorded in the ledger."""

    SALE = "SALE"
    PURCHASE = "PURCHASE"
    RETURN = "RETURN"
    PURCHASE_ORDER = "PURCHASE_ORDER"
    ADJUSTMENT = "ADJUSTMENT"

    @property
    def is_purchase(self) -> bool:
        # Purchase orders carry the same stock and cost effect as purchases.
        return self in (TransactionType.PURCHASE, TransactionType.PURCHASE_ORDER)


class TransactionStatus(str, Enum):
    """Approval state of a ledger entry."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Brand(str, Enum):
    """Vehicle brand a spare part belongs to."""

    HYUNDAI = "HYUNDAI"
    MAHINDRA = "MAHINDRA"
    UNKNOWN = "UNKNOWN"


class VendorRating(str, Enum):
    """Purchase-discount quality of a vendor."""

    QUALITY = "QUALITY"
    POOR_DISCOUNT = "POOR_DISCOUNT"


class SkuOrder(str, Enum):
    """Ordering of the per-SKU breakdown."""

    IMPACT = "impact"
    OFFENDERS = "offenders"


class Period(str, Enum):
    """Reporting periods offered by the profit dashboard."""

    TODAY = "TODAY"
    WEEK = "WEEK"
    MONTH = "MONTH"
    YEAR = "YEAR"


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------
class Transaction(BaseModel):
    """A single ledger entry.  The sign of a movement is implied by its type."""

    id: str = Field(..., description="Opaque unique identifier")
    part_number: str = Field(..., description="Catalog key, matched case-insensitively")
    type: TransactionType
    quantity: int = Field(..., gt=0, description="Units moved, always positive")
    price: float = Field(..., ge=0, description="Unit price net of discount")
    paid_amount: float = Field(0.0, description="Amount collected so far (SALE only)")
    customer_name: str = Field("", description="Customer for sales/returns, vendor for purchases")
    status: TransactionStatus = TransactionStatus.APPROVED
    created_at: datetime
    related_transaction_id: str | None = Field(
        None, description="Originating SALE for a RETURN"
    )
    invoice_id: str | None = None
    created_by_role: str | None = None
    decided_by: str | None = Field(None, description="Actor who approved or rejected")
    decided_at: datetime | None = None

    @property
    def amount(self) -> float:
        return self.price * self.quantity


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------
class CatalogItem(BaseModel):
    """Inventory snapshot row used as the MRP / brand reference."""

    part_number: str
    price: float = Field(..., ge=0, description="Reference MRP")
    brand: Brand = Brand.UNKNOWN
    name: str = ""
    quantity: int | None = None
    min_stock_threshold: int | None = None
    hsn_code: str | None = None

    @field_validator("part_number")
    @classmethod
    def _normalise_part_number(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("brand", mode="before")
    @classmethod
    def _coerce_brand(cls, value: object) -> object:
        if value is None:
            return Brand.UNKNOWN
        if isinstance(value, str):
            candidate = value.strip().upper()
            if candidate in Brand.__members__:
                return Brand(candidate)
            return Brand.UNKNOWN
        return value


# ---------------------------------------------------------------------------
# Compliance report
# ---------------------------------------------------------------------------
class SkuBreakdown(BaseModel):
    """Profit and leakage accumulated for one part number."""

    part_number: str
    name: str
    net_sales: float
    cost: float
    profit: float
    leakage: float
    qty_sold: int
    qty_bought: int


class VendorLeakage(BaseModel):
    """Leakage attributed to one vendor across its over-priced invoices."""

    vendor: str
    cost: float
    leakage: float
    invoice_count: int
    leakage_pct: float = Field(..., description="Leakage as a percentage of cost")
    rating: VendorRating


class BrandBreakdown(BaseModel):
    """Sales / cost / profit split for one brand."""

    brand: Brand
    net_sales: float
    cost: float
    profit: float
    leakage: float


class ComplianceReport(BaseModel):
    """Financial and purchase-compliance report for one window."""

    window_start: datetime | None = None
    window_end: datetime | None = None
    brand: Brand | None = None
    benchmark_discount_pct: float
    tolerance: float
    sku_order: SkuOrder = SkuOrder.IMPACT

    gross_sales: float = 0.0
    total_returns: float = 0.0
    net_sales: float = 0.0
    total_purchases: float = 0.0
    net_profit: float = 0.0
    margin: float = 0.0
    total_leakage: float = 0.0
    sales_count: int = 0
    return_count: int = 0
    purchase_count: int = 0

    by_sku: list[SkuBreakdown] = Field(default_factory=list)
    by_vendor: list[VendorLeakage] = Field(default_factory=list)
    by_brand: list[BrandBreakdown] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Returns
# ---------------------------------------------------------------------------
class ReturnableSale(BaseModel):
    """A SALE together with how much of it can still be returned."""

    transaction_id: str
    part_number: str
    customer_name: str
    sold_quantity: int
    returned_quantity: int
    remaining: int
    created_at: datetime


# ---------------------------------------------------------------------------
# Profit analysis
# ---------------------------------------------------------------------------
class PartPerformance(BaseModel):
    """Per-part row of the profit dashboard."""

    part_number: str
    name: str
    qty_sold: int
    avg_sell_price: float
    cost_basis: float
    total_revenue: float
    total_profit: float
    margin: float


class ProfitAnalysis(BaseModel):
    """Cost-of-sales based profitability for a reporting period."""

    period: Period
    period_start: datetime
    total_earnings: float
    total_purchase_value: float
    total_cost_of_sales: float
    net_profit: float
    margin: float
    is_earning_more_than_spending: bool
    sales_count: int
    returns_count: int
    parts: list[PartPerformance]


class SoldItem(BaseModel):
    """Quantity and revenue sold for one part."""

    part_number: str
    name: str
    quantity_sold: int
    total_revenue: float


class SalesSummary(BaseModel):
    """Gross sales, returns and purchases for a window."""

    total_sales: float
    total_returns: float
    total_purchases: float
    net_revenue: float
    sales_count: int
    return_count: int
    sold_items: list[SoldItem]


# ---------------------------------------------------------------------------
# Catalog import
# ---------------------------------------------------------------------------
class CatalogImportResult(BaseModel):
    """Outcome of parsing an uploaded catalog sheet."""

    filename: str
    row_count: int
    imported_count: int
    skipped_rows: int
    inferred_brand_count: int
    unknown_brand_parts: list[str]
    preview: list[CatalogItem]
