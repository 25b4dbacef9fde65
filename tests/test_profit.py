"""
Tests for cost-of-sales profit analysis and sales summaries.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from partsledger.models import Period, TransactionType
from partsledger.services.compliance import UNREGISTERED_PART
from partsledger.services.profit import (
    build_cost_basis,
    build_profit_analysis,
    period_start,
    summarize_sales,
)

SALE = TransactionType.SALE
RETURN = TransactionType.RETURN
PURCHASE = TransactionType.PURCHASE

NOW = datetime(2024, 3, 13, 15, 0, tzinfo=timezone.utc)  # a Wednesday


def _at(month: int, day: int) -> datetime:
    return datetime(2024, month, day, 11, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Periods
# ---------------------------------------------------------------------------
class TestPeriodStart:
    """Tests for period boundary resolution."""

    @pytest.mark.parametrize(
        "period, expected",
        [
            (Period.TODAY, datetime(2024, 3, 13, tzinfo=timezone.utc)),
            (Period.WEEK, datetime(2024, 3, 11, tzinfo=timezone.utc)),
            (Period.MONTH, datetime(2024, 3, 1, tzinfo=timezone.utc)),
            (Period.YEAR, datetime(2024, 1, 1, tzinfo=timezone.utc)),
        ],
    )
    def test_period_start(self, period, expected):
        assert period_start(period, NOW) == expected

    def test_accepts_string_period(self):
        assert period_start("MONTH", NOW) == datetime(2024, 3, 1, tzinfo=timezone.utc)

    def test_rejects_unknown_period(self):
        with pytest.raises(ValueError):
            period_start("DECADE", NOW)


# ---------------------------------------------------------------------------
# Cost basis
# ---------------------------------------------------------------------------
class TestCostBasis:
    """Tests for the per-part unit cost."""

    def test_defaults_to_benchmark_price(self, catalog):
        basis = build_cost_basis([], catalog)
        assert basis["HY-100"] == pytest.approx(880)
        assert basis["MH-300"] == pytest.approx(352)

    def test_latest_purchase_wins(self, make_tx, catalog):
        ledger = [
            make_tx(PURCHASE, "HY-100", 5, 850, created_at=_at(2, 10)),
            make_tx(PURCHASE, "HY-100", 5, 900, created_at=_at(1, 10)),
            make_tx(SALE, "HY-100", 1, 1200, created_at=_at(3, 1)),
        ]
        basis = build_cost_basis(ledger, catalog)
        assert basis["HY-100"] == 850

    def test_unregistered_part_from_purchase(self, make_tx, catalog):
        ledger = [make_tx(PURCHASE, "zz-1", 1, 75, created_at=_at(1, 1))]
        assert build_cost_basis(ledger, catalog)["ZZ-1"] == 75


# ---------------------------------------------------------------------------
# Profit analysis
# ---------------------------------------------------------------------------
class TestProfitAnalysis:
    """Tests for the period profit analysis."""

    @pytest.fixture
    def ledger(self, make_tx):
        return [
            make_tx(PURCHASE, "HY-100", 5, 900, created_at=_at(1, 10)),
            make_tx(PURCHASE, "HY-100", 5, 850, created_at=_at(2, 10)),
            make_tx(SALE, "HY-100", 1, 990, created_at=_at(2, 28)),
            make_tx(SALE, "HY-100", 2, 1000, created_at=_at(3, 5)),
            make_tx(SALE, "MH-300", 3, 400, created_at=_at(3, 6)),
            make_tx(RETURN, "MH-300", 1, 400, created_at=_at(3, 7)),
            make_tx(PURCHASE, "MH-300", 10, 350, created_at=_at(3, 8)),
        ]

    def test_month_totals(self, ledger, catalog):
        result = build_profit_analysis(ledger, catalog, Period.MONTH, NOW)

        assert result.period is Period.MONTH
        assert result.period_start == datetime(2024, 3, 1, tzinfo=timezone.utc)
        assert result.total_earnings == 2800
        assert result.total_cost_of_sales == pytest.approx(2400)
        assert result.net_profit == pytest.approx(400)
        assert result.margin == pytest.approx(400 / 2800 * 100)
        assert result.total_purchase_value == 3500
        assert result.is_earning_more_than_spending is False
        assert (result.sales_count, result.returns_count) == (2, 1)

    def test_parts_sorted_by_profit(self, ledger, catalog):
        result = build_profit_analysis(ledger, catalog, Period.MONTH, NOW)

        assert [p.part_number for p in result.parts] == ["HY-100", "MH-300"]
        hy, mh = result.parts
        assert hy.qty_sold == 2
        assert hy.avg_sell_price == 1000
        assert hy.cost_basis == 850
        assert hy.total_profit == pytest.approx(300)
        assert mh.qty_sold == 2
        assert mh.total_profit == pytest.approx(100)

    def test_year_includes_earlier_sale(self, ledger, catalog):
        result = build_profit_analysis(ledger, catalog, "YEAR", NOW)
        assert result.total_earnings == 2800 + 990
        assert result.total_purchase_value == 4500 + 4250 + 3500

    def test_margin_zero_when_returns_exceed_sales(self, make_tx, catalog):
        """Net-negative earnings in the period report no margin."""
        ledger = [
            make_tx(SALE, "HY-100", 3, 1000, created_at=_at(2, 20)),
            make_tx(RETURN, "HY-100", 3, 1000, created_at=_at(3, 4)),
        ]
        result = build_profit_analysis(ledger, catalog, Period.MONTH, NOW)

        assert result.total_earnings == -3000
        assert result.net_profit == pytest.approx(-360)
        assert result.margin == 0.0

    def test_empty_period(self, ledger, catalog):
        result = build_profit_analysis(ledger, catalog, Period.TODAY, NOW)

        assert result.total_earnings == 0
        assert result.margin == 0.0
        assert result.parts == []


# ---------------------------------------------------------------------------
# Sales summary
# ---------------------------------------------------------------------------
class TestSalesSummary:
    """Tests for the windowed sales summary."""

    def test_summary(self, make_tx, catalog):
        ledger = [
            make_tx(SALE, "HY-100", 2, 1000),
            make_tx(SALE, "MH-300", 6, 400),
            make_tx(SALE, "NEW-1", 1, 50),
            make_tx(RETURN, "MH-300", 1, 400),
            make_tx(PURCHASE, "HY-200", 10, 220),
        ]
        summary = summarize_sales(ledger, catalog)

        assert summary.total_sales == 4450
        assert summary.total_returns == 400
        assert summary.net_revenue == 4050
        assert summary.total_purchases == 2200
        assert (summary.sales_count, summary.return_count) == (3, 1)
        assert [s.part_number for s in summary.sold_items] == ["MH-300", "HY-100", "NEW-1"]
        assert summary.sold_items[0].name == "Clutch Plate"
        assert summary.sold_items[2].name == UNREGISTERED_PART

    def test_window_applies(self, make_tx, catalog):
        ledger = [
            make_tx(SALE, "HY-100", 1, 1000, created_at=_at(3, 1)),
            make_tx(SALE, "HY-100", 1, 1000, created_at=_at(3, 20)),
        ]
        summary = summarize_sales(ledger, catalog, _at(3, 10), None)
        assert summary.sales_count == 1
