"""
Shared fixtures for the PartsLedger test suite.
"""

from __future__ import annotations

import itertools
import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

# Ensure the app package is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "app"))

from partsledger.models import Brand, CatalogItem, Transaction  # noqa: E402

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_tx():
    """Factory for ledger entries with sequential ids and timestamps."""
    counter = itertools.count(1)

    def _make(type_, part_number, quantity, price, **overrides) -> Transaction:
        n = next(counter)
        data = {
            "id": f"tx-{n}",
            "part_number": part_number,
            "type": type_,
            "quantity": quantity,
            "price": price,
            "created_at": T0 + timedelta(hours=n),
        }
        data.update(overrides)
        return Transaction(**data)

    return _make


@pytest.fixture
def catalog() -> list[CatalogItem]:
    return [
        CatalogItem(part_number="HY-100", price=1000, brand=Brand.HYUNDAI, name="Brake Pad Set"),
        CatalogItem(part_number="HY-200", price=250, brand=Brand.HYUNDAI, name="Oil Filter"),
        CatalogItem(part_number="MH-300", price=400, brand=Brand.MAHINDRA, name="Clutch Plate"),
        CatalogItem(part_number="MH-400", price=1200, brand=Brand.MAHINDRA, name="Radiator"),
    ]
