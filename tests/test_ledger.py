"""
Tests for the ledger data-access layer.

Runs the real ``execute_sql`` helper (cache included) against a mocked
WorkspaceClient whose rows can change between calls, the way other clients
insert returns and entries into the warehouse.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from databricks.sdk.service.sql import StatementState

from partsledger.models import TransactionStatus
from partsledger.services.approvals import InvalidTransitionError, decide
from partsledger.services.ledger import (
    fetch_returns_for,
    fetch_transaction,
    save_decision,
)
from partsledger.services.returns import remaining_returnable
from partsledger.utils.databricks_client import invalidate_cache


# ---------------------------------------------------------------------------
# Mock warehouse
# ---------------------------------------------------------------------------
def _tx_row(id_: str, type_: str, quantity: str, status: str = "APPROVED",
            related: str | None = None) -> dict:
    return {
        "id": id_,
        "part_number": "HY-100",
        "type": type_,
        "quantity": quantity,
        "price": "1000.00",
        "paid_amount": "0",
        "customer_name": "R. Kumar",
        "status": status,
        "created_at": "2024-03-05T10:00:00.000Z",
        "related_transaction_id": related,
        "invoice_id": None,
        "created_by_role": None,
        "decided_by": None,
        "decided_at": None,
    }


def _statement_response(rows: list[dict]) -> MagicMock:
    response = MagicMock()
    response.status.state = StatementState.SUCCEEDED
    columns = list(rows[0]) if rows else ["id"]
    response.manifest.schema.columns = [SimpleNamespace(name=c) for c in columns]
    response.result.data_array = [[row[c] for c in columns] for row in rows]
    return response


class _Warehouse:
    """Mutable rows behind ``statement_execution.execute_statement``."""

    def __init__(self) -> None:
        self.rows: list[dict] = [_tx_row("s-1", "SALE", "4")]
        self.affected = "1"

    def execute(self, **kwargs):
        q = " ".join(kwargs["statement"].lower().split())
        params = {p.name: p.value for p in kwargs.get("parameters") or []}

        if q.startswith("update"):
            return _statement_response([{"num_affected_rows": self.affected}])
        if "where id = :id" in q:
            return _statement_response([r for r in self.rows if r["id"] == params["id"]])
        if "related_transaction_id = :sale_id" in q:
            return _statement_response(
                [
                    r for r in self.rows
                    if r["type"] == "RETURN"
                    and r["related_transaction_id"] == params["sale_id"]
                    and r["status"] != "REJECTED"
                ]
            )
        return _statement_response([])


@pytest.fixture
def warehouse():
    wh = _Warehouse()
    client = MagicMock()
    client.statement_execution.execute_statement.side_effect = wh.execute
    invalidate_cache()
    with patch("partsledger.utils.databricks_client.get_workspace_client", return_value=client):
        yield wh
    invalidate_cache()


# ---------------------------------------------------------------------------
# Fresh reads
# ---------------------------------------------------------------------------
class TestFreshLookups:
    """Lookups behind returns and approvals must see rows written elsewhere."""

    def test_new_return_is_seen_on_next_lookup(self, warehouse):
        """A pending return filed between two lookups reduces the remaining quantity."""
        sale = fetch_transaction("s-1")
        assert remaining_returnable(sale, fetch_returns_for("s-1")) == 4

        warehouse.rows.append(_tx_row("r-1", "RETURN", "4", status="PENDING", related="s-1"))

        assert remaining_returnable(sale, fetch_returns_for("s-1")) == 0

    def test_entry_inserted_after_a_miss_is_found(self, warehouse):
        assert fetch_transaction("s-2") is None

        warehouse.rows.append(_tx_row("s-2", "SALE", "1"))

        found = fetch_transaction("s-2")
        assert found is not None
        assert found.quantity == 1


# ---------------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------------
class TestSaveDecision:
    """Tests for persisting approval decisions."""

    def _approved(self):
        pending = fetch_transaction("p-1")
        return decide(pending, TransactionStatus.APPROVED, "owner", pending.created_at)

    def test_applied_decision(self, warehouse):
        warehouse.rows.append(_tx_row("p-1", "SALE", "1", status="PENDING"))
        save_decision(self._approved())

    def test_decision_on_already_decided_row_raises(self, warehouse):
        """An UPDATE matching no PENDING row means another decision won."""
        warehouse.rows.append(_tx_row("p-1", "SALE", "1", status="PENDING"))
        warehouse.affected = "0"

        with pytest.raises(InvalidTransitionError, match="no longer PENDING"):
            save_decision(self._approved())
