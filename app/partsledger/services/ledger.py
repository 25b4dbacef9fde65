"""
Ledger and inventory query service.

Encapsulates every SQL statement that touches the shop's transaction and
inventory tables in Unity Catalog.  Report reads (windowed ledger slices and
the catalog) are cached through the ``execute_sql`` helper; writes invalidate
the ``transactions:`` cache prefix so the next report is computed from fresh
rows.  Single-entry lookups feeding returns and approvals always hit the
warehouse, since other clients insert returns and entries directly.

Rows that fail validation (missing part number, non-positive quantity,
unparseable timestamp, ...) are logged and skipped rather than failing the
whole request.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from partsledger.models import (
    Brand,
    CatalogItem,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from partsledger.services.approvals import InvalidTransitionError
from partsledger.utils.config import TABLE_INVENTORY, TABLE_TRANSACTIONS
from partsledger.utils.databricks_client import execute_sql, invalidate_cache

logger = logging.getLogger(__name__)

_TRANSACTION_COLUMNS = """
    id, part_number, type, quantity, price, paid_amount, customer_name,
    status, created_at, related_transaction_id, invoice_id,
    created_by_role, decided_by, decided_at
"""

_CATALOG_COLUMNS = """
    part_number, name, brand, price, quantity, min_stock_threshold, hsn_code
"""


# ---------------------------------------------------------------------------
# Row mapping
# ---------------------------------------------------------------------------
def _present(row: dict[str, Any]) -> dict[str, Any]:
    """Drop NULL columns so model defaults apply."""
    return {k: v for k, v in row.items() if v is not None}


def _row_to_transaction(row: dict[str, Any]) -> Transaction | None:
    try:
        return Transaction(**_present(row))
    except ValidationError as exc:
        logger.warning(
            "Skipping malformed transaction row %s: %s",
            row.get("id"),
            exc.errors()[0].get("msg") if exc.errors() else exc,
        )
        return None


def _row_to_catalog_item(row: dict[str, Any]) -> CatalogItem | None:
    try:
        return CatalogItem(**_present(row))
    except ValidationError as exc:
        logger.warning(
            "Skipping malformed inventory row %s: %s",
            row.get("part_number"),
            exc.errors()[0].get("msg") if exc.errors() else exc,
        )
        return None


def _affected_rows(rows: list[dict[str, Any]]) -> int:
    """Row count reported by a DML statement (0 when absent)."""
    if not rows:
        return 0
    try:
        return int(rows[0].get("num_affected_rows") or 0)
    except (TypeError, ValueError):
        return 0


def _map_transactions(rows: list[dict[str, Any]]) -> list[Transaction]:
    return [tx for tx in (_row_to_transaction(r) for r in rows) if tx is not None]


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------
def fetch_transactions(
    status: TransactionStatus = TransactionStatus.APPROVED,
    window_start: datetime | None = None,
    window_end: datetime | None = None,
) -> list[Transaction]:
    """Return ledger entries with *status* created inside the window.

    Parameters
    ----------
    status:
        Approval status to load.  Reports always use APPROVED.
    window_start / window_end:
        Optional inclusive / exclusive bounds on ``created_at``.
    """
    where_clauses: list[str] = ["status = :status"]
    params: dict[str, Any] = {"status": status.value}

    if window_start is not None:
        where_clauses.append("created_at >= CAST(:window_start AS TIMESTAMP)")
        params["window_start"] = window_start.isoformat()
    if window_end is not None:
        where_clauses.append("created_at < CAST(:window_end AS TIMESTAMP)")
        params["window_end"] = window_end.isoformat()

    query = f"""
        SELECT {_TRANSACTION_COLUMNS}
        FROM {TABLE_TRANSACTIONS}
        WHERE {' AND '.join(where_clauses)}
        ORDER BY created_at DESC
    """
    cache_key = f"transactions:{status.value}:{params.get('window_start')}:{params.get('window_end')}"
    rows = execute_sql(query, parameters=params, cache_key=cache_key)
    return _map_transactions(rows)


def fetch_transaction(transaction_id: str) -> Transaction | None:
    """Look up a single ledger entry by id, regardless of status."""
    query = f"""
        SELECT {_TRANSACTION_COLUMNS}
        FROM {TABLE_TRANSACTIONS}
        WHERE id = :id
        LIMIT 1
    """
    rows = execute_sql(query, parameters={"id": transaction_id})
    if not rows:
        return None
    return _row_to_transaction(rows[0])


def fetch_returns_for(sale_id: str) -> list[Transaction]:
    """Return every non-rejected RETURN that references *sale_id*.

    Pending returns are included so that two managers cannot both file the
    full remaining quantity while the first return awaits approval.
    """
    query = f"""
        SELECT {_TRANSACTION_COLUMNS}
        FROM {TABLE_TRANSACTIONS}
        WHERE type = :type
          AND related_transaction_id = :sale_id
          AND status <> :rejected
    """
    rows = execute_sql(
        query,
        parameters={
            "type": TransactionType.RETURN.value,
            "sale_id": sale_id,
            "rejected": TransactionStatus.REJECTED.value,
        },
    )
    return _map_transactions(rows)


def fetch_return_candidates() -> list[Transaction]:
    """Approved sales plus every non-rejected return, for the return pick-list."""
    query = f"""
        SELECT {_TRANSACTION_COLUMNS}
        FROM {TABLE_TRANSACTIONS}
        WHERE (type = :sale AND status = :approved)
           OR (type = :ret AND status <> :rejected)
        ORDER BY created_at DESC
    """
    rows = execute_sql(
        query,
        parameters={
            "sale": TransactionType.SALE.value,
            "approved": TransactionStatus.APPROVED.value,
            "ret": TransactionType.RETURN.value,
            "rejected": TransactionStatus.REJECTED.value,
        },
    )
    return _map_transactions(rows)


def save_decision(transaction: Transaction) -> None:
    """Persist an approval decision and drop cached ledger reads.

    The update only applies while the stored row is still PENDING, so a
    concurrent decision on the same entry cannot be overwritten.

    Raises
    ------
    InvalidTransitionError
        If no PENDING row was updated (already decided or deleted).
    """
    query = f"""
        UPDATE {TABLE_TRANSACTIONS}
        SET status = :status,
            decided_by = :decided_by,
            decided_at = CAST(:decided_at AS TIMESTAMP)
        WHERE id = :id
          AND status = :pending
    """
    rows = execute_sql(
        query,
        parameters={
            "status": transaction.status.value,
            "decided_by": transaction.decided_by,
            "decided_at": transaction.decided_at.isoformat() if transaction.decided_at else None,
            "id": transaction.id,
            "pending": TransactionStatus.PENDING.value,
        },
    )
    invalidate_cache("transactions:")

    if _affected_rows(rows) == 0:
        raise InvalidTransitionError(
            f"Transaction {transaction.id} is no longer PENDING; "
            f"{transaction.status.value} was not applied"
        )
    logger.info(
        "Transaction %s marked %s by %s",
        transaction.id,
        transaction.status.value,
        transaction.decided_by,
    )


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------
def fetch_catalog(
    brand: Brand | None = None,
    limit: int | None = None,
) -> list[CatalogItem]:
    """Return the inventory snapshot used as MRP / brand reference.

    Parameters
    ----------
    brand:
        Optional filter on the explicit brand column.
    limit:
        Maximum number of rows returned (all rows when ``None``).
    """
    where_sql = ""
    params: dict[str, Any] = {}
    if brand is not None:
        where_sql = "WHERE UPPER(brand) = :brand"
        params["brand"] = brand.value

    limit_sql = f"LIMIT {int(limit)}" if limit else ""
    query = f"""
        SELECT {_CATALOG_COLUMNS}
        FROM {TABLE_INVENTORY}
        {where_sql}
        ORDER BY part_number
        {limit_sql}
    """
    brand_key = brand.value if brand is not None else None
    rows = execute_sql(query, parameters=params, cache_key=f"catalog:{brand_key}:{limit}")

    items = [item for item in (_row_to_catalog_item(r) for r in rows) if item is not None]
    if len(items) < len(rows):
        logger.warning("Dropped %d malformed inventory rows", len(rows) - len(items))
    return items
