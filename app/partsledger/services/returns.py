"""
Returnable-quantity resolver for the returns workflow.

A RETURN always references the SALE it reverses through
``related_transaction_id``.  A sale stays eligible for further returns while
the quantity returned against it is below the quantity sold.
"""

from __future__ import annotations

import logging
from typing import Iterable

from partsledger.models import ReturnableSale, Transaction, TransactionType
from partsledger.services.compliance import as_utc

logger = logging.getLogger(__name__)


def returned_quantity(sale_id: str, transactions: Iterable[Transaction]) -> int:
    """Total quantity already returned against the sale *sale_id*."""
    return sum(
        tx.quantity
        for tx in transactions
        if tx.type is TransactionType.RETURN and tx.related_transaction_id == sale_id
    )


def remaining_returnable(sale: Transaction, transactions: Iterable[Transaction]) -> int:
    """Quantity of *sale* that can still be returned.

    Raises
    ------
    ValueError
        If *sale* is not a SALE transaction.
    """
    if sale.type is not TransactionType.SALE:
        raise ValueError(
            f"Transaction {sale.id} is a {sale.type.value}, only sales can be returned"
        )
    return sale.quantity - returned_quantity(sale.id, transactions)


def is_returnable(sale: Transaction, transactions: Iterable[Transaction]) -> bool:
    return remaining_returnable(sale, transactions) > 0


def returnable_sales(transactions: Iterable[Transaction]) -> list[ReturnableSale]:
    """Every SALE with a positive remaining quantity, newest first."""
    ledger = list(transactions)

    returned: dict[str, int] = {}
    for tx in ledger:
        if tx.type is TransactionType.RETURN and tx.related_transaction_id:
            returned[tx.related_transaction_id] = (
                returned.get(tx.related_transaction_id, 0) + tx.quantity
            )

    result: list[ReturnableSale] = []
    for tx in ledger:
        if tx.type is not TransactionType.SALE:
            continue
        already = returned.get(tx.id, 0)
        remaining = tx.quantity - already
        if remaining <= 0:
            continue
        result.append(
            ReturnableSale(
                transaction_id=tx.id,
                part_number=tx.part_number.strip().upper(),
                customer_name=tx.customer_name,
                sold_quantity=tx.quantity,
                returned_quantity=already,
                remaining=remaining,
                created_at=tx.created_at,
            )
        )

    result.sort(key=lambda r: as_utc(r.created_at), reverse=True)
    logger.debug("%d of %d ledger entries are returnable sales", len(result), len(ledger))
    return result
