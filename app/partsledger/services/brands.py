"""
Brand resolution for catalog items.

At runtime a part's brand is whatever its catalog row says in the explicit
``brand`` column; analytics never guess.  Older inventory sheets, however,
carry no brand column at all, and the shop's part numbers follow a prefix
convention (``HY...`` for Hyundai, ``MH...`` for Mahindra).  The prefix rule
is therefore applied once, while importing a sheet, to fill in rows whose
brand is missing.  Rows the rule cannot place stay ``UNKNOWN`` and are
reported back so someone can tag them by hand.
"""

from __future__ import annotations

import logging
from typing import Iterable

from partsledger.models import Brand, CatalogItem

logger = logging.getLogger(__name__)

_PREFIX_BRANDS: dict[str, Brand] = {
    "HY": Brand.HYUNDAI,
    "MH": Brand.MAHINDRA,
}


def infer_brand_from_prefix(part_number: str) -> Brand:
    """Guess a brand from the part-number prefix (migration use only)."""
    pn = part_number.strip().upper()
    for prefix, brand in _PREFIX_BRANDS.items():
        if pn.startswith(prefix):
            return brand
    return Brand.UNKNOWN


def backfill_brands(
    items: Iterable[CatalogItem],
) -> tuple[list[CatalogItem], int, list[str]]:
    """Fill missing brands on imported catalog rows.

    Returns
    -------
    tuple
        ``(items, inferred_count, unknown_parts)`` where *items* is a new
        list with brands filled in, *inferred_count* is how many rows were
        tagged from their prefix, and *unknown_parts* lists part numbers that
        remain ``UNKNOWN``.
    """
    result: list[CatalogItem] = []
    inferred = 0
    unknown: list[str] = []

    for item in items:
        if item.brand is Brand.UNKNOWN:
            guess = infer_brand_from_prefix(item.part_number)
            if guess is not Brand.UNKNOWN:
                item = item.model_copy(update={"brand": guess})
                inferred += 1
            else:
                unknown.append(item.part_number)
        result.append(item)

    if unknown:
        logger.warning(
            "%d catalog rows have no brand and no recognised prefix", len(unknown)
        )
    return result, inferred, unknown
