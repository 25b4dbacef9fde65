"""
Catalog sheet import.

Accepts Excel (.xlsx, .xls) and CSV inventory sheets as exported by the shop
or its distributors, maps their loosely-named columns onto
:class:`CatalogItem`, and fills in missing brands from the part-number
prefix convention (see :mod:`partsledger.services.brands`).

Nothing is written to the warehouse here; the caller receives the parsed
items, counts, and a short preview.
"""

from __future__ import annotations

import csv
import io
import logging
import math
import os
import re
from typing import Any

import pandas as pd
from fastapi import UploadFile
from pydantic import ValidationError

from partsledger.models import CatalogImportResult, CatalogItem
from partsledger.services.brands import backfill_brands

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".xlsx", ".xls", ".csv")

# pandas reader engine per Excel extension
_EXCEL_ENGINES: dict[str, str] = {".xlsx": "openpyxl", ".xls": "xlrd"}

PREVIEW_ROWS = 10

# Normalised header -> CatalogItem field
_HEADER_ALIASES: dict[str, str] = {
    "part_number": "part_number",
    "part_no": "part_number",
    "partno": "part_number",
    "partnumber": "part_number",
    "pn": "part_number",
    "sku": "part_number",
    "price": "price",
    "mrp": "price",
    "rate": "price",
    "unit_price": "price",
    "name": "name",
    "description": "name",
    "part_name": "name",
    "item_name": "name",
    "brand": "brand",
    "make": "brand",
    "quantity": "quantity",
    "qty": "quantity",
    "stock": "quantity",
    "min_stock_threshold": "min_stock_threshold",
    "min_stock": "min_stock_threshold",
    "hsn": "hsn_code",
    "hsn_code": "hsn_code",
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
async def import_catalog_file(file: UploadFile) -> CatalogImportResult:
    """Read an uploaded catalog sheet and return the parsed items.

    Raises
    ------
    ValueError
        If the file extension is unsupported or the file cannot be parsed.
    """
    filename = file.filename or "unknown"
    contents = await file.read()
    return load_catalog_sheet(contents, filename)


def load_catalog_sheet(contents: bytes, filename: str) -> CatalogImportResult:
    """Parse raw sheet bytes into catalog items with brands backfilled."""
    ext = os.path.splitext(filename)[1].lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise ValueError(
            f"Unsupported file type '{ext}'. Accepted: .xlsx, .xls, .csv"
        )

    if ext == ".csv":
        rows = _parse_csv(contents)
    else:
        rows = _parse_excel(contents, filename)

    items, skipped = parse_catalog_rows(rows)
    items, inferred, unknown = backfill_brands(items)

    logger.info(
        "Imported catalog %s: %d rows, %d items, %d skipped, %d brands inferred",
        filename,
        len(rows),
        len(items),
        skipped,
        inferred,
    )

    return CatalogImportResult(
        filename=filename,
        row_count=len(rows),
        imported_count=len(items),
        skipped_rows=skipped,
        inferred_brand_count=inferred,
        unknown_brand_parts=unknown,
        preview=items[:PREVIEW_ROWS],
    )


def parse_catalog_rows(rows: list[dict[str, Any]]) -> tuple[list[CatalogItem], int]:
    """Map raw sheet rows to catalog items.

    Rows without a part number or a usable non-negative price are skipped.

    Returns
    -------
    tuple
        ``(items, skipped_count)``.
    """
    items: list[CatalogItem] = []
    skipped = 0

    for raw in rows:
        record: dict[str, Any] = {}
        for header, value in raw.items():
            field = _HEADER_ALIASES.get(_normalise_header(header))
            if field is None or field in record or _is_blank(value):
                continue
            record[field] = value

        if "part_number" not in record:
            skipped += 1
            continue

        record["part_number"] = str(record["part_number"]).strip()
        price = _to_price(record.get("price"))
        if price is None:
            skipped += 1
            continue
        record["price"] = price

        for int_field in ("quantity", "min_stock_threshold"):
            if int_field in record:
                record[int_field] = _to_int(record[int_field])
        for str_field in ("name", "hsn_code"):
            if str_field in record:
                record[str_field] = str(record[str_field]).strip()

        try:
            items.append(CatalogItem(**record))
        except ValidationError as exc:
            logger.warning("Skipping catalog row %s: %s", record.get("part_number"), exc)
            skipped += 1

    return items, skipped


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------
def _parse_excel(contents: bytes, filename: str) -> list[dict[str, Any]]:
    """Parse Excel bytes into a list of row dicts."""
    engine = _EXCEL_ENGINES[os.path.splitext(filename)[1].lower()]
    try:
        df = pd.read_excel(io.BytesIO(contents), engine=engine)
    except Exception as exc:
        raise ValueError(f"Could not read Excel file {filename}: {exc}") from exc
    df = df.astype(object).where(df.notnull(), None)
    return df.to_dict(orient="records")


def _parse_csv(contents: bytes) -> list[dict[str, Any]]:
    """Parse CSV bytes into a list of row dicts."""
    text = contents.decode("utf-8-sig")
    reader = csv.DictReader(io.StringIO(text))
    return [{(key or "unnamed"): value for key, value in row.items()} for row in reader]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _normalise_header(header: Any) -> str:
    return re.sub(r"[^a-z0-9]+", "_", str(header).lower()).strip("_")


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and value.strip() == ""


def _to_price(value: Any) -> float | None:
    """Parse an MRP cell such as ``"1,250.00"`` or ``"₹ 980"``."""
    if _is_blank(value):
        return None
    if isinstance(value, (int, float)):
        price = float(value)
    else:
        cleaned = re.sub(r"[^0-9.\-]", "", str(value))
        try:
            price = float(cleaned)
        except ValueError:
            return None
    if math.isnan(price) or price < 0:
        return None
    return price


def _to_int(value: Any) -> int | None:
    try:
        return int(float(str(value).replace(",", "")))
    except (TypeError, ValueError, OverflowError):
        return None
