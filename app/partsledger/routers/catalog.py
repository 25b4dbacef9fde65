"""
Inventory catalog router.

Lists the catalog snapshot that serves as MRP and brand reference, and
parses uploaded catalog sheets (CSV / Excel) with brand backfill.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, File, HTTPException, Query, UploadFile

from partsledger.models import Brand, CatalogImportResult
from partsledger.services.catalog_import import import_catalog_file
from partsledger.services.ledger import fetch_catalog

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/catalog", tags=["catalog"])


# ---------------------------------------------------------------------------
# GET /
# ---------------------------------------------------------------------------
@router.get(
    "",
    summary="Catalog snapshot with optional brand filter",
)
async def list_catalog(
    brand: Brand | None = Query(None, description="Filter by explicit brand"),
    limit: int = Query(500, ge=1, le=10000, description="Max rows returned"),
) -> dict[str, Any]:
    try:
        items = fetch_catalog(brand=brand, limit=limit)
        return {
            "count": len(items),
            "filters": {"brand": brand, "limit": limit},
            "data": items,
        }
    except Exception as exc:
        logger.exception("Failed to fetch catalog")
        raise HTTPException(status_code=500, detail=str(exc)) from exc


# ---------------------------------------------------------------------------
# POST /import
# ---------------------------------------------------------------------------
@router.post(
    "/import",
    response_model=CatalogImportResult,
    summary="Parse an uploaded catalog sheet (Excel or CSV)",
)
async def import_catalog(
    file: UploadFile = File(..., description="Excel (.xlsx/.xls) or CSV file"),
) -> CatalogImportResult:
    """Map sheet columns onto catalog items and infer missing brands from
    the part-number prefix.
    """
    try:
        return await import_catalog_file(file)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception("Catalog import failed for %s", file.filename)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
