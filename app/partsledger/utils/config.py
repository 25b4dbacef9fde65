"""
Configuration module for the PartsLedger Intelligence backend.

All settings are configurable via environment variables with sensible defaults
for Databricks Apps deployment.
"""

import os
from dotenv import load_dotenv

load_dotenv()

# ---------------------------------------------------------------------------
# Unity Catalog
# ---------------------------------------------------------------------------
CATALOG_NAME: str = os.getenv("CATALOG_NAME", "partsledger")
SCHEMA_LEDGER: str = os.getenv("SCHEMA_LEDGER", "shop")


def _fqn(schema: str, table: str) -> str:
    """Return a fully-qualified three-level Unity Catalog table name."""
    return f"{CATALOG_NAME}.{schema}.{table}"


TABLE_TRANSACTIONS: str = _fqn(SCHEMA_LEDGER, os.getenv("TABLE_TRANSACTIONS", "transactions"))
TABLE_INVENTORY: str = _fqn(SCHEMA_LEDGER, os.getenv("TABLE_INVENTORY", "inventory"))

# ---------------------------------------------------------------------------
# SQL Warehouse
# ---------------------------------------------------------------------------
WAREHOUSE_ID: str = os.getenv("DATABRICKS_WAREHOUSE_ID", "your-warehouse-id")

# ---------------------------------------------------------------------------
# Caching
# ---------------------------------------------------------------------------
CACHE_TTL: int = int(os.getenv("CACHE_TTL", "300"))  # seconds

# ---------------------------------------------------------------------------
# Databricks connection (local dev fallback)
# ---------------------------------------------------------------------------
DATABRICKS_HOST: str = os.getenv("DATABRICKS_HOST", "")
DATABRICKS_TOKEN: str = os.getenv("DATABRICKS_TOKEN", "")

# ---------------------------------------------------------------------------
# Purchase-price compliance
# ---------------------------------------------------------------------------
# Standard basic discount expected on every purchase, as a percentage of MRP.
BENCHMARK_DISCOUNT_PERCENT: float = float(os.getenv("BENCHMARK_DISCOUNT_PERCENT", "12"))

# Per-unit overpayment (currency units) below which a purchase is not leakage.
# Pending confirmation from the shop owner; the dashboards used 0.1 and 0.5.
LEAKAGE_TOLERANCE: float = float(os.getenv("LEAKAGE_TOLERANCE", "0.5"))

# Vendors whose leakage exceeds this share of their spend are rated poor.
POOR_DISCOUNT_THRESHOLD_PCT: float = float(os.getenv("POOR_DISCOUNT_THRESHOLD_PCT", "1.0"))

# Reporting periods (TODAY / WEEK / ...) are resolved in the shop's local time.
SHOP_TIMEZONE: str = os.getenv("SHOP_TIMEZONE", "Asia/Kolkata")

# ---------------------------------------------------------------------------
# Access
# ---------------------------------------------------------------------------
ADMIN_USERS: list[str] = [
    u.strip() for u in os.getenv("ADMIN_USERS", "owner@partsledger.local").split(",") if u.strip()
]

# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------
APP_TITLE: str = "PartsLedger Intelligence"
APP_VERSION: str = "1.0.0"
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
