"""
On-Behalf-Of (OBO) identity helper.

Extracts the acting user from HTTP headers injected by the Databricks Apps
reverse proxy.  In production, ``x-forwarded-email`` and ``x-forwarded-user``
are set automatically by the SSO layer.  For local development these headers
are absent and an anonymous, non-owner identity is returned.

Owners (``ADMIN_USERS``) are the only users allowed to approve or reject
manager-submitted ledger entries.
"""

from __future__ import annotations

from typing import Any

from fastapi import Request

from partsledger.utils.config import ADMIN_USERS

ANONYMOUS_EMAIL = "anonymous@partsledger.local"


def get_user_identity(request: Request) -> dict[str, Any]:
    """Extract user identity from the forwarded request headers.

    Returns
    -------
    dict
        Keys: ``user_id``, ``user_email``, ``is_owner``.
    """
    headers = request.headers
    user_email: str = headers.get("x-forwarded-email", ANONYMOUS_EMAIL)
    user_id: str = headers.get("x-forwarded-user", "anonymous")

    return {
        "user_id": user_id,
        "user_email": user_email,
        "is_owner": user_email in ADMIN_USERS,
    }
