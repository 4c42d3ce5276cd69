"""Response envelope helpers.

Every body the API returns has the shape
``{"success": bool, "message": str, "data"?: ..., "errors"?: [...], "timestamp": str}``.
"""
import math
from typing import Any, Optional

from library_api.core.dates import utcnow


def success_response(message: str, data: Any = None) -> dict[str, Any]:
    """Build a success envelope."""
    body: dict[str, Any] = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    body["timestamp"] = utcnow().isoformat()
    return body


def error_response(
    message: str,
    errors: Optional[list[dict[str, Any]]] = None,
    **extra: Any,
) -> dict[str, Any]:
    """Build an error envelope."""
    body: dict[str, Any] = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    body.update(extra)
    body["timestamp"] = utcnow().isoformat()
    return body


def pagination_info(page: int, limit: int, total: int) -> dict[str, Any]:
    """Pagination metadata for a page of ``limit`` items out of ``total``."""
    total_pages = math.ceil(total / limit) if limit else 0
    has_next = page < total_pages
    has_prev = page > 1
    return {
        "current_page": page,
        "total_pages": total_pages,
        "total_items": total,
        "items_per_page": limit,
        "has_next_page": has_next,
        "has_prev_page": has_prev,
        "next_page": page + 1 if has_next else None,
        "prev_page": page - 1 if has_prev else None,
    }
