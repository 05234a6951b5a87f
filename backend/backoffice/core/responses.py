"""Standardized API response helpers.

List endpoints return a consistent envelope:
    {"items": [...], "total": <int>}

Paginated endpoints additionally include:
    {"items": [...], "total": <int>, "skip": <int>, "limit": <int>, "has_more": <bool>}
"""

from typing import Optional


def list_response(items: list, total: Optional[int] = None) -> dict:
    """Wrap a list in the standard envelope."""
    return {
        "items": items,
        "total": total if total is not None else len(items),
    }


def paginated_response(items: list, total: int, skip: int = 0, limit: int = 50) -> dict:
    """Wrap a page of results in the standard envelope."""
    return {
        "items": items,
        "total": total,
        "skip": skip,
        "limit": limit,
        "has_more": (skip + len(items)) < total,
    }
