import math
from typing import Any, Optional


def success_response(data: Any = None, message: Optional[str] = None, **extra) -> dict:
    """Build the shared {success, message?, data?} envelope"""
    body = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body


def pagination_meta(total: int, page: int, limit: int) -> dict:
    return {
        "total": total,
        "current_page": page,
        "total_pages": math.ceil(total / limit) if limit else 0,
        "limit": limit,
    }
