# routers/common.py
from typing import Any, Optional


def ok(data: Any = None, message: Optional[str] = None) -> dict:
    """Success envelope shared by every /api route."""
    body: dict = {"success": True, "data": data}
    if message:
        body["message"] = message
    return body
