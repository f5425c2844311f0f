"""
Crosspost API Response Utilities
Standardized response envelope and error rendering
"""
from fastapi import Request
from fastapi.responses import JSONResponse
from typing import Any, Dict, Optional
from datetime import datetime, timezone

from .exceptions import CrosspostError
from .logging_config import api_logger


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


# ============================================================
# SUCCESS RESPONSES
# ============================================================

def success(data: Any = None, message: Optional[str] = None, meta: Optional[Dict] = None) -> Dict:
    """Create success response"""
    response = {
        "ok": True,
        "timestamp": _timestamp(),
    }

    if data is not None:
        response["data"] = data

    if message:
        response["message"] = message

    if meta:
        response["meta"] = meta

    return response


def created(data: Any, message: str = "Created successfully") -> Dict:
    """201 Created response"""
    return success(data, message)


def updated(data: Any = None, message: str = "Updated successfully") -> Dict:
    """200 Updated response"""
    return success(data, message)


def deleted(message: str = "Deleted successfully") -> Dict:
    """200 Deleted response"""
    return success(message=message)


# ============================================================
# EXCEPTION HANDLER
# ============================================================

def error_body(message: str, error_code: str, details: Optional[Dict] = None) -> Dict:
    return {
        "ok": False,
        "error": message,
        "error_code": error_code,
        "details": details,
        "timestamp": _timestamp(),
    }


async def api_exception_handler(request: Request, exc: CrosspostError) -> JSONResponse:
    """Render publishing errors with the standard error envelope."""
    if exc.status_code >= 500:
        api_logger.error(
            f"API Error: {exc.message}",
            error=exc,
            status_code=exc.status_code,
            error_code=exc.error_code,
            path=request.url.path,
        )
    else:
        api_logger.warning(
            f"API Error: {exc.message}",
            status_code=exc.status_code,
            error_code=exc.error_code,
            path=request.url.path,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.error_code, exc.details),
    )
