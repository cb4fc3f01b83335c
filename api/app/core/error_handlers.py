"""
Exception handlers that render every failure in one JSON envelope:

    {"error": {"code": ..., "message": ..., "status_code": ..., "details": ...}}

``details`` is only present when the exception carries any, e.g. the
per-parameter messages of a rejected request or the reasons of a failed
validation.
"""

import logging
from typing import Any, Dict, Optional

from app.core.exceptions import BaseAppException
from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


def _envelope(
    code: str, message: str, status_code: int, details: Optional[Any] = None
) -> Dict[str, Any]:
    error: Dict[str, Any] = {
        "code": code,
        "message": message,
        "status_code": status_code,
    }
    if details:
        error["details"] = details
    return {"error": error}


async def base_exception_handler(
    request: Request, exc: BaseAppException
) -> JSONResponse:
    """Render an application exception with its own code and status.

    Client errors are logged as warnings, server side failures as errors.
    """
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"{request.method} {request.url.path} failed with {exc.status_code} "
        f"({exc.error_code}): {exc.detail}",
        extra={"error_code": exc.error_code, "status_code": exc.status_code},
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=_envelope(exc.error_code, exc.detail, exc.status_code, exc.details),
        headers=exc.headers,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort for exceptions nothing else handled.

    The traceback is logged, the caller only gets an opaque message.
    """
    logger.exception(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}: {exc}"
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_envelope(
            "internal_error",
            "An unexpected error occurred",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        ),
    )
