# receipt_export/core/errors.py
"""Exception handlers translating export errors into JSON responses."""
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from receipt_export.exceptions import ExportFailedError, ExportValidationError
from receipt_export.utils.logging import logger

AVAILABLE_ENDPOINTS = [
    "GET /health",
    "GET /export/formats",
    "POST /export/receipts",
    "GET /export/metrics",
    "GET /metrics",
]


def _timestamp() -> str:
    return datetime.now().isoformat()


async def validation_error_handler(request: Request, exc: ExportValidationError):
    logger.info("Export request rejected", extra={"code": exc.code, "details": exc.details})
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": exc.error,
            "code": exc.code,
            "details": exc.details,
            "timestamp": _timestamp(),
        },
    )


async def export_failed_handler(request: Request, exc: ExportFailedError):
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Export failed",
            "details": exc.details,
            "processing_time_ms": exc.processing_time_ms,
            "timestamp": _timestamp(),
        },
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code != 404:
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=getattr(exc, "headers", None))
    return JSONResponse(
        status_code=404,
        content={"error": "Endpoint not found", "available_endpoints": AVAILABLE_ENDPOINTS},
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error", extra={"path": request.url.path})
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "details": str(exc), "timestamp": _timestamp()},
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(ExportValidationError, validation_error_handler)
    app.add_exception_handler(ExportFailedError, export_failed_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
