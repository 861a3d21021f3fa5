# receipt_export/api/export.py
import json
from datetime import datetime

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from receipt_export.api.dependencies import get_app_settings, get_export_service
from receipt_export.config import Settings
from receipt_export.exceptions import InvalidRequestError
from receipt_export.services.export_service import XLSX_MEDIA_TYPE, ReceiptExportService
from receipt_export.services.workbook_builder import COLUMNS

router = APIRouter(prefix="/export", tags=["export"])

COLUMN_FIELDS = (
    ("store_name", "Business or healthcare provider name"),
    ("amount", "Expense amount in USD"),
    ("receipt_date", "Date of the expense"),
    ("category", "Medical expense category"),
    ("description", "Optional notes about the expense"),
    ("image", "Embedded receipt image (if available)"),
)


@router.post("/receipts")
async def export_receipts(
    request: Request,
    service: ReceiptExportService = Depends(get_export_service),
):
    """
    Export a batch of receipts as an Excel workbook.

    Body:
        {
            "receipts": [{"store_name": ..., "amount": ..., "receipt_date": ...,
                          "category": ..., "description": ..., "image_id": ...}],
            "filters": {"search": "...", "category": "..."},
            "user_info": {"name": "...", "email": "..."}
        }

    Returns:
        - 200 OK: xlsx body with X-Processing-Time and X-Images-Included headers
        - 400 Bad Request: receipts missing, empty, or more than the limit
        - 500 Error: workbook could not be built or written
    """
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise InvalidRequestError("request body must be valid JSON")

    artifact = await service.export(payload)

    return StreamingResponse(
        artifact.iter_bytes(),
        media_type=XLSX_MEDIA_TYPE,
        headers=artifact.headers,
        # Backstop for streams abandoned before the generator cleans up
        background=BackgroundTask(artifact.cleanup),
    )


@router.get("/formats")
async def export_formats(settings: Settings = Depends(get_app_settings)):
    """Supported export formats and columns"""
    return {
        "supported_formats": [
            {
                "type": "Excel",
                "extension": "xlsx",
                "mime_type": XLSX_MEDIA_TYPE,
                "description": "Microsoft Excel spreadsheet with receipt data and images",
                "features": ["Multiple columns", "Image embedding", "Formatting", "Filtering"],
            }
        ],
        "columns": [
            {"name": header, "field": field, "description": description}
            for (header, _), (field, description) in zip(COLUMNS, COLUMN_FIELDS)
        ],
        "max_receipts": settings.max_receipts,
        "estimated_processing_time": "5-30 seconds depending on number of images",
    }


@router.get("/metrics")
async def export_metrics(settings: Settings = Depends(get_app_settings)):
    """Static performance and feature description (Prometheus data lives at /metrics)"""
    return {
        "service": settings.service_name,
        "status": "operational",
        "supported_formats": ["xlsx"],
        "performance": {
            "max_receipts": settings.max_receipts,
            "image_fetch_timeout_seconds": settings.image_fetch_timeout_seconds,
            "image_fetch_concurrency": settings.image_fetch_concurrency,
            "estimated_time_per_receipt": "50-200ms",
            "estimated_time_per_image": "500-2000ms",
            "typical_file_size": "500KB - 50MB (depending on images)",
        },
        "features": [
            "Excel spreadsheet generation",
            "Receipt image embedding",
            "Formatted currency and dates",
            "Filter information inclusion",
            "Summary calculations",
            "Professional styling",
        ],
        "timestamp": datetime.now().isoformat(),
    }
