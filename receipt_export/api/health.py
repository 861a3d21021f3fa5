# receipt_export/api/health.py
from datetime import datetime

from fastapi import APIRouter, Depends

from receipt_export.api.dependencies import get_app_settings
from receipt_export.config import Settings

router = APIRouter()


@router.get("/health")
async def health_check(settings: Settings = Depends(get_app_settings)):
    """Service health and capabilities"""
    return {
        "service": settings.service_name,
        "status": "healthy",
        "version": settings.service_version,
        "environment": settings.environment,
        "supported_formats": ["Excel (.xlsx)"],
        "max_receipts": settings.max_receipts,
        "timestamp": datetime.now().isoformat(),
    }
