# receipt_export/api/dependencies.py
from fastapi import Request

from receipt_export.config import Settings
from receipt_export.services.export_service import ReceiptExportService
from receipt_export.services.image_fetcher import ImageFetcher


def build_export_service(settings: Settings) -> ReceiptExportService:
    """Wire the export service from settings."""
    fetcher = ImageFetcher(
        base_url=settings.image_service_url,
        timeout_seconds=settings.image_fetch_timeout_seconds,
        max_concurrency=settings.image_fetch_concurrency,
    )
    return ReceiptExportService(settings.export_settings(), fetcher)


def get_export_service(request: Request) -> ReceiptExportService:
    return request.app.state.export_service


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
