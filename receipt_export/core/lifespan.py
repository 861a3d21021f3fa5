# receipt_export/core/lifespan.py
from contextlib import asynccontextmanager

from receipt_export.utils.logging import logger


@asynccontextmanager
async def lifespan(app):
    """Run setup and teardown logic for the app lifecycle."""

    # ---------- Startup ----------
    settings = app.state.settings
    try:
        export_dir = app.state.export_service.ensure_export_dir()
    except OSError as e:
        # Exports create the directory lazily, so keep serving
        logger.error("Failed to create exports directory", extra={"error": str(e)})
        export_dir = settings.export_dir

    logger.info(f"{settings.service_name} starting", extra={
        "environment": settings.environment,
        "port": settings.port,
        "export_dir": str(export_dir),
        "image_service_url": settings.image_service_url,
        "max_receipts": settings.max_receipts,
    })

    yield

    # ---------- Shutdown ----------
    logger.info("Application shutting down")
