# receipt_export/api/app.py
"""FastAPI app factory."""
from typing import Optional

from fastapi import FastAPI

from receipt_export import __version__
from receipt_export.api import export, health, metrics
from receipt_export.api.dependencies import build_export_service
from receipt_export.config import Settings, settings as default_settings
from receipt_export.core.errors import register_exception_handlers
from receipt_export.core.lifespan import lifespan
from receipt_export.core.middleware import setup_middleware


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create the receipt export application.

    Pass ``settings`` to point the app at a different image service or export
    directory (tests do this); otherwise environment settings are used.
    """
    settings = settings or default_settings

    app = FastAPI(
        title="Receipt Export API",
        version=__version__,
        description="Export receipt records to Excel with embedded receipt images",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.export_service = build_export_service(settings)

    setup_middleware(app, settings)
    register_exception_handlers(app)

    app.include_router(export.router)
    app.include_router(health.router, tags=["health"])
    app.include_router(metrics.router)
    return app
