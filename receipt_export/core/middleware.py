# receipt_export/core/middleware.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from receipt_export.config import Settings

EXPOSED_HEADERS = ["Content-Disposition", "X-Processing-Time", "X-Images-Included"]


def setup_middleware(app: FastAPI, settings: Settings):
    """Configure all middleware"""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        # Browsers hide custom headers from fetch() unless exposed
        expose_headers=EXPOSED_HEADERS,
    )
