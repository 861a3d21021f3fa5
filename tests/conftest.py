"""Pytest fixtures: isolated settings, a fake image service and real image bytes."""
import io

import httpx
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from receipt_export.api.app import create_app
from receipt_export.config import Settings
from receipt_export.services.export_service import ReceiptExportService
from receipt_export.services.image_fetcher import ImageFetcher

IMAGE_SERVICE_URL = "http://images.test"


def make_image_bytes(fmt: str = "PNG", size=(40, 30), color="red") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()


def image_service_handler(png_bytes: bytes, jpeg_bytes: bytes):
    """Fake image service keyed by image id."""
    def handler(request: httpx.Request) -> httpx.Response:
        image_id = request.url.path.rsplit("/", 1)[-1]
        if image_id.startswith("png"):
            return httpx.Response(200, content=png_bytes, headers={"content-type": "image/png"})
        if image_id.startswith("jpeg"):
            # no content-type header: fetcher should assume jpeg
            return httpx.Response(200, content=jpeg_bytes)
        if image_id.startswith("truncated"):
            # header decodes, pixel data is cut short
            return httpx.Response(200, content=make_image_bytes("BMP")[:200], headers={"content-type": "image/bmp"})
        if image_id.startswith("garbage"):
            return httpx.Response(200, content=b"definitely not an image", headers={"content-type": "image/png"})
        if image_id.startswith("timeout"):
            raise httpx.ReadTimeout("timed out", request=request)
        if image_id.startswith("down"):
            raise httpx.ConnectError("connection refused", request=request)
        if image_id.startswith("server-error"):
            return httpx.Response(500, content=b"boom")
        return httpx.Response(404, json={"error": "not found"})
    return handler


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes("PNG")


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image_bytes("JPEG", color="blue")


@pytest.fixture
def image_transport(png_bytes, jpeg_bytes) -> httpx.MockTransport:
    return httpx.MockTransport(image_service_handler(png_bytes, jpeg_bytes))


@pytest.fixture
def export_dir(tmp_path):
    # Not created up front: the service creates it lazily
    return tmp_path / "exports"


@pytest.fixture
def settings(export_dir) -> Settings:
    return Settings(
        export_dir=export_dir,
        image_service_url=IMAGE_SERVICE_URL,
        image_fetch_timeout_seconds=2,
        image_fetch_concurrency=4,
    )


@pytest.fixture
def fetcher(settings, image_transport) -> ImageFetcher:
    return ImageFetcher(
        base_url=settings.image_service_url,
        timeout_seconds=settings.image_fetch_timeout_seconds,
        max_concurrency=settings.image_fetch_concurrency,
        transport=image_transport,
    )


@pytest.fixture
def service(settings, fetcher) -> ReceiptExportService:
    return ReceiptExportService(settings.export_settings(), fetcher)


@pytest.fixture
def client(settings, service):
    """Test client whose export service talks to the fake image service."""
    app = create_app(settings)
    app.state.export_service = service
    return TestClient(app)
