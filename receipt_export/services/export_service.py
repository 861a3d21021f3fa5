# receipt_export/services/export_service.py
"""Receipt export orchestration.

Per request: validate -> fetch images + build workbook -> serialize to a
temporary file -> hand an ``ExportArtifact`` to the HTTP layer, which streams
it and deletes it. A temporary file never outlives its request: failures after
it was created remove it before the error propagates, and the artifact removes
itself once streaming ends.
"""
from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, AsyncIterator, Optional

from pydantic import ValidationError

from receipt_export.config import ExportSettings
from receipt_export.exceptions import (
    BatchTooLargeError,
    EmptyBatchError,
    ExportFailedError,
    InvalidRequestError,
)
from receipt_export.models import ExportFilters, ExportRequest, ReceiptRecord, RequesterInfo
from receipt_export.services.image_fetcher import ImageFetcher
from receipt_export.services.workbook_builder import ReceiptWorkbookBuilder
from receipt_export.utils.id_generator import generate_request_id, generate_short_id
from receipt_export.utils.logging import logger
from receipt_export.utils.metrics import (
    ARTIFACT_CLEANUP_FAILURES,
    EXPORT_BYTES_TOTAL,
    EXPORT_GENERATION_SECONDS,
    EXPORT_REQUESTS,
    IMAGES_EMBEDDED,
)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
STREAM_CHUNK_SIZE = 64 * 1024


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _fill_workbook(builder: ReceiptWorkbookBuilder, records, images):
    for record, image in zip(records, images):
        builder.add_record(record, image)
    builder.finalize()


async def _save_off_loop(builder: ReceiptWorkbookBuilder, path: Path):
    """Write the workbook in a worker thread.

    On cancellation the write still runs to completion before the error
    propagates, so the caller never deletes a file that is still being written.
    """
    task = asyncio.ensure_future(asyncio.to_thread(builder.save, path))
    try:
        await asyncio.shield(task)
    except asyncio.CancelledError:
        await asyncio.gather(task, return_exceptions=True)
        raise


def remove_artifact(path: Path, request_id: Optional[str] = None) -> bool:
    """Delete a temporary export file. Logs and returns False on failure, never raises."""
    try:
        path.unlink(missing_ok=True)
        return True
    except OSError as e:
        ARTIFACT_CLEANUP_FAILURES.inc()
        logger.warning(
            "Failed to clean up temporary export file",
            extra={"request_id": request_id, "path": str(path), "error": str(e)},
        )
        return False


@dataclass
class ExportArtifact:
    """A fully serialized workbook waiting to be streamed, owned by one request."""
    path: Path
    filename: str
    images_included: int
    record_count: int
    processing_time_ms: int
    request_id: Optional[str] = None
    media_type: str = XLSX_MEDIA_TYPE
    _cleaned: bool = field(default=False, repr=False)

    @property
    def headers(self) -> dict:
        return {
            "Content-Disposition": f'attachment; filename="{self.filename}"',
            "X-Processing-Time": str(self.processing_time_ms),
            "X-Images-Included": str(self.images_included),
        }

    def cleanup(self):
        """Remove the file. Safe to call more than once."""
        if self._cleaned:
            return
        self._cleaned = True
        if remove_artifact(self.path, self.request_id):
            logger.info(
                f"Cleaned up temporary file: {self.filename}",
                extra={"request_id": self.request_id},
            )

    async def iter_bytes(self, chunk_size: int = STREAM_CHUNK_SIZE) -> AsyncIterator[bytes]:
        """Yield the file in chunks, deleting it when iteration stops for any reason."""
        sent = 0
        try:
            with open(self.path, "rb") as f:
                while True:
                    chunk = await asyncio.to_thread(f.read, chunk_size)
                    if not chunk:
                        break
                    sent += len(chunk)
                    yield chunk
        finally:
            EXPORT_BYTES_TOTAL.inc(sent)
            self.cleanup()


class ReceiptExportService:
    """Turn an export payload into a streamed, self-deleting workbook file."""

    def __init__(self, config: ExportSettings, fetcher: ImageFetcher):
        self.config = config
        self.fetcher = fetcher

    def ensure_export_dir(self) -> Path:
        """Create the export directory if needed (idempotent)."""
        export_dir = Path(self.config.export_dir)
        export_dir.mkdir(parents=True, exist_ok=True)
        return export_dir

    def parse_request(self, payload: Any) -> ExportRequest:
        """Validate a raw JSON payload. Raises an ``ExportValidationError`` subclass."""
        if not isinstance(payload, Mapping):
            raise InvalidRequestError("receipts array is required")

        records = payload.get("records", payload.get("receipts"))
        if records is None or not isinstance(records, list):
            raise InvalidRequestError("receipts array is required")
        if len(records) == 0:
            raise EmptyBatchError()
        if len(records) > self.config.max_receipts:
            raise BatchTooLargeError(len(records), self.config.max_receipts)

        parsed_records = []
        for index, raw in enumerate(records):
            if not isinstance(raw, Mapping):
                raise InvalidRequestError(f"receipt at index {index} must be an object")
            try:
                parsed_records.append(ReceiptRecord.model_validate(raw))
            except ValidationError as e:
                raise InvalidRequestError(f"receipt at index {index} is malformed: {e.errors()[0]['msg']}")

        filters = payload.get("filters")
        requester = payload.get("requester", payload.get("user_info"))
        try:
            return ExportRequest(
                records=parsed_records,
                filters=ExportFilters.model_validate(filters) if isinstance(filters, Mapping) else ExportFilters(),
                requester=RequesterInfo.model_validate(requester) if isinstance(requester, Mapping) else RequesterInfo(),
            )
        except ValidationError as e:
            raise InvalidRequestError(f"filters or requester are malformed: {e.errors()[0]['msg']}")

    def make_filename(self, today: Optional[date] = None) -> str:
        """Unique per request: date stamp + epoch milliseconds + short random id."""
        today = today or date.today()
        return (
            f"{self.config.filename_prefix}_{today.isoformat()}_"
            f"{time.time_ns() // 1_000_000}_{generate_short_id()}.xlsx"
        )

    async def build_workbook(self, request: ExportRequest, request_id: Optional[str] = None) -> ReceiptWorkbookBuilder:
        """Fetch images concurrently, then append rows in input order."""
        builder = ReceiptWorkbookBuilder(filters=request.filters, requester=request.requester)

        with_images = sum(1 for r in request.records if r.image_id)
        logger.info(
            f"Downloading {with_images} receipt images",
            extra={"request_id": request_id, "max_concurrency": self.fetcher.max_concurrency},
        )
        images = await self.fetcher.fetch_many(
            [r.image_id for r in request.records],
            record_ids=[r.id for r in request.records],
        )

        # openpyxl and Pillow work is CPU-bound; keep it off the event loop
        await asyncio.to_thread(_fill_workbook, builder, request.records, images)
        return builder

    async def export(self, payload: Any) -> ExportArtifact:
        """Run the full pipeline and return an artifact ready for streaming.

        Raises:
            ExportValidationError: payload rejected, nothing was done
            ExportFailedError: any failure after validation
        """
        start = time.perf_counter()
        request_id = generate_request_id()

        try:
            request = self.parse_request(payload)
        except Exception:
            EXPORT_REQUESTS.labels(outcome="rejected").inc()
            raise

        logger.info(
            f"Processing export for {len(request.records)} receipts...",
            extra={"request_id": request_id, "record_count": len(request.records)},
        )

        temp_path: Optional[Path] = None
        succeeded = False
        try:
            builder = await self.build_workbook(request, request_id)

            filename = self.make_filename()
            temp_path = self.ensure_export_dir() / filename
            logger.info("Generating Excel file...", extra={"request_id": request_id, "file": filename})
            await _save_off_loop(builder, temp_path)

            processing_ms = _elapsed_ms(start)
            EXPORT_GENERATION_SECONDS.observe(processing_ms / 1000)
            EXPORT_REQUESTS.labels(outcome="success").inc()
            IMAGES_EMBEDDED.inc(builder.images_embedded)
            logger.info(
                f"Export completed in {processing_ms}ms with {builder.images_embedded} images embedded",
                extra={
                    "request_id": request_id,
                    "record_count": builder.record_count,
                    "images_included": builder.images_embedded,
                },
            )
            succeeded = True
            return ExportArtifact(
                path=temp_path,
                filename=filename,
                images_included=builder.images_embedded,
                record_count=builder.record_count,
                processing_time_ms=processing_ms,
                request_id=request_id,
            )
        except Exception as e:
            processing_ms = _elapsed_ms(start)
            EXPORT_REQUESTS.labels(outcome="failed").inc()
            logger.exception("Export error", extra={"request_id": request_id, "error": str(e)})
            raise ExportFailedError(str(e) or e.__class__.__name__, processing_ms) from e
        finally:
            # Also runs on cancellation (CancelledError is not an Exception)
            if not succeeded and temp_path is not None:
                remove_artifact(temp_path, request_id)
