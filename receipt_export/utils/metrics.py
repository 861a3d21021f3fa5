"""Prometheus metrics for receipt exports.

Metrics taxonomy:
Export requests:
    - receipt_export_requests_total (label outcome: success | rejected | failed)
    - receipt_export_generation_seconds
    - receipt_export_bytes_total
Images:
    - receipt_image_fetches_total (label outcome: present | missing_id | http_status | timeout | error)
    - receipt_images_embedded_total
Artifacts:
    - receipt_export_cleanup_failures_total
"""
from prometheus_client import Counter, Histogram

EXPORT_REQUESTS = Counter(
    "receipt_export_requests_total",
    "Total receipt export requests",
    ["outcome"]
)

# Validation through serialization, excludes streaming
EXPORT_GENERATION_SECONDS = Histogram(
    "receipt_export_generation_seconds",
    "Time to build and serialize an export workbook",
    buckets=(0.1, 0.25, 0.5, 1, 2, 5, 10, 30, 60)
)

EXPORT_BYTES_TOTAL = Counter(
    "receipt_export_bytes_total",
    "Total bytes of workbooks streamed to callers"
)

IMAGE_FETCHES = Counter(
    "receipt_image_fetches_total",
    "Receipt image fetch attempts by outcome",
    ["outcome"]
)

IMAGES_EMBEDDED = Counter(
    "receipt_images_embedded_total",
    "Total receipt images embedded into export workbooks"
)

ARTIFACT_CLEANUP_FAILURES = Counter(
    "receipt_export_cleanup_failures_total",
    "Temporary export files that could not be deleted"
)

__all__ = [
    "EXPORT_REQUESTS",
    "EXPORT_GENERATION_SECONDS",
    "EXPORT_BYTES_TOTAL",
    "IMAGE_FETCHES",
    "IMAGES_EMBEDDED",
    "ARTIFACT_CLEANUP_FAILURES",
]
