"""Receipt export exception hierarchy.

Validation errors map to HTTP 400 and carry a machine-readable ``code``;
``ExportFailedError`` maps to HTTP 500. Per-record image problems are not
exceptions at all: the image fetcher returns ``ImageAbsent`` instead.
"""


class ReceiptExportError(Exception):
    """Base exception for all receipt export errors."""
    pass


class ExportValidationError(ReceiptExportError):
    """Raised when a request is rejected before any work starts.

    Attributes:
        code: Stable error classification (e.g. ``empty_batch``)
        error: Short human-readable title
        details: Longer explanation for the caller
    """
    code = "invalid_request"
    error = "Invalid request"

    def __init__(self, details: str):
        self.details = details
        super().__init__(f"{self.error}: {details}")


class InvalidRequestError(ExportValidationError):
    """Raised when the receipts array is missing, not an array, or malformed."""
    code = "invalid_request"
    error = "Invalid request"


class EmptyBatchError(ExportValidationError):
    """Raised when the receipts array is empty."""
    code = "empty_batch"
    error = "No receipts to export"

    def __init__(self, details: str = "The receipts array is empty"):
        super().__init__(details)


class BatchTooLargeError(ExportValidationError):
    """Raised when more receipts are submitted than one export allows.

    Attributes:
        size: Number of receipts submitted
        limit: Maximum allowed per export
    """
    code = "batch_too_large"
    error = "Too many receipts"

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Maximum {limit} receipts can be exported at once (got {size})")


class ExportFailedError(ReceiptExportError):
    """Raised when building or writing the workbook fails after validation.

    Attributes:
        details: Description of the underlying failure
        processing_time_ms: Time spent before the failure
    """
    def __init__(self, details: str, processing_time_ms: int):
        self.details = details
        self.processing_time_ms = processing_time_ms
        super().__init__(f"Export failed: {details}")
