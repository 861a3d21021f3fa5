# receipt_export/utils/logging.py
import logging
from logging.handlers import RotatingFileHandler

from pythonjsonlogger.json import JsonFormatter

from receipt_export.config import settings

SERVICE_NAME = "receipt-export"


class ContextFilter(logging.Filter):
    def filter(self, record):
        # request_id / record_id arrive through `extra=`; default to None if absent
        if not hasattr(record, "request_id"):
            record.request_id = None
        if not hasattr(record, "record_id"):
            record.record_id = None
        record.service = SERVICE_NAME
        return True


base_format = (
    "%(asctime)s %(levelname)s %(service)s %(name)s %(message)s "
    "%(request_id)s %(record_id)s"
)

json_formatter = JsonFormatter(base_format)

logger = logging.getLogger("receipt_export")
logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
logger.addFilter(ContextFilter())
logger.propagate = False

# Console / stdout handler (always on for containers)
stream_handler = logging.StreamHandler()
stream_handler.setFormatter(json_formatter)
logger.addHandler(stream_handler)

# Optional file handler
if settings.log_to_file:
    settings.log_dir.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        settings.log_dir / "export.log",
        maxBytes=10_000_000,
        backupCount=5,
        encoding="utf-8"
    )
    file_handler.setFormatter(json_formatter)
    logger.addHandler(file_handler)

logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.INFO)
