# receipt_export/config.py
import json
from dataclasses import dataclass
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings


@dataclass(frozen=True)
class ExportSettings:
    """Explicit configuration handed to the export service."""
    export_dir: Path
    max_receipts: int = 1000
    filename_prefix: str = "receipts_export"


class Settings(BaseSettings):
    """Application settings from environment variables"""

    # Service identity
    service_name: str = "Receipt Export Microservice"
    service_version: str = "1.0.0"
    environment: str = "development"  # development, production
    port: int = 5003

    # ===== IMAGE SERVICE =====
    image_service_url: str = "http://localhost:5001"
    image_fetch_timeout_seconds: float = 10.0
    # Upper bound on simultaneous image downloads within one export
    image_fetch_concurrency: int = 8

    # ===== EXPORT SETTINGS =====
    export_dir: Path = Path("exports")
    max_receipts: int = 1000
    export_filename_prefix: str = "receipts_export"

    # Logging
    log_level: str = "INFO"
    log_to_file: bool = False
    log_dir: Path = Path("logs")

    # CORS
    cors_origins: list[str] = ["*"]

    @field_validator("cors_origins", mode="before")
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [v]
        return v

    class Config:
        env_file = Path(__file__).resolve().parent.parent / ".env"
        case_sensitive = False
        extra = "ignore"

    def export_settings(self) -> ExportSettings:
        return ExportSettings(
            export_dir=self.export_dir,
            max_receipts=self.max_receipts,
            filename_prefix=self.export_filename_prefix,
        )


# Global settings instance
settings = Settings()
