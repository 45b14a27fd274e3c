"""Environment-driven settings."""

import os
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load environment variables
load_dotenv()


class Settings(BaseModel):
    """Runtime configuration for the pipeline and the HTTP service."""
    attendance_threshold: float = 1.0
    max_header_rows: int = 2
    max_upload_size_mb: int = 10
    allow_origins: List[str] = ["*"]
    debug: bool = False
    log_level: str = "INFO"

    @field_validator("attendance_threshold")
    @classmethod
    def _positive_threshold(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("ATTENDANCE_THRESHOLD must be greater than 0")
        return value

    @field_validator("max_header_rows", "max_upload_size_mb")
    @classmethod
    def _at_least_one(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @property
    def max_upload_size(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024


def load_settings() -> Settings:
    """
    Build settings from the environment.

    Raises:
        ValueError: if a variable is present but not a valid value
    """
    try:
        return Settings(
            attendance_threshold=float(os.getenv('ATTENDANCE_THRESHOLD', '1.0')),
            max_header_rows=int(os.getenv('MAX_HEADER_ROWS', '2')),
            max_upload_size_mb=int(os.getenv('MAX_UPLOAD_SIZE_MB', '10')),
            allow_origins=[o.strip() for o in os.getenv('ALLOW_ORIGINS', '*').split(',') if o.strip()],
            debug=os.getenv('DEBUG', 'False').lower() == 'true',
            log_level=os.getenv('LOG_LEVEL', 'INFO').upper(),
        )
    except ValueError as e:
        # pydantic's ValidationError is a ValueError subclass
        raise ValueError(f"Invalid configuration: {e}") from e
