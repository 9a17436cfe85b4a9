"""Error taxonomy shared by every workflow."""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Closed set of error codes surfaced verbatim to callers."""

    INVALID_URL = "INVALID_URL"
    NOT_LOGGED_IN = "NOT_LOGGED_IN"
    PAGE_LOAD_FAILED = "PAGE_LOAD_FAILED"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    CONSENT_REQUIRED = "CONSENT_REQUIRED"
    BOT_DETECTED = "BOT_DETECTED"
    SHEETS_AUTH_REQUIRED = "SHEETS_AUTH_REQUIRED"
    SHEETS_WRITE_FAILED = "SHEETS_WRITE_FAILED"
    DRIVE_AUTH_REQUIRED = "DRIVE_AUTH_REQUIRED"
    DRIVE_WRITE_FAILED = "DRIVE_WRITE_FAILED"
    RUN_IN_PROGRESS = "RUN_IN_PROGRESS"

    def __str__(self) -> str:
        return self.value


class TrackerError(Exception):
    """Workflow-level failure carrying an error code."""

    def __init__(self, code: ErrorCode, message: Optional[str] = None):
        self.code = code
        self.message = message
        super().__init__(f"{code.value}: {message}" if message else code.value)


class DuplicateBusinessError(Exception):
    """A business with the same canonical key, place id or cid already exists."""

    def __init__(self, field: str, value: str, existing_id: Optional[int] = None):
        self.field = field
        self.value = value
        self.existing_id = existing_id
        super().__init__(f"Duplicate {field}: {value}")


class BusinessNotFoundError(Exception):
    """No tracked business with the given id."""

    def __init__(self, business_id: int):
        self.business_id = business_id
        super().__init__(f"Business {business_id} not found")
