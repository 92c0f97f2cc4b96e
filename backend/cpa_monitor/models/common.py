"""
CPA Monitor - Common Response Models

Common response wrappers and error models.
"""

from typing import Optional

from pydantic import BaseModel


class ErrorDetail(BaseModel):
    """Error detail model."""
    code: str
    message: str
    details: Optional[dict] = None
    field: Optional[str] = None


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: ErrorDetail


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "healthy"
    version: str
    timestamp: str


# ===========================================
# COMMON ERROR CODES
# ===========================================

class ErrorCodes:
    """Common error codes."""
    # Validation
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_CSV_HEADERS = "INVALID_CSV_HEADERS"

    # Data quality
    MALFORMED_RECORD = "MALFORMED_RECORD"
    DATA_INTEGRITY = "DATA_INTEGRITY"
    EMPTY_INPUT = "EMPTY_INPUT"

    # External APIs
    PLATFORM_ERROR = "PLATFORM_ERROR"
    WAREHOUSE_ERROR = "WAREHOUSE_ERROR"

    # General
    INTERNAL_ERROR = "INTERNAL_ERROR"
