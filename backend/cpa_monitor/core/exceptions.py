"""
CPA Monitor - Exceptions

Batch-level failures raised by the computation core. Row-level issues are
not exceptions; see RowParseWarning in cpa_monitor.models.metrics.
"""

from enum import Enum
from typing import Any, Optional

from cpa_monitor.models.common import ErrorCodes


class IntegrityHeuristic(str, Enum):
    """Synthetic-data patterns checked by the integrity guard."""
    ROUND_SPEND = "round_spend"
    IDENTICAL_CPA = "identical_cpa"
    PLACEHOLDER_NAME = "placeholder_name"
    IMPLAUSIBLE_CONVERSIONS = "implausible_conversions"


class CPAMonitorError(Exception):
    """Base class for errors that must reach the caller."""
    code: str = ErrorCodes.INTERNAL_ERROR

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class MalformedRecordError(CPAMonitorError):
    """A record is missing a required field or carries an invalid value."""
    code = ErrorCodes.MALFORMED_RECORD

    def __init__(self, index: int, reason: str):
        super().__init__(
            f"Record {index}: {reason}",
            details={"index": index, "reason": reason},
        )
        self.index = index
        self.reason = reason


class DataIntegrityError(CPAMonitorError):
    """The record set looks synthetic and must not be aggregated."""
    code = ErrorCodes.DATA_INTEGRITY

    def __init__(self, heuristic: IntegrityHeuristic, message: str):
        super().__init__(message, details={"heuristic": heuristic.value})
        self.heuristic = heuristic


class EmptyInputError(CPAMonitorError):
    """A computation was asked to run over no data."""
    code = ErrorCodes.EMPTY_INPUT


class PlatformError(CPAMonitorError):
    """The ad platform could not be reached or is not configured."""
    code = ErrorCodes.PLATFORM_ERROR


class WarehouseError(CPAMonitorError):
    """Reading from or writing to the warehouse failed."""
    code = ErrorCodes.WAREHOUSE_ERROR
