"""
CPA Monitor - Data Integrity Guard

Rejects record sets that are structurally broken or look synthetic before
they reach any aggregate. Structural problems raise MalformedRecordError,
synthetic-data patterns raise DataIntegrityError; neither is recovered.
"""

import logging
import math
from datetime import date, timedelta
from typing import Any, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from cpa_monitor.core.exceptions import (
    DataIntegrityError,
    IntegrityHeuristic,
    MalformedRecordError,
)
from cpa_monitor.models.metrics import DailyMetric, ValidationResult
from cpa_monitor.models.policy import DEFAULT_INTEGRITY_POLICY, IntegrityPolicy

logger = logging.getLogger(__name__)

RecordLike = Union[DailyMetric, Mapping[str, Any]]

REQUIRED_FIELDS = ("date", "platform", "ad_set_id", "spend", "conversions")
NUMERIC_FIELDS = ("spend", "conversions")

HEURISTIC_MESSAGES = {
    IntegrityHeuristic.ROUND_SPEND: "Too many round number spends detected",
    IntegrityHeuristic.IDENTICAL_CPA: "Identical cost per conversion across all records",
    IntegrityHeuristic.PLACEHOLDER_NAME: "Test/mock identifiers detected in data",
    IntegrityHeuristic.IMPLAUSIBLE_CONVERSIONS: "More conversions than dollars spent",
}


# ===========================================
# STRUCTURE
# ===========================================

def coerce_record(index: int, record: RecordLike) -> DailyMetric:
    """Validate one record's structure and return it as a DailyMetric."""
    if isinstance(record, DailyMetric):
        return record
    if not isinstance(record, Mapping):
        raise MalformedRecordError(index, f"expected a mapping, got {type(record).__name__}")

    missing = [field for field in REQUIRED_FIELDS if record.get(field) in (None, "")]
    if missing:
        raise MalformedRecordError(index, f"missing required field(s): {', '.join(missing)}")

    for field in NUMERIC_FIELDS:
        value = record[field]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise MalformedRecordError(index, f"{field} must be numeric, got {type(value).__name__}")
        if not math.isfinite(value):
            raise MalformedRecordError(index, f"{field} must be finite")
        if value < 0:
            raise MalformedRecordError(index, f"{field} cannot be negative")

    try:
        return DailyMetric.model_validate(record)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise MalformedRecordError(index, f"{location}: {first['msg']}") from e


def validate_records(records: Sequence[RecordLike]) -> list[DailyMetric]:
    """Validate every record; the first structural problem fails the batch."""
    return [coerce_record(index, record) for index, record in enumerate(records)]


# ===========================================
# SYNTHETIC DATA HEURISTICS
# ===========================================

def _is_round_spend(spend: float, unit: float) -> bool:
    return spend > unit and spend % unit == 0


def _is_placeholder(text: str, prefixes: tuple[str, ...]) -> bool:
    lowered = text.lower()
    return any(lowered.startswith(prefix) for prefix in prefixes)


def detect_mock_patterns(
    records: Sequence[DailyMetric],
    policy: IntegrityPolicy = DEFAULT_INTEGRITY_POLICY,
) -> list[IntegrityHeuristic]:
    """Return every synthetic-data heuristic the records trigger."""
    if not records:
        return []

    patterns = []

    round_count = sum(1 for r in records if _is_round_spend(r.spend, policy.round_spend_unit))
    if round_count > len(records) * policy.round_spend_ratio:
        patterns.append(IntegrityHeuristic.ROUND_SPEND)

    if (
        policy.check_identical_cpa
        and len(records) > 1
        and len({r.cost_per_conversion for r in records}) == 1
    ):
        patterns.append(IntegrityHeuristic.IDENTICAL_CPA)

    if any(
        _is_placeholder(r.ad_set_id, policy.placeholder_prefixes)
        or _is_placeholder(r.ad_set_name, policy.placeholder_prefixes)
        for r in records
    ):
        patterns.append(IntegrityHeuristic.PLACEHOLDER_NAME)

    if any(r.conversions > r.spend * policy.max_conversions_per_dollar for r in records):
        patterns.append(IntegrityHeuristic.IMPLAUSIBLE_CONVERSIONS)

    return patterns


def check_integrity(
    records: Sequence[RecordLike],
    policy: IntegrityPolicy = DEFAULT_INTEGRITY_POLICY,
) -> list[DailyMetric]:
    """
    Hard stop for broken or fabricated data.

    Raises:
        MalformedRecordError: a record is structurally invalid
        DataIntegrityError: the batch matches a synthetic-data heuristic

    Returns:
        The records as validated DailyMetric instances
    """
    validated = validate_records(records)
    patterns = detect_mock_patterns(validated, policy)
    if patterns:
        heuristic = patterns[0]
        message = (
            f"Mock or suspicious data detected ({heuristic.value}): "
            f"{HEURISTIC_MESSAGES[heuristic]}. Only real advertising data is allowed."
        )
        logger.warning(f"Integrity check rejected {len(validated)} records: {heuristic.value}")
        raise DataIntegrityError(heuristic, message)
    return validated


# ===========================================
# DASHBOARD VALIDATION REPORT
# ===========================================

def validate_batch(
    records: Sequence[RecordLike],
    policy: IntegrityPolicy = DEFAULT_INTEGRITY_POLICY,
    today: Optional[date] = None,
) -> ValidationResult:
    """Collect every problem with a batch for display instead of stopping at the first."""
    if not records:
        return ValidationResult(is_valid=False, errors=["No data provided for validation"])

    errors: list[str] = []
    warnings: list[str] = []
    valid: list[DailyMetric] = []

    for index, record in enumerate(records):
        try:
            valid.append(coerce_record(index, record))
        except MalformedRecordError as e:
            errors.append(e.message)

    for heuristic in detect_mock_patterns(valid, policy):
        errors.append(f"Mock data detected: {HEURISTIC_MESSAGES[heuristic]}")

    for index, record in enumerate(valid):
        if record.cost_per_conversion == 0 and record.conversions > 0:
            warnings.append(f"Record {index}: Zero CPA with conversions (unusual)")
        if record.cost_per_conversion > policy.high_cpa_warning:
            warnings.append(f"Record {index}: Very high CPA detected (${record.cost_per_conversion:.2f})")

    current = today or date.today()
    recent = {current, current - timedelta(days=1)}
    if valid and not any(r.date in recent for r in valid):
        warnings.append("No data from today or yesterday - may be delayed")

    for platform in sorted({r.platform for r in valid}, key=lambda p: p.value):
        if not any(r.conversions > 0 for r in valid if r.platform == platform):
            warnings.append(f"No conversions tracked for {platform.value} platform")

    return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)
