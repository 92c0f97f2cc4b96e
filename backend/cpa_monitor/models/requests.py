"""
CPA Monitor - API Payload Models

Request and response bodies for the CPA endpoints.
"""

from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, Field

from cpa_monitor.models.common import ErrorDetail
from cpa_monitor.models.metrics import (
    Alert,
    AlertBuckets,
    ChartHeadline,
    ChartSeriesPoint,
    CPAChangeBadge,
    NormalizationResult,
    RollingResult,
    ValidationResult,
)
from cpa_monitor.models.policy import AlertThresholds


class MetricBatchRequest(BaseModel):
    """Daily records as plain JSON objects; validated by the integrity guard."""
    records: list[dict[str, Any]] = Field(default_factory=list)


class RollingRequest(MetricBatchRequest):
    target_date: Optional[date] = None


class AlertsRequest(RollingRequest):
    thresholds: Optional[AlertThresholds] = None


class IntegrityReport(BaseModel):
    passed: bool
    record_count: int
    validation: ValidationResult


class RollingRow(BaseModel):
    result: RollingResult
    badge: CPAChangeBadge


class AlertsResponse(BaseModel):
    buckets: AlertBuckets
    alerts: list[Alert]


class ChartResponse(BaseModel):
    series: list[ChartSeriesPoint]
    headline: ChartHeadline


class CsvUploadResponse(BaseModel):
    filename: Optional[str] = None
    result: NormalizationResult
    chart: list[ChartSeriesPoint] = Field(default_factory=list)
    integrity_error: Optional[ErrorDetail] = None
    rows_upserted: int = 0
