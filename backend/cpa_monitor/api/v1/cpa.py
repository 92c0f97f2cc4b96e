"""
CPA Monitor - CPA Endpoints

JSON wrappers over the rolling CPA core. Posted records pass the integrity
guard before any aggregation; malformed, synthetic or empty input becomes a 422.
"""

from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Query

from cpa_monitor.api.deps import AppSettings, Supabase
from cpa_monitor.models.metrics import DailyConversionSummary, Platform
from cpa_monitor.models.requests import (
    AlertsRequest,
    AlertsResponse,
    ChartResponse,
    IntegrityReport,
    MetricBatchRequest,
    RollingRequest,
    RollingRow,
)
from cpa_monitor.services.alerts import build_alerts, classify_changes
from cpa_monitor.services.chart_series import build_chart_series, summarize_chart
from cpa_monitor.services.integrity import check_integrity, validate_batch
from cpa_monitor.services.rolling_cpa import compute_rolling, format_cpa_change, summarize_day


router = APIRouter(prefix="/cpa", tags=["CPA"])


@router.post("/integrity", response_model=IntegrityReport)
async def check_batch_integrity(
    payload: MetricBatchRequest,
    config: AppSettings,
    strict: bool = Query(True, description="Reject the batch on the first integrity problem"),
):
    """
    Run the integrity guard over a batch.

    In strict mode a failing batch is a 422. Otherwise every problem is
    reported in `validation` and `passed` is False.
    """
    policy = config.integrity_policy()
    if strict:
        check_integrity(payload.records, policy)

    validation = validate_batch(payload.records, policy)
    return IntegrityReport(
        passed=validation.is_valid,
        record_count=len(payload.records),
        validation=validation,
    )


@router.post("/rolling", response_model=list[RollingRow])
async def rolling_cpa(payload: RollingRequest, config: AppSettings):
    """Rolling CPA per ad set, most expensive first."""
    records = check_integrity(payload.records, config.integrity_policy())
    results = compute_rolling(records, payload.target_date)
    thresholds = config.alert_thresholds()
    return [
        RollingRow(result=result, badge=format_cpa_change(result, thresholds))
        for result in results
    ]


@router.get("/rolling", response_model=list[RollingRow])
async def stored_rolling_cpa(
    supabase: Supabase,
    config: AppSettings,
    target_date: Optional[date] = None,
    platform: Optional[Platform] = None,
):
    """Rolling CPA computed from warehouse history."""
    target = target_date or date.today() - timedelta(days=1)
    history = await supabase.get_ad_performance(target - timedelta(days=6), target, platform)
    results = compute_rolling(history, target)
    thresholds = config.alert_thresholds()
    return [
        RollingRow(result=result, badge=format_cpa_change(result, thresholds))
        for result in results
    ]


@router.post("/alerts", response_model=AlertsResponse)
async def cpa_alerts(payload: AlertsRequest, config: AppSettings):
    """Rolling CPA bucketed into critical, warning and improvement alerts."""
    records = check_integrity(payload.records, config.integrity_policy())
    results = compute_rolling(records, payload.target_date)
    buckets = classify_changes(results, payload.thresholds or config.alert_thresholds())
    return AlertsResponse(buckets=buckets, alerts=build_alerts(buckets))


@router.post("/chart", response_model=ChartResponse)
async def cpa_chart(payload: MetricBatchRequest, config: AppSettings):
    """Aggregate daily CPA with its 7-point rolling average."""
    series = build_chart_series(check_integrity(payload.records, config.integrity_policy()))
    return ChartResponse(series=series, headline=summarize_chart(series))


@router.post("/daily-summary", response_model=DailyConversionSummary)
async def daily_summary(payload: RollingRequest, config: AppSettings):
    """Totals for one day, split by platform."""
    records = check_integrity(payload.records, config.integrity_policy())
    return summarize_day(records, payload.target_date)
