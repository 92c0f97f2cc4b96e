"""
CPA Monitor - Change Classifier

Buckets rolling results by percent change. The thresholds here are separate
from the stability band the rolling engine uses for trend labels.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Sequence

from cpa_monitor.models.metrics import Alert, AlertBuckets, AlertType, RollingResult
from cpa_monitor.models.policy import AlertThresholds, resolve_thresholds

logger = logging.getLogger(__name__)


def classify_changes(
    results: Sequence[RollingResult],
    thresholds: Optional[AlertThresholds] = None,
) -> AlertBuckets:
    """
    Partition results into critical, warning and improvement buckets.

    A result lands in at most one bucket; anything between the improvement
    and warning thresholds is normal and not surfaced.
    """
    limits = resolve_thresholds(thresholds)
    buckets = AlertBuckets()

    for result in results:
        change = result.change_percent
        if change > limits.critical:
            buckets.critical.append(result)
        elif change > limits.warning:
            buckets.warning.append(result)
        elif change < limits.improvement:
            buckets.improvements.append(result)

    logger.info(
        f"Classified {len(results)} results: {len(buckets.critical)} critical, "
        f"{len(buckets.warning)} warning, {len(buckets.improvements)} improvements"
    )
    return buckets


def _alert(alert_type: AlertType, title: str, message: str, result: RollingResult, timestamp: datetime) -> Alert:
    return Alert(
        id=f"{alert_type.value}:{result.platform.value}:{result.ad_set_id}",
        type=alert_type,
        title=title,
        message=message,
        ad_set_id=result.ad_set_id,
        change_percent=result.change_percent,
        timestamp=timestamp,
    )


def build_alerts(buckets: AlertBuckets, generated_at: Optional[datetime] = None) -> list[Alert]:
    """Turn buckets into dashboard alerts, most severe first."""
    timestamp = generated_at or datetime.now(timezone.utc)
    alerts = []

    for result in buckets.critical:
        alerts.append(_alert(
            AlertType.CRITICAL,
            f"CPA spike: {result.ad_set_name or result.ad_set_id}",
            f"CPA is {result.change_percent:.1f}% above its 7-day average "
            f"(${result.current_day_cpa:.2f} vs ${result.rolling_7day_avg_cpa:.2f})",
            result,
            timestamp,
        ))

    for result in buckets.warning:
        alerts.append(_alert(
            AlertType.WARNING,
            f"CPA rising: {result.ad_set_name or result.ad_set_id}",
            f"CPA is {result.change_percent:.1f}% above its 7-day average "
            f"(${result.current_day_cpa:.2f} vs ${result.rolling_7day_avg_cpa:.2f})",
            result,
            timestamp,
        ))

    for result in buckets.improvements:
        alerts.append(_alert(
            AlertType.INFO,
            f"CPA improving: {result.ad_set_name or result.ad_set_id}",
            f"CPA is {abs(result.change_percent):.1f}% below its 7-day average "
            f"(${result.current_day_cpa:.2f} vs ${result.rolling_7day_avg_cpa:.2f})",
            result,
            timestamp,
        ))

    return alerts
