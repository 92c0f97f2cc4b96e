from datetime import date, datetime, timezone

import pytest

from cpa_monitor.models.metrics import AlertType, Platform, RollingResult, Trend
from cpa_monitor.models.policy import AlertThresholds
from cpa_monitor.services.alerts import build_alerts, classify_changes


def result(change_percent: float, ad_set_id: str = "ga_1") -> RollingResult:
    return RollingResult(
        ad_set_id=ad_set_id,
        ad_set_name=f"Ad set {ad_set_id}",
        platform=Platform.GOOGLE,
        current_date=date(2025, 2, 10),
        current_day_cpa=12.0,
        rolling_7day_avg_cpa=10.0,
        change_from_rolling_avg=2.0,
        change_percent=change_percent,
        trend=Trend.WORSENING if change_percent > 0 else Trend.IMPROVING,
        data_points=7,
    )


def test_default_buckets():
    critical, improving, normal = result(30, "a"), result(-15, "b"), result(2, "c")

    buckets = classify_changes([critical, improving, normal])

    assert buckets.critical == [critical]
    assert buckets.warning == []
    assert buckets.improvements == [improving]


@pytest.mark.parametrize("change, bucket", [
    (25.0, "warning"),
    (25.01, "critical"),
    (15.0, None),
    (15.5, "warning"),
    (-10.0, None),
    (-10.5, "improvements"),
    (0.0, None),
])
def test_boundaries(change, bucket):
    buckets = classify_changes([result(change)])

    placed = [name for name in ("critical", "warning", "improvements") if getattr(buckets, name)]
    assert placed == ([bucket] if bucket else [])


def test_custom_thresholds():
    thresholds = AlertThresholds(critical=50, warning=20, improvement=-30)

    buckets = classify_changes([result(30), result(-15)], thresholds)

    assert len(buckets.warning) == 1
    assert buckets.improvements == []


def test_thresholds_must_be_ordered():
    with pytest.raises(ValueError):
        AlertThresholds(critical=10, warning=20)


def test_build_alerts():
    at = datetime(2025, 2, 10, 7, 0, tzinfo=timezone.utc)
    buckets = classify_changes([result(-20, "b"), result(40, "a"), result(18, "c")])

    alerts = build_alerts(buckets, at)

    assert [a.type for a in alerts] == [AlertType.CRITICAL, AlertType.WARNING, AlertType.INFO]
    assert alerts[0].id == "critical:google:a"
    assert alerts[2].id == "info:google:b"
    assert alerts[0].change_percent == 40
    assert all(a.timestamp == at for a in alerts)
    assert "below" in alerts[2].message
