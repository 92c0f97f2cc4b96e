"""
CPA Monitor - Chart Series Builder

Folds per-ad-set daily records into one aggregate daily series with a
trailing rolling CPA. The window here counts points, not calendar days:
a day with no data does not take a slot in the window.
"""

from datetime import date
from typing import Sequence

from cpa_monitor.models.metrics import ChartHeadline, ChartSeriesPoint, DailyMetric

WINDOW_POINTS = 7


def _ratio(spend: float, conversions: float) -> float:
    return spend / conversions if conversions > 0 else 0.0


def build_chart_series(records: Sequence[DailyMetric], window_points: int = WINDOW_POINTS) -> list[ChartSeriesPoint]:
    """
    Aggregate records by date, ascending, with a rolling CPA per point.

    Args:
        records: Daily records across any number of ad sets
        window_points: Number of trailing points in the rolling window

    Returns:
        One point per distinct date
    """
    totals: dict[date, tuple[float, float]] = {}
    for record in records:
        spend, conversions = totals.get(record.date, (0.0, 0.0))
        totals[record.date] = (spend + record.spend, conversions + record.conversions)

    days = sorted(totals)
    series = []
    for i, day in enumerate(days):
        spend, conversions = totals[day]
        window = days[max(0, i - window_points + 1): i + 1]
        window_spend = sum(totals[d][0] for d in window)
        window_conversions = sum(totals[d][1] for d in window)

        series.append(ChartSeriesPoint(
            date=day,
            daily_cpa=_ratio(spend, conversions),
            rolling_7day_avg=_ratio(window_spend, window_conversions),
            spend=spend,
            conversions=conversions,
        ))

    return series


def _percent_change(latest: float, baseline: float) -> float:
    if not baseline:
        return 0.0
    return (latest - baseline) / baseline * 100


def summarize_chart(series: Sequence[ChartSeriesPoint]) -> ChartHeadline:
    """Latest values with day-over-day and week-over-week changes."""
    if not series:
        return ChartHeadline()

    latest = series[-1]
    previous_cpa = series[-2].daily_cpa if len(series) >= 2 else 0.0
    previous_avg = series[-8].rolling_7day_avg if len(series) >= 8 else 0.0

    return ChartHeadline(
        latest_daily_cpa=latest.daily_cpa,
        daily_change_percent=_percent_change(latest.daily_cpa, previous_cpa),
        latest_rolling_avg=latest.rolling_7day_avg,
        weekly_change_percent=_percent_change(latest.rolling_7day_avg, previous_avg),
    )
