"""
CPA Monitor - Rolling CPA Engine

Compares each ad set's current-day CPA against its trailing 7-day CPA.
The rolling CPA is total window spend over total window conversions,
not an average of daily ratios.
"""

import logging
from datetime import date, timedelta
from typing import Iterable, Optional, Sequence, Union

from cpa_monitor.core.exceptions import EmptyInputError
from cpa_monitor.models.metrics import (
    CPAChangeBadge,
    DailyConversionSummary,
    DailyMetric,
    Platform,
    PlatformDayMetrics,
    RollingResult,
    Trend,
)
from cpa_monitor.models.policy import (
    DEFAULT_ALERT_THRESHOLDS,
    DEFAULT_ROLLING_POLICY,
    AlertThresholds,
    RollingPolicy,
)

logger = logging.getLogger(__name__)

# Fixed noise band for trend labeling.
STABILITY_BAND_PERCENT = 5.0

DateLike = Union[date, str]


def as_date(value: Optional[DateLike]) -> date:
    """Accept a date or an ISO string; None means today."""
    if value is None:
        return date.today()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip())


def collapse_days(records: Iterable[DailyMetric]) -> dict[date, DailyMetric]:
    """One record per date for a single ad set, summing duplicates."""
    by_date: dict[date, DailyMetric] = {}
    for record in records:
        existing = by_date.get(record.date)
        if existing is None:
            by_date[record.date] = record
        else:
            by_date[record.date] = existing.model_copy(update={
                "spend": existing.spend + record.spend,
                "conversions": existing.conversions + record.conversions,
            })
    return by_date


class RollingCPAEngine:
    """
    Rolling CPA computation.

    The window length comes from the engine's policy and is fixed for its
    lifetime. The stability band is fixed at STABILITY_BAND_PERCENT.
    """

    def __init__(self, policy: RollingPolicy = DEFAULT_ROLLING_POLICY):
        self.policy = policy

    def classify_trend(self, change_percent: float) -> Trend:
        if abs(change_percent) < STABILITY_BAND_PERCENT:
            return Trend.STABLE
        if change_percent > 0:
            return Trend.WORSENING
        return Trend.IMPROVING

    def compute(
        self,
        history: Sequence[DailyMetric],
        target_date: Optional[DateLike] = None,
    ) -> list[RollingResult]:
        """
        Compute one RollingResult per ad set in the history.

        Args:
            history: Daily records for any number of ad sets
            target_date: Day to evaluate (defaults to today)

        Returns:
            Results sorted by current-day CPA, most expensive first

        Raises:
            EmptyInputError: history is empty
        """
        if not history:
            raise EmptyInputError("Historical data is required for rolling CPA calculation")

        target = as_date(target_date)

        by_ad_set: dict[tuple[str, str], list[DailyMetric]] = {}
        for record in history:
            by_ad_set.setdefault((record.platform.value, record.ad_set_id), []).append(record)

        results = []
        for records in by_ad_set.values():
            result = self.compute_ad_set(records, target)
            if result is not None:
                results.append(result)

        results.sort(key=lambda r: (-r.current_day_cpa, r.platform.value, r.ad_set_id))
        logger.info(
            f"Rolling CPA for {target.isoformat()}: {len(results)} of {len(by_ad_set)} ad sets computed"
        )
        return results

    def compute_each_day(
        self,
        history: Sequence[DailyMetric],
        dates: Iterable[DateLike],
    ) -> list[RollingResult]:
        """
        One rolling pass per date, for backfilling several days at once.

        Only ad sets with a record on a given date get a result for it, so
        each result's current_date is the day it was evaluated for.
        """
        results = []
        for day in sorted({as_date(d) for d in dates}):
            results.extend(r for r in self.compute(history, day) if not r.target_date_missing)
        return results

    def compute_ad_set(self, records: Sequence[DailyMetric], target: date) -> Optional[RollingResult]:
        """Rolling result for a single ad set, or None when its window is empty."""
        days = collapse_days(records)
        if not days:
            return None

        current = days.get(target)
        target_missing = current is None
        if current is None:
            current = days[max(days)]
            logger.warning(
                f"No data for {target.isoformat()}, using most recent available "
                f"({current.date.isoformat()}) for ad set {current.ad_set_id}"
            )

        window_start = target - timedelta(days=self.policy.window_days - 1)
        window = [m for d, m in days.items() if window_start <= d <= target]
        if not window:
            logger.warning(f"No historical data in window for ad set {current.ad_set_id}")
            return None

        total_spend = sum(m.spend for m in window)
        total_conversions = sum(m.conversions for m in window)
        current_cpa = current.cost_per_conversion

        if total_conversions == 0:
            logger.warning(f"No conversions in rolling period for ad set {current.ad_set_id}")
            rolling_avg = 0.0
            change = current_cpa
            change_percent = self.policy.zero_baseline_change_percent
            trend = Trend.WORSENING
        else:
            rolling_avg = total_spend / total_conversions
            change = current_cpa - rolling_avg
            change_percent = (change / rolling_avg) * 100 if rolling_avg > 0 else 0.0
            trend = self.classify_trend(change_percent)

        return RollingResult(
            ad_set_id=current.ad_set_id,
            ad_set_name=current.ad_set_name,
            platform=current.platform,
            current_date=current.date,
            target_date_missing=target_missing,
            current_day_cpa=current_cpa,
            rolling_7day_avg_cpa=rolling_avg,
            change_from_rolling_avg=change,
            change_percent=change_percent,
            trend=trend,
            data_points=len(window),
        )


_default_engine = RollingCPAEngine()


def compute_rolling(
    history: Sequence[DailyMetric],
    target_date: Optional[DateLike] = None,
) -> list[RollingResult]:
    """Rolling CPA with the standard 7-day window and 5% stability band."""
    return _default_engine.compute(history, target_date)


def compute_rolling_each_day(
    history: Sequence[DailyMetric],
    dates: Iterable[DateLike],
) -> list[RollingResult]:
    return _default_engine.compute_each_day(history, dates)


# ===========================================
# DAILY SUMMARY
# ===========================================

def _platform_metrics(records: list[DailyMetric]) -> PlatformDayMetrics:
    spend = sum(r.spend for r in records)
    conversions = sum(r.conversions for r in records)
    return PlatformDayMetrics(
        spend=spend,
        conversions=conversions,
        cpa=spend / conversions if conversions > 0 else 0.0,
        ad_sets=len(records),
    )


def summarize_day(
    records: Sequence[DailyMetric],
    target_date: Optional[DateLike] = None,
) -> DailyConversionSummary:
    """Totals for one day across every ad set, split by platform."""
    target = as_date(target_date)
    day = [r for r in records if r.date == target]
    if not day:
        raise EmptyInputError(f"No data available for {target.isoformat()}")

    total = _platform_metrics(day)
    return DailyConversionSummary(
        date=target,
        total_spend=total.spend,
        total_conversions=total.conversions,
        average_cpa=total.cpa,
        ad_set_count=total.ad_sets,
        platform_breakdown={
            platform: _platform_metrics([r for r in day if r.platform == platform])
            for platform in Platform
        },
    )


# ===========================================
# DISPLAY
# ===========================================

def format_cpa_change(
    result: RollingResult,
    thresholds: AlertThresholds = DEFAULT_ALERT_THRESHOLDS,
) -> CPAChangeBadge:
    """Dashboard badge; worsening above the critical alert threshold is red."""
    abs_change = abs(result.change_percent)

    if result.trend == Trend.IMPROVING:
        return CPAChangeBadge(
            badge=f"↓ {abs_change:.1f}%",
            color="green",
            message=f"CPA improved by ${abs(result.change_from_rolling_avg):.2f}",
        )
    if result.trend == Trend.WORSENING:
        return CPAChangeBadge(
            badge=f"↑ {abs_change:.1f}%",
            color="red" if result.change_percent > thresholds.critical else "yellow",
            message=f"CPA increased by ${result.change_from_rolling_avg:.2f}",
        )
    return CPAChangeBadge(
        badge=f"~ {abs_change:.1f}%",
        color="gray",
        message="CPA relatively stable",
    )
