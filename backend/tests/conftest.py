"""Shared fixtures for the CPA Monitor test suite."""

from datetime import date, timedelta

import pytest

from cpa_monitor.models.metrics import DailyMetric, Platform


def make_metric(
    day: date,
    spend: float,
    conversions: float,
    ad_set_id: str = "ga_1001",
    platform: Platform = Platform.GOOGLE,
    ad_set_name: str = "Brand - Exact",
) -> DailyMetric:
    return DailyMetric(
        date=day,
        platform=platform,
        ad_set_id=ad_set_id,
        ad_set_name=ad_set_name,
        spend=spend,
        conversions=conversions,
    )


@pytest.fixture
def metric():
    """Factory for DailyMetric records."""
    return make_metric


@pytest.fixture
def daily_run():
    """Consecutive daily records ending on `end`, oldest first."""

    def build(end: date, values: list[tuple[float, float]], **kwargs) -> list[DailyMetric]:
        start = end - timedelta(days=len(values) - 1)
        return [
            make_metric(start + timedelta(days=i), spend, conversions, **kwargs)
            for i, (spend, conversions) in enumerate(values)
        ]

    return build
