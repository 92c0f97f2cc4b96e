from datetime import date, timedelta

import pytest

from cpa_monitor.core.exceptions import EmptyInputError
from cpa_monitor.models.metrics import Platform, Trend
from cpa_monitor.models.policy import AlertThresholds, RollingPolicy
from cpa_monitor.services.rolling_cpa import (
    RollingCPAEngine,
    compute_rolling,
    compute_rolling_each_day,
    format_cpa_change,
    summarize_day,
)

END = date(2025, 2, 10)


def test_steady_ten_days(daily_run):
    history = daily_run(END, [(100.0, 10.0)] * 10)

    [result] = compute_rolling(history, END)

    assert result.rolling_7day_avg_cpa == 10
    assert result.data_points == 7
    assert result.change_percent == 0
    assert result.trend == Trend.STABLE
    assert result.current_date == END
    assert not result.target_date_missing


def test_window_is_spend_over_conversions_not_mean_of_ratios(daily_run):
    # daily CPAs 10 and 40; mean of ratios would be 25
    history = daily_run(END, [(100.0, 10.0), (200.0, 5.0)])

    [result] = compute_rolling(history, END)

    assert result.rolling_7day_avg_cpa == pytest.approx(300 / 15)
    assert result.current_day_cpa == 40
    assert result.change_from_rolling_avg == pytest.approx(20)
    assert result.change_percent == pytest.approx(100)
    assert result.trend == Trend.WORSENING


def test_zero_conversion_window(daily_run):
    history = daily_run(END, [(50.0, 0.0)] * 7)

    [result] = compute_rolling(history, END)

    assert result.rolling_7day_avg_cpa == 0
    assert result.change_percent == 100
    assert result.trend == Trend.WORSENING
    assert result.change_from_rolling_avg == result.current_day_cpa == 0


def test_calendar_window_ignores_older_days(daily_run, metric):
    # a record eight days back never enters the window
    history = daily_run(END, [(90.0, 3.0)]) + [metric(END - timedelta(days=8), 10.0, 10.0)]

    [result] = compute_rolling(history, END)

    assert result.data_points == 1
    assert result.rolling_7day_avg_cpa == 30


def test_gaps_count_against_the_window(metric):
    history = [metric(END, 60.0, 2.0), metric(END - timedelta(days=6), 40.0, 2.0)]

    [result] = compute_rolling(history, END)

    assert result.data_points == 2
    assert result.rolling_7day_avg_cpa == 25


def test_improving_below_band(daily_run):
    history = daily_run(END, [(100.0, 10.0)] * 6 + [(80.0, 10.0)])

    [result] = compute_rolling(history, END)

    assert result.change_percent < -5
    assert result.trend == Trend.IMPROVING


def test_small_change_is_stable(daily_run):
    history = daily_run(END, [(100.0, 10.0)] * 6 + [(103.0, 10.0)])

    [result] = compute_rolling(history, END)

    assert abs(result.change_percent) < 5
    assert result.trend == Trend.STABLE


def test_sorted_by_current_cpa_descending(daily_run):
    history = (
        daily_run(END, [(100.0, 10.0)] * 3, ad_set_id="ga_cheap")
        + daily_run(END, [(100.0, 2.0)] * 3, ad_set_id="ga_pricey")
        + daily_run(END, [(100.0, 5.0)] * 3, ad_set_id="fb_mid_000", platform=Platform.FACEBOOK)
    )

    results = compute_rolling(history, END)

    assert [r.ad_set_id for r in results] == ["ga_pricey", "fb_mid_000", "ga_cheap"]
    cpas = [r.current_day_cpa for r in results]
    assert cpas == sorted(cpas, reverse=True)


def test_input_order_does_not_change_results(daily_run):
    history = daily_run(END, [(120.0, 4.0), (90.0, 3.0), (75.0, 5.0)])

    assert compute_rolling(history, END) == compute_rolling(list(reversed(history)), END)


def test_missing_target_date_uses_most_recent(daily_run):
    history = daily_run(END - timedelta(days=2), [(100.0, 4.0), (60.0, 3.0)])

    [result] = compute_rolling(history, END)

    assert result.target_date_missing
    assert result.current_date == END - timedelta(days=2)
    assert result.current_day_cpa == 20
    assert result.data_points == 2


def test_ad_set_outside_window_is_dropped(metric):
    history = [
        metric(END, 50.0, 5.0, ad_set_id="ga_live"),
        metric(END - timedelta(days=30), 50.0, 5.0, ad_set_id="ga_stale"),
    ]

    results = compute_rolling(history, END)

    assert [r.ad_set_id for r in results] == ["ga_live"]


def test_same_day_rows_are_summed(metric):
    history = [metric(END, 30.0, 1.0), metric(END, 30.0, 2.0)]

    [result] = compute_rolling(history, END)

    assert result.current_day_cpa == 20
    assert result.data_points == 1


def test_empty_history_raises():
    with pytest.raises(EmptyInputError):
        compute_rolling([], END)


def test_target_date_accepts_iso_string(daily_run):
    history = daily_run(END, [(100.0, 10.0)] * 2)

    [result] = compute_rolling(history, END.isoformat())

    assert result.current_date == END


def test_custom_window(daily_run):
    engine = RollingCPAEngine(RollingPolicy(window_days=3))
    history = daily_run(END, [(100.0, 10.0)] * 10)

    [result] = engine.compute(history, END)

    assert result.data_points == 3


def test_stability_band_does_not_follow_the_policy():
    engine = RollingCPAEngine(RollingPolicy(window_days=3))

    assert engine.classify_trend(4.99) == Trend.STABLE
    assert engine.classify_trend(5.0) == Trend.WORSENING
    assert engine.classify_trend(-5.0) == Trend.IMPROVING
    assert "stability_band_percent" not in RollingPolicy.model_fields


class TestEachDay:
    def test_backfill_gets_a_result_per_day(self, daily_run):
        history = daily_run(END, [(100.0, 10.0), (120.0, 10.0), (90.0, 10.0)])
        days = [END - timedelta(days=2), END - timedelta(days=1), END]

        results = compute_rolling_each_day(history, days)

        assert [r.current_date for r in results] == days
        assert results[0].change_percent == 0
        assert results[1].change_percent == pytest.approx((12 - 11) / 11 * 100)
        assert results[2].rolling_7day_avg_cpa == pytest.approx(310 / 30)
        assert not any(r.target_date_missing for r in results)

    def test_ad_set_without_a_record_that_day_is_skipped(self, metric):
        yesterday = END - timedelta(days=1)
        history = [
            metric(yesterday, 50.0, 5.0, ad_set_id="ga_1"),
            metric(yesterday, 40.0, 4.0, ad_set_id="ga_2"),
            metric(END, 60.0, 5.0, ad_set_id="ga_2"),
        ]

        results = compute_rolling_each_day(history, [END, yesterday])

        assert [(r.ad_set_id, r.current_date) for r in results] == [
            ("ga_1", yesterday),
            ("ga_2", yesterday),
            ("ga_2", END),
        ]


class TestDailySummary:
    def test_totals_and_platform_split(self, metric):
        records = [
            metric(END, 100.0, 4.0, ad_set_id="ga_1"),
            metric(END, 50.0, 1.0, ad_set_id="fb_a_000", platform=Platform.FACEBOOK),
            metric(END - timedelta(days=1), 999.0, 1.0, ad_set_id="ga_1"),
        ]

        summary = summarize_day(records, END)

        assert summary.total_spend == 150
        assert summary.total_conversions == 5
        assert summary.average_cpa == 30
        assert summary.ad_set_count == 2
        assert summary.platform_breakdown[Platform.GOOGLE].cpa == 25
        assert summary.platform_breakdown[Platform.FACEBOOK].ad_sets == 1

    def test_no_records_for_day(self, metric):
        with pytest.raises(EmptyInputError, match="No data available for 2025-02-10"):
            summarize_day([metric(END - timedelta(days=1), 10.0, 1.0)], END)


class TestBadges:
    def result_with(self, daily_run, last_spend):
        history = daily_run(END, [(100.0, 10.0)] * 6 + [(last_spend, 10.0)])
        return compute_rolling(history, END)[0]

    def test_improving_is_green(self, daily_run):
        badge = format_cpa_change(self.result_with(daily_run, 50.0))
        assert badge.color == "green"
        assert badge.badge.startswith("↓ ")

    def test_large_increase_is_red(self, daily_run):
        badge = format_cpa_change(self.result_with(daily_run, 200.0))
        assert badge.color == "red"
        assert badge.badge.startswith("↑ ")

    def test_moderate_increase_is_yellow(self, daily_run):
        badge = format_cpa_change(self.result_with(daily_run, 115.0))
        assert badge.color == "yellow"

    def test_stable_is_gray(self, daily_run):
        badge = format_cpa_change(self.result_with(daily_run, 100.0))
        assert badge.badge == "~ 0.0%"
        assert badge.color == "gray"
        assert badge.message == "CPA relatively stable"

    def test_red_follows_the_critical_threshold(self, daily_run):
        thresholds = AlertThresholds(critical=100.0, warning=50.0)

        badge = format_cpa_change(self.result_with(daily_run, 200.0), thresholds)

        assert badge.color == "yellow"
