"""
CPA Monitor - Policy Models

Immutable configuration objects handed to the computation services.
Several policies can coexist (e.g. per-advertiser alert thresholds).
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


# ===========================================
# NORMALIZER
# ===========================================

class HeaderAliases(_FrozenModel):
    """
    Canonical CSV field -> ordered header aliases.

    The first alias with a non-empty value in a row wins.
    """
    ad_set_name: tuple[str, ...] = ("Ad set name", "Ad Set Name")
    amount_spent: tuple[str, ...] = (
        "Amount spent (AUD)",
        "Amount spent (USD)",
        "Amount Spent",
        "Amount spent",
        "Spend",
    )
    results: tuple[str, ...] = ("Results",)
    cost_per_result: tuple[str, ...] = ("Cost per results", "Cost per Result", "Cost per result")
    reporting_start: tuple[str, ...] = ("Reporting starts", "Reporting Starts")
    reporting_end: tuple[str, ...] = ("Reporting ends", "Reporting Ends")
    delivery: tuple[str, ...] = ("Ad set delivery", "Ad Set Delivery", "Delivery")
    campaign_name: tuple[str, ...] = ("Campaign name", "Campaign Name")
    impressions: tuple[str, ...] = ("Impressions",)
    link_clicks: tuple[str, ...] = ("Link clicks", "Link Clicks")

    def for_field(self, field: str) -> tuple[str, ...]:
        return getattr(self, field)


class NormalizerPolicy(_FrozenModel):
    """Row-level parsing rules for source normalization."""
    aliases: HeaderAliases = Field(default_factory=HeaderAliases)
    cpa_mismatch_tolerance: float = Field(0.01, ge=0)
    inactive_delivery_values: frozenset[str] = frozenset({"inactive", "not_delivering", "not delivering"})
    micros_per_unit: int = 1_000_000


# ===========================================
# INTEGRITY
# ===========================================

class IntegrityPolicy(_FrozenModel):
    """Thresholds for the synthetic-data heuristics."""
    round_spend_unit: float = Field(100.0, gt=0)
    round_spend_ratio: float = Field(0.5, ge=0, le=1)
    placeholder_prefixes: tuple[str, ...] = ("test_", "mock_", "fake_", "demo_")
    check_identical_cpa: bool = True
    max_conversions_per_dollar: float = Field(1.0, gt=0)
    high_cpa_warning: float = 1000.0


# ===========================================
# ROLLING ENGINE
# ===========================================

class RollingPolicy(_FrozenModel):
    """Window length and zero-baseline rule for the rolling engine."""
    window_days: int = Field(7, ge=1)
    zero_baseline_change_percent: float = 100.0


# ===========================================
# ALERTS
# ===========================================

class AlertThresholds(_FrozenModel):
    """Percent-change thresholds for alert buckets."""
    critical: float = 25.0
    warning: float = 15.0
    improvement: float = -10.0

    @model_validator(mode="after")
    def check_ordering(self) -> "AlertThresholds":
        if self.warning >= self.critical:
            raise ValueError("warning threshold must be below critical threshold")
        return self


DEFAULT_NORMALIZER_POLICY = NormalizerPolicy()
DEFAULT_INTEGRITY_POLICY = IntegrityPolicy()
DEFAULT_ROLLING_POLICY = RollingPolicy()
DEFAULT_ALERT_THRESHOLDS = AlertThresholds()


def resolve_thresholds(thresholds: Optional[AlertThresholds]) -> AlertThresholds:
    return thresholds or DEFAULT_ALERT_THRESHOLDS
