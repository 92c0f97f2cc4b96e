"""
CPA Monitor - Metrics Models

Pydantic models for per-ad-set daily metrics and the results derived from them.
"""

from datetime import date as Date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


class Platform(str, Enum):
    """Supported ad platforms."""
    GOOGLE = "google"
    FACEBOOK = "facebook"


class Trend(str, Enum):
    """Direction of current-day CPA against its rolling average."""
    IMPROVING = "improving"
    WORSENING = "worsening"
    STABLE = "stable"


class CsvDialect(str, Enum):
    """Known Facebook Ads Manager export header styles."""
    V1 = "v1"  # Title Case: "Ad Set Name", "Amount Spent"
    V2 = "v2"  # Sentence case: "Ad set name", "Amount spent (AUD)"
    UNKNOWN = "unknown"


class RowIssueKind(str, Enum):
    """Recoverable per-row problems found during normalization."""
    INVALID_SPEND = "invalid_spend"
    INVALID_CONVERSIONS = "invalid_conversions"
    CPA_MISMATCH = "cpa_mismatch"
    MISSING_DATE = "missing_date"
    UNPARSEABLE_DATE = "unparseable_date"
    DUPLICATE_MERGED = "duplicate_merged"
    PROCESSING_ERROR = "processing_error"


# ===========================================
# CANONICAL RECORD
# ===========================================

class DailyMetric(BaseModel):
    """One ad set, one platform, one day."""
    model_config = ConfigDict(frozen=True)

    date: Date
    platform: Platform
    ad_set_id: str = Field(..., min_length=1)
    ad_set_name: str = ""
    spend: float = Field(..., ge=0, allow_inf_nan=False)
    conversions: float = Field(..., ge=0, allow_inf_nan=False)
    campaign_name: Optional[str] = None
    impressions: Optional[int] = None
    clicks: Optional[int] = None

    @computed_field
    @property
    def cost_per_conversion(self) -> float:
        """Spend over conversions; 0 when nothing converted."""
        if self.conversions > 0:
            return self.spend / self.conversions
        return 0.0

    @property
    def key(self) -> tuple[str, str, Date]:
        return (self.platform.value, self.ad_set_id, self.date)


# ===========================================
# NORMALIZATION
# ===========================================

class RowParseWarning(BaseModel):
    """A recoverable issue with one source row."""
    row: int
    kind: RowIssueKind
    message: str

    def __str__(self) -> str:
        return f"Row {self.row}: {self.message}"


class DateSpan(BaseModel):
    start: Optional[Date] = None
    end: Optional[Date] = None


class NormalizationSummary(BaseModel):
    total_rows: int = 0
    valid_rows: int = 0
    invalid_rows: int = 0
    skipped_rows: int = 0
    total_spend: float = 0.0
    total_conversions: float = 0.0
    average_cpa: float = 0.0
    date_range: DateSpan = Field(default_factory=DateSpan)
    dialect: Optional[CsvDialect] = None


class NormalizationResult(BaseModel):
    """Outcome of one normalization pass."""
    success: bool
    data: list[DailyMetric] = Field(default_factory=list)
    warnings: list[RowParseWarning] = Field(default_factory=list)
    summary: NormalizationSummary = Field(default_factory=NormalizationSummary)

    @computed_field
    @property
    def errors(self) -> list[str]:
        """User-facing diagnostics, one line per issue."""
        return [str(w) for w in self.warnings]


class HeaderCheck(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)


class ValidationResult(BaseModel):
    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


# ===========================================
# ROLLING CPA
# ===========================================

class RollingResult(BaseModel):
    """Current-day CPA of one ad set against its trailing window."""
    ad_set_id: str
    ad_set_name: str
    platform: Platform
    current_date: Date
    target_date_missing: bool = False
    current_day_cpa: float
    rolling_7day_avg_cpa: float
    change_from_rolling_avg: float
    change_percent: float
    trend: Trend
    data_points: int


class CPAChangeBadge(BaseModel):
    badge: str
    color: str
    message: str


class PlatformDayMetrics(BaseModel):
    spend: float = 0.0
    conversions: float = 0.0
    cpa: float = 0.0
    ad_sets: int = 0


class DailyConversionSummary(BaseModel):
    """All ad sets on one day, with a per-platform split."""
    date: Date
    total_spend: float
    total_conversions: float
    average_cpa: float
    ad_set_count: int
    platform_breakdown: dict[Platform, PlatformDayMetrics]


# ===========================================
# ALERTS
# ===========================================

class AlertBuckets(BaseModel):
    critical: list[RollingResult] = Field(default_factory=list)
    warning: list[RollingResult] = Field(default_factory=list)
    improvements: list[RollingResult] = Field(default_factory=list)


class AlertType(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class Alert(BaseModel):
    id: str
    type: AlertType
    title: str
    message: str
    ad_set_id: str
    change_percent: float
    timestamp: datetime


# ===========================================
# CHART
# ===========================================

class ChartSeriesPoint(BaseModel):
    """Aggregate CPA across all ad sets for one day."""
    date: Date
    daily_cpa: float
    rolling_7day_avg: float
    spend: float
    conversions: float


class ChartHeadline(BaseModel):
    latest_daily_cpa: float = 0.0
    daily_change_percent: float = 0.0
    latest_rolling_avg: float = 0.0
    weekly_change_percent: float = 0.0
