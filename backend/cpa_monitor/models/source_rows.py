"""
CPA Monitor - Source Row Models

Known shapes of raw rows before normalization. CSV rows are resolved from
arbitrary header dialects into one alias-free shape; API rows arrive in
micro-currency units.
"""

from enum import Enum
from typing import Annotated, Any, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from cpa_monitor.models.metrics import CsvDialect
from cpa_monitor.models.policy import HeaderAliases


class SourceKind(str, Enum):
    FACEBOOK_CSV = "facebook_csv"
    GOOGLE_ADS_API = "google_ads_api"


V1_MARKERS = ("Ad Set Name", "Amount Spent", "Reporting Starts", "Cost per Result")
V2_MARKERS = ("Ad set name", "Reporting starts", "Cost per results")


def detect_csv_dialect(headers) -> CsvDialect:
    """Guess the export version from its header spelling."""
    names = {str(h).strip() for h in headers}
    v1 = any(marker in names for marker in V1_MARKERS)
    v2 = any(marker in names for marker in V2_MARKERS) or any(
        name.startswith("Amount spent (") for name in names
    )
    if v1 and not v2:
        return CsvDialect.V1
    if v2 and not v1:
        return CsvDialect.V2
    return CsvDialect.UNKNOWN


def pick_alias(row: Mapping[str, Any], aliases: tuple[str, ...]) -> str:
    """Return the first non-empty value among the given header aliases."""
    for alias in aliases:
        value = row.get(alias)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return ""


class FacebookCsvRow(BaseModel):
    """A Facebook Ads Manager export row with aliases resolved."""
    kind: Literal["facebook_csv"] = "facebook_csv"
    dialect: CsvDialect = CsvDialect.UNKNOWN
    ad_set_name: str = ""
    amount_spent: str = ""
    results: str = ""
    cost_per_result: str = ""
    reporting_start: str = ""
    reporting_end: str = ""
    delivery: str = ""
    campaign_name: str = ""
    impressions: str = ""
    link_clicks: str = ""

    @classmethod
    def from_mapping(
        cls,
        row: Mapping[str, Any],
        aliases: HeaderAliases,
        dialect: CsvDialect = CsvDialect.UNKNOWN,
    ) -> "FacebookCsvRow":
        trimmed = {str(k).strip(): v for k, v in row.items() if k is not None}
        values = {
            field: pick_alias(trimmed, aliases.for_field(field))
            for field in HeaderAliases.model_fields
        }
        return cls(dialect=dialect, **values)


class GoogleAdsApiRow(BaseModel):
    """An ad-group/day row from the Google Ads reporting API."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    kind: Literal["google_ads_api"] = "google_ads_api"
    date: str
    ad_group_id: str
    ad_group_name: str = ""
    campaign_id: Optional[str] = None
    campaign_name: Optional[str] = None
    cost_micros: int = 0
    conversions: float = 0.0
    impressions: Optional[int] = None
    clicks: Optional[int] = None


SourceRow = Annotated[Union[FacebookCsvRow, GoogleAdsApiRow], Field(discriminator="kind")]
