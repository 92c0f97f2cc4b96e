"""
CPA Monitor - Warehouse Rows

Shapes daily records into the ad_performance table layout:
one row per (date, platform, ad_set_id).
"""

from datetime import date
from typing import Optional, Sequence

from cpa_monitor.models.metrics import DailyMetric, RollingResult
from cpa_monitor.services.rolling_cpa import collapse_days

WAREHOUSE_COLUMNS = (
    "date",
    "platform",
    "ad_set_id",
    "ad_set_name",
    "total_spend",
    "conversions",
    "cost_per_conversion",
    "cpa_change_percent",
)


def to_warehouse_rows(
    records: Sequence[DailyMetric],
    results: Optional[Sequence[RollingResult]] = None,
) -> list[dict]:
    """
    Build upsert payloads, summing any duplicate keys.

    cpa_change_percent is only set on the row whose date matches the
    day its rolling result was computed for.
    """
    change_by_key: dict[tuple[str, str, date], float] = {
        (r.platform.value, r.ad_set_id, r.current_date): r.change_percent
        for r in results or []
    }

    by_ad_set: dict[tuple[str, str], list[DailyMetric]] = {}
    for record in records:
        by_ad_set.setdefault((record.platform.value, record.ad_set_id), []).append(record)

    rows = []
    for group in by_ad_set.values():
        for record in collapse_days(group).values():
            rows.append({
                "date": record.date.isoformat(),
                "platform": record.platform.value,
                "ad_set_id": record.ad_set_id,
                "ad_set_name": record.ad_set_name,
                "total_spend": round(record.spend, 2),
                "conversions": record.conversions,
                "cost_per_conversion": round(record.cost_per_conversion, 2),
                "cpa_change_percent": change_by_key.get(record.key),
            })

    rows.sort(key=lambda row: (row["date"], row["platform"], row["ad_set_id"]))
    return rows

