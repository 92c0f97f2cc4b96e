"""
CPA Monitor - Sync Service

Pulls ad-group rows from a platform connector, normalizes them, runs the
integrity guard and rolling CPA, and upserts the result to the warehouse.
"""

import logging
from datetime import date, timedelta
from typing import Optional, Sequence

from pydantic import BaseModel, Field

from cpa_monitor.connectors.base import BaseConnector
from cpa_monitor.core.supabase import SupabaseService
from cpa_monitor.models.metrics import DailyMetric, Platform
from cpa_monitor.models.policy import IntegrityPolicy, NormalizerPolicy, RollingPolicy
from cpa_monitor.services.integrity import check_integrity
from cpa_monitor.services.normalizer import MetricNormalizer
from cpa_monitor.services.rolling_cpa import RollingCPAEngine
from cpa_monitor.services.warehouse import to_warehouse_rows

logger = logging.getLogger(__name__)


class SyncReport(BaseModel):
    """Outcome of one sync run."""
    date_from: date
    date_to: date
    records_fetched: int = 0
    records_normalized: int = 0
    records_upserted: int = 0
    ad_sets: int = 0
    errors: list[str] = Field(default_factory=list)
    dry_run: bool = False


def default_sync_window(today: Optional[date] = None) -> tuple[date, date]:
    """Yesterday only; the daily job runs after the platform closes the day."""
    yesterday = (today or date.today()) - timedelta(days=1)
    return yesterday, yesterday


async def merge_stored_history(
    warehouse: SupabaseService,
    records: Sequence[DailyMetric],
    window_days: int,
    platform: Optional[Platform] = None,
) -> list[DailyMetric]:
    """
    Fresh records plus the stored days that precede them in the rolling window.

    Stored rows are read for the window_days - 1 days before the earliest
    fresh record, so the first fresh day still gets a full window. Fresh
    records win over stored rows with the same key.
    """
    history = list(records)
    if not records or window_days <= 1:
        return history

    first = min(r.date for r in records)
    fresh_keys = {r.key for r in records}
    stored = await warehouse.get_ad_performance(
        first - timedelta(days=window_days - 1), first - timedelta(days=1), platform
    )
    history.extend(r for r in stored if r.key not in fresh_keys)
    logger.info(f"Merged {len(history) - len(records)} stored rows before {first.isoformat()}")
    return history


async def sync_google_ads_performance(
    connector: BaseConnector,
    warehouse: Optional[SupabaseService],
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    dry_run: bool = False,
    normalizer_policy: Optional[NormalizerPolicy] = None,
    integrity_policy: Optional[IntegrityPolicy] = None,
    rolling_policy: Optional[RollingPolicy] = None,
) -> SyncReport:
    """
    Run one pull -> normalize -> guard -> rolling -> upsert pass.

    Args:
        connector: Platform reader
        warehouse: Warehouse service (may be None for dry runs)
        date_from: Start date, defaults to yesterday
        date_to: End date, defaults to date_from
        dry_run: Compute everything but skip the upsert

    Returns:
        SyncReport with counts and per-row diagnostics

    Raises:
        DataIntegrityError: the fetched rows look synthetic
        MalformedRecordError: a normalized record is structurally invalid
        PlatformError: the platform request failed
    """
    default_from, _ = default_sync_window()
    date_from = date_from or default_from
    date_to = date_to or date_from
    if date_to < date_from:
        raise ValueError(f"date_to ({date_to}) is before date_from ({date_from})")
    if not dry_run and warehouse is None:
        raise ValueError("A warehouse is required unless dry_run is set")

    report = SyncReport(date_from=date_from, date_to=date_to, dry_run=dry_run)
    logger.info(f"Syncing {connector.platform.value} from {date_from} to {date_to} (dry_run={dry_run})")

    raw_rows = await connector.get_ad_set_daily_rows(date_from, date_to)
    report.records_fetched = len(raw_rows)
    if not raw_rows:
        logger.warning(f"No {connector.platform.value} rows with spend between {date_from} and {date_to}")
        return report

    normalizer = MetricNormalizer(normalizer_policy) if normalizer_policy else MetricNormalizer()
    normalized = normalizer.normalize(raw_rows, connector.source_kind, processing_date=date_to + timedelta(days=1))
    report.errors = normalized.errors
    report.records_normalized = len(normalized.data)
    if not normalized.data:
        logger.warning(f"No usable records after normalization ({len(report.errors)} issues)")
        return report

    records = check_integrity(normalized.data, integrity_policy) if integrity_policy \
        else check_integrity(normalized.data)

    engine = RollingCPAEngine(rolling_policy) if rolling_policy else RollingCPAEngine()
    history = list(records)
    if warehouse is not None:
        history = await merge_stored_history(
            warehouse, records, engine.policy.window_days, connector.platform
        )
    results = engine.compute_each_day(history, {r.date for r in records})

    rows = to_warehouse_rows(records, results)
    report.ad_sets = len({(r.platform, r.ad_set_id) for r in records})

    if dry_run:
        logger.info(f"Dry run: would upsert {len(rows)} rows for {report.ad_sets} ad sets")
        return report

    report.records_upserted = await warehouse.upsert_ad_performance(rows)
    logger.info(
        f"Sync complete: fetched={report.records_fetched} normalized={report.records_normalized} "
        f"upserted={report.records_upserted} ad_sets={report.ad_sets}"
    )
    return report
