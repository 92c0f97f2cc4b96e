"""
CPA Monitor - Sync Tasks

Celery tasks for pulling ad platform performance into the warehouse.
"""

import asyncio
import logging
from datetime import date
from typing import Optional

from cpa_monitor.tasks import celery_app
from cpa_monitor.connectors.google_ads import GoogleAdsConnector
from cpa_monitor.core.config import settings
from cpa_monitor.core.exceptions import DataIntegrityError, MalformedRecordError
from cpa_monitor.core.supabase import get_supabase_service
from cpa_monitor.services.sync_service import sync_google_ads_performance

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    name="cpa_monitor.tasks.sync_tasks.sync_google_ads_daily",
)
def sync_google_ads_daily(
    self,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
):
    """
    Sync Google Ads ad-group performance.

    Args:
        date_from: Start date (YYYY-MM-DD), defaults to yesterday
        date_to: End date (YYYY-MM-DD), defaults to date_from

    Returns:
        SyncReport as a dict
    """
    return asyncio.run(_sync_google_ads_async(self, date_from, date_to))


async def _sync_google_ads_async(
    task,
    date_from: Optional[str],
    date_to: Optional[str],
) -> dict:
    """Async implementation of sync_google_ads_daily."""
    sync_from = date.fromisoformat(date_from) if date_from else None
    sync_to = date.fromisoformat(date_to) if date_to else None

    try:
        connector = GoogleAdsConnector.from_settings()
        report = await sync_google_ads_performance(
            connector,
            get_supabase_service(),
            date_from=sync_from,
            date_to=sync_to,
            normalizer_policy=settings.normalizer_policy(),
            integrity_policy=settings.integrity_policy(),
        )
    except (DataIntegrityError, MalformedRecordError) as e:
        # Retrying cannot fix the data; fail the run
        logger.error(f"Google Ads sync rejected ({e.code}): {e.message}")
        raise
    except Exception as e:
        logger.error(f"Google Ads sync failed: {e}", exc_info=True)
        raise task.retry(exc=e)

    logger.info(
        f"Google Ads sync {report.date_from} to {report.date_to}: "
        f"{report.records_upserted} rows upserted, {len(report.errors)} row issues"
    )
    return report.model_dump(mode="json")
