#!/usr/bin/env python3
"""
Google Ads -> Warehouse Sync Script

Runs one sync pass outside Celery:
1. Fetches ad-group/day rows with spend from Google Ads
2. Normalizes them to daily ad set records
3. Rejects the batch if it fails the integrity guard
4. Computes rolling CPA and upserts into the ad_performance table

Usage:
    cd backend
    python scripts/sync_google_ads.py [--date-from YYYY-MM-DD] [--date-to YYYY-MM-DD] [--dry-run] [--verbose]

    --date-from: Start date (default: yesterday)
    --date-to: End date (default: --date-from)
    --dry-run: Fetch and compute, skip the upsert
    --verbose: Debug logging
"""

import argparse
import asyncio
import logging
import os
import sys
from datetime import date

# Make the backend package importable when run from a checkout
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from cpa_monitor.connectors.google_ads import GoogleAdsConnector
from cpa_monitor.core.config import settings
from cpa_monitor.core.exceptions import CPAMonitorError
from cpa_monitor.core.supabase import get_supabase_service
from cpa_monitor.services.sync_service import sync_google_ads_performance


# Logger setup
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def run_sync(date_from, date_to, dry_run: bool) -> int:
    """Run the sync and log a summary. Returns a process exit code."""
    try:
        connector = GoogleAdsConnector.from_settings()
        warehouse = None if dry_run else get_supabase_service()
        report = await sync_google_ads_performance(
            connector,
            warehouse,
            date_from=date_from,
            date_to=date_to,
            dry_run=dry_run,
            normalizer_policy=settings.normalizer_policy(),
            integrity_policy=settings.integrity_policy(),
        )
    except CPAMonitorError as e:
        logger.error(f"Sync failed ({e.code}): {e.message}")
        return 1

    logger.info("=" * 60)
    logger.info("SYNC COMPLETE" + (" (dry run)" if report.dry_run else ""))
    logger.info(f"  Date range: {report.date_from} to {report.date_to}")
    logger.info(f"  Rows fetched: {report.records_fetched}")
    logger.info(f"  Records normalized: {report.records_normalized}")
    logger.info(f"  Ad sets: {report.ad_sets}")
    logger.info(f"  Rows upserted: {report.records_upserted}")
    logger.info("=" * 60)

    for error in report.errors:
        logger.warning(f"  {error}")

    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Sync Google Ads ad group performance into the warehouse"
    )
    parser.add_argument(
        "--date-from",
        type=date.fromisoformat,
        help="Start date YYYY-MM-DD (default: yesterday)"
    )
    parser.add_argument(
        "--date-to",
        type=date.fromisoformat,
        help="End date YYYY-MM-DD (default: --date-from)"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Fetch and compute without writing to the warehouse"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Debug logging"
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    sys.exit(asyncio.run(run_sync(args.date_from, args.date_to, args.dry_run)))


if __name__ == "__main__":
    main()
