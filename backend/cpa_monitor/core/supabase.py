"""
CPA Monitor - Supabase Client

Supabase client initialization for the ad performance warehouse.
Uses service_role key which bypasses RLS for backend writes.
"""

import logging
from datetime import date
from functools import lru_cache
from typing import Optional

from supabase import create_client, Client

from cpa_monitor.core.config import settings
from cpa_monitor.core.exceptions import WarehouseError
from cpa_monitor.models.metrics import DailyMetric, Platform

logger = logging.getLogger(__name__)

CONFLICT_KEY = "date,platform,ad_set_id"
UPSERT_BATCH_SIZE = 500


def metric_from_row(row: dict) -> DailyMetric:
    """Read a stored ad_performance row back as a DailyMetric."""
    return DailyMetric(
        date=row["date"],
        platform=row["platform"],
        ad_set_id=row["ad_set_id"],
        ad_set_name=row.get("ad_set_name") or "",
        spend=float(row.get("total_spend") or 0),
        conversions=float(row.get("conversions") or 0),
    )


@lru_cache
def get_supabase_client() -> Client:
    """
    Get cached Supabase client instance.

    Returns:
        Supabase client instance

    Raises:
        WarehouseError: Supabase URL or key is not configured
    """
    if not settings.supabase_url or not settings.supabase_service_role_key:
        raise WarehouseError("Supabase is not configured (SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY)")
    return create_client(
        supabase_url=settings.supabase_url,
        supabase_key=settings.supabase_service_role_key,
    )


class SupabaseService:
    """
    Service wrapper for warehouse operations.

    Rows follow the ad_performance layout built by
    cpa_monitor.services.warehouse.to_warehouse_rows.
    """

    def __init__(self, client: Optional[Client] = None, table: Optional[str] = None):
        self._client = client or get_supabase_client()
        self.table = table or settings.warehouse_table

    @property
    def client(self) -> Client:
        """Get the Supabase client."""
        return self._client

    # ===========================================
    # AD PERFORMANCE OPERATIONS
    # ===========================================

    async def upsert_ad_performance(self, rows: list[dict]) -> int:
        """Bulk upsert ad performance rows. Returns the number of rows written."""
        if not rows:
            return 0

        written = 0
        for start in range(0, len(rows), UPSERT_BATCH_SIZE):
            batch = rows[start:start + UPSERT_BATCH_SIZE]
            try:
                result = self._client.table(self.table) \
                    .upsert(batch, on_conflict=CONFLICT_KEY) \
                    .execute()
            except Exception as e:
                logger.error(f"Upsert into {self.table} failed: {e}")
                raise WarehouseError(f"Failed to upsert ad performance rows: {e}") from e
            written += len(result.data or batch)

        logger.info(f"Upserted {written} rows into {self.table}")
        return written

    async def get_ad_performance(
        self,
        date_from: date,
        date_to: date,
        platform: Optional[Platform] = None,
    ) -> list[DailyMetric]:
        """Read stored history back as daily records."""
        query = self._client.table(self.table) \
            .select("*") \
            .gte("date", date_from.isoformat()) \
            .lte("date", date_to.isoformat())

        if platform:
            query = query.eq("platform", platform.value)

        try:
            result = query.order("date").execute()
        except Exception as e:
            logger.error(f"Read from {self.table} failed: {e}")
            raise WarehouseError(f"Failed to read ad performance rows: {e}") from e

        return [metric_from_row(row) for row in result.data or []]


# Convenience function for dependency injection
def get_supabase_service() -> SupabaseService:
    """Get SupabaseService instance for dependency injection."""
    return SupabaseService()
