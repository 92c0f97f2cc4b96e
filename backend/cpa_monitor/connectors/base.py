"""
CPA Monitor - Base Connector

Abstract base class for platform connectors.
"""

from abc import ABC, abstractmethod
from datetime import date

from cpa_monitor.models.metrics import Platform
from cpa_monitor.models.source_rows import SourceKind


class BaseConnector(ABC):
    """
    Abstract base class for ad platform readers.

    Connectors only fetch raw rows; normalization into DailyMetric records
    happens in cpa_monitor.services.normalizer.
    """

    platform: Platform
    source_kind: SourceKind

    @abstractmethod
    async def validate_connection(self) -> bool:
        """
        Validate that the connection is working.

        Returns:
            True if connection is valid, False otherwise
        """
        pass

    @abstractmethod
    async def get_ad_set_daily_rows(self, date_from: date, date_to: date) -> list[dict]:
        """
        Get one raw row per ad set (ad group) per day with spend.

        Args:
            date_from: Start date
            date_to: End date

        Returns:
            List of raw row dicts in the platform's own units
        """
        pass
