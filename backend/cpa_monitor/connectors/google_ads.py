"""
CPA Monitor - Google Ads Connector

Read-only connector for ad-group daily performance.
Uses google-ads Python library.
"""

import logging
from datetime import date
from typing import Optional

from google.ads.googleads.client import GoogleAdsClient
from google.ads.googleads.errors import GoogleAdsException

from cpa_monitor.connectors.base import BaseConnector
from cpa_monitor.core.config import Settings, settings
from cpa_monitor.core.exceptions import PlatformError
from cpa_monitor.models.metrics import Platform
from cpa_monitor.models.source_rows import SourceKind

logger = logging.getLogger(__name__)


class GoogleAdsConnector(BaseConnector):
    """
    Read-only connector for Google Ads.

    Returns ad-group/day rows with cost still in micros; rows with no
    cost are filtered out by the query.
    """

    platform = Platform.GOOGLE
    source_kind = SourceKind.GOOGLE_ADS_API

    def __init__(
        self,
        developer_token: str,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        customer_id: str,
        login_customer_id: Optional[str] = None,
    ):
        """
        Initialize Google Ads connector.

        Args:
            developer_token: Google Ads API developer token
            client_id: OAuth client ID
            client_secret: OAuth client secret
            refresh_token: OAuth refresh token
            customer_id: Google Ads customer ID (dashes allowed)
            login_customer_id: MCC account ID if using manager account
        """
        self.developer_token = developer_token
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.customer_id = customer_id.replace("-", "")
        self.login_customer_id = login_customer_id.replace("-", "") if login_customer_id else None
        self._client = None

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "GoogleAdsConnector":
        """Build a connector from GOOGLE_ADS_* settings, failing fast when incomplete."""
        config = config or settings
        required = {
            "GOOGLE_ADS_DEVELOPER_TOKEN": config.google_ads_developer_token,
            "GOOGLE_ADS_CLIENT_ID": config.google_ads_client_id,
            "GOOGLE_ADS_CLIENT_SECRET": config.google_ads_client_secret,
            "GOOGLE_ADS_REFRESH_TOKEN": config.google_ads_refresh_token,
            "GOOGLE_ADS_CUSTOMER_ID": config.google_ads_customer_id,
        }
        missing = [name for name, value in required.items() if not value]
        if missing:
            raise PlatformError(
                f"Missing Google Ads configuration: {', '.join(missing)}",
                details={"missing": missing},
            )

        return cls(
            developer_token=config.google_ads_developer_token,
            client_id=config.google_ads_client_id,
            client_secret=config.google_ads_client_secret,
            refresh_token=config.google_ads_refresh_token,
            customer_id=config.google_ads_customer_id,
            login_customer_id=config.google_ads_login_customer_id,
        )

    def _get_client(self) -> GoogleAdsClient:
        """Get or create Google Ads API client."""
        if self._client is None:
            credentials = {
                "developer_token": self.developer_token,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "refresh_token": self.refresh_token,
                "use_proto_plus": True,
            }

            if self.login_customer_id:
                credentials["login_customer_id"] = self.login_customer_id

            self._client = GoogleAdsClient.load_from_dict(credentials)

        return self._client

    async def validate_connection(self) -> bool:
        """Validate that the connection is working."""
        try:
            client = self._get_client()
            ga_service = client.get_service("GoogleAdsService")

            query = """
                SELECT customer.id, customer.descriptive_name
                FROM customer
                LIMIT 1
            """

            response = ga_service.search(customer_id=self.customer_id, query=query)

            for row in response:
                logger.info(f"Connected to Google Ads: {row.customer.descriptive_name}")
                return True

            return True
        except GoogleAdsException as ex:
            logger.error(f"Google Ads validation failed: {ex.failure.errors}")
            return False
        except Exception as e:
            logger.error(f"Connection validation error: {e}")
            return False

    def _build_ad_group_query(self, date_from: date, date_to: date) -> str:
        """Build query for ad group daily spend and conversions."""
        return f"""
            SELECT
                segments.date,
                campaign.id,
                campaign.name,
                ad_group.id,
                ad_group.name,
                metrics.impressions,
                metrics.clicks,
                metrics.cost_micros,
                metrics.conversions
            FROM ad_group
            WHERE segments.date BETWEEN '{date_from.isoformat()}' AND '{date_to.isoformat()}'
                AND metrics.cost_micros > 0
            ORDER BY segments.date DESC, metrics.cost_micros DESC
        """

    @staticmethod
    def _parse_row(row) -> dict:
        """Flatten an API row into the shape GoogleAdsApiRow expects."""
        return {
            "kind": "google_ads_api",
            "date": str(row.segments.date),
            "ad_group_id": str(row.ad_group.id),
            "ad_group_name": row.ad_group.name,
            "campaign_id": str(row.campaign.id),
            "campaign_name": row.campaign.name,
            "cost_micros": int(row.metrics.cost_micros or 0),
            "conversions": float(row.metrics.conversions or 0),
            "impressions": int(row.metrics.impressions or 0),
            "clicks": int(row.metrics.clicks or 0),
        }

    async def get_ad_set_daily_rows(self, date_from: date, date_to: date) -> list[dict]:
        """
        Fetch ad-group/day rows for a date range.

        Raises:
            PlatformError: the API call failed
        """
        client = self._get_client()
        ga_service = client.get_service("GoogleAdsService")
        query = self._build_ad_group_query(date_from, date_to)

        logger.info(f"Fetching ad group rows for {self.customer_id} from {date_from} to {date_to}")

        try:
            response = ga_service.search(customer_id=self.customer_id, query=query)
            rows = [self._parse_row(row) for row in response]
        except GoogleAdsException as ex:
            messages = [error.message for error in ex.failure.errors]
            for message in messages:
                logger.error(f"Google Ads API error: {message}")
            raise PlatformError(
                "Google Ads API request failed",
                details={"request_id": ex.request_id, "errors": messages},
            ) from ex

        logger.info(f"Fetched {len(rows)} ad group rows")
        return rows
