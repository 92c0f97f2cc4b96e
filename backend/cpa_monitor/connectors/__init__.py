"""
CPA Monitor - Connectors Module

Platform readers that produce raw source rows.
"""

from cpa_monitor.connectors.base import BaseConnector
from cpa_monitor.connectors.facebook_csv import read_csv_rows
from cpa_monitor.connectors.google_ads import GoogleAdsConnector

__all__ = ["BaseConnector", "GoogleAdsConnector", "read_csv_rows"]
