"""
CPA Monitor - Core Module

Configuration, errors and the warehouse client.
"""

from cpa_monitor.core.config import settings, get_settings
from cpa_monitor.core.supabase import get_supabase_client, get_supabase_service, SupabaseService

__all__ = [
    # Config
    "settings",
    "get_settings",
    # Supabase
    "get_supabase_client",
    "get_supabase_service",
    "SupabaseService",
]
