"""
CPA Monitor - API Dependencies
"""

from typing import Annotated

from fastapi import Depends

from cpa_monitor.core.config import Settings, get_settings
from cpa_monitor.core.supabase import SupabaseService, get_supabase_service


# --- 1. SETTINGS ---
async def get_app_settings() -> Settings:
    return get_settings()


# --- 2. SUPABASE SERVICE ---
async def get_supabase() -> SupabaseService:
    """Get Supabase service instance for warehouse writes."""
    return get_supabase_service()


# --- 3. EXPORTS ---
AppSettings = Annotated[Settings, Depends(get_app_settings)]
Supabase = Annotated[SupabaseService, Depends(get_supabase)]
