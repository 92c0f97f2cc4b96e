"""
CPA Monitor - API v1 Module

API version 1 routers.
"""

from fastapi import APIRouter

from cpa_monitor.api.v1 import cpa, uploads


# Create main v1 router
router = APIRouter(prefix="/v1")

# Include all sub-routers
router.include_router(uploads.router)
router.include_router(cpa.router)
