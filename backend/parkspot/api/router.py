"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from parkspot.api.routes import locations, bookings

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(locations.router)
api_router.include_router(bookings.router)
