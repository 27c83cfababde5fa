"""
Main API Router
Aggregates all API endpoints for v1
"""

from fastapi import APIRouter
from gymbook.api.v1.endpoints import (
    bookings,
    waiting_list,
    schedules,
    health
)

api_router = APIRouter()

api_router.include_router(bookings.router, prefix="/bookings", tags=["bookings"])
api_router.include_router(waiting_list.router, prefix="/waiting-list", tags=["waiting list"])
api_router.include_router(schedules.router, prefix="/schedules", tags=["schedules"])
api_router.include_router(health.router, prefix="/health", tags=["health"])
