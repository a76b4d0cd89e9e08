"""API v1 router aggregating all endpoints."""

from fastapi import APIRouter

from clinic_scheduling.api.v1 import (
    appointments,
    availability,
    facility,
    health,
    patients,
    physicians,
)

api_router = APIRouter()

# Health check
api_router.include_router(
    health.router,
    prefix="/health",
    tags=["health"],
)

# Appointments
api_router.include_router(
    appointments.router,
    prefix="/appointments",
    tags=["appointments"],
)

# Physician schedules
api_router.include_router(
    physicians.router,
    prefix="/physicians",
    tags=["physicians"],
)

api_router.include_router(
    patients.router,
    prefix="/patients",
    tags=["patients"],
)

# Facility closures
api_router.include_router(
    facility.router,
    prefix="/facility",
    tags=["facility"],
)

# Availability search
api_router.include_router(
    availability.router,
    prefix="/availability",
    tags=["availability"],
)
