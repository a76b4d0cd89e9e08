"""Health check endpoints."""

from fastapi import APIRouter, status
from pydantic import BaseModel

from clinic_scheduling.api.deps import Scheduler

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str


class ReadinessResponse(HealthResponse):
    """Readiness response with schedule store size."""

    appointments: int


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check",
    description="Returns service health status",
)
async def health_check() -> HealthResponse:
    """Check if the service is healthy.

    Returns:
        Health status response
    """
    return HealthResponse(status="ok")


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Returns service readiness status for orchestrator readiness checks",
)
def readiness_check(scheduler: Scheduler) -> ReadinessResponse:
    """Check that the scheduler service is wired and answering queries."""
    return ReadinessResponse(
        status="ok",
        appointments=len(scheduler.get_all_appointments()),
    )
