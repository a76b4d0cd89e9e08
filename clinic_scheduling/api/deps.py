"""FastAPI dependency injection utilities."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from clinic_scheduling.models.appointment import ScheduleErrorCode, ScheduleOperationResult
from clinic_scheduling.services.availability import AvailabilityAggregator
from clinic_scheduling.services.scheduling import SchedulerService


def get_scheduler(request: Request) -> SchedulerService:
    """Get the scheduler service owned by the application.

    Args:
        request: FastAPI request

    Returns:
        The application's SchedulerService
    """
    return request.app.state.scheduler


def get_availability(
    scheduler: Annotated[SchedulerService, Depends(get_scheduler)],
) -> AvailabilityAggregator:
    return AvailabilityAggregator(scheduler)


ERROR_STATUS_CODES = {
    ScheduleErrorCode.VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ScheduleErrorCode.CONFLICT: status.HTTP_409_CONFLICT,
    ScheduleErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ScheduleErrorCode.INVARIANT_VIOLATION: status.HTTP_409_CONFLICT,
    ScheduleErrorCode.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_code_for(result: ScheduleOperationResult) -> int:
    """HTTP status code for a failed operation result."""
    if result.success:
        return status.HTTP_200_OK
    return ERROR_STATUS_CODES.get(result.error_code, status.HTTP_400_BAD_REQUEST)


def not_found(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


# Type aliases for cleaner dependency injection
Scheduler = Annotated[SchedulerService, Depends(get_scheduler)]
Availability = Annotated[AvailabilityAggregator, Depends(get_availability)]
