"""Physician schedule, free-slot and statistics endpoints."""

from datetime import date, datetime, timedelta
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, Response, status

from clinic_scheduling.api.deps import Scheduler, not_found
from clinic_scheduling.core.exceptions import SchedulingValidationError
from clinic_scheduling.models.appointment import UnavailableBlock
from clinic_scheduling.schemas.appointment import (
    AppointmentRead,
    AppointmentSlotRead,
    ScheduleStatisticsRead,
    UnavailableBlockCreate,
    UnavailableBlockRead,
)
from clinic_scheduling.utils.time import to_clinic_time

router = APIRouter()


@router.get(
    "/{physician_id}/schedule",
    response_model=list[AppointmentRead],
    summary="Get physician schedule",
)
def get_schedule(
    physician_id: UUID,
    scheduler: Scheduler,
    on_date: date | None = Query(None, alias="date"),
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[AppointmentRead]:
    """Get a physician's appointments for one day, or within [start, end].

    Either ``date`` or both ``start`` and ``end`` must be given.
    """
    if on_date is not None:
        appointments = scheduler.get_daily_schedule(physician_id, on_date)
    elif start is not None and end is not None:
        try:
            appointments = scheduler.get_schedule_in_range(physician_id, start, end)
        except SchedulingValidationError as e:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    else:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Provide either date or both start and end",
        )
    return [AppointmentRead.model_validate(a) for a in appointments]


@router.get(
    "/{physician_id}/available-slots",
    response_model=list[AppointmentSlotRead],
    summary="Find free slots",
)
def get_available_slots(
    physician_id: UUID,
    scheduler: Scheduler,
    duration_minutes: int = Query(..., gt=0),
    after: datetime | None = None,
    before: datetime | None = None,
    max_slots: int = Query(5, ge=1, le=50),
) -> list[AppointmentSlotRead]:
    """Find non-overlapping free slots of the given length, earliest first."""
    try:
        slots = scheduler.find_available_slots(
            physician_id,
            timedelta(minutes=duration_minutes),
            search_start=after,
            max_slots=max_slots,
            search_end=before,
        )
    except SchedulingValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return [AppointmentSlotRead.model_validate(s) for s in slots]


@router.get(
    "/{physician_id}/statistics",
    response_model=ScheduleStatisticsRead,
    summary="Get physician statistics",
)
def get_statistics(
    physician_id: UUID,
    scheduler: Scheduler,
    start: date,
    end: date,
) -> ScheduleStatisticsRead:
    """Appointment counts, rates and booked hours for an inclusive date range."""
    try:
        stats = scheduler.get_physician_statistics(physician_id, start, end)
    except SchedulingValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return ScheduleStatisticsRead.from_statistics(stats)


# ============================================================================
# Unavailable Time
# ============================================================================


@router.post(
    "/{physician_id}/unavailable-blocks",
    response_model=UnavailableBlockRead,
    status_code=status.HTTP_201_CREATED,
    summary="Block physician time",
)
def add_unavailable_block(
    physician_id: UUID,
    data: UnavailableBlockCreate,
    scheduler: Scheduler,
) -> UnavailableBlockRead:
    """Close a period (lunch, meeting, leave) to new bookings for one physician."""
    try:
        block = scheduler.add_unavailable_block(
            UnavailableBlock(
                start=to_clinic_time(data.start),
                end=to_clinic_time(data.end),
                reason=data.reason,
                description=data.description,
                physician_id=physician_id,
            )
        )
    except SchedulingValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return UnavailableBlockRead.model_validate(block)


@router.get(
    "/{physician_id}/unavailable-blocks",
    response_model=list[UnavailableBlockRead],
    summary="List blocked time",
)
def list_unavailable_blocks(
    physician_id: UUID,
    scheduler: Scheduler,
) -> list[UnavailableBlockRead]:
    """Blocks affecting a physician, including facility-wide closures."""
    return [
        UnavailableBlockRead.model_validate(b)
        for b in scheduler.get_unavailable_blocks(physician_id)
    ]


@router.delete(
    "/{physician_id}/unavailable-blocks/{block_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove blocked time",
)
def remove_unavailable_block(
    physician_id: UUID,
    block_id: UUID,
    scheduler: Scheduler,
) -> Response:
    if not scheduler.remove_unavailable_block(block_id, physician_id):
        raise not_found(f"Unavailable block {block_id} not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
