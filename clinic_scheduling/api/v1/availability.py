"""Physician availability search endpoint."""

from fastapi import APIRouter, HTTPException, status

from clinic_scheduling.api.deps import Availability
from clinic_scheduling.core.exceptions import SchedulingValidationError
from clinic_scheduling.schemas.appointment import (
    AppointmentSlotRead,
    AvailabilitySearchRequest,
    PhysicianAvailabilityRead,
)
from clinic_scheduling.services.availability import PhysicianRef

router = APIRouter()


@router.post(
    "/search",
    response_model=list[PhysicianAvailabilityRead],
    summary="Find available physicians",
)
def search_availability(
    data: AvailabilitySearchRequest,
    availability: Availability,
) -> list[PhysicianAvailabilityRead]:
    """Rank the supplied physicians by availability in the requested window.

    Physicians with a slot inside the window come first, the rest follow by
    earliest slot start.
    """
    physicians = [
        PhysicianRef(id=p.id, name=p.name, specializations=frozenset(p.specializations))
        for p in data.physicians
    ]
    try:
        results = availability.find_available_physicians(
            physicians,
            start=data.start,
            end=data.end,
            on_date=data.on_date,
            duration_minutes=data.duration_minutes,
            specialization=data.specialization,
        )
    except SchedulingValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    return [
        PhysicianAvailabilityRead(
            physician_id=r.physician.id,
            name=r.physician.name,
            specializations=sorted(r.physician.specializations),
            slot=AppointmentSlotRead.model_validate(r.slot),
            matches_time_slot=r.matches_time_slot,
        )
        for r in results
    ]
