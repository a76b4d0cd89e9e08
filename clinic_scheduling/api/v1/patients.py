"""Patient appointment endpoints."""

from uuid import UUID

from fastapi import APIRouter

from clinic_scheduling.api.deps import Scheduler
from clinic_scheduling.schemas.appointment import AppointmentRead

router = APIRouter()


@router.get(
    "/{patient_id}/appointments",
    response_model=list[AppointmentRead],
    summary="List patient appointments",
)
def get_patient_appointments(patient_id: UUID, scheduler: Scheduler) -> list[AppointmentRead]:
    """All appointments for a patient across physicians, any status."""
    return [
        AppointmentRead.model_validate(a)
        for a in scheduler.get_patient_appointments(patient_id)
    ]
