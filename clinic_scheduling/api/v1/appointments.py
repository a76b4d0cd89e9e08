"""Appointment booking and lifecycle endpoints."""

import logging
from uuid import UUID

from fastapi import APIRouter, HTTPException, Response, status
from fastapi.responses import JSONResponse

from clinic_scheduling.api.deps import Scheduler, not_found, status_code_for
from clinic_scheduling.core.exceptions import SchedulingValidationError
from clinic_scheduling.models.appointment import (
    AppointmentInterval,
    AppointmentStatus,
    ScheduleOperationResult,
)
from clinic_scheduling.schemas.appointment import (
    AppointmentCancel,
    AppointmentCreate,
    AppointmentRead,
    AppointmentReschedule,
    AppointmentSlotRead,
    AppointmentStatusUpdate,
    AppointmentUpdate,
    ClinicalDocumentLink,
    ConflictCheckRead,
    ConflictCheckRequest,
    ScheduleConflictRead,
    ScheduleOperationRead,
)
from clinic_scheduling.utils.time import to_clinic_time

logger = logging.getLogger(__name__)

router = APIRouter()


def _operation_response(
    result: ScheduleOperationResult,
    success_status: int = status.HTTP_200_OK,
) -> JSONResponse:
    body = ScheduleOperationRead.from_result(result)
    return JSONResponse(
        status_code=success_status if result.success else status_code_for(result),
        content=body.model_dump(mode="json"),
    )


def _build_interval(data: AppointmentCreate | ConflictCheckRequest) -> AppointmentInterval:
    start = to_clinic_time(data.start)
    end = to_clinic_time(data.end) if data.end is not None else None
    if isinstance(data, AppointmentCreate) and data.duration_minutes is not None:
        return AppointmentInterval.create(
            start=start,
            duration_minutes=data.duration_minutes,
            patient_id=data.patient_id,
            physician_id=data.physician_id,
            reason_for_visit=data.reason_for_visit,
            notes=data.notes,
            room_number=data.room_number,
        )
    return AppointmentInterval(
        start=start,
        end=end,
        patient_id=data.patient_id,
        physician_id=data.physician_id,
        reason_for_visit=getattr(data, "reason_for_visit", "Consultation"),
        notes=getattr(data, "notes", None),
        room_number=data.room_number,
    )


# ============================================================================
# Booking
# ============================================================================


@router.post(
    "",
    response_model=ScheduleOperationRead,
    status_code=status.HTTP_201_CREATED,
    summary="Book appointment",
    responses={409: {"model": ScheduleOperationRead}, 422: {"model": ScheduleOperationRead}},
)
def create_appointment(data: AppointmentCreate, scheduler: Scheduler) -> JSONResponse:
    """Book an appointment.

    On conflict nothing is stored and the response carries the detected
    conflicts plus alternative free slots.
    """
    try:
        appointment = _build_interval(data)
    except SchedulingValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    result = scheduler.schedule_appointment(appointment)
    return _operation_response(result, status.HTTP_201_CREATED)


@router.post(
    "/check",
    response_model=ConflictCheckRead,
    summary="Check for conflicts",
)
def check_conflicts(data: ConflictCheckRequest, scheduler: Scheduler) -> ConflictCheckRead:
    """Dry-run conflict check. Nothing is stored."""
    try:
        proposed = _build_interval(data)
    except SchedulingValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    result = scheduler.check_for_conflicts(
        proposed,
        exclude_id=data.exclude_appointment_id,
        include_suggestions=data.include_suggestions,
    )
    return ConflictCheckRead(
        has_conflicts=result.has_conflicts,
        conflicts=[ScheduleConflictRead.from_conflict(c) for c in result.conflicts],
        validation_errors=result.validation_errors(),
        alternative_suggestions=[
            AppointmentSlotRead.model_validate(s) for s in result.alternative_suggestions
        ],
    )


# ============================================================================
# Queries
# ============================================================================


@router.get(
    "",
    response_model=list[AppointmentRead],
    summary="List appointments",
)
def list_appointments(scheduler: Scheduler) -> list[AppointmentRead]:
    return [AppointmentRead.model_validate(a) for a in scheduler.get_all_appointments()]


@router.get(
    "/statuses",
    response_model=list[str],
    summary="List appointment statuses",
)
def list_statuses() -> list[str]:
    return [s.value for s in AppointmentStatus]


@router.get(
    "/{appointment_id}",
    response_model=AppointmentRead,
    summary="Get appointment",
)
def get_appointment(appointment_id: UUID, scheduler: Scheduler) -> AppointmentRead:
    appointment = scheduler.find_appointment_by_id(appointment_id)
    if appointment is None:
        raise not_found(f"Appointment {appointment_id} not found")
    return AppointmentRead.model_validate(appointment)


# ============================================================================
# Changes
# ============================================================================


@router.put(
    "/{appointment_id}",
    response_model=ScheduleOperationRead,
    summary="Update appointment",
)
def update_appointment(
    appointment_id: UUID,
    data: AppointmentUpdate,
    scheduler: Scheduler,
) -> JSONResponse:
    """Update reason, notes, duration, start or room. All-or-nothing."""
    result = scheduler.update_appointment(
        appointment_id,
        reason=data.reason_for_visit,
        notes=data.notes,
        duration_minutes=data.duration_minutes,
        new_start=data.new_start,
        room_number=data.room_number,
    )
    return _operation_response(result)


@router.post(
    "/{appointment_id}/reschedule",
    response_model=ScheduleOperationRead,
    summary="Reschedule appointment",
)
def reschedule_appointment(
    appointment_id: UUID,
    data: AppointmentReschedule,
    scheduler: Scheduler,
) -> JSONResponse:
    result = scheduler.reschedule_appointment(
        data.physician_id, appointment_id, data.new_start, data.new_end
    )
    return _operation_response(result)


@router.post(
    "/{appointment_id}/cancel",
    response_model=AppointmentRead,
    summary="Cancel appointment",
)
def cancel_appointment(
    appointment_id: UUID,
    data: AppointmentCancel,
    scheduler: Scheduler,
) -> AppointmentRead:
    """Cancel an appointment. The record is kept and the window is freed."""
    appointment = scheduler.find_appointment_by_id(appointment_id)
    if appointment is None:
        raise not_found(f"Appointment {appointment_id} not found")

    if not scheduler.cancel_appointment(appointment.physician_id, appointment_id, data.reason):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Appointment {appointment_id} cannot be cancelled",
        )
    return AppointmentRead.model_validate(scheduler.find_appointment_by_id(appointment_id))


@router.post(
    "/{appointment_id}/status",
    response_model=ScheduleOperationRead,
    summary="Mark appointment completed or no-show",
)
def update_status(
    appointment_id: UUID,
    data: AppointmentStatusUpdate,
    scheduler: Scheduler,
) -> JSONResponse:
    result = scheduler.update_appointment_status(appointment_id, data.status)
    return _operation_response(result)


@router.put(
    "/{appointment_id}/clinical-document",
    response_model=AppointmentRead,
    summary="Link clinical document",
)
def link_clinical_document(
    appointment_id: UUID,
    data: ClinicalDocumentLink,
    scheduler: Scheduler,
) -> AppointmentRead:
    if not scheduler.link_clinical_document(appointment_id, data.clinical_document_id):
        raise not_found(f"Appointment {appointment_id} not found")
    return AppointmentRead.model_validate(scheduler.find_appointment_by_id(appointment_id))


@router.delete(
    "/{appointment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete appointment",
)
def delete_appointment(appointment_id: UUID, scheduler: Scheduler) -> Response:
    """Permanently remove an appointment (administrative correction)."""
    appointment = scheduler.find_appointment_by_id(appointment_id)
    if appointment is None or not scheduler.delete_appointment(
        appointment.physician_id, appointment_id
    ):
        raise not_found(f"Appointment {appointment_id} not found")

    logger.info(f"Appointment {appointment_id} deleted via API")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
