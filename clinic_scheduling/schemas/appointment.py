"""Pydantic schemas for appointment scheduling endpoints."""

from datetime import date, datetime, timedelta
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from clinic_scheduling.models.appointment import (
    AppointmentStatus,
    ScheduleConflict,
    ScheduleOperationResult,
    ScheduleStatistics,
    UnavailabilityReason,
)


# =============================================================================
# Appointment Schemas
# =============================================================================


class AppointmentCreate(BaseModel):
    """Schema for booking an appointment."""

    patient_id: UUID
    physician_id: UUID
    start: datetime
    duration_minutes: int | None = Field(None, gt=0)
    end: datetime | None = None
    reason_for_visit: str = Field(default="Consultation", max_length=500)
    notes: str | None = Field(None, max_length=2000)
    room_number: int | None = None

    @model_validator(mode="after")
    def check_end_or_duration(self) -> "AppointmentCreate":
        if (self.end is None) == (self.duration_minutes is None):
            raise ValueError("Provide exactly one of end or duration_minutes")
        return self


class AppointmentUpdate(BaseModel):
    """Schema for updating an appointment. Only supplied fields change."""

    reason_for_visit: str | None = Field(None, max_length=500)
    notes: str | None = Field(None, max_length=2000)
    duration_minutes: int | None = None
    new_start: datetime | None = None
    room_number: int | None = None


class AppointmentReschedule(BaseModel):
    """Schema for moving an appointment's time window."""

    physician_id: UUID
    new_start: datetime
    new_end: datetime


class AppointmentCancel(BaseModel):
    """Schema for cancelling an appointment."""

    reason: str = Field(default="", max_length=1000)


class AppointmentStatusUpdate(BaseModel):
    """Schema for marking an appointment completed or no-show."""

    status: AppointmentStatus


class ClinicalDocumentLink(BaseModel):
    """Schema for linking a clinical document to an appointment."""

    clinical_document_id: UUID | None = None


class AppointmentRead(BaseModel):
    """Schema for reading an appointment."""

    id: UUID
    patient_id: UUID
    physician_id: UUID
    start: datetime
    end: datetime
    duration_minutes: int
    appointment_type: str
    status: AppointmentStatus
    reason_for_visit: str
    notes: str | None
    cancellation_reason: str | None
    clinical_document_id: UUID | None
    room_number: int | None
    created_at: datetime
    modified_at: datetime

    model_config = {"from_attributes": True}


# =============================================================================
# Slot and Conflict Schemas
# =============================================================================


class AppointmentSlotRead(BaseModel):
    """A candidate free window."""

    start: datetime
    end: datetime
    reason: str | None
    is_optimal: bool
    physician_id: UUID | None

    model_config = {"from_attributes": True}


class ScheduleConflictRead(BaseModel):
    """A detected scheduling conflict."""

    type: str
    description: str
    conflicting_appointment_id: UUID | None = None
    unavailable_block_id: UUID | None = None

    @classmethod
    def from_conflict(cls, conflict: ScheduleConflict) -> "ScheduleConflictRead":
        interval = conflict.conflicting_interval
        block = conflict.unavailable_block
        return cls(
            type=conflict.type.value,
            description=conflict.description,
            conflicting_appointment_id=interval.id if interval else None,
            unavailable_block_id=block.id if block else None,
        )


class ScheduleOperationRead(BaseModel):
    """Outcome of a booking/update/reschedule request."""

    success: bool
    message: str
    error_code: str | None = None
    appointment: AppointmentRead | None = None
    conflicts: list[ScheduleConflictRead] = Field(default_factory=list)
    alternative_suggestions: list[AppointmentSlotRead] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: ScheduleOperationResult) -> "ScheduleOperationRead":
        return cls(
            success=result.success,
            message=result.message,
            error_code=result.error_code.value if result.error_code else None,
            appointment=(
                AppointmentRead.model_validate(result.appointment)
                if result.appointment
                else None
            ),
            conflicts=[ScheduleConflictRead.from_conflict(c) for c in result.conflicts],
            alternative_suggestions=[
                AppointmentSlotRead.model_validate(s) for s in result.alternative_suggestions
            ],
        )


class ConflictCheckRequest(BaseModel):
    """Dry-run conflict check request."""

    patient_id: UUID
    physician_id: UUID
    start: datetime
    end: datetime
    room_number: int | None = None
    exclude_appointment_id: UUID | None = None
    include_suggestions: bool = True


class ConflictCheckRead(BaseModel):
    """Dry-run conflict check result."""

    has_conflicts: bool
    conflicts: list[ScheduleConflictRead]
    validation_errors: list[str]
    alternative_suggestions: list[AppointmentSlotRead]


# =============================================================================
# Availability Schemas
# =============================================================================


class PhysicianCandidate(BaseModel):
    """Physician record supplied by the caller's profile service."""

    id: UUID
    name: str = ""
    specializations: list[str] = Field(default_factory=list)


class AvailabilitySearchRequest(BaseModel):
    """Search for physicians free within a window."""

    physicians: list[PhysicianCandidate]
    start: datetime | None = None
    end: datetime | None = None
    on_date: date | None = None
    duration_minutes: int | None = None
    specialization: str | None = None


class PhysicianAvailabilityRead(BaseModel):
    """A physician and the earliest free slot in the requested window."""

    physician_id: UUID
    name: str
    specializations: list[str]
    slot: AppointmentSlotRead
    matches_time_slot: bool


class ScheduleStatisticsRead(BaseModel):
    """Physician appointment statistics."""

    physician_id: UUID
    start: datetime
    end: datetime
    total_appointments: int
    completed_appointments: int
    cancelled_appointments: int
    no_show_appointments: int
    total_scheduled_hours: float
    average_duration_minutes: float
    completion_rate: float
    cancellation_rate: float
    no_show_rate: float

    @classmethod
    def from_statistics(cls, stats: ScheduleStatistics) -> "ScheduleStatisticsRead":
        return cls(
            physician_id=stats.physician_id,
            start=stats.start,
            end=stats.end,
            total_appointments=stats.total_appointments,
            completed_appointments=stats.completed_appointments,
            cancelled_appointments=stats.cancelled_appointments,
            no_show_appointments=stats.no_show_appointments,
            total_scheduled_hours=stats.total_scheduled_hours,
            average_duration_minutes=stats.average_duration / timedelta(minutes=1),
            completion_rate=stats.completion_rate,
            cancellation_rate=stats.cancellation_rate,
            no_show_rate=stats.no_show_rate,
        )


# =============================================================================
# Unavailable Time Schemas
# =============================================================================


class UnavailableBlockCreate(BaseModel):
    """Schema for closing a period to bookings."""

    start: datetime
    end: datetime
    reason: UnavailabilityReason = UnavailabilityReason.OTHER
    description: str = Field(default="", max_length=500)


class UnavailableBlockRead(BaseModel):
    """Schema for reading an unavailable block."""

    id: UUID
    start: datetime
    end: datetime
    reason: UnavailabilityReason
    description: str
    physician_id: UUID | None
    is_facility_wide: bool

    model_config = {"from_attributes": True}
