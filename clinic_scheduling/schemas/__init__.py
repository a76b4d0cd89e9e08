"""Pydantic schemas for request/response validation."""

from clinic_scheduling.schemas.appointment import (
    AppointmentCancel,
    AppointmentCreate,
    AppointmentRead,
    AppointmentReschedule,
    AppointmentSlotRead,
    AppointmentStatusUpdate,
    AppointmentUpdate,
    AvailabilitySearchRequest,
    ClinicalDocumentLink,
    ConflictCheckRead,
    ConflictCheckRequest,
    PhysicianAvailabilityRead,
    PhysicianCandidate,
    ScheduleConflictRead,
    ScheduleOperationRead,
    ScheduleStatisticsRead,
    UnavailableBlockCreate,
    UnavailableBlockRead,
)

__all__ = [
    "AppointmentCreate",
    "AppointmentUpdate",
    "AppointmentReschedule",
    "AppointmentCancel",
    "AppointmentStatusUpdate",
    "AppointmentRead",
    "AppointmentSlotRead",
    "ClinicalDocumentLink",
    "ConflictCheckRequest",
    "ConflictCheckRead",
    "ScheduleConflictRead",
    "ScheduleOperationRead",
    "ScheduleStatisticsRead",
    "AvailabilitySearchRequest",
    "PhysicianCandidate",
    "PhysicianAvailabilityRead",
    "UnavailableBlockCreate",
    "UnavailableBlockRead",
]
