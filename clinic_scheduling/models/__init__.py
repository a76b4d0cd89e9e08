"""Scheduling domain models."""

from clinic_scheduling.models.appointment import (
    AppointmentInterval,
    AppointmentSlot,
    AppointmentStatus,
    ConflictResult,
    ConflictType,
    ScheduleConflict,
    ScheduleErrorCode,
    ScheduleOperationResult,
    ScheduleStatistics,
    UnavailabilityReason,
    UnavailableBlock,
)
from clinic_scheduling.models.schedule import (
    PhysicianSchedule,
    RoomBookings,
    ScheduleStore,
)

__all__ = [
    "AppointmentInterval",
    "AppointmentSlot",
    "AppointmentStatus",
    "ConflictResult",
    "ConflictType",
    "PhysicianSchedule",
    "RoomBookings",
    "ScheduleConflict",
    "ScheduleErrorCode",
    "ScheduleOperationResult",
    "ScheduleStatistics",
    "ScheduleStore",
    "UnavailabilityReason",
    "UnavailableBlock",
]
