"""Appointment interval and scheduling result models.

An ``AppointmentInterval`` is an immutable value: every mutation (update,
reschedule, cancel, status change) produces a new version carrying the same
``id``, and the schedule store swaps versions in one step. Readers holding an
older reference therefore never observe a half-applied change.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
from enum import Enum
from uuid import UUID, uuid4

from clinic_scheduling.core.exceptions import (
    InvariantViolationError,
    SchedulingValidationError,
)
from clinic_scheduling.utils.time import clinic_now, format_datetime


class AppointmentStatus(str, Enum):
    """Appointment lifecycle status."""

    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"

    @property
    def is_terminal(self) -> bool:
        """Whether no further transitions are allowed."""
        return self != AppointmentStatus.SCHEDULED


# Duration thresholds (minutes) for the derived appointment type label
APPOINTMENT_TYPE_THRESHOLDS = (
    (15, "Quick Checkup"),
    (30, "Standard Visit"),
    (45, "Extended Consultation"),
    (60, "Comprehensive Exam"),
)


@dataclass(frozen=True)
class AppointmentInterval:
    """A booked time range for one patient with one physician.

    Attributes:
        start: Clinic-local start time
        end: Clinic-local end time (exclusive)
        patient_id: Opaque patient identifier
        physician_id: Opaque physician identifier
        reason_for_visit: Free-text visit reason
        notes: Optional notes
        status: Lifecycle status
        cancellation_reason: Set only when cancelled
        clinical_document_id: Optional back-reference to a clinical document
        room_number: Optional assigned room
        id: Immutable appointment identifier
        created_at: When the appointment was first created
        modified_at: Updated on every mutation
    """

    start: datetime
    end: datetime
    patient_id: UUID
    physician_id: UUID
    reason_for_visit: str = "Consultation"
    notes: str | None = None
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    cancellation_reason: str | None = None
    clinical_document_id: UUID | None = None
    room_number: int | None = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=clinic_now)
    modified_at: datetime = field(default_factory=clinic_now)

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise SchedulingValidationError(
                f"Start time ({format_datetime(self.start)}) must be before "
                f"end time ({format_datetime(self.end)})"
            )
        if self.start.tzinfo is not None or self.end.tzinfo is not None:
            raise SchedulingValidationError(
                "Appointment times must be naive clinic-local datetimes"
            )
        if (
            self.cancellation_reason is not None
            and self.status != AppointmentStatus.CANCELLED
        ):
            raise SchedulingValidationError(
                "Cancellation reason may only be set on cancelled appointments"
            )

    @classmethod
    def create(
        cls,
        start: datetime,
        duration_minutes: int,
        patient_id: UUID,
        physician_id: UUID,
        reason_for_visit: str = "Consultation",
        notes: str | None = None,
        room_number: int | None = None,
    ) -> "AppointmentInterval":
        """Build a new scheduled appointment from a start and a duration.

        Raises:
            SchedulingValidationError: If the duration is not positive
        """
        if duration_minutes <= 0:
            raise SchedulingValidationError(
                "Duration must be a positive number of minutes"
            )
        return cls(
            start=start,
            end=start + timedelta(minutes=duration_minutes),
            patient_id=patient_id,
            physician_id=physician_id,
            reason_for_visit=reason_for_visit,
            notes=notes,
            room_number=room_number,
        )

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def duration_minutes(self) -> int:
        return int(self.duration.total_seconds() // 60)

    @property
    def is_active(self) -> bool:
        """Active appointments take part in overlap checks."""
        return self.status != AppointmentStatus.CANCELLED

    @property
    def appointment_type(self) -> str:
        minutes = self.duration_minutes
        for threshold, label in APPOINTMENT_TYPE_THRESHOLDS:
            if minutes <= threshold:
                return label
        return "Extended Procedure"

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """Half-open interval overlap test."""
        return self.start < end and start < self.end

    def _require_scheduled(self, action: str) -> None:
        if self.status != AppointmentStatus.SCHEDULED:
            raise InvariantViolationError(
                f"Cannot {action} appointment {self.id}: "
                f"status is {self.status.value}"
            )

    def revised(self, now: datetime | None = None, **changes) -> "AppointmentInterval":
        """Return a new version with the given field changes applied.

        Raises:
            InvariantViolationError: If the appointment is no longer scheduled
        """
        self._require_scheduled("modify")
        return replace(self, modified_at=now or clinic_now(), **changes)

    def cancelled(self, reason: str = "", now: datetime | None = None) -> "AppointmentInterval":
        """Return the cancelled version of this appointment."""
        self._require_scheduled("cancel")
        return replace(
            self,
            status=AppointmentStatus.CANCELLED,
            cancellation_reason=reason,
            modified_at=now or clinic_now(),
        )

    def linked_to_document(
        self,
        document_id: UUID | None,
        now: datetime | None = None,
    ) -> "AppointmentInterval":
        """Return a version pointing at a clinical document (any status)."""
        return replace(
            self,
            clinical_document_id=document_id,
            modified_at=now or clinic_now(),
        )

    def with_status(
        self,
        status: AppointmentStatus,
        now: datetime | None = None,
    ) -> "AppointmentInterval":
        """Return a version moved to a terminal, non-cancelled status."""
        if status not in (AppointmentStatus.COMPLETED, AppointmentStatus.NO_SHOW):
            raise SchedulingValidationError(
                f"Status {status.value} cannot be set directly"
            )
        self._require_scheduled(f"mark as {status.value}")
        return replace(self, status=status, modified_at=now or clinic_now())

    def __str__(self) -> str:
        return (
            f"Appointment [{self.status.value}]: {format_datetime(self.start)} - "
            f"{self.end:%H:%M} (Patient: {self.patient_id.hex}, "
            f"Physician: {self.physician_id.hex})"
        )


# =============================================================================
# UNAVAILABLE TIME
# =============================================================================


class UnavailabilityReason(str, Enum):
    """Why a period is closed to bookings."""

    NON_BUSINESS_HOURS = "non_business_hours"
    LUNCH = "lunch"
    MEETING = "meeting"
    VACATION = "vacation"
    SICK_LEAVE = "sick_leave"
    HOLIDAY = "holiday"
    ADMINISTRATIVE = "administrative"
    EMERGENCY = "emergency"
    OTHER = "other"


MAX_UNAVAILABLE_PERIOD = timedelta(days=365)


@dataclass(frozen=True)
class UnavailableBlock:
    """A period in which no appointments can be booked.

    Blocks with a ``physician_id`` apply to that physician only; blocks
    without one close the whole facility. Unlike appointments, blocks may lie
    outside business hours.
    """

    start: datetime
    end: datetime
    reason: UnavailabilityReason = UnavailabilityReason.OTHER
    description: str = ""
    physician_id: UUID | None = None
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise SchedulingValidationError(
                f"Start time ({format_datetime(self.start)}) must be before "
                f"end time ({format_datetime(self.end)})"
            )
        if self.start.tzinfo is not None or self.end.tzinfo is not None:
            raise SchedulingValidationError(
                "Unavailable periods must use naive clinic-local datetimes"
            )
        if self.end - self.start > MAX_UNAVAILABLE_PERIOD:
            raise SchedulingValidationError("Unavailability period cannot exceed one year")
        if (
            self.is_facility_wide
            and self.reason == UnavailabilityReason.OTHER
            and not self.description.strip()
        ):
            raise SchedulingValidationError(
                "Facility-wide unavailability requires a description when reason is 'other'"
            )

    @classmethod
    def lunch_break(cls, day: date, physician_id: UUID | None = None) -> "UnavailableBlock":
        """Standard 12:00-13:00 lunch block for one day."""
        midday = datetime.combine(day, time(12, 0))
        return cls(
            start=midday,
            end=midday + timedelta(hours=1),
            reason=UnavailabilityReason.LUNCH,
            description="Lunch Break",
            physician_id=physician_id,
        )

    @property
    def is_facility_wide(self) -> bool:
        return self.physician_id is None

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start < end and start < self.end


# =============================================================================
# CONFLICTS AND RESULTS
# =============================================================================


class ConflictType(str, Enum):
    """Kinds of scheduling conflict."""

    DOUBLE_BOOKING = "double_booking"
    BUSINESS_HOURS_VIOLATION = "business_hours_violation"
    DURATION_VIOLATION = "duration_violation"
    PAST_TIME = "past_time"
    ROOM_CONFLICT = "room_conflict"
    UNAVAILABLE_TIME = "unavailable_time"


@dataclass(frozen=True)
class ScheduleConflict:
    """A single detected scheduling conflict."""

    type: ConflictType
    description: str
    conflicting_interval: AppointmentInterval | None = None
    unavailable_block: UnavailableBlock | None = None


@dataclass(frozen=True)
class AppointmentSlot:
    """A candidate free window (not a committed appointment)."""

    start: datetime
    end: datetime
    reason: str | None = None
    is_optimal: bool = False
    physician_id: UUID | None = None

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


@dataclass
class ConflictResult:
    """Outcome of checking a proposed interval for conflicts."""

    proposed: AppointmentInterval
    conflicts: list[ScheduleConflict] = field(default_factory=list)
    alternative_suggestions: list[AppointmentSlot] = field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    def of_type(self, conflict_type: ConflictType) -> list[ScheduleConflict]:
        return [c for c in self.conflicts if c.type == conflict_type]

    def summary(self) -> str:
        if not self.has_conflicts:
            return "No conflicts detected."

        lines = [f"Found {len(self.conflicts)} conflict(s):"]
        lines.extend(f"- {c.type.value}: {c.description}" for c in self.conflicts)
        return "\n".join(lines)

    def validation_errors(self) -> list[str]:
        """Human-readable error strings, plus the first suggestion if any."""
        errors = [c.description for c in self.conflicts]
        if self.alternative_suggestions:
            suggestion = self.alternative_suggestions[0]
            errors.append(
                f"Suggested alternative: {suggestion.start:%b %d, %Y} at "
                f"{suggestion.start:%H:%M} ({suggestion.reason})"
            )
        return errors


class ScheduleErrorCode(str, Enum):
    """Why a scheduling operation failed."""

    VALIDATION = "validation"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    INVARIANT_VIOLATION = "invariant_violation"
    INTERNAL = "internal"


@dataclass
class ScheduleOperationResult:
    """Outcome of a mutating scheduler operation."""

    success: bool
    message: str
    conflicts: list[ScheduleConflict] = field(default_factory=list)
    alternative_suggestions: list[AppointmentSlot] = field(default_factory=list)
    appointment: AppointmentInterval | None = None
    error_code: ScheduleErrorCode | None = None

    @classmethod
    def ok(cls, message: str, appointment: AppointmentInterval) -> "ScheduleOperationResult":
        return cls(success=True, message=message, appointment=appointment)

    @classmethod
    def fail(
        cls,
        message: str,
        error_code: ScheduleErrorCode,
        conflicts: list[ScheduleConflict] | None = None,
        alternative_suggestions: list[AppointmentSlot] | None = None,
    ) -> "ScheduleOperationResult":
        return cls(
            success=False,
            message=message,
            conflicts=conflicts or [],
            alternative_suggestions=alternative_suggestions or [],
            error_code=error_code,
        )


@dataclass(frozen=True)
class ScheduleStatistics:
    """Appointment statistics for one physician over a date range."""

    physician_id: UUID
    start: datetime
    end: datetime
    total_appointments: int
    completed_appointments: int
    cancelled_appointments: int
    no_show_appointments: int
    total_scheduled_hours: float
    average_duration: timedelta

    def _rate(self, count: int) -> float:
        if not self.total_appointments:
            return 0.0
        return count / self.total_appointments * 100

    @property
    def completion_rate(self) -> float:
        return self._rate(self.completed_appointments)

    @property
    def cancellation_rate(self) -> float:
        return self._rate(self.cancelled_appointments)

    @property
    def no_show_rate(self) -> float:
        return self._rate(self.no_show_appointments)
