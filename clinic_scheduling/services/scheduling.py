"""Scheduling service for physician appointments.

Orchestrates the conflict detector and booking strategy around the schedule
store. Every mutating operation runs its check-then-commit sequence under the
target physician's lock, so two requests for the same physician can never both
pass overlap validation against a stale view. Unrelated physicians are booked
in parallel.

Business conditions (conflicts, unknown ids, illegal transitions) never raise
out of this service: they are returned as failed ``ScheduleOperationResult``
objects (or ``False`` for cancel/delete). Malformed query arguments raise
``SchedulingValidationError``.
"""

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager, nullcontext
from datetime import date, datetime, timedelta
from uuid import UUID

from clinic_scheduling.booking.policy import SchedulingPolicy
from clinic_scheduling.booking.strategies import (
    BookingStrategy,
    FirstAvailableBookingStrategy,
)
from clinic_scheduling.core.exceptions import (
    AppointmentNotFoundError,
    InvariantViolationError,
    SchedulingValidationError,
)
from clinic_scheduling.core.logging import audit_logger
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
    UnavailableBlock,
)
from clinic_scheduling.models.schedule import (
    PhysicianSchedule,
    RoomBookings,
    ScheduleStore,
)
from clinic_scheduling.services.conflicts import ConflictDetector
from clinic_scheduling.utils.time import clinic_now, start_of_day, to_clinic_time

logger = logging.getLogger(__name__)


class SchedulerService:
    """Service for booking and managing physician appointments."""

    def __init__(
        self,
        store: ScheduleStore | None = None,
        policy: SchedulingPolicy | None = None,
        strategy: BookingStrategy | None = None,
        detector: ConflictDetector | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.policy = policy or SchedulingPolicy.from_settings()
        self.store = store or ScheduleStore()
        self.strategy = strategy or FirstAvailableBookingStrategy(self.policy)
        self.detector = detector or ConflictDetector(self.policy)
        self.rooms = RoomBookings()
        self._clock = clock or clinic_now

    def now(self) -> datetime:
        """Current clinic-local time."""
        return self._clock()

    # =========================================================================
    # BOOKING
    # =========================================================================

    def schedule_appointment(
        self,
        appointment: AppointmentInterval,
        *,
        allow_past: bool = False,
    ) -> ScheduleOperationResult:
        """Book a new appointment.

        Runs every conflict check against the physician's schedule. On any
        conflict nothing is stored, and up to ``max_alternative_suggestions``
        free slots at or after the requested start are returned.

        Args:
            appointment: The proposed appointment
            allow_past: Skip the past-time check (loading historical records)

        Returns:
            ScheduleOperationResult carrying the committed appointment on
            success, or conflicts and alternative slots on failure
        """
        return self._guarded(
            "schedule appointment",
            lambda: self._schedule(appointment, allow_past),
        )

    def _schedule(
        self,
        appointment: AppointmentInterval,
        allow_past: bool,
    ) -> ScheduleOperationResult:
        if appointment.status != AppointmentStatus.SCHEDULED:
            raise SchedulingValidationError(
                "Only appointments with status 'scheduled' can be booked"
            )
        self._validate_room(appointment.room_number)

        now = self.now()
        with self.store.locked(appointment.physician_id) as schedule:
            if self.store.physician_of(appointment.id) is not None:
                raise SchedulingValidationError(
                    f"Appointment {appointment.id} already exists"
                )

            result = self.detector.check(
                appointment,
                schedule,
                now=now,
                check_past=not allow_past,
                facility_blocks=self.store.facility_blocks(),
            )

            with self._room_guard(appointment):
                result.conflicts.extend(self._room_conflicts(appointment))

                if result.has_conflicts:
                    suggestions = self._suggest_alternatives(schedule, appointment, now)
                    logger.info(
                        f"Booking rejected for physician {appointment.physician_id}: "
                        f"{len(result.conflicts)} conflict(s)"
                    )
                    return ScheduleOperationResult.fail(
                        result.summary(),
                        ScheduleErrorCode.CONFLICT,
                        conflicts=result.conflicts,
                        alternative_suggestions=suggestions,
                    )

                self._commit(schedule, appointment)

        audit_logger.log(
            "appointment_scheduled",
            appointment.physician_id,
            appointment.id,
            {"start": appointment.start.isoformat(), "end": appointment.end.isoformat()},
        )
        return ScheduleOperationResult.ok("Appointment scheduled successfully.", appointment)

    # =========================================================================
    # UPDATE / RESCHEDULE
    # =========================================================================

    def update_appointment(
        self,
        appointment_id: UUID,
        reason: str | None = None,
        notes: str | None = None,
        duration_minutes: int | None = None,
        new_start: datetime | None = None,
        room_number: int | None = None,
    ) -> ScheduleOperationResult:
        """Update selected fields of an appointment, all-or-nothing.

        Only supplied fields change. When the time or duration changes the
        proposed version is re-validated, ignoring the appointment's own
        current version; if anything conflicts, no field is modified.
        """
        return self._guarded(
            "update appointment",
            lambda: self._update(
                appointment_id, reason, notes, duration_minutes, new_start, room_number
            ),
        )

    def _update(
        self,
        appointment_id: UUID,
        reason: str | None,
        notes: str | None,
        duration_minutes: int | None,
        new_start: datetime | None,
        room_number: int | None,
    ) -> ScheduleOperationResult:
        if duration_minutes is not None and duration_minutes <= 0:
            raise SchedulingValidationError("Duration must be a positive number of minutes")
        self._validate_room(room_number)

        physician_id = self._physician_of(appointment_id)
        now = self.now()
        with self.store.locked(physician_id) as schedule:
            current = self._get(schedule, appointment_id)

            start = to_clinic_time(new_start) if new_start is not None else current.start
            length = (
                timedelta(minutes=duration_minutes)
                if duration_minutes is not None
                else current.duration
            )
            time_changed = start != current.start
            duration_changed = length != current.duration

            changes: dict = {}
            if reason is not None:
                changes["reason_for_visit"] = reason
            if notes is not None:
                changes["notes"] = notes
            if room_number is not None:
                changes["room_number"] = room_number
            if time_changed or duration_changed:
                changes["start"] = start
                changes["end"] = start + length

            proposed = current.revised(now, **changes)

            if time_changed and duration_changed:
                change_type = "time and duration"
            elif time_changed:
                change_type = "time"
            elif duration_changed:
                change_type = "duration"
            else:
                change_type = "room"

            return self._commit_revision(
                schedule,
                current,
                proposed,
                now,
                revalidate=time_changed or duration_changed,
                check_past=time_changed,
                failure_prefix=f"Cannot update appointment {change_type}",
                action="appointment_updated",
                success_message="Appointment updated successfully.",
            )

    def reschedule_appointment(
        self,
        physician_id: UUID,
        appointment_id: UUID,
        new_start: datetime,
        new_end: datetime,
    ) -> ScheduleOperationResult:
        """Move an appointment to a new time window, keeping all other fields."""
        return self._guarded(
            "reschedule appointment",
            lambda: self._reschedule(physician_id, appointment_id, new_start, new_end),
        )

    def _reschedule(
        self,
        physician_id: UUID,
        appointment_id: UUID,
        new_start: datetime,
        new_end: datetime,
    ) -> ScheduleOperationResult:
        start = to_clinic_time(new_start)
        end = to_clinic_time(new_end)
        if start >= end:
            raise SchedulingValidationError("New start time must be before new end time")
        self._require_owner(physician_id, appointment_id)

        now = self.now()
        with self.store.locked(physician_id) as schedule:
            current = self._get(schedule, appointment_id)
            proposed = current.revised(now, start=start, end=end)
            return self._commit_revision(
                schedule,
                current,
                proposed,
                now,
                revalidate=True,
                check_past=True,
                failure_prefix="Cannot reschedule appointment",
                action="appointment_rescheduled",
                success_message="Appointment rescheduled successfully.",
            )

    def _commit_revision(
        self,
        schedule: PhysicianSchedule,
        current: AppointmentInterval,
        proposed: AppointmentInterval,
        now: datetime,
        *,
        revalidate: bool,
        check_past: bool,
        failure_prefix: str,
        action: str,
        success_message: str,
    ) -> ScheduleOperationResult:
        """Validate and swap in a new version (physician lock held)."""
        conflicts: list[ScheduleConflict] = []
        if revalidate:
            result = self.detector.check(
                proposed,
                schedule,
                exclude_id=current.id,
                now=now,
                check_past=check_past,
                facility_blocks=self.store.facility_blocks(),
            )
            conflicts.extend(result.conflicts)

        with self._room_guard(current, proposed):
            if revalidate or proposed.room_number != current.room_number:
                conflicts.extend(self._room_conflicts(proposed))

            if conflicts:
                result = ConflictResult(proposed=proposed, conflicts=conflicts)
                suggestions = (
                    self._suggest_alternatives(schedule, proposed, now, exclude_id=current.id)
                    if revalidate
                    else []
                )
                return ScheduleOperationResult.fail(
                    f"{failure_prefix}: {result.summary()}",
                    ScheduleErrorCode.CONFLICT,
                    conflicts=conflicts,
                    alternative_suggestions=suggestions,
                )

            self._commit(schedule, proposed, previous=current)

        audit_logger.log(
            action,
            proposed.physician_id,
            proposed.id,
            {"start": proposed.start.isoformat(), "end": proposed.end.isoformat()},
        )
        return ScheduleOperationResult.ok(success_message, proposed)

    # =========================================================================
    # STATUS CHANGES
    # =========================================================================

    def cancel_appointment(
        self,
        physician_id: UUID,
        appointment_id: UUID,
        reason: str = "",
    ) -> bool:
        """Cancel an appointment, keeping the record for audit.

        The cancelled window becomes bookable immediately.

        Returns:
            True if cancelled; False if unknown, owned by another physician,
            or no longer scheduled
        """
        def cancel() -> ScheduleOperationResult:
            self._require_owner(physician_id, appointment_id)
            now = self.now()
            with self.store.locked(physician_id) as schedule:
                current = self._get(schedule, appointment_id)
                cancelled = current.cancelled(reason, now)
                with self._room_guard(current):
                    self._commit(schedule, cancelled, previous=current)
            return ScheduleOperationResult.ok("Appointment cancelled.", cancelled)

        result = self._guarded("cancel appointment", cancel)
        if not result.success:
            logger.warning(f"Cancel failed for appointment {appointment_id}: {result.message}")
            return False

        audit_logger.log(
            "appointment_cancelled", physician_id, appointment_id, {"reason": reason}
        )
        return True

    def delete_appointment(self, physician_id: UUID, appointment_id: UUID) -> bool:
        """Permanently remove an appointment (administrative correction).

        Unlike cancellation this is irreversible and leaves no record.
        """
        def delete() -> ScheduleOperationResult:
            self._require_owner(physician_id, appointment_id)
            with self.store.locked(physician_id) as schedule:
                current = self._get(schedule, appointment_id)
                with self._room_guard(current):
                    self.store.discard(schedule, appointment_id)
                    self.rooms.forget(current)
            return ScheduleOperationResult.ok("Appointment deleted.", current)

        result = self._guarded("delete appointment", delete)
        if not result.success:
            logger.warning(f"Delete failed for appointment {appointment_id}: {result.message}")
            return False

        audit_logger.log("appointment_deleted", physician_id, appointment_id)
        return True

    def update_appointment_status(
        self,
        appointment_id: UUID,
        status: AppointmentStatus,
    ) -> ScheduleOperationResult:
        """Mark a scheduled appointment as completed or no-show."""

        def change_status() -> ScheduleOperationResult:
            physician_id = self._physician_of(appointment_id)
            now = self.now()
            with self.store.locked(physician_id) as schedule:
                current = self._get(schedule, appointment_id)
                updated = current.with_status(status, now)
                with self._room_guard(current):
                    self._commit(schedule, updated, previous=current)

            audit_logger.log(
                "appointment_status_changed",
                physician_id,
                appointment_id,
                {"status": status.value},
            )
            return ScheduleOperationResult.ok(
                f"Appointment marked as {status.value}.", updated
            )

        return self._guarded("update appointment status", change_status)

    def link_clinical_document(
        self,
        appointment_id: UUID,
        clinical_document_id: UUID | None,
    ) -> bool:
        """Attach (or detach, with None) a clinical document reference."""

        def link() -> ScheduleOperationResult:
            physician_id = self._physician_of(appointment_id)
            now = self.now()
            with self.store.locked(physician_id) as schedule:
                current = self._get(schedule, appointment_id)
                linked = current.linked_to_document(clinical_document_id, now)
                with self._room_guard(current):
                    self._commit(schedule, linked, previous=current)
            return ScheduleOperationResult.ok("Clinical document linked.", linked)

        return self._guarded("link clinical document", link).success

    # =========================================================================
    # UNAVAILABLE TIME
    # =========================================================================

    def add_unavailable_block(self, block: UnavailableBlock) -> UnavailableBlock:
        """Close a period to new bookings.

        A block with a ``physician_id`` applies to that physician only and is
        stored under the physician's lock; one without closes the facility.
        Existing appointments inside the period are left in place.

        Raises:
            SchedulingValidationError: If the block is malformed
        """
        if block.is_facility_wide:
            self.store.add_facility_block(block)
            stored = block
        else:
            with self.store.locked(block.physician_id) as schedule:
                stored = schedule.add_block(block)
                overlapping = [
                    a for a in schedule.active_appointments()
                    if stored.overlaps(a.start, a.end)
                ]
            if overlapping:
                logger.warning(
                    f"Unavailable block {stored.id} overlaps {len(overlapping)} "
                    f"existing appointment(s) for physician {stored.physician_id}"
                )

        audit_logger.log(
            "unavailable_block_added",
            stored.physician_id or "facility",
            None,
            {
                "block_id": str(stored.id),
                "reason": stored.reason.value,
                "start": stored.start.isoformat(),
                "end": stored.end.isoformat(),
            },
        )
        return stored

    def remove_unavailable_block(
        self,
        block_id: UUID,
        physician_id: UUID | None = None,
    ) -> bool:
        """Reopen a blocked period. Without ``physician_id`` a facility block is removed."""
        if physician_id is None:
            removed = self.store.remove_facility_block(block_id)
        else:
            schedule = self.store.get_schedule(physician_id)
            removed = schedule.remove_block(block_id) if schedule is not None else None

        if removed is None:
            logger.warning(f"Unavailable block {block_id} not found")
            return False

        audit_logger.log(
            "unavailable_block_removed",
            physician_id or "facility",
            None,
            {"block_id": str(block_id)},
        )
        return True

    def get_unavailable_blocks(
        self,
        physician_id: UUID | None = None,
    ) -> list[UnavailableBlock]:
        """Facility-wide blocks, plus the physician's own when one is given."""
        blocks = self.store.facility_blocks()
        if physician_id is not None:
            blocks.extend(self._read_schedule(physician_id).unavailable_blocks)
        return sorted(blocks, key=lambda b: b.start)

    # =========================================================================
    # QUERIES
    # =========================================================================

    def find_appointment_by_id(self, appointment_id: UUID) -> AppointmentInterval | None:
        return self.store.find(appointment_id)

    def get_daily_schedule(self, physician_id: UUID, day: date) -> list[AppointmentInterval]:
        """All appointments (any status) starting on the given date."""
        if isinstance(day, datetime):
            day = day.date()
        return self._read_schedule(physician_id).get_for_date(day)

    def get_schedule_in_range(
        self,
        physician_id: UUID,
        start: datetime,
        end: datetime,
    ) -> list[AppointmentInterval]:
        """All appointments lying entirely within [start, end]."""
        start, end = self._normalize_range(start, end)
        return self._read_schedule(physician_id).get_in_range(start, end)

    def get_patient_appointments(self, patient_id: UUID) -> list[AppointmentInterval]:
        return [a for a in self.store.all_appointments() if a.patient_id == patient_id]

    def get_all_appointments(self) -> list[AppointmentInterval]:
        return self.store.all_appointments()

    def find_next_available_slot(
        self,
        physician_id: UUID,
        duration: timedelta,
        search_start: datetime | None = None,
        search_end: datetime | None = None,
        strategy: BookingStrategy | None = None,
    ) -> AppointmentSlot | None:
        """Find the earliest free slot at or after ``search_start``.

        The search never starts before now. ``duration`` is validated against
        the availability-search bounds.

        Raises:
            SchedulingValidationError: If the duration is out of bounds
        """
        slots = self.find_available_slots(
            physician_id,
            duration,
            search_start,
            max_slots=1,
            search_end=search_end,
            strategy=strategy,
        )
        return slots[0] if slots else None

    def find_available_slots(
        self,
        physician_id: UUID,
        duration: timedelta,
        search_start: datetime | None = None,
        max_slots: int = 5,
        search_end: datetime | None = None,
        strategy: BookingStrategy | None = None,
    ) -> list[AppointmentSlot]:
        """Find up to ``max_slots`` non-overlapping free slots, earliest first."""
        errors = self.policy.search_duration.violations(duration)
        if errors:
            raise SchedulingValidationError("; ".join(errors))
        if max_slots <= 0:
            raise SchedulingValidationError("max_slots must be positive")

        start = self._search_start(search_start)
        end = to_clinic_time(search_end) if search_end is not None else None
        return (strategy or self.strategy).find_available_slots(
            self._read_schedule(physician_id),
            duration,
            start,
            max_slots=max_slots,
            search_end=end,
            facility_blocks=self.store.facility_blocks(),
        )

    def check_for_conflicts(
        self,
        proposed: AppointmentInterval,
        exclude_id: UUID | None = None,
        include_suggestions: bool = False,
    ) -> ConflictResult:
        """Dry-run conflict check; nothing is stored."""
        now = self.now()
        schedule = self._read_schedule(proposed.physician_id)
        result = self.detector.check(
            proposed,
            schedule,
            exclude_id=exclude_id,
            now=now,
            facility_blocks=self.store.facility_blocks(),
        )

        with self._room_guard(proposed):
            result.conflicts.extend(
                c for c in self._room_conflicts(proposed)
                if c.conflicting_interval is None or c.conflicting_interval.id != exclude_id
            )

        if include_suggestions and result.has_conflicts:
            result.alternative_suggestions = self._suggest_alternatives(
                schedule, proposed, now, exclude_id=exclude_id
            )
        return result

    def get_physician_statistics(
        self,
        physician_id: UUID,
        start: datetime,
        end: datetime,
    ) -> ScheduleStatistics:
        """Summarize a physician's appointments within [start, end]."""
        start, end = self._normalize_range(start, end)
        appointments = self._read_schedule(physician_id).get_in_range(start, end)

        def count(status: AppointmentStatus) -> int:
            return sum(1 for a in appointments if a.status == status)

        booked = [
            a for a in appointments
            if a.status in (AppointmentStatus.SCHEDULED, AppointmentStatus.COMPLETED)
        ]
        average = (
            sum((a.duration for a in appointments), timedelta()) / len(appointments)
            if appointments
            else timedelta()
        )
        return ScheduleStatistics(
            physician_id=physician_id,
            start=start,
            end=end,
            total_appointments=len(appointments),
            completed_appointments=count(AppointmentStatus.COMPLETED),
            cancelled_appointments=count(AppointmentStatus.CANCELLED),
            no_show_appointments=count(AppointmentStatus.NO_SHOW),
            total_scheduled_hours=sum(a.duration.total_seconds() for a in booked) / 3600,
            average_duration=average,
        )

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _guarded(
        self,
        operation: str,
        func: Callable[[], ScheduleOperationResult],
    ) -> ScheduleOperationResult:
        """Convert scheduling errors into failed results.

        Unexpected exceptions are logged and reported as INTERNAL failures.
        Nothing is committed before validation passes, so the schedule is left
        as it was.
        """
        try:
            return func()
        except SchedulingValidationError as e:
            return ScheduleOperationResult.fail(str(e), ScheduleErrorCode.VALIDATION)
        except AppointmentNotFoundError as e:
            return ScheduleOperationResult.fail(str(e), ScheduleErrorCode.NOT_FOUND)
        except InvariantViolationError as e:
            return ScheduleOperationResult.fail(str(e), ScheduleErrorCode.INVARIANT_VIOLATION)
        except Exception as e:
            logger.exception(f"Failed to {operation}: {e}")
            return ScheduleOperationResult.fail(
                f"Failed to {operation}: {e}", ScheduleErrorCode.INTERNAL
            )

    def _read_schedule(self, physician_id: UUID) -> PhysicianSchedule:
        """Registered schedule, or an unregistered empty one for an unknown physician."""
        schedule = self.store.get_schedule(physician_id)
        if schedule is None:
            return PhysicianSchedule(physician_id)
        return schedule

    def _physician_of(self, appointment_id: UUID) -> UUID:
        physician_id = self.store.physician_of(appointment_id)
        if physician_id is None:
            raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")
        return physician_id

    def _require_owner(self, physician_id: UUID, appointment_id: UUID) -> None:
        if self.store.physician_of(appointment_id) != physician_id:
            raise AppointmentNotFoundError(
                f"Appointment {appointment_id} not found for physician {physician_id}"
            )

    @staticmethod
    def _get(schedule: PhysicianSchedule, appointment_id: UUID) -> AppointmentInterval:
        appointment = schedule.get(appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError(
                f"Appointment {appointment_id} not found for physician {schedule.physician_id}"
            )
        return appointment

    def _commit(
        self,
        schedule: PhysicianSchedule,
        appointment: AppointmentInterval,
        previous: AppointmentInterval | None = None,
    ) -> None:
        """Swap in a new version (physician lock and, if needed, room lock held)."""
        self.store.commit(schedule, appointment)
        if appointment.room_number is not None or (
            previous is not None and previous.room_number is not None
        ):
            self.rooms.record(appointment, previous)

    @contextmanager
    def _room_guard(self, *appointments: AppointmentInterval) -> Iterator[None]:
        """Hold the room lock only when a room is involved."""
        needs_lock = any(a.room_number is not None for a in appointments)
        with self.rooms.lock if needs_lock else nullcontext():
            yield

    def _room_conflicts(self, proposed: AppointmentInterval) -> list[ScheduleConflict]:
        return [
            ScheduleConflict(
                type=ConflictType.ROOM_CONFLICT,
                description=(
                    f"Room {proposed.room_number} is already booked from "
                    f"{other.start:%H:%M} to {other.end:%H:%M} on {other.start:%Y-%m-%d}"
                ),
                conflicting_interval=other,
            )
            for other in self.rooms.overlapping(proposed)
        ]

    def _validate_room(self, room_number: int | None) -> None:
        if room_number is not None and not self.policy.is_valid_room(room_number):
            raise SchedulingValidationError(
                f"Room number must be between {self.policy.min_room_number} "
                f"and {self.policy.max_room_number}"
            )

    def _suggest_alternatives(
        self,
        schedule: PhysicianSchedule,
        proposed: AppointmentInterval,
        now: datetime,
        exclude_id: UUID | None = None,
    ) -> list[AppointmentSlot]:
        """Free slots of the proposed duration, starting no earlier than requested.

        ``exclude_id`` frees the window of the appointment being moved.
        """
        if not self.policy.booking_duration.contains(proposed.duration):
            return []
        return self.strategy.find_available_slots(
            schedule,
            proposed.duration,
            max(proposed.start, now),
            max_slots=self.policy.max_alternative_suggestions,
            exclude_id=exclude_id,
            facility_blocks=self.store.facility_blocks(),
        )

    def _search_start(self, search_start: datetime | None) -> datetime:
        now = self.now()
        if search_start is None:
            return now
        return max(to_clinic_time(search_start), now)

    @staticmethod
    def _normalize_range(start: datetime | date, end: datetime | date) -> tuple[datetime, datetime]:
        if not isinstance(start, datetime):
            start = start_of_day(start)
        if not isinstance(end, datetime):
            end = start_of_day(end) + timedelta(days=1)
        start, end = to_clinic_time(start), to_clinic_time(end)
        if start > end:
            raise SchedulingValidationError("Range start must not be after range end")
        return start, end
