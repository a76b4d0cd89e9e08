"""Scheduler service tests: booking, updates, cancellation and queries."""

from datetime import timedelta
from uuid import UUID, uuid4

import pytest

from clinic_scheduling.core.exceptions import SchedulingValidationError
from clinic_scheduling.models.appointment import (
    AppointmentStatus,
    ConflictType,
    ScheduleErrorCode,
    UnavailabilityReason,
    UnavailableBlock,
)
from clinic_scheduling.services.conflicts import DEFAULT_CHECKS, ConflictDetector
from clinic_scheduling.services.scheduling import SchedulerService
from factories import MONDAY, NOW, SATURDAY, TUESDAY, at, make_appointment

HALF_HOUR = timedelta(minutes=30)


def conflict_types(result) -> set[ConflictType]:
    return {c.type for c in result.conflicts}


class TestBooking:
    """Booking a new appointment."""

    def test_books_into_empty_schedule(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        appointment = make_appointment(physician_id, at(MONDAY, 8))

        result = scheduler.schedule_appointment(appointment)

        assert result.success
        assert result.error_code is None
        assert result.appointment == appointment
        assert scheduler.find_appointment_by_id(appointment.id) == appointment

    def test_double_booking_rejected(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        existing = make_appointment(physician_id, at(MONDAY, 9))
        scheduler.schedule_appointment(existing)

        result = scheduler.schedule_appointment(
            make_appointment(physician_id, at(MONDAY, 9, 15))
        )

        assert not result.success
        assert result.error_code == ScheduleErrorCode.CONFLICT
        assert conflict_types(result) == {ConflictType.DOUBLE_BOOKING}
        assert result.conflicts[0].conflicting_interval.id == existing.id
        assert result.message.startswith("Found 1 conflict(s):")

    def test_rejected_booking_leaves_schedule_unchanged(
        self, scheduler: SchedulerService, physician_id: UUID
    ) -> None:
        existing = make_appointment(physician_id, at(MONDAY, 9))
        scheduler.schedule_appointment(existing)

        scheduler.schedule_appointment(make_appointment(physician_id, at(MONDAY, 9, 15)))

        assert scheduler.get_daily_schedule(physician_id, MONDAY.date()) == [existing]

    def test_conflict_offers_alternatives(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        scheduler.schedule_appointment(make_appointment(physician_id, at(MONDAY, 9)))

        result = scheduler.schedule_appointment(
            make_appointment(physician_id, at(MONDAY, 9, 15))
        )

        assert [s.start for s in result.alternative_suggestions] == [
            at(MONDAY, 9, 30),
            at(MONDAY, 10),
            at(MONDAY, 10, 30),
        ]
        assert all(s.duration == HALF_HOUR for s in result.alternative_suggestions)

    def test_weekend_rejected(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        result = scheduler.schedule_appointment(make_appointment(physician_id, at(SATURDAY, 10)))

        assert not result.success
        assert conflict_types(result) == {ConflictType.BUSINESS_HOURS_VIOLATION}

    def test_business_hour_boundaries(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        assert scheduler.schedule_appointment(
            make_appointment(physician_id, at(MONDAY, 8))
        ).success
        assert scheduler.schedule_appointment(
            make_appointment(physician_id, at(MONDAY, 16, 30))
        ).success
        assert not scheduler.schedule_appointment(
            make_appointment(physician_id, at(TUESDAY, 7, 59))
        ).success
        assert not scheduler.schedule_appointment(
            make_appointment(physician_id, at(TUESDAY, 16, 31))
        ).success

    def test_too_short_rejected_without_suggestions(
        self, scheduler: SchedulerService, physician_id: UUID
    ) -> None:
        result = scheduler.schedule_appointment(
            make_appointment(physician_id, at(MONDAY, 9), minutes=10)
        )

        assert not result.success
        assert [c.description for c in result.conflicts] == [
            "Appointment must be at least 15 minutes"
        ]
        assert result.alternative_suggestions == []

    def test_too_long_rejected(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        result = scheduler.schedule_appointment(
            make_appointment(physician_id, at(MONDAY, 8), minutes=181)
        )

        assert conflict_types(result) == {ConflictType.DURATION_VIOLATION}

    def test_past_rejected(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        result = scheduler.schedule_appointment(
            make_appointment(physician_id, NOW - timedelta(hours=3))
        )

        assert conflict_types(result) == {ConflictType.PAST_TIME}

    def test_past_allowed_for_historical_records(
        self, scheduler: SchedulerService, physician_id: UUID
    ) -> None:
        result = scheduler.schedule_appointment(
            make_appointment(physician_id, NOW - timedelta(hours=3)), allow_past=True
        )

        assert result.success

    def test_duplicate_id_rejected(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        appointment = make_appointment(physician_id, at(MONDAY, 9))
        scheduler.schedule_appointment(appointment)

        result = scheduler.schedule_appointment(appointment)

        assert result.error_code == ScheduleErrorCode.VALIDATION

    def test_non_scheduled_status_rejected(
        self, scheduler: SchedulerService, physician_id: UUID
    ) -> None:
        appointment = make_appointment(
            physician_id, at(MONDAY, 9), status=AppointmentStatus.COMPLETED
        )

        result = scheduler.schedule_appointment(appointment)

        assert result.error_code == ScheduleErrorCode.VALIDATION

    def test_physicians_are_independent(self, scheduler: SchedulerService) -> None:
        first, second = uuid4(), uuid4()

        assert scheduler.schedule_appointment(make_appointment(first, at(MONDAY, 9))).success
        assert scheduler.schedule_appointment(make_appointment(second, at(MONDAY, 9))).success

    def test_unexpected_error_reported_as_internal(self, policy, clock, physician_id: UUID) -> None:
        def broken(ctx):
            raise RuntimeError("boom")

        scheduler = SchedulerService(
            policy=policy,
            detector=ConflictDetector(policy, (*DEFAULT_CHECKS, broken)),
            clock=lambda: clock[0],
        )
        appointment = make_appointment(physician_id, at(MONDAY, 9))

        result = scheduler.schedule_appointment(appointment)

        assert result.error_code == ScheduleErrorCode.INTERNAL
        assert "boom" in result.message
        assert scheduler.find_appointment_by_id(appointment.id) is None


class TestRooms:
    """Room assignment is checked across physicians."""

    def test_same_room_overlap_rejected(self, scheduler: SchedulerService) -> None:
        scheduler.schedule_appointment(make_appointment(uuid4(), at(MONDAY, 9), room_number=12))

        result = scheduler.schedule_appointment(
            make_appointment(uuid4(), at(MONDAY, 9, 15), room_number=12)
        )

        assert conflict_types(result) == {ConflictType.ROOM_CONFLICT}
        assert result.conflicts[0].description == (
            "Room 12 is already booked from 09:00 to 09:30 on 2030-01-07"
        )

    def test_different_rooms_allowed(self, scheduler: SchedulerService) -> None:
        scheduler.schedule_appointment(make_appointment(uuid4(), at(MONDAY, 9), room_number=12))

        result = scheduler.schedule_appointment(
            make_appointment(uuid4(), at(MONDAY, 9), room_number=13)
        )

        assert result.success

    def test_cancelled_room_booking_frees_room(self, scheduler: SchedulerService) -> None:
        doctor = uuid4()
        first = make_appointment(doctor, at(MONDAY, 9), room_number=12)
        scheduler.schedule_appointment(first)
        scheduler.cancel_appointment(doctor, first.id)

        result = scheduler.schedule_appointment(
            make_appointment(uuid4(), at(MONDAY, 9), room_number=12)
        )

        assert result.success

    def test_room_change_checked_on_update(self, scheduler: SchedulerService) -> None:
        scheduler.schedule_appointment(make_appointment(uuid4(), at(MONDAY, 9), room_number=12))
        other = make_appointment(uuid4(), at(MONDAY, 9), room_number=13)
        scheduler.schedule_appointment(other)

        result = scheduler.update_appointment(other.id, room_number=12)

        assert conflict_types(result) == {ConflictType.ROOM_CONFLICT}
        assert result.message.startswith("Cannot update appointment room:")
        assert scheduler.find_appointment_by_id(other.id).room_number == 13

    def test_invalid_room_rejected(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        result = scheduler.schedule_appointment(
            make_appointment(physician_id, at(MONDAY, 9), room_number=1000)
        )

        assert result.error_code == ScheduleErrorCode.VALIDATION
        assert result.message == "Room number must be between 1 and 999"


class TestUpdate:
    """Updates are validated and applied all-or-nothing."""

    @pytest.fixture
    def booked(self, scheduler: SchedulerService, physician_id: UUID):
        appointment = make_appointment(physician_id, at(MONDAY, 9), reason_for_visit="Checkup")
        assert scheduler.schedule_appointment(appointment).success
        return appointment

    def test_reason_and_notes(self, scheduler: SchedulerService, booked) -> None:
        result = scheduler.update_appointment(booked.id, reason="Follow-up", notes="Bring results")

        assert result.success
        stored = scheduler.find_appointment_by_id(booked.id)
        assert stored.reason_for_visit == "Follow-up"
        assert stored.notes == "Bring results"
        assert (stored.start, stored.end) == (booked.start, booked.end)
        assert stored.modified_at == NOW

    def test_move_and_resize(self, scheduler: SchedulerService, booked) -> None:
        result = scheduler.update_appointment(
            booked.id, new_start=at(MONDAY, 11), duration_minutes=45
        )

        assert result.success
        stored = scheduler.find_appointment_by_id(booked.id)
        assert (stored.start, stored.end) == (at(MONDAY, 11), at(MONDAY, 11, 45))
        assert stored.id == booked.id
        assert stored.created_at == booked.created_at

    def test_extend_into_own_window(self, scheduler: SchedulerService, booked) -> None:
        result = scheduler.update_appointment(booked.id, duration_minutes=60)

        assert result.success

    def test_conflicting_update_changes_nothing(
        self, scheduler: SchedulerService, physician_id: UUID, booked
    ) -> None:
        scheduler.schedule_appointment(make_appointment(physician_id, at(MONDAY, 10)))

        result = scheduler.update_appointment(
            booked.id, reason="Changed", new_start=at(MONDAY, 10, 15)
        )

        assert not result.success
        assert result.error_code == ScheduleErrorCode.CONFLICT
        assert result.message.startswith("Cannot update appointment time:")
        assert scheduler.find_appointment_by_id(booked.id) == booked

    def test_duration_conflict_message(
        self, scheduler: SchedulerService, physician_id: UUID, booked
    ) -> None:
        scheduler.schedule_appointment(make_appointment(physician_id, at(MONDAY, 9, 30)))

        result = scheduler.update_appointment(booked.id, duration_minutes=60)

        assert result.message.startswith("Cannot update appointment duration:")

    def test_duration_over_limit(self, scheduler: SchedulerService, booked) -> None:
        result = scheduler.update_appointment(booked.id, duration_minutes=200)

        assert conflict_types(result) == {ConflictType.DURATION_VIOLATION}

    def test_non_positive_duration(self, scheduler: SchedulerService, booked) -> None:
        result = scheduler.update_appointment(booked.id, duration_minutes=0)

        assert result.error_code == ScheduleErrorCode.VALIDATION

    def test_unknown_appointment(self, scheduler: SchedulerService) -> None:
        result = scheduler.update_appointment(uuid4(), reason="x")

        assert result.error_code == ScheduleErrorCode.NOT_FOUND

    def test_cancelled_appointment_cannot_be_updated(
        self, scheduler: SchedulerService, physician_id: UUID, booked
    ) -> None:
        scheduler.cancel_appointment(physician_id, booked.id)

        result = scheduler.update_appointment(booked.id, reason="x")

        assert result.error_code == ScheduleErrorCode.INVARIANT_VIOLATION

    def test_unchanged_start_skips_past_check(
        self, scheduler: SchedulerService, clock, booked
    ) -> None:
        clock[0] = at(MONDAY, 9, 10)

        result = scheduler.update_appointment(booked.id, notes="Running late")

        assert result.success


class TestReschedule:
    """Moving an appointment to a new window."""

    def test_reschedule(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        appointment = make_appointment(physician_id, at(MONDAY, 9), notes="keep me")
        scheduler.schedule_appointment(appointment)

        result = scheduler.reschedule_appointment(
            physician_id, appointment.id, at(TUESDAY, 14), at(TUESDAY, 14, 30)
        )

        assert result.success
        stored = scheduler.find_appointment_by_id(appointment.id)
        assert (stored.start, stored.end) == (at(TUESDAY, 14), at(TUESDAY, 14, 30))
        assert stored.notes == "keep me"
        assert scheduler.get_daily_schedule(physician_id, MONDAY.date()) == []

    def test_conflict_keeps_original(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        appointment = make_appointment(physician_id, at(MONDAY, 9))
        scheduler.schedule_appointment(appointment)
        scheduler.schedule_appointment(make_appointment(physician_id, at(MONDAY, 11)))

        result = scheduler.reschedule_appointment(
            physician_id, appointment.id, at(MONDAY, 11), at(MONDAY, 11, 30)
        )

        assert result.error_code == ScheduleErrorCode.CONFLICT
        assert result.message.startswith("Cannot reschedule appointment:")
        assert result.alternative_suggestions
        assert scheduler.find_appointment_by_id(appointment.id) == appointment

    def test_alternatives_include_own_window(
        self, scheduler: SchedulerService, physician_id: UUID
    ) -> None:
        appointment = make_appointment(physician_id, at(MONDAY, 9))
        scheduler.schedule_appointment(appointment)
        scheduler.schedule_appointment(make_appointment(physician_id, at(MONDAY, 8), minutes=45))
        scheduler.schedule_appointment(make_appointment(physician_id, at(MONDAY, 9, 30)))

        result = scheduler.reschedule_appointment(
            physician_id, appointment.id, at(MONDAY, 8, 30), at(MONDAY, 9)
        )

        assert not result.success
        assert [s.start for s in result.alternative_suggestions] == [
            at(MONDAY, 8, 45),
            at(MONDAY, 10),
            at(MONDAY, 10, 30),
        ]

    def test_wrong_physician(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        appointment = make_appointment(physician_id, at(MONDAY, 9))
        scheduler.schedule_appointment(appointment)

        result = scheduler.reschedule_appointment(
            uuid4(), appointment.id, at(MONDAY, 10), at(MONDAY, 10, 30)
        )

        assert result.error_code == ScheduleErrorCode.NOT_FOUND
        assert not scheduler.cancel_appointment(uuid4(), appointment.id)
        assert not scheduler.delete_appointment(uuid4(), appointment.id)
        assert len(scheduler.store.schedules()) == 1

    def test_inverted_window(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        appointment = make_appointment(physician_id, at(MONDAY, 9))
        scheduler.schedule_appointment(appointment)

        result = scheduler.reschedule_appointment(
            physician_id, appointment.id, at(MONDAY, 10), at(MONDAY, 9)
        )

        assert result.error_code == ScheduleErrorCode.VALIDATION

    def test_cancelled_cannot_be_rescheduled(
        self, scheduler: SchedulerService, physician_id: UUID
    ) -> None:
        appointment = make_appointment(physician_id, at(MONDAY, 9))
        scheduler.schedule_appointment(appointment)
        scheduler.cancel_appointment(physician_id, appointment.id)

        result = scheduler.reschedule_appointment(
            physician_id, appointment.id, at(MONDAY, 10), at(MONDAY, 10, 30)
        )

        assert result.error_code == ScheduleErrorCode.INVARIANT_VIOLATION


class TestCancelAndDelete:
    """Cancellation keeps the record; deletion removes it."""

    def test_cancel_frees_window(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        appointment = make_appointment(physician_id, at(MONDAY, 9))
        scheduler.schedule_appointment(appointment)

        assert scheduler.cancel_appointment(physician_id, appointment.id, "patient request")

        stored = scheduler.find_appointment_by_id(appointment.id)
        assert stored.status == AppointmentStatus.CANCELLED
        assert stored.cancellation_reason == "patient request"
        assert scheduler.schedule_appointment(
            make_appointment(physician_id, at(MONDAY, 9))
        ).success

    def test_cancel_twice(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        appointment = make_appointment(physician_id, at(MONDAY, 9))
        scheduler.schedule_appointment(appointment)
        scheduler.cancel_appointment(physician_id, appointment.id)

        assert scheduler.cancel_appointment(physician_id, appointment.id) is False

    def test_cancel_unknown(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        assert scheduler.cancel_appointment(physician_id, uuid4()) is False

    def test_cancel_completed(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        appointment = make_appointment(physician_id, at(MONDAY, 9))
        scheduler.schedule_appointment(appointment)
        scheduler.update_appointment_status(appointment.id, AppointmentStatus.COMPLETED)

        assert scheduler.cancel_appointment(physician_id, appointment.id) is False

    def test_delete(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        appointment = make_appointment(physician_id, at(MONDAY, 9))
        scheduler.schedule_appointment(appointment)

        assert scheduler.delete_appointment(physician_id, appointment.id)

        assert scheduler.find_appointment_by_id(appointment.id) is None
        assert scheduler.delete_appointment(physician_id, appointment.id) is False
        assert scheduler.update_appointment(appointment.id, reason="x").error_code == (
            ScheduleErrorCode.NOT_FOUND
        )

    def test_delete_frees_room(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        appointment = make_appointment(physician_id, at(MONDAY, 9), room_number=5)
        scheduler.schedule_appointment(appointment)
        scheduler.delete_appointment(physician_id, appointment.id)

        assert scheduler.schedule_appointment(
            make_appointment(uuid4(), at(MONDAY, 9), room_number=5)
        ).success


class TestStatusAndDocuments:
    """Completion, no-show and clinical document links."""

    def test_complete(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        appointment = make_appointment(physician_id, at(MONDAY, 9))
        scheduler.schedule_appointment(appointment)

        result = scheduler.update_appointment_status(appointment.id, AppointmentStatus.COMPLETED)

        assert result.success
        assert result.message == "Appointment marked as completed."
        assert result.appointment.status == AppointmentStatus.COMPLETED

    def test_cancelled_status_not_settable(
        self, scheduler: SchedulerService, physician_id: UUID
    ) -> None:
        appointment = make_appointment(physician_id, at(MONDAY, 9))
        scheduler.schedule_appointment(appointment)

        result = scheduler.update_appointment_status(appointment.id, AppointmentStatus.CANCELLED)

        assert result.error_code == ScheduleErrorCode.VALIDATION

    def test_no_show_after_completion_rejected(
        self, scheduler: SchedulerService, physician_id: UUID
    ) -> None:
        appointment = make_appointment(physician_id, at(MONDAY, 9))
        scheduler.schedule_appointment(appointment)
        scheduler.update_appointment_status(appointment.id, AppointmentStatus.COMPLETED)

        result = scheduler.update_appointment_status(appointment.id, AppointmentStatus.NO_SHOW)

        assert result.error_code == ScheduleErrorCode.INVARIANT_VIOLATION

    def test_link_document_on_completed(
        self, scheduler: SchedulerService, physician_id: UUID
    ) -> None:
        appointment = make_appointment(physician_id, at(MONDAY, 9))
        scheduler.schedule_appointment(appointment)
        scheduler.update_appointment_status(appointment.id, AppointmentStatus.COMPLETED)
        document_id = uuid4()

        assert scheduler.link_clinical_document(appointment.id, document_id)

        assert scheduler.find_appointment_by_id(appointment.id).clinical_document_id == document_id

    def test_link_document_unknown(self, scheduler: SchedulerService) -> None:
        assert scheduler.link_clinical_document(uuid4(), uuid4()) is False


class TestQueries:
    """Read-only schedule queries."""

    def test_daily_schedule_sorted(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        late = make_appointment(physician_id, at(MONDAY, 15))
        early = make_appointment(physician_id, at(MONDAY, 9))
        other_day = make_appointment(physician_id, at(TUESDAY, 9))
        for appointment in (late, early, other_day):
            scheduler.schedule_appointment(appointment)

        assert scheduler.get_daily_schedule(physician_id, MONDAY.date()) == [early, late]

    def test_daily_schedule_includes_cancelled(
        self, scheduler: SchedulerService, physician_id: UUID
    ) -> None:
        appointment = make_appointment(physician_id, at(MONDAY, 9))
        scheduler.schedule_appointment(appointment)
        scheduler.cancel_appointment(physician_id, appointment.id)

        daily = scheduler.get_daily_schedule(physician_id, MONDAY.date())

        assert [a.status for a in daily] == [AppointmentStatus.CANCELLED]

    def test_range_requires_full_containment(
        self, scheduler: SchedulerService, physician_id: UUID
    ) -> None:
        inside = make_appointment(physician_id, at(MONDAY, 9))
        straddling = make_appointment(physician_id, at(MONDAY, 11, 45))
        scheduler.schedule_appointment(inside)
        scheduler.schedule_appointment(straddling)

        result = scheduler.get_schedule_in_range(physician_id, at(MONDAY, 9), at(MONDAY, 12))

        assert result == [inside]

    def test_range_by_dates(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        monday = make_appointment(physician_id, at(MONDAY, 16, 30))
        tuesday = make_appointment(physician_id, at(TUESDAY, 9))
        scheduler.schedule_appointment(monday)
        scheduler.schedule_appointment(tuesday)

        assert scheduler.get_schedule_in_range(physician_id, MONDAY.date(), MONDAY.date()) == [
            monday
        ]

    def test_inverted_range(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        with pytest.raises(SchedulingValidationError):
            scheduler.get_schedule_in_range(physician_id, at(MONDAY, 12), at(MONDAY, 9))

    def test_patient_appointments_across_physicians(
        self, scheduler: SchedulerService, patient_id: UUID
    ) -> None:
        first = make_appointment(uuid4(), at(MONDAY, 9), patient_id=patient_id)
        second = make_appointment(uuid4(), at(TUESDAY, 9), patient_id=patient_id)
        scheduler.schedule_appointment(first)
        scheduler.schedule_appointment(second)
        scheduler.schedule_appointment(make_appointment(uuid4(), at(MONDAY, 10)))

        assert scheduler.get_patient_appointments(patient_id) == [first, second]

    def test_unknown_physician_has_empty_schedule(self, scheduler: SchedulerService) -> None:
        assert scheduler.get_daily_schedule(uuid4(), MONDAY.date()) == []

    def test_reads_do_not_register_physicians(self, scheduler: SchedulerService) -> None:
        for _ in range(20):
            physician_id = uuid4()
            scheduler.get_daily_schedule(physician_id, MONDAY.date())
            scheduler.get_schedule_in_range(physician_id, at(MONDAY, 8), at(MONDAY, 17))
            scheduler.find_available_slots(physician_id, HALF_HOUR, at(MONDAY, 8))
            scheduler.check_for_conflicts(
                make_appointment(physician_id, at(MONDAY, 9)), include_suggestions=True
            )
            scheduler.get_physician_statistics(physician_id, MONDAY.date(), MONDAY.date())
            scheduler.get_unavailable_blocks(physician_id)

        assert scheduler.store.schedules() == []


class TestSlotSearch:
    """Free-slot search through the service."""

    def test_round_trip(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        scheduler.schedule_appointment(make_appointment(physician_id, at(MONDAY, 8), minutes=60))

        slot = scheduler.find_next_available_slot(physician_id, HALF_HOUR, at(MONDAY, 8))

        assert (slot.start, slot.end) == (at(MONDAY, 9), at(MONDAY, 9, 30))
        booked = make_appointment(physician_id, slot.start, minutes=30)
        assert scheduler.schedule_appointment(booked).success

    def test_search_never_starts_in_past(
        self, scheduler: SchedulerService, physician_id: UUID
    ) -> None:
        slot = scheduler.find_next_available_slot(
            physician_id, HALF_HOUR, NOW - timedelta(days=3)
        )

        assert slot.start == NOW

    def test_default_search_start_is_now(
        self, scheduler: SchedulerService, physician_id: UUID
    ) -> None:
        slots = scheduler.find_available_slots(physician_id, HALF_HOUR, max_slots=2)

        assert [s.start for s in slots] == [NOW, NOW + HALF_HOUR]

    def test_search_allows_longer_than_booking(
        self, scheduler: SchedulerService, physician_id: UUID
    ) -> None:
        slot = scheduler.find_next_available_slot(
            physician_id, timedelta(hours=4), at(MONDAY, 8)
        )

        assert slot.duration == timedelta(hours=4)

    def test_round_trip_at_booking_maximum(
        self, scheduler: SchedulerService, physician_id: UUID
    ) -> None:
        longest = scheduler.policy.booking_duration.maximum

        slot = scheduler.find_next_available_slot(physician_id, longest, at(MONDAY, 8))

        assert (slot.start, slot.end) == (at(MONDAY, 8), at(MONDAY, 11))
        booked = make_appointment(
            physician_id, slot.start, minutes=int(longest.total_seconds() // 60)
        )
        assert scheduler.schedule_appointment(booked).success

    def test_search_longer_than_booking_maximum_cannot_be_booked(
        self, scheduler: SchedulerService, physician_id: UUID
    ) -> None:
        slot = scheduler.find_next_available_slot(
            physician_id, timedelta(hours=4), at(MONDAY, 8)
        )

        result = scheduler.schedule_appointment(
            make_appointment(physician_id, slot.start, minutes=240)
        )

        assert conflict_types(result) == {ConflictType.DURATION_VIOLATION}

    def test_search_duration_over_limit(
        self, scheduler: SchedulerService, physician_id: UUID
    ) -> None:
        with pytest.raises(SchedulingValidationError, match="480 minutes"):
            scheduler.find_next_available_slot(physician_id, timedelta(hours=9), at(MONDAY, 8))

    def test_search_duration_under_limit(
        self, scheduler: SchedulerService, physician_id: UUID
    ) -> None:
        with pytest.raises(SchedulingValidationError):
            scheduler.find_available_slots(physician_id, timedelta(minutes=5), at(MONDAY, 8))

    def test_non_positive_max_slots(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        with pytest.raises(SchedulingValidationError):
            scheduler.find_available_slots(physician_id, HALF_HOUR, at(MONDAY, 8), max_slots=0)


class TestDryRunCheck:
    """check_for_conflicts never stores anything."""

    def test_reports_without_booking(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        scheduler.schedule_appointment(make_appointment(physician_id, at(MONDAY, 9)))
        proposed = make_appointment(physician_id, at(MONDAY, 9))

        result = scheduler.check_for_conflicts(proposed, include_suggestions=True)

        assert result.of_type(ConflictType.DOUBLE_BOOKING)
        assert result.alternative_suggestions[0].start == at(MONDAY, 9, 30)
        assert scheduler.find_appointment_by_id(proposed.id) is None

    def test_clean_proposal(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        result = scheduler.check_for_conflicts(make_appointment(physician_id, at(MONDAY, 9)))

        assert not result.has_conflicts
        assert result.summary() == "No conflicts detected."


class TestStatistics:
    """Per-physician statistics over a range."""

    def test_counts_and_rates(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        completed = make_appointment(physician_id, at(MONDAY, 9))
        cancelled = make_appointment(physician_id, at(MONDAY, 10), minutes=60)
        scheduled = make_appointment(physician_id, at(MONDAY, 14))
        for appointment in (completed, cancelled, scheduled):
            scheduler.schedule_appointment(appointment)
        scheduler.update_appointment_status(completed.id, AppointmentStatus.COMPLETED)
        scheduler.cancel_appointment(physician_id, cancelled.id)

        stats = scheduler.get_physician_statistics(physician_id, MONDAY.date(), MONDAY.date())

        assert stats.total_appointments == 3
        assert stats.completed_appointments == 1
        assert stats.cancelled_appointments == 1
        assert stats.no_show_appointments == 0
        assert stats.total_scheduled_hours == pytest.approx(1.0)
        assert stats.average_duration == timedelta(minutes=40)
        assert stats.completion_rate == pytest.approx(100 / 3)

    def test_empty_range(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        stats = scheduler.get_physician_statistics(physician_id, MONDAY.date(), TUESDAY.date())

        assert stats.total_appointments == 0
        assert stats.completion_rate == 0.0
        assert stats.average_duration == timedelta()


class TestUnavailableTime:
    """Physician and facility-wide blocks close time to bookings."""

    def test_booking_over_block_rejected(
        self, scheduler: SchedulerService, physician_id: UUID
    ) -> None:
        block = scheduler.add_unavailable_block(
            UnavailableBlock.lunch_break(MONDAY.date(), physician_id)
        )

        result = scheduler.schedule_appointment(make_appointment(physician_id, at(MONDAY, 12)))

        assert result.error_code == ScheduleErrorCode.CONFLICT
        assert conflict_types(result) == {ConflictType.UNAVAILABLE_TIME}
        assert result.conflicts[0].unavailable_block == block
        assert result.alternative_suggestions[0].start == at(MONDAY, 13)

    def test_block_applies_to_its_physician_only(
        self, scheduler: SchedulerService, physician_id: UUID
    ) -> None:
        scheduler.add_unavailable_block(UnavailableBlock.lunch_break(MONDAY.date(), physician_id))

        result = scheduler.schedule_appointment(make_appointment(uuid4(), at(MONDAY, 12)))

        assert result.success

    def test_slot_search_skips_block(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        scheduler.add_unavailable_block(
            UnavailableBlock(
                start=at(MONDAY, 8),
                end=at(MONDAY, 10),
                reason=UnavailabilityReason.MEETING,
                physician_id=physician_id,
            )
        )

        slots = scheduler.find_available_slots(physician_id, HALF_HOUR, at(MONDAY, 8), max_slots=2)

        assert [s.start for s in slots] == [at(MONDAY, 10), at(MONDAY, 10, 30)]
        assert slots[0].is_optimal

    def test_facility_block_closes_every_physician(self, scheduler: SchedulerService) -> None:
        scheduler.add_unavailable_block(
            UnavailableBlock(
                start=at(MONDAY, 0),
                end=at(TUESDAY, 0),
                reason=UnavailabilityReason.HOLIDAY,
                description="New Year closure",
            )
        )

        for physician_id in (uuid4(), uuid4()):
            result = scheduler.schedule_appointment(make_appointment(physician_id, at(MONDAY, 9)))
            assert conflict_types(result) == {ConflictType.UNAVAILABLE_TIME}
            assert result.conflicts[0].description.startswith("Facility unavailable: holiday")

            slot = scheduler.find_next_available_slot(physician_id, HALF_HOUR, at(MONDAY, 8))
            assert slot.start == at(TUESDAY, 8)

    def test_move_into_block_rejected(
        self, scheduler: SchedulerService, physician_id: UUID
    ) -> None:
        appointment = make_appointment(physician_id, at(MONDAY, 9))
        scheduler.schedule_appointment(appointment)
        scheduler.add_unavailable_block(UnavailableBlock.lunch_break(MONDAY.date(), physician_id))

        result = scheduler.update_appointment(appointment.id, new_start=at(MONDAY, 12, 30))

        assert conflict_types(result) == {ConflictType.UNAVAILABLE_TIME}
        assert scheduler.find_appointment_by_id(appointment.id) == appointment

    def test_existing_appointments_kept(
        self, scheduler: SchedulerService, physician_id: UUID
    ) -> None:
        appointment = make_appointment(physician_id, at(MONDAY, 12))
        scheduler.schedule_appointment(appointment)

        scheduler.add_unavailable_block(UnavailableBlock.lunch_break(MONDAY.date(), physician_id))

        assert scheduler.find_appointment_by_id(appointment.id) == appointment

    def test_remove_reopens_time(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        block = scheduler.add_unavailable_block(
            UnavailableBlock.lunch_break(MONDAY.date(), physician_id)
        )

        assert scheduler.remove_unavailable_block(block.id, physician_id)
        assert scheduler.schedule_appointment(make_appointment(physician_id, at(MONDAY, 12))).success

    def test_remove_unknown(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        assert not scheduler.remove_unavailable_block(uuid4())
        assert not scheduler.remove_unavailable_block(uuid4(), physician_id)

    def test_listing(self, scheduler: SchedulerService, physician_id: UUID) -> None:
        lunch = scheduler.add_unavailable_block(
            UnavailableBlock.lunch_break(MONDAY.date(), physician_id)
        )
        holiday = scheduler.add_unavailable_block(
            UnavailableBlock(
                start=at(MONDAY, 0), end=at(TUESDAY, 0), reason=UnavailabilityReason.HOLIDAY
            )
        )

        assert scheduler.get_unavailable_blocks() == [holiday]
        assert scheduler.get_unavailable_blocks(physician_id) == [holiday, lunch]
        assert scheduler.get_unavailable_blocks(uuid4()) == [holiday]

    def test_facility_block_without_description_needs_reason(self) -> None:
        with pytest.raises(SchedulingValidationError, match="requires a description"):
            UnavailableBlock(start=at(MONDAY, 8), end=at(MONDAY, 9))

    def test_block_longer_than_a_year_rejected(self, physician_id: UUID) -> None:
        with pytest.raises(SchedulingValidationError, match="one year"):
            UnavailableBlock(
                start=at(MONDAY, 8),
                end=at(MONDAY, 8) + timedelta(days=366),
                reason=UnavailabilityReason.VACATION,
                physician_id=physician_id,
            )
