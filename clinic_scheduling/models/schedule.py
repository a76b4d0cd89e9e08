"""Per-physician schedule store.

Each ``PhysicianSchedule`` owns one lock. Writers hold it across the whole
check-then-commit sequence (see ``ScheduleStore.locked``); readers hold it only
long enough to copy a snapshot. Because stored intervals are immutable, a
snapshot is always a consistent, fully-committed view.

Lock order is physician lock -> store lock. The store lock is never held while
acquiring a physician lock.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import date, datetime
from uuid import UUID

from clinic_scheduling.core.exceptions import SchedulingValidationError
from clinic_scheduling.models.appointment import AppointmentInterval, UnavailableBlock


class PhysicianSchedule:
    """All appointments and unavailable blocks for one physician, indexed by id."""

    def __init__(self, physician_id: UUID):
        self.physician_id = physician_id
        self.lock = threading.RLock()
        self._appointments: dict[UUID, AppointmentInterval] = {}
        self._blocks: dict[UUID, UnavailableBlock] = {}

    def __len__(self) -> int:
        return len(self._appointments)

    def __contains__(self, appointment_id: UUID) -> bool:
        return appointment_id in self._appointments

    @property
    def appointments(self) -> list[AppointmentInterval]:
        """Snapshot of all appointments ordered by start time."""
        with self.lock:
            return sorted(self._appointments.values(), key=lambda a: a.start)

    def active_appointments(self, exclude_id: UUID | None = None) -> list[AppointmentInterval]:
        """Snapshot of non-cancelled appointments, optionally excluding one id."""
        return [
            a for a in self.appointments
            if a.is_active and a.id != exclude_id
        ]

    def get(self, appointment_id: UUID) -> AppointmentInterval | None:
        with self.lock:
            return self._appointments.get(appointment_id)

    def get_for_date(self, day: date) -> list[AppointmentInterval]:
        return [a for a in self.appointments if a.start.date() == day]

    def get_in_range(self, start: datetime, end: datetime) -> list[AppointmentInterval]:
        """Appointments falling entirely within [start, end]."""
        return [a for a in self.appointments if a.start >= start and a.end <= end]

    def put(self, appointment: AppointmentInterval) -> None:
        """Insert or replace an appointment version.

        Callers are expected to hold ``self.lock`` and to have validated the
        appointment already; no conflict checking happens here.
        """
        if appointment.physician_id != self.physician_id:
            raise SchedulingValidationError(
                f"Appointment {appointment.id} belongs to physician "
                f"{appointment.physician_id}, not {self.physician_id}"
            )
        with self.lock:
            self._appointments[appointment.id] = appointment

    def remove(self, appointment_id: UUID) -> AppointmentInterval | None:
        with self.lock:
            return self._appointments.pop(appointment_id, None)

    @property
    def unavailable_blocks(self) -> list[UnavailableBlock]:
        with self.lock:
            return sorted(self._blocks.values(), key=lambda b: b.start)

    def add_block(self, block: UnavailableBlock) -> UnavailableBlock:
        """Store a block, binding it to this physician if it has no owner."""
        if block.physician_id is None:
            block = replace(block, physician_id=self.physician_id)
        elif block.physician_id != self.physician_id:
            raise SchedulingValidationError(
                f"Unavailable block {block.id} belongs to physician "
                f"{block.physician_id}, not {self.physician_id}"
            )
        with self.lock:
            self._blocks[block.id] = block
        return block

    def remove_block(self, block_id: UUID) -> UnavailableBlock | None:
        with self.lock:
            return self._blocks.pop(block_id, None)


class ScheduleStore:
    """In-memory collection of physician schedules.

    Also keeps an appointment id -> physician id index so appointments can be
    found without knowing their physician, and the facility-wide unavailable
    blocks that apply to every physician.

    Schedules are created only by writers (``locked``); read paths use
    ``get_schedule`` and treat a missing schedule as empty.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._schedules: dict[UUID, PhysicianSchedule] = {}
        self._index: dict[UUID, UUID] = {}
        self._facility_blocks: dict[UUID, UnavailableBlock] = {}

    def get_schedule(self, physician_id: UUID) -> PhysicianSchedule | None:
        with self._lock:
            return self._schedules.get(physician_id)

    def _schedule_for(self, physician_id: UUID) -> PhysicianSchedule:
        with self._lock:
            schedule = self._schedules.get(physician_id)
            if schedule is None:
                schedule = PhysicianSchedule(physician_id)
                self._schedules[physician_id] = schedule
            return schedule

    def schedules(self) -> list[PhysicianSchedule]:
        with self._lock:
            return list(self._schedules.values())

    @contextmanager
    def locked(self, physician_id: UUID) -> Iterator[PhysicianSchedule]:
        """Hold a physician's lock for a check-then-commit sequence."""
        schedule = self._schedule_for(physician_id)
        with schedule.lock:
            yield schedule

    def physician_of(self, appointment_id: UUID) -> UUID | None:
        with self._lock:
            return self._index.get(appointment_id)

    def find(self, appointment_id: UUID) -> AppointmentInterval | None:
        physician_id = self.physician_of(appointment_id)
        if physician_id is None:
            return None
        schedule = self.get_schedule(physician_id)
        return schedule.get(appointment_id) if schedule is not None else None

    def facility_blocks(self) -> list[UnavailableBlock]:
        with self._lock:
            return sorted(self._facility_blocks.values(), key=lambda b: b.start)

    def add_facility_block(self, block: UnavailableBlock) -> None:
        if not block.is_facility_wide:
            raise SchedulingValidationError(
                f"Unavailable block {block.id} is bound to physician {block.physician_id}"
            )
        with self._lock:
            self._facility_blocks[block.id] = block

    def remove_facility_block(self, block_id: UUID) -> UnavailableBlock | None:
        with self._lock:
            return self._facility_blocks.pop(block_id, None)

    def commit(self, schedule: PhysicianSchedule, appointment: AppointmentInterval) -> None:
        """Store an appointment version and index it (physician lock held)."""
        schedule.put(appointment)
        with self._lock:
            self._index[appointment.id] = schedule.physician_id

    def discard(self, schedule: PhysicianSchedule, appointment_id: UUID) -> AppointmentInterval | None:
        """Remove an appointment and its index entry (physician lock held)."""
        removed = schedule.remove(appointment_id)
        if removed is not None:
            with self._lock:
                self._index.pop(appointment_id, None)
        return removed

    def all_appointments(self) -> list[AppointmentInterval]:
        appointments: list[AppointmentInterval] = []
        for schedule in self.schedules():
            appointments.extend(schedule.appointments)
        return sorted(appointments, key=lambda a: a.start)


class RoomBookings:
    """Room number -> appointments index, shared across physicians.

    Guarded by its own ``lock``; holders of that lock never acquire a
    physician lock, so the physician -> room order cannot deadlock.
    """

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self._by_room: dict[int, dict[UUID, AppointmentInterval]] = {}

    def overlapping(self, proposed: AppointmentInterval) -> list[AppointmentInterval]:
        """Active appointments in the proposed room that overlap it (lock held)."""
        if proposed.room_number is None:
            return []
        bookings = self._by_room.get(proposed.room_number, {})
        return sorted(
            (
                a for a in bookings.values()
                if a.id != proposed.id
                and a.is_active
                and a.overlaps(proposed.start, proposed.end)
            ),
            key=lambda a: a.start,
        )

    def record(
        self,
        appointment: AppointmentInterval,
        previous: AppointmentInterval | None = None,
    ) -> None:
        """Replace ``previous`` with ``appointment`` in the index (lock held)."""
        if previous is not None:
            self.forget(previous)
        if appointment.room_number is not None:
            self._by_room.setdefault(appointment.room_number, {})[appointment.id] = appointment

    def forget(self, appointment: AppointmentInterval) -> None:
        if appointment.room_number is None:
            return
        bookings = self._by_room.get(appointment.room_number)
        if bookings is not None:
            bookings.pop(appointment.id, None)
            if not bookings:
                del self._by_room[appointment.room_number]
