"""Booking strategies for finding free appointment slots.

A strategy walks forward through business-hour windows of a physician's
schedule and returns conflict-free slots of a requested duration. The scheduler
service accepts any ``BookingStrategy``; ``FirstAvailableBookingStrategy`` is
the default.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from datetime import datetime, time, timedelta
from uuid import UUID

from clinic_scheduling.booking.policy import DEFAULT_POLICY, SchedulingPolicy
from clinic_scheduling.models.appointment import (
    AppointmentInterval,
    AppointmentSlot,
    UnavailableBlock,
)
from clinic_scheduling.models.schedule import PhysicianSchedule


class BookingStrategy(ABC):
    """Interface for slot-search algorithms."""

    name: str = "Booking strategy"
    description: str = ""

    def __init__(self, policy: SchedulingPolicy | None = None):
        self.policy = policy or DEFAULT_POLICY

    @abstractmethod
    def find_available_slots(
        self,
        schedule: PhysicianSchedule,
        duration: timedelta,
        search_start: datetime,
        max_slots: int = 5,
        search_end: datetime | None = None,
        *,
        exclude_id: UUID | None = None,
        facility_blocks: Sequence[UnavailableBlock] = (),
    ) -> list[AppointmentSlot]:
        """Find up to ``max_slots`` free slots in chronological order.

        ``exclude_id`` names an appointment whose window counts as free (one
        that is being moved). Unavailable blocks of the physician and
        ``facility_blocks`` count as busy.
        """

    def find_next_available_slot(
        self,
        schedule: PhysicianSchedule,
        duration: timedelta,
        search_start: datetime,
        search_end: datetime | None = None,
        *,
        exclude_id: UUID | None = None,
        facility_blocks: Sequence[UnavailableBlock] = (),
    ) -> AppointmentSlot | None:
        """Find the earliest free slot, or None if the horizon is exhausted."""
        slots = self.find_available_slots(
            schedule,
            duration,
            search_start,
            max_slots=1,
            search_end=search_end,
            exclude_id=exclude_id,
            facility_blocks=facility_blocks,
        )
        return slots[0] if slots else None


# Anything occupying time on a schedule
Interval = AppointmentInterval | UnavailableBlock


def round_up_to_increment(moment: datetime, increment: timedelta) -> datetime:
    """Round a datetime up to the next multiple of ``increment`` past midnight."""
    midnight = datetime.combine(moment.date(), time.min)
    remainder = (moment - midnight) % increment
    if remainder:
        moment += increment - remainder
    return moment


class FirstAvailableBookingStrategy(BookingStrategy):
    """Finds the earliest slots that fit the requested duration.

    Candidates start on the slot-increment grid, are confined to business
    hours, and skip weekends. A slot is flagged ``is_optimal`` when it sits
    flush against a neighbouring booking or the opening/closing time on at
    least one side, i.e. taking it leaves no unusable fragment there.
    """

    name = "First Available"
    description = (
        "Finds the earliest available appointment slot that meets the "
        "duration requirements"
    )

    def find_available_slots(
        self,
        schedule: PhysicianSchedule,
        duration: timedelta,
        search_start: datetime,
        max_slots: int = 5,
        search_end: datetime | None = None,
        *,
        exclude_id: UUID | None = None,
        facility_blocks: Sequence[UnavailableBlock] = (),
    ) -> list[AppointmentSlot]:
        if max_slots <= 0 or duration <= timedelta(0):
            return []

        # Snapshot once so the search sees a single consistent schedule
        busy: list[Interval] = [
            *schedule.active_appointments(exclude_id=exclude_id),
            *schedule.unavailable_blocks,
            *facility_blocks,
        ]

        slots: list[AppointmentSlot] = []
        for slot in self._iter_free_slots(schedule, busy, duration, search_start, search_end):
            slots.append(slot)
            if len(slots) >= max_slots:
                break
        return slots

    def _iter_free_slots(
        self,
        schedule: PhysicianSchedule,
        busy: list[Interval],
        duration: timedelta,
        search_start: datetime,
        search_end: datetime | None,
    ) -> Iterator[AppointmentSlot]:
        policy = self.policy
        horizon = search_start + timedelta(days=policy.max_search_days)
        if search_end is not None:
            horizon = min(horizon, search_end)

        candidate = round_up_to_increment(search_start, policy.slot_increment)

        while candidate < horizon:
            if not policy.is_business_day(candidate):
                candidate = self._next_day_opening(candidate)
                continue

            opening = policy.day_opening(candidate)
            closing = policy.day_closing(candidate)
            if candidate < opening:
                candidate = opening

            slot_end = candidate + duration
            if slot_end > closing:
                candidate = self._next_day_opening(candidate)
                continue
            if search_end is not None and slot_end > search_end:
                return

            blocking = next((a for a in busy if a.overlaps(candidate, slot_end)), None)
            if blocking is not None:
                # Every grid point before the blocker ends overlaps it too
                candidate = round_up_to_increment(blocking.end, policy.slot_increment)
                continue

            yield AppointmentSlot(
                start=candidate,
                end=slot_end,
                reason=self.name,
                is_optimal=self._is_flush(candidate, slot_end, opening, closing, busy),
                physician_id=schedule.physician_id,
            )
            # Suggestions never overlap each other
            candidate = round_up_to_increment(slot_end, policy.slot_increment)

    def _next_day_opening(self, moment: datetime) -> datetime:
        return datetime.combine(moment.date() + timedelta(days=1), self.policy.day_start)

    @staticmethod
    def _is_flush(
        start: datetime,
        end: datetime,
        opening: datetime,
        closing: datetime,
        busy: list[Interval],
    ) -> bool:
        if start == opening or end == closing:
            return True
        return any(a.end == start or a.start == end for a in busy)
