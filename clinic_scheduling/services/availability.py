"""Physician availability search.

Read-only fan-out over the scheduler service: given the physicians supplied by
the identity collaborator, find who can see a patient within a requested
window and rank them.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from uuid import UUID

from clinic_scheduling.core.exceptions import SchedulingValidationError
from clinic_scheduling.models.appointment import AppointmentSlot
from clinic_scheduling.services.scheduling import SchedulerService
from clinic_scheduling.utils.time import to_clinic_time

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PhysicianRef:
    """Typed physician record provided by the profile collaborator."""

    id: UUID
    name: str = ""
    specializations: frozenset[str] = field(default_factory=frozenset)

    def has_specialization(self, specialization: str) -> bool:
        wanted = specialization.strip().lower()
        return any(s.lower() == wanted for s in self.specializations)


@dataclass(frozen=True)
class PhysicianAvailability:
    """A physician with the earliest free slot found in the window."""

    physician: PhysicianRef
    slot: AppointmentSlot
    matches_time_slot: bool


class AvailabilityAggregator:
    """Ranks physicians by availability within a requested window."""

    def __init__(self, scheduler: SchedulerService):
        self.scheduler = scheduler

    def find_available_physicians(
        self,
        physicians: Iterable[PhysicianRef],
        start: datetime | None = None,
        end: datetime | None = None,
        *,
        on_date: date | None = None,
        duration_minutes: int | None = None,
        specialization: str | None = None,
    ) -> list[PhysicianAvailability]:
        """Find physicians with a free slot inside the requested window.

        Exactly one form of window must be given: ``start`` and ``end``, or
        ``on_date`` and ``duration_minutes`` (any slot of that length during
        the business day).

        Physicians whose slot lies entirely within [start, end] rank first;
        the rest follow ordered by earliest slot start.

        Args:
            physicians: Candidate physicians
            start: Window start
            end: Window end
            on_date: Day to search (with ``duration_minutes``)
            duration_minutes: Slot length when searching a whole day
            specialization: Optional case-insensitive specialization filter

        Returns:
            Ranked list of available physicians

        Raises:
            SchedulingValidationError: If the window is malformed
        """
        window_start, window_end, duration = self._resolve_window(
            start, end, on_date, duration_minutes
        )

        candidates = [
            p for p in physicians
            if specialization is None or p.has_specialization(specialization)
        ]

        results: list[PhysicianAvailability] = []
        for physician in candidates:
            slot = self.scheduler.find_next_available_slot(
                physician.id,
                duration,
                search_start=window_start,
                search_end=window_end,
            )
            if slot is None:
                continue
            results.append(
                PhysicianAvailability(
                    physician=physician,
                    slot=slot,
                    matches_time_slot=slot.start >= window_start and slot.end <= window_end,
                )
            )

        logger.info(
            f"Availability search {window_start:%Y-%m-%d %H:%M}-{window_end:%H:%M}: "
            f"{len(results)}/{len(candidates)} physicians available"
        )
        return sorted(results, key=lambda r: (not r.matches_time_slot, r.slot.start))

    def _resolve_window(
        self,
        start: datetime | None,
        end: datetime | None,
        on_date: date | None,
        duration_minutes: int | None,
    ) -> tuple[datetime, datetime, timedelta]:
        policy = self.scheduler.policy
        has_start_end = start is not None and end is not None
        has_date_duration = on_date is not None and duration_minutes is not None

        if has_start_end == has_date_duration:
            raise SchedulingValidationError(
                "Provide either (start and end) or (date and duration), not both"
                if has_start_end
                else "Must provide either (start and end) or (date and duration)"
            )

        if has_start_end:
            window_start, window_end = to_clinic_time(start), to_clinic_time(end)
            if window_start >= window_end:
                raise SchedulingValidationError("Start time must be before end time")
            duration = window_end - window_start
        else:
            if duration_minutes <= 0:
                raise SchedulingValidationError(
                    "Duration must be a positive number of minutes"
                )
            window_start = datetime.combine(on_date, policy.day_start)
            window_end = datetime.combine(on_date, policy.day_end)
            duration = timedelta(minutes=duration_minutes)

        if window_end <= self.scheduler.now():
            raise SchedulingValidationError("Requested window is in the past")

        errors = policy.search_duration.violations(duration)
        if errors:
            raise SchedulingValidationError("; ".join(errors))

        return window_start, window_end, duration
