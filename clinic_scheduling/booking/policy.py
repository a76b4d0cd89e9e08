"""Scheduling policy.

Business hours, duration bounds and slot-search limits shared by the conflict
detector, the booking strategies and the scheduler service.

Two distinct duration bounds exist:
- ``booking_duration`` applies to appointments that are actually booked
  (15-180 minutes by default)
- ``search_duration`` applies only to availability searches, which may ask
  about wider windows (up to 8 hours by default)
"""

from dataclasses import dataclass
from datetime import datetime, time, timedelta

from clinic_scheduling.core.config import Settings, settings

# Monday=0 .. Friday=4
BUSINESS_DAYS = frozenset({0, 1, 2, 3, 4})


@dataclass(frozen=True)
class DurationBounds:
    """Inclusive minimum/maximum appointment duration.

    Attributes:
        minimum: Shortest allowed duration
        maximum: Longest allowed duration
        label: Context name used in messages
    """

    minimum: timedelta
    maximum: timedelta
    label: str = "appointment"

    def contains(self, duration: timedelta) -> bool:
        return self.minimum <= duration <= self.maximum

    def violations(self, duration: timedelta) -> list[str]:
        """Describe how a duration falls outside these bounds."""
        errors = []
        if duration < self.minimum:
            errors.append(
                f"Appointment must be at least {_minutes(self.minimum)} minutes"
            )
        if duration > self.maximum:
            errors.append(
                f"Appointment cannot exceed {_minutes(self.maximum)} minutes "
                f"({_hours(self.maximum)} hours) for {self.label}"
            )
        return errors


def _minutes(delta: timedelta) -> int:
    return int(delta.total_seconds() // 60)


def _hours(delta: timedelta) -> str:
    return f"{delta.total_seconds() / 3600:g}"


@dataclass(frozen=True)
class SchedulingPolicy:
    """Policy constants for scheduling decisions."""

    day_start: time = time(8, 0)
    day_end: time = time(17, 0)
    booking_duration: DurationBounds = DurationBounds(
        timedelta(minutes=15), timedelta(minutes=180), "direct booking"
    )
    search_duration: DurationBounds = DurationBounds(
        timedelta(minutes=15), timedelta(minutes=480), "availability search"
    )
    slot_increment: timedelta = timedelta(minutes=15)
    max_search_days: int = 30
    max_alternative_suggestions: int = 3
    min_room_number: int = 1
    max_room_number: int = 999

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "SchedulingPolicy":
        """Build a policy from application settings."""
        config = config or settings
        minimum = timedelta(minutes=config.min_appointment_minutes)
        return cls(
            day_start=config.business_day_start,
            day_end=config.business_day_end,
            booking_duration=DurationBounds(
                minimum,
                timedelta(minutes=config.max_booking_minutes),
                "direct booking",
            ),
            search_duration=DurationBounds(
                minimum,
                timedelta(minutes=config.max_search_minutes),
                "availability search",
            ),
            slot_increment=timedelta(minutes=config.slot_increment_minutes),
            max_search_days=config.max_search_days,
            max_alternative_suggestions=config.max_alternative_suggestions,
            min_room_number=config.min_room_number,
            max_room_number=config.max_room_number,
        )

    @property
    def business_hours_label(self) -> str:
        return f"M-F {self.day_start:%H:%M} - {self.day_end:%H:%M}"

    def is_business_day(self, moment: datetime) -> bool:
        return moment.weekday() in BUSINESS_DAYS

    def day_opening(self, moment: datetime) -> datetime:
        return datetime.combine(moment.date(), self.day_start)

    def day_closing(self, moment: datetime) -> datetime:
        return datetime.combine(moment.date(), self.day_end)

    def is_within_business_hours(self, start: datetime, end: datetime) -> bool:
        """Check a window lies inside one business day's opening hours.

        Both boundaries are inclusive: a window from exactly opening to
        exactly closing is allowed. Windows spanning midnight never are.
        """
        if not self.is_business_day(start):
            return False
        if start.date() != end.date():
            return False
        return start.time() >= self.day_start and end.time() <= self.day_end

    def is_valid_room(self, room_number: int) -> bool:
        return self.min_room_number <= room_number <= self.max_room_number


DEFAULT_POLICY = SchedulingPolicy()
