"""Booking module for scheduling policy and slot-search strategies."""

from clinic_scheduling.booking.policy import (
    DEFAULT_POLICY,
    DurationBounds,
    SchedulingPolicy,
)
from clinic_scheduling.booking.strategies import (
    BookingStrategy,
    FirstAvailableBookingStrategy,
)

__all__ = [
    "DEFAULT_POLICY",
    "BookingStrategy",
    "DurationBounds",
    "FirstAvailableBookingStrategy",
    "SchedulingPolicy",
]
