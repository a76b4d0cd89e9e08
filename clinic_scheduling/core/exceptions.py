"""Scheduling error taxonomy.

Scheduling conflicts (double-booking, unavailable time, business hours,
duration, past time, room) are reported as data on result objects and are
never raised. The exceptions below cover the remaining cases and are
converted into failed results at the scheduler service boundary.
"""


class SchedulingError(Exception):
    """Base class for scheduling errors."""

    pass


class SchedulingValidationError(SchedulingError, ValueError):
    """Raised for malformed or missing caller input."""

    pass


class AppointmentNotFoundError(SchedulingError):
    """Raised when an appointment id is unknown (or owned by another physician)."""

    pass


class InvariantViolationError(SchedulingError):
    """Raised on an illegal lifecycle transition.

    For example, rescheduling a cancelled appointment or cancelling one that
    has already been completed.
    """

    pass
