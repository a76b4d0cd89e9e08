"""Conflict detection for proposed appointments.

The detector is stateless: it evaluates a proposed interval against a
snapshot of a physician's schedule and the scheduling policy, and reports
every violated rule rather than stopping at the first.
"""

from collections.abc import Callable, Iterable, Sequence
from datetime import datetime
from uuid import UUID

from clinic_scheduling.booking.policy import DEFAULT_POLICY, DurationBounds, SchedulingPolicy
from clinic_scheduling.models.appointment import (
    AppointmentInterval,
    ConflictResult,
    ConflictType,
    ScheduleConflict,
    UnavailableBlock,
)
from clinic_scheduling.models.schedule import PhysicianSchedule

ConflictCheck = Callable[["CheckContext"], Iterable[ScheduleConflict]]


class CheckContext:
    """Inputs shared by every conflict check in one evaluation."""

    def __init__(
        self,
        proposed: AppointmentInterval,
        existing: list[AppointmentInterval],
        policy: SchedulingPolicy,
        now: datetime,
        duration_bounds: DurationBounds,
        check_past: bool,
        unavailable: Sequence[UnavailableBlock] = (),
    ):
        self.proposed = proposed
        self.existing = existing
        self.policy = policy
        self.now = now
        self.duration_bounds = duration_bounds
        self.check_past = check_past
        self.unavailable = unavailable


def check_double_booking(ctx: CheckContext) -> list[ScheduleConflict]:
    """Overlap against every active, non-excluded appointment."""
    proposed = ctx.proposed
    return [
        ScheduleConflict(
            type=ConflictType.DOUBLE_BOOKING,
            description=(
                f"Conflicts with existing appointment from {existing.start:%H:%M} "
                f"to {existing.end:%H:%M} on {existing.start:%Y-%m-%d}"
            ),
            conflicting_interval=existing,
        )
        for existing in ctx.existing
        if existing.overlaps(proposed.start, proposed.end)
    ]


def check_business_hours(ctx: CheckContext) -> list[ScheduleConflict]:
    proposed = ctx.proposed
    if ctx.policy.is_within_business_hours(proposed.start, proposed.end):
        return []

    if not ctx.policy.is_business_day(proposed.start):
        detail = f"{proposed.start:%A} is not a business day"
    elif proposed.start.date() != proposed.end.date():
        detail = "appointments cannot span multiple days"
    else:
        detail = f"{proposed.start:%H:%M}-{proposed.end:%H:%M} is outside opening hours"

    return [
        ScheduleConflict(
            type=ConflictType.BUSINESS_HOURS_VIOLATION,
            description=(
                "Appointment must be scheduled during business hours "
                f"({ctx.policy.business_hours_label}): {detail}"
            ),
        )
    ]


def check_duration(ctx: CheckContext) -> list[ScheduleConflict]:
    return [
        ScheduleConflict(type=ConflictType.DURATION_VIOLATION, description=message)
        for message in ctx.duration_bounds.violations(ctx.proposed.duration)
    ]


def check_past_time(ctx: CheckContext) -> list[ScheduleConflict]:
    if not ctx.check_past or ctx.proposed.start >= ctx.now:
        return []
    return [
        ScheduleConflict(
            type=ConflictType.PAST_TIME,
            description="Cannot schedule appointments in the past",
        )
    ]


def check_unavailable_time(ctx: CheckContext) -> list[ScheduleConflict]:
    """Overlap against physician and facility-wide unavailable blocks."""
    proposed = ctx.proposed
    return [
        ScheduleConflict(
            type=ConflictType.UNAVAILABLE_TIME,
            description=(
                f"{'Facility' if block.is_facility_wide else 'Physician'} unavailable: "
                f"{block.reason.value} from {block.start:%Y-%m-%d %H:%M} "
                f"to {block.end:%Y-%m-%d %H:%M}"
            ),
            unavailable_block=block,
        )
        for block in ctx.unavailable
        if block.overlaps(proposed.start, proposed.end)
    ]


DEFAULT_CHECKS: tuple[ConflictCheck, ...] = (
    check_double_booking,
    check_unavailable_time,
    check_business_hours,
    check_duration,
    check_past_time,
)


class ConflictDetector:
    """Runs every conflict check against a proposed appointment."""

    def __init__(
        self,
        policy: SchedulingPolicy | None = None,
        checks: Iterable[ConflictCheck] = DEFAULT_CHECKS,
    ):
        self.policy = policy or DEFAULT_POLICY
        self._checks: list[ConflictCheck] = list(checks)

    def check(
        self,
        proposed: AppointmentInterval,
        schedule: PhysicianSchedule,
        exclude_id: UUID | None = None,
        *,
        now: datetime,
        duration_bounds: DurationBounds | None = None,
        check_past: bool = True,
        facility_blocks: Sequence[UnavailableBlock] = (),
    ) -> ConflictResult:
        """Evaluate a proposed appointment.

        Args:
            proposed: Appointment to evaluate
            schedule: Schedule of the proposed appointment's physician
            exclude_id: Appointment to ignore in overlap checks (its own
                previous version when updating)
            now: Current clinic-local time for the past-time check
            duration_bounds: Duration bounds for the calling context
                (defaults to the direct booking bounds)
            check_past: Set False to allow historical records
            facility_blocks: Facility-wide unavailable blocks, checked along
                with the physician's own blocks

        Returns:
            ConflictResult listing every detected conflict
        """
        ctx = CheckContext(
            proposed=proposed,
            existing=[
                a for a in schedule.active_appointments(exclude_id=exclude_id)
                if a.id != proposed.id
            ],
            policy=self.policy,
            now=now,
            duration_bounds=duration_bounds or self.policy.booking_duration,
            check_past=check_past,
            unavailable=[*schedule.unavailable_blocks, *facility_blocks],
        )

        result = ConflictResult(proposed=proposed)
        for conflict_check in self._checks:
            result.conflicts.extend(conflict_check(ctx))
        return result
