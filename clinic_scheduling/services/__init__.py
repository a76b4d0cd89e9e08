"""Scheduling services."""

from clinic_scheduling.services.availability import (
    AvailabilityAggregator,
    PhysicianAvailability,
    PhysicianRef,
)
from clinic_scheduling.services.conflicts import ConflictDetector
from clinic_scheduling.services.scheduling import SchedulerService

__all__ = [
    "AvailabilityAggregator",
    "ConflictDetector",
    "PhysicianAvailability",
    "PhysicianRef",
    "SchedulerService",
]
