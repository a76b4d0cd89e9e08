"""Pytest configuration and fixtures."""

from collections.abc import Generator
from datetime import datetime
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from clinic_scheduling.booking.policy import SchedulingPolicy
from clinic_scheduling.main import create_app
from clinic_scheduling.services.scheduling import SchedulerService
from factories import NOW


@pytest.fixture
def clock() -> list[datetime]:
    """Mutable fixed clock; tests move time by replacing ``clock[0]``."""
    return [NOW]


@pytest.fixture
def policy() -> SchedulingPolicy:
    return SchedulingPolicy()


@pytest.fixture
def scheduler(policy: SchedulingPolicy, clock: list[datetime]) -> SchedulerService:
    """Fresh in-memory scheduler with a fixed clock."""
    return SchedulerService(policy=policy, clock=lambda: clock[0])


@pytest.fixture
def physician_id() -> UUID:
    return uuid4()


@pytest.fixture
def patient_id() -> UUID:
    return uuid4()


@pytest.fixture
def client(scheduler: SchedulerService) -> Generator[TestClient, None, None]:
    """FastAPI test client wired to a fresh scheduler."""
    app = create_app(scheduler)
    with TestClient(app) as test_client:
        yield test_client
