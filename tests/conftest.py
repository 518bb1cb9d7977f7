"""Pytest configuration and shared fixtures."""

import datetime as dt

import pytest

from roster.config import RosterConfig
from roster.domain.db import get_session_factory, init_database
from roster.domain.models import ExtraEvent, MassTime, Minister
from roster.engine.orchestrator import AvailabilityOrchestrator


def pytest_configure(config):
    """Configure pytest."""
    # Add custom markers
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (deselect with '-m \"not integration\"')"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


class FrozenClock:
    """Callable clock whose time tests can move."""

    def __init__(self, now: dt.datetime):
        self.now = now

    def __call__(self) -> dt.datetime:
        return self.now


@pytest.fixture
def clock():
    """25 Oct 2025: November 2025 is open with the default 10-day window."""
    return FrozenClock(dt.datetime(2025, 10, 25, 10, 0))


@pytest.fixture
def cfg(tmp_path):
    return RosterConfig(db_url=f"sqlite:///{tmp_path / 'roster.db'}", timezone="America/Sao_Paulo")


@pytest.fixture
def session_factory(cfg):
    """File-backed SQLite so several sessions (and threads) share one database."""
    init_database(cfg.db_url)
    return get_session_factory(cfg.db_url)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def parish(db_session):
    """
    Ministers, recurring masses and one extra for November 2025.

    November 2025 starts on a Saturday: Mondays are 3, 10, 17, 24 and
    Sundays 2, 9, 16, 23, 30.
    """
    ministers = [Minister(name="Ana"), Minister(name="Bruno"), Minister(name="Carla"), Minister(name="Davi", is_admin=True)]
    monday_evening = MassTime(weekday=1, time=dt.time(19, 0), min_required=1, max_allowed=2)
    sunday_morning = MassTime(weekday=0, time=dt.time(8, 0), min_required=2, max_allowed=3)
    sunday_late = MassTime(weekday=0, time=dt.time(10, 0), min_required=1, max_allowed=1)
    retired = MassTime(weekday=3, time=dt.time(7, 0), min_required=1, max_allowed=1, active=False)
    all_souls = ExtraEvent(
        event_date=dt.date(2025, 11, 2), time=dt.time(15, 0), title="All Souls", min_required=1, max_allowed=1,
    )
    db_session.add_all(ministers + [monday_evening, sunday_morning, sunday_late, retired, all_souls])
    db_session.commit()
    return {
        "ministers": ministers,
        "monday": monday_evening,
        "sunday": sunday_morning,
        "sunday_late": sunday_late,
        "retired": retired,
        "all_souls": all_souls,
    }


@pytest.fixture
def orchestrator(session_factory, cfg, clock, parish):
    return AvailabilityOrchestrator(session_factory, cfg, clock=clock)
