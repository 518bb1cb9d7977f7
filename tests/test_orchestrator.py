"""Tests for the AvailabilityOrchestrator facade."""

import datetime as dt

import pytest

from roster.domain.db import get_session_factory
from roster.domain.models import RegularAvailability
from roster.engine.catalog import ExtraRef, SlotRef
from roster.engine.orchestrator import AvailabilityOrchestrator
from roster.engine.window import WindowReason
from roster.errors import InvalidSelection, PersistenceFailure


def test_default_month_is_next_month(orchestrator, clock):
    assert orchestrator.default_month() == (2025, 11)
    clock.now = dt.datetime(2025, 12, 20, 8, 0)
    assert orchestrator.default_month() == (2026, 1)


def test_default_month_uses_parish_timezone(orchestrator, clock):
    # 01:00 UTC on 1 Nov is still 31 Oct in Sao Paulo
    clock.now = dt.datetime(2025, 11, 1, 1, 0, tzinfo=dt.timezone.utc)
    assert orchestrator.default_month() == (2025, 11)


def test_open_draft_defaults_and_validation(orchestrator, parish):
    draft = orchestrator.open_draft(parish["ministers"][0].id)
    assert (draft.year, draft.month) == (2025, 11)
    assert draft.catalog.has_slot(parish["monday"].id)
    assert not draft.catalog.has_slot(parish["retired"].id)

    with pytest.raises(InvalidSelection):
        orchestrator.open_draft(9999)
    with pytest.raises(InvalidSelection):
        orchestrator.open_draft(parish["ministers"][0].id, 2025, 13)


def test_open_draft_outside_window_is_read_only(orchestrator, parish):
    draft = orchestrator.open_draft(parish["ministers"][0].id, 2026, 1)
    assert draft.window().reason is WindowReason.WRONG_MONTH
    assert not draft.has_pending_changes()


def test_window_status(orchestrator, clock):
    assert orchestrator.window_status().reason is WindowReason.OPEN
    clock.now = dt.datetime(2025, 10, 7)
    assert orchestrator.window_status(2025, 11).reason is WindowReason.NOT_YET_OPEN


def test_occupancy_reports_every_dated_target(orchestrator, parish):
    ana = parish["ministers"][0]
    draft = orchestrator.open_draft(ana.id)
    draft.toggle(dt.date(2025, 11, 3), parish["monday"].id)
    orchestrator.commit(draft)

    occupancy = orchestrator.occupancy(2025, 11)
    # 4 Mondays, 5 Sundays with two masses each, one extra
    assert len(occupancy) == 4 + 10 + 1
    monday = occupancy[SlotRef(dt.date(2025, 11, 3), parish["monday"].id)]
    assert (monday.current, monday.max_allowed, monday.status) == (1, 2, "OK")
    assert occupancy[ExtraRef(parish["all_souls"].id)].status == "LOW"

    counts = orchestrator.slot_counts(dt.date(2025, 11, 1), dt.date(2025, 11, 30))
    assert counts == {SlotRef(dt.date(2025, 11, 3), parish["monday"].id): 1}
    assert orchestrator.extra_counts([parish["all_souls"].id]) == {}


def test_rebuild_occupancy_repairs_records(orchestrator, parish, db_session):
    ana = parish["ministers"][0]
    monday = parish["monday"].id
    # rows written behind the engine's back
    db_session.add(RegularAvailability(minister_id=ana.id, date=dt.date(2025, 11, 10), mass_time_id=monday))
    db_session.commit()

    assert orchestrator.rebuild_occupancy() == 1
    occupancy = orchestrator.occupancy()
    assert occupancy[SlotRef(dt.date(2025, 11, 10), monday)].current == 1


def test_store_failures_surface_as_persistence_failure(tmp_path, cfg, clock):
    # tables were never created
    broken = AvailabilityOrchestrator(get_session_factory(f"sqlite:///{tmp_path / 'empty.db'}"), cfg, clock=clock)

    with pytest.raises(PersistenceFailure) as exc:
        broken.slot_counts(dt.date(2025, 11, 1), dt.date(2025, 11, 30))
    assert exc.value.retryable
    with pytest.raises(PersistenceFailure):
        broken.extra_counts([1, 2])
    with pytest.raises(PersistenceFailure):
        broken.occupancy(2025, 11)
