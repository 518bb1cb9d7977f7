"""Concurrent commits never push a slot past its maximum."""

import datetime as dt
import random
import threading

import pytest
from sqlalchemy import func, select

from roster.domain.models import ExtraAvailability, Minister, RegularAvailability
from roster.domain.repositories import OccupancyRepository
from roster.engine.catalog import ExtraRef, SlotRef
from roster.engine.orchestrator import AvailabilityOrchestrator
from roster.errors import CapacityExceeded, PersistenceFailure

pytestmark = [pytest.mark.integration, pytest.mark.slow]

MONDAYS = [dt.date(2025, 11, d) for d in (3, 10, 17, 24)]
SUNDAYS = [dt.date(2025, 11, d) for d in (2, 9, 16, 23, 30)]


def _run_ministers(orchestrators, minister_ids, parish, seed):
    rng = random.Random(seed)
    plans = {}
    for minister_id in minister_ids:
        picks = [(d, parish["monday"].id) for d in rng.sample(MONDAYS, rng.randint(1, 3))]
        picks += [(d, parish["sunday_late"].id) for d in rng.sample(SUNDAYS, rng.randint(0, 2))]
        plans[minister_id] = (picks, rng.random() < 0.5, rng.random() < 0.3)

    outcomes = []
    barrier = threading.Barrier(len(minister_ids))

    def worker(index, minister_id):
        orchestrator = orchestrators[index % len(orchestrators)]
        picks, wants_extra, changes_mind = plans[minister_id]
        draft = orchestrator.open_draft(minister_id)
        for day, slot_id in picks:
            draft.toggle(day, slot_id)
        if wants_extra:
            draft.toggle_extra(parish["all_souls"].id)
        barrier.wait()
        try:
            orchestrator.commit(draft)
            outcomes.append("ok")
            if changes_mind:
                draft.toggle(*picks[0])
                orchestrator.commit(draft)
        except (CapacityExceeded, PersistenceFailure) as e:
            outcomes.append(e.code)

    threads = [threading.Thread(target=worker, args=(i, m)) for i, m in enumerate(minister_ids)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    assert not any(t.is_alive() for t in threads)
    return outcomes


def _assert_invariant(session_factory, parish):
    limits = {
        parish["monday"].id: parish["monday"].max_allowed,
        parish["sunday_late"].id: parish["sunday_late"].max_allowed,
    }
    with session_factory() as session:
        regular = session.execute(
            select(RegularAvailability.date, RegularAvailability.mass_time_id, func.count())
            .group_by(RegularAvailability.date, RegularAvailability.mass_time_id)
        ).all()
        extras = session.execute(select(func.count()).select_from(ExtraAvailability)).scalar_one()
        records = {r.target_key: r.total for r in OccupancyRepository.get_all_records(session)}

    for day, slot_id, total in regular:
        assert total <= limits[slot_id]
        assert records[SlotRef(day, slot_id).key] == total
    assert extras <= parish["all_souls"].max_allowed
    if extras:
        assert records[ExtraRef(parish["all_souls"].id).key] == extras


def _add_ministers(db_session, count):
    ministers = [Minister(name=f"Minister {i:02d}") for i in range(count)]
    db_session.add_all(ministers)
    db_session.commit()
    return [m.id for m in ministers]


@pytest.mark.parametrize("seed", [1, 7, 42, 2025])
def test_shared_ledger_respects_capacity(session_factory, cfg, clock, parish, db_session, seed):
    orchestrator = AvailabilityOrchestrator(session_factory, cfg, clock=clock)
    minister_ids = _add_ministers(db_session, 8)

    outcomes = _run_ministers([orchestrator], minister_ids, parish, seed)
    assert "ok" in outcomes
    _assert_invariant(session_factory, parish)


@pytest.mark.parametrize("seed", [3, 11])
def test_separate_ledgers_rely_on_version_check(session_factory, cfg, clock, parish, db_session, seed):
    # one orchestrator per "process": no shared in-memory locks
    orchestrators = [AvailabilityOrchestrator(session_factory, cfg, clock=clock) for _ in range(3)]
    minister_ids = _add_ministers(db_session, 6)

    _run_ministers(orchestrators, minister_ids, parish, seed)
    _assert_invariant(session_factory, parish)
