"""Tests for BlockOverlay."""

import datetime as dt

import pytest

from roster.domain.models import BlockedMass
from roster.engine.blocks import BlockOverlay, BlockSpec
from roster.errors import BlockedSlot, InvalidSelection

NOV_2 = dt.date(2025, 11, 2)
NOV_9 = dt.date(2025, 11, 9)


def test_block_spec_from_model():
    whole = BlockSpec.from_model(BlockedMass(id=1, date=NOV_2, blocked_times=None, reason="Bishop visit"))
    assert whole.whole_day
    assert whole.covers(dt.time(6, 0))

    partial = BlockSpec.from_model(BlockedMass(id=2, date=NOV_9, blocked_times=["08:00:00", "10:00"], reason=None))
    assert not partial.whole_day
    assert partial.times == frozenset({dt.time(8, 0), dt.time(10, 0)})
    assert partial.covers(dt.time(8, 0))
    assert not partial.covers(dt.time(19, 0))


def test_whole_day_block_covers_every_time():
    overlay = BlockOverlay([BlockSpec(1, NOV_2, None, "Parish feast")])
    assert overlay.is_blocked(NOV_2, "08:00")
    assert overlay.is_blocked(NOV_2, dt.time(19, 30))
    assert not overlay.is_blocked(NOV_9, "08:00")


def test_time_block_compares_at_minute_granularity():
    overlay = BlockOverlay([BlockSpec(1, NOV_9, frozenset({dt.time(8, 0)}), None)])
    assert overlay.is_blocked(NOV_9, "08:00:00")
    assert overlay.is_blocked(NOV_9, "8:00")
    assert not overlay.is_blocked(NOV_9, "10:00")


def test_check_raises_with_reason():
    overlay = BlockOverlay([BlockSpec(1, NOV_2, None, "Bishop visit")])
    with pytest.raises(BlockedSlot) as exc:
        overlay.check(NOV_2, "10:00")
    assert exc.value.reason == "Bishop visit"
    assert exc.value.date == NOV_2
    assert exc.value.time == dt.time(10, 0)
    assert "Bishop visit" in exc.value.message


def test_missing_reason_is_reported_as_no_reason_given():
    overlay = BlockOverlay([BlockSpec(1, NOV_9, frozenset({dt.time(8, 0)}), None)])
    with pytest.raises(BlockedSlot) as exc:
        overlay.check(NOV_9, "08:00")
    assert exc.value.reason == "No reason given"


def test_whole_day_reason_wins_over_time_block():
    overlay = BlockOverlay([
        BlockSpec(1, NOV_2, frozenset({dt.time(8, 0)}), "Renovation"),
        BlockSpec(2, NOV_2, None, "Bishop visit"),
    ])
    assert overlay.block_for(NOV_2, "08:00").reason == "Bishop visit"


def test_invalid_time_rejected():
    overlay = BlockOverlay([])
    with pytest.raises(InvalidSelection):
        overlay.is_blocked(NOV_2, "8h")


def test_blocked_dates_and_load(db_session):
    db_session.add_all([
        BlockedMass(date=NOV_2, blocked_times=None, reason="Feast"),
        BlockedMass(date=NOV_9, blocked_times=["10:00"]),
        BlockedMass(date=dt.date(2025, 12, 8), blocked_times=None),
    ])
    db_session.commit()

    overlay = BlockOverlay.load(db_session, dt.date(2025, 11, 1), dt.date(2025, 11, 30))
    assert overlay.blocked_dates() == {NOV_2, NOV_9}
    assert overlay.is_blocked(NOV_9, "10:00")
    assert not overlay.is_blocked(NOV_9, "08:00")
    assert len(overlay.blocks_on(NOV_2)) == 1
