"""Tests for administrative services."""

import datetime as dt

import pytest

from roster.domain.models import AvailabilityOverride
from roster.engine.window import WindowPolicy, WindowReason
from roster.errors import ConfigError, InvalidSelection
from roster.services import admin


def test_save_window_config_latest_wins(db_session, cfg):
    admin.save_window_config(db_session, 5)
    admin.save_window_config(db_session, 15, hard_close=True)

    settings = admin.latest_window_config(db_session, cfg)
    assert settings.days_before_next_month == 15
    assert settings.hard_close


def test_latest_window_config_defaults(db_session, cfg):
    settings = admin.latest_window_config(db_session, cfg)
    assert settings.days_before_next_month == cfg.default_days_before_next_month
    assert not settings.hard_close


@pytest.mark.parametrize("days", [0, -3, "10"])
def test_save_window_config_rejects_bad_days(db_session, days):
    with pytest.raises(ConfigError):
        admin.save_window_config(db_session, days)


def test_release_month_opens_until_end_of_month(db_session, cfg):
    now = dt.datetime(2025, 10, 5, 9, 30)
    override = admin.release_month(db_session, 2025, 11, now=now)
    assert (override.year, override.month) == (2025, 11)
    assert override.open_from == now
    assert override.open_until == dt.datetime(2025, 11, 30, 23, 59, 59, 999999)

    admin.save_window_config(db_session, 10, hard_close=True)
    policy = WindowPolicy.load(db_session, cfg, clock=lambda: dt.datetime(2025, 10, 6))
    assert policy.check(2025, 11).reason is WindowReason.MANUAL_OVERRIDE


def test_release_month_converts_aware_now(db_session):
    now = dt.datetime(2025, 10, 5, 12, 0, tzinfo=dt.timezone.utc)
    override = admin.release_month(db_session, 2025, 11, now=now, tz="America/Sao_Paulo")
    assert override.open_from == dt.datetime(2025, 10, 5, 9, 0)


def test_release_current_and_next_month(db_session):
    now = dt.datetime(2025, 12, 10, 8, 0)
    current = admin.release_current_month(db_session, now)
    upcoming = admin.release_next_month(db_session, now)
    assert (current.year, current.month) == (2025, 12)
    assert (upcoming.year, upcoming.month) == (2026, 1)
    assert upcoming.open_until == dt.datetime(2026, 1, 31, 23, 59, 59, 999999)


def test_release_of_ended_month_rejected(db_session):
    with pytest.raises(InvalidSelection):
        admin.release_month(db_session, 2025, 9, now=dt.datetime(2025, 10, 5))


def test_revoke_and_active_overrides(db_session):
    old = AvailabilityOverride(
        year=2025, month=9, open_from=dt.datetime(2025, 9, 1), open_until=dt.datetime(2025, 9, 30),
    )
    db_session.add(old)
    db_session.commit()
    fresh = admin.release_month(db_session, 2025, 11, now=dt.datetime(2025, 10, 5))

    active = admin.active_overrides(db_session, now=dt.datetime(2025, 10, 6))
    assert [o.id for o in active] == [fresh.id]

    assert admin.revoke_override(db_session, fresh.id)
    assert not admin.revoke_override(db_session, fresh.id)
    assert admin.active_overrides(db_session, now=dt.datetime(2025, 10, 6)) == []


def test_save_block_whole_day_and_times(db_session):
    day = dt.date(2025, 11, 2)
    whole = admin.save_block(db_session, day, [], reason="  ")
    assert whole.blocked_times is None
    assert whole.reason is None

    partial = admin.save_block(db_session, day, ["10:00:00", "8:00", "08:00"], reason="Renovation")
    assert partial.blocked_times == ["08:00", "10:00"]

    specs = admin.blocks_between(db_session, day, day)
    assert [s.whole_day for s in specs] == [True, False]


def test_save_block_updates_existing(db_session):
    block = admin.save_block(db_session, dt.date(2025, 11, 2), None)
    updated = admin.save_block(db_session, dt.date(2025, 11, 9), ["19:00"], "Moved", block_id=block.id)
    assert updated.id == block.id
    assert updated.date == dt.date(2025, 11, 9)
    assert updated.blocked_times == ["19:00"]

    with pytest.raises(InvalidSelection):
        admin.save_block(db_session, dt.date(2025, 11, 9), None, block_id=9999)


@pytest.mark.parametrize("day, times", [("2025-11-02", None), (dt.date(2025, 11, 2), ["nope"])])
def test_save_block_validates_input(db_session, day, times):
    with pytest.raises(InvalidSelection):
        admin.save_block(db_session, day, times)


def test_remove_block(db_session):
    block = admin.save_block(db_session, dt.date(2025, 11, 2), None)
    assert admin.remove_block(db_session, block.id)
    assert not admin.remove_block(db_session, block.id)
    assert admin.blocks_between(db_session, dt.date(2025, 11, 1), dt.date(2025, 11, 30)) == []


def test_block_candidate_times(db_session, parish):
    sunday = admin.block_candidate_times(db_session, dt.date(2025, 11, 2))
    assert sunday == [dt.time(8, 0), dt.time(10, 0), dt.time(15, 0)]
    # the Wednesday mass is inactive
    assert admin.block_candidate_times(db_session, dt.date(2025, 11, 5)) == []
