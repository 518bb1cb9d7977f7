"""Tests for coverage and minister reports."""

import datetime as dt

import pytest

from roster.domain.models import ExtraAvailability, RegularAvailability
from roster.errors import InvalidSelection
from roster.services.reports import coverage_report, minister_summary, summarize_coverage


@pytest.fixture
def selections(db_session, parish):
    ana, bruno, carla, _ = parish["ministers"]
    monday, sunday_late = parish["monday"].id, parish["sunday_late"].id
    db_session.add_all([
        RegularAvailability(minister_id=ana.id, date=dt.date(2025, 11, 3), mass_time_id=monday),
        RegularAvailability(minister_id=bruno.id, date=dt.date(2025, 11, 3), mass_time_id=monday),
        RegularAvailability(minister_id=ana.id, date=dt.date(2025, 11, 9), mass_time_id=sunday_late),
        RegularAvailability(minister_id=carla.id, date=dt.date(2025, 11, 10), mass_time_id=monday),
        RegularAvailability(minister_id=carla.id, date=dt.date(2025, 12, 1), mass_time_id=monday),
        ExtraAvailability(minister_id=bruno.id, extra_id=parish["all_souls"].id),
    ])
    db_session.commit()
    return parish


def test_coverage_report_lists_every_mass(db_session, selections):
    df = coverage_report(db_session, 2025, 11)
    assert len(df) == 15
    assert list(df["date"])[:3] == [dt.date(2025, 11, 2)] * 3
    assert list(df["time"])[:3] == ["08:00", "10:00", "15:00"]

    first_monday = df[(df["date"] == dt.date(2025, 11, 3)) & (df["kind"] == "regular")].iloc[0]
    assert (first_monday["current"], first_monday["max_allowed"], first_monday["status"]) == (2, 2, "FULL")

    extra = df[df["kind"] == "extra"].iloc[0]
    assert extra["title"] == "All Souls"
    assert extra["status"] == "FULL"


def test_coverage_report_status_filter(db_session, selections):
    full = coverage_report(db_session, 2025, 11, status="full")
    assert set(full["status"]) == {"FULL"}
    assert len(full) == 3  # Monday 3rd, Sunday 9th at 10:00, All Souls

    ok = coverage_report(db_session, 2025, 11, status="OK")
    assert list(ok["date"]) == [dt.date(2025, 11, 10)]

    low = coverage_report(db_session, 2025, 11, status="LOW")
    assert len(low) == 15 - 3 - 1
    assert len(coverage_report(db_session, 2025, 11, status="ALL")) == 15

    with pytest.raises(InvalidSelection):
        coverage_report(db_session, 2025, 11, status="EMPTY")


def test_minister_summary_ranks_by_total(db_session, selections):
    df = minister_summary(db_session, 2025, 11)
    assert list(df["name"]) == ["Ana", "Bruno", "Carla"]
    assert list(df["total"]) == [2, 2, 1]
    assert list(df["extras"]) == [0, 1, 0]
    assert "Davi" not in set(df["name"])


def test_minister_summary_empty_month(db_session, parish):
    df = minister_summary(db_session, 2025, 11)
    assert df.empty
    assert list(df.columns) == ["minister_id", "name", "regular", "extras", "total"]


def test_summarize_coverage(db_session, selections):
    text = summarize_coverage(coverage_report(db_session, 2025, 11))
    assert "Coverage by status:" in text
    assert "All Souls" in text
    assert summarize_coverage(coverage_report(db_session, 2025, 11).iloc[0:0]) == "No masses in this month."


def test_minister_summary_skips_inactive_extras(db_session, selections):
    selections["all_souls"].active = False
    db_session.commit()

    df = minister_summary(db_session, 2025, 11)
    assert list(df["name"]) == ["Ana", "Bruno", "Carla"]
    assert list(df["extras"]) == [0, 0, 0]
    assert list(df["total"]) == [2, 1, 1]
