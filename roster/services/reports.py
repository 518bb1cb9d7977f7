"""Coverage and per-minister reports as pandas DataFrames."""

from __future__ import annotations

from typing import Optional

import pandas as pd
from sqlalchemy.orm import Session

from roster.domain.repositories import MinisterRepository, SelectionRepository
from roster.engine.catalog import SlotRef, TimeCatalog
from roster.engine.ledger import CapacityLedger
from roster.errors import InvalidSelection

from .timeplan import dates_in_month, format_time, month_bounds

STATUSES = ("LOW", "FULL", "OK")

COVERAGE_COLUMNS = [
    "date", "time", "kind", "target_id", "title", "min_required", "max_allowed", "current", "status",
]
SUMMARY_COLUMNS = ["minister_id", "name", "regular", "extras", "total"]


def coverage_report(session: Session, year: int, month: int, status: Optional[str] = None) -> pd.DataFrame:
    """
    Every dated slot and extra of a month with its occupancy.

    Args:
        session: Database session
        year, month: Month to report
        status: Optional filter, one of LOW, FULL or OK

    Returns:
        DataFrame sorted by date and time
    """
    if status is not None:
        status = status.upper()
        if status == "ALL":
            status = None
        elif status not in STATUSES:
            raise InvalidSelection(f"Unknown status filter: {status}")

    first, last = month_bounds(year, month)
    catalog = TimeCatalog.load(session, first, last)
    snapshot = CapacityLedger().snapshot(session, catalog, dates_in_month(year, month))

    rows = []
    for target, occ in snapshot.items():
        if isinstance(target, SlotRef):
            slot = catalog.slot(target.slot_id)
            rows.append({
                "date": target.date, "time": format_time(slot.time), "kind": "regular",
                "target_id": slot.id, "title": "",
            } | _occupancy_columns(occ))
        else:
            extra = catalog.extra(target.extra_id)
            rows.append({
                "date": extra.date, "time": format_time(extra.time), "kind": "extra",
                "target_id": extra.id, "title": extra.title,
            } | _occupancy_columns(occ))

    df = pd.DataFrame(rows, columns=COVERAGE_COLUMNS)
    if status is not None:
        df = df[df["status"] == status]
    return df.sort_values(["date", "time", "kind", "target_id"]).reset_index(drop=True)


def _occupancy_columns(occ) -> dict:
    return {
        "min_required": occ.min_required,
        "max_allowed": occ.max_allowed,
        "current": occ.current,
        "status": occ.status,
    }


def minister_summary(session: Session, year: int, month: int) -> pd.DataFrame:
    """Ministers ranked by number of selections in the month; those with none are omitted."""
    first, last = month_bounds(year, month)
    claims = pd.DataFrame(
        [{"minister_id": r.minister_id, "kind": "regular"}
         for r in SelectionRepository.regular_between(session, first, last)]
        + [{"minister_id": r.minister_id, "kind": "extras"}
           for r in SelectionRepository.extras_between(session, first, last)],
        columns=["minister_id", "kind"],
    )
    if claims.empty:
        return pd.DataFrame(columns=SUMMARY_COLUMNS)

    counts = (
        claims.groupby(["minister_id", "kind"]).size()
        .unstack(fill_value=0)
        .reindex(columns=["regular", "extras"], fill_value=0)
        .reset_index()
    )
    counts.columns.name = None
    counts["total"] = counts["regular"] + counts["extras"]

    names = {m.id: m.name for m in MinisterRepository.get_all(session)}
    counts["name"] = counts["minister_id"].map(names).fillna("")
    return (
        counts.sort_values(["total", "name"], ascending=[False, True])
        .reset_index(drop=True)[SUMMARY_COLUMNS]
    )


def summarize_coverage(df: pd.DataFrame) -> str:
    if df.empty:
        return "No masses in this month."
    by_status = df.groupby("status").size().reindex(list(STATUSES), fill_value=0)
    lines = ["Coverage by status:", by_status.to_string(), "", "Masses:"]
    lines.append(df[["date", "time", "kind", "title", "current", "min_required", "max_allowed", "status"]].to_string(index=False))
    return "\n".join(lines)
