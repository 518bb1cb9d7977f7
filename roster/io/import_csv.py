"""CSV import utilities to load the parish catalog into the database."""

from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd
from sqlalchemy.orm import Session

from roster.domain.models import BlockedMass, ExtraEvent, MassTime, Minister
from roster.errors import InvalidSelection
from roster.services.timeplan import format_time, parse_time_string

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = {
    "sunday": 0, "sun": 0,
    "monday": 1, "mon": 1,
    "tuesday": 2, "tue": 2,
    "wednesday": 3, "wed": 3,
    "thursday": 4, "thu": 4,
    "friday": 5, "fri": 5,
    "saturday": 6, "sat": 6,
}

TRUE_VALUES = ("TRUE", "T", "1", "YES", "Y")


def _read(csv_path: str | Path, required: list[str]) -> pd.DataFrame:
    df = pd.read_csv(csv_path, dtype=str, keep_default_na=False)

    # Normalize column names
    df.columns = df.columns.str.lower().str.strip()

    missing = [c for c in required if c not in df.columns]
    if missing:
        raise InvalidSelection(f"{csv_path}: missing column(s) {', '.join(missing)}")
    return df


def _flag(row, column: str, default: bool) -> bool:
    value = str(row.get(column, "")).strip()
    if not value:
        return default
    return value.upper() in TRUE_VALUES


def _weekday(value: str) -> int:
    value = str(value).strip().lower()
    if value in WEEKDAY_NAMES:
        return WEEKDAY_NAMES[value]
    try:
        weekday = int(value)
    except ValueError:
        raise InvalidSelection(f"Invalid weekday: {value!r}") from None
    if not 0 <= weekday <= 6:
        raise InvalidSelection(f"Weekday must be 0..6 (0 = Sunday), got {weekday}")
    return weekday


def _dates(df: pd.DataFrame, csv_path: str | Path) -> pd.Series:
    parsed = pd.to_datetime(df["date"].str.strip(), errors="coerce")
    bad = parsed.isna()
    if bad.any():
        idx = bad.idxmax()
        raise InvalidSelection(
            f"{csv_path} row {idx + 2}: invalid date {df.at[idx, 'date']!r}",
            details={"row": int(idx) + 2},
        )
    return parsed.dt.date


def _capacity(row, where: str) -> tuple[int, int]:
    try:
        min_required = int(row.get("min_required") or 1)
        max_allowed = int(row.get("max_allowed") or min_required)
    except ValueError:
        raise InvalidSelection(f"{where}: min_required/max_allowed must be integers") from None
    if min_required < 0 or min_required > max_allowed:
        raise InvalidSelection(f"{where}: need 0 <= min_required <= max_allowed, got {min_required}/{max_allowed}")
    return min_required, max_allowed


def import_ministers_csv(session: Session, csv_path: str | Path) -> int:
    """
    Import ministers from CSV into database.

    Columns: name, is_admin (optional)

    Returns:
        Number of ministers imported
    """
    df = _read(csv_path, ["name"])
    df["name"] = df["name"].str.strip()
    df = df[df["name"] != ""]

    ministers = [
        Minister(name=row["name"], is_admin=_flag(row, "is_admin", False))
        for _, row in df.iterrows()
    ]
    session.add_all(ministers)
    session.commit()

    logger.info("Imported %d ministers from %s", len(ministers), csv_path)
    return len(ministers)


def import_mass_times_csv(session: Session, csv_path: str | Path) -> int:
    """
    Import recurring mass times from CSV into database.

    Columns: weekday (0 = Sunday or a day name), time (HH:MM), min_required,
    max_allowed, active (optional)

    Returns:
        Number of mass times imported
    """
    df = _read(csv_path, ["weekday", "time"])

    mass_times = []
    for idx, row in df.iterrows():
        where = f"{csv_path} row {idx + 2}"
        min_required, max_allowed = _capacity(row, where)
        mass_times.append(MassTime(
            weekday=_weekday(row["weekday"]),
            time=parse_time_string(row["time"]),
            min_required=min_required,
            max_allowed=max_allowed,
            active=_flag(row, "active", True),
        ))

    session.add_all(mass_times)
    session.commit()

    logger.info("Imported %d mass times from %s", len(mass_times), csv_path)
    return len(mass_times)


def import_extras_csv(session: Session, csv_path: str | Path) -> int:
    """
    Import extra events from CSV into database.

    Columns: date, time, title, min_required, max_allowed, active (optional)

    Returns:
        Number of extra events imported
    """
    df = _read(csv_path, ["date", "time", "title"])
    df["date"] = _dates(df, csv_path)

    extras = []
    for idx, row in df.iterrows():
        where = f"{csv_path} row {idx + 2}"
        min_required, max_allowed = _capacity(row, where)
        extras.append(ExtraEvent(
            event_date=row["date"],
            time=parse_time_string(row["time"]),
            title=str(row["title"]).strip(),
            min_required=min_required,
            max_allowed=max_allowed,
            active=_flag(row, "active", True),
        ))

    session.add_all(extras)
    session.commit()

    logger.info("Imported %d extra events from %s", len(extras), csv_path)
    return len(extras)


def import_blocks_csv(session: Session, csv_path: str | Path) -> int:
    """
    Import blocks from CSV into database.

    Columns: date, times (optional, ``;``-separated HH:MM; empty blocks the
    whole date), reason (optional)

    Returns:
        Number of blocks imported
    """
    df = _read(csv_path, ["date"])
    df["date"] = _dates(df, csv_path)

    blocks = []
    for _, row in df.iterrows():
        raw_times = [t for t in str(row.get("times", "")).split(";") if t.strip()]
        times = sorted({format_time(parse_time_string(t)) for t in raw_times}) or None
        reason = str(row.get("reason", "")).strip() or None
        blocks.append(BlockedMass(date=row["date"], blocked_times=times, reason=reason))

    session.add_all(blocks)
    session.commit()

    logger.info("Imported %d blocks from %s", len(blocks), csv_path)
    return len(blocks)
