"""Administrative operations: window settings, manual releases and mass blocks."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, datetime, time
from typing import Iterable, Iterator, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from roster.config import RosterConfig
from roster.domain.models import AvailabilityOverride, AvailabilityWindowConfig, BlockedMass
from roster.domain.repositories import (
    BlockedMassRepository,
    ExtraEventRepository,
    MassTimeRepository,
    OverrideRepository,
    WindowConfigRepository,
)
from roster.engine.blocks import BlockSpec
from roster.engine.window import WindowSettings
from roster.errors import ConfigError, InvalidSelection, PersistenceFailure

from .timeplan import (
    check_month,
    end_of_month,
    format_time,
    next_month,
    parish_weekday,
    parse_time_string,
    to_local_naive,
    utc_now,
)

logger = logging.getLogger(__name__)


@contextmanager
def _admin_write(session: Session, action: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as e:
        session.rollback()
        logger.error("Admin write failed: %s", action, exc_info=True)
        raise PersistenceFailure(f"Could not {action}: {e}") from e


# ---------------------------------------------------------------------------
# Window settings and overrides
# ---------------------------------------------------------------------------

def save_window_config(session: Session, days_before_next_month: int, hard_close: bool = False) -> AvailabilityWindowConfig:
    """
    Append a new window settings row. The latest row is the one in effect.

    Raises:
        ConfigError: If days_before_next_month is below 1
    """
    if not isinstance(days_before_next_month, int) or days_before_next_month < 1:
        raise ConfigError(f"days_before_next_month must be >= 1, got {days_before_next_month!r}")
    with _admin_write(session, "save window settings"):
        row = WindowConfigRepository.create(
            session,
            AvailabilityWindowConfig(days_before_next_month=days_before_next_month, hard_close=bool(hard_close)),
        )
    logger.info("Window settings saved: %d days before, hard_close=%s", days_before_next_month, bool(hard_close))
    return row


def latest_window_config(session: Session, cfg: Optional[RosterConfig] = None) -> WindowSettings:
    cfg = cfg or RosterConfig()
    return WindowSettings.from_model(
        WindowConfigRepository.get_latest(session),
        default_days=cfg.default_days_before_next_month,
    )


def release_month(
    session: Session,
    year: int,
    month: int,
    now: Optional[datetime] = None,
    tz: str = "UTC",
) -> AvailabilityOverride:
    """
    Open (year, month) for editing from ``now`` until the end of that month.

    Overrides are stored as parish wall-clock time.

    Raises:
        InvalidSelection: If the month is invalid or already over
    """
    check_month(year, month)
    now = to_local_naive(now or utc_now(), tz)
    open_until = end_of_month(year, month)
    if open_until < now:
        raise InvalidSelection(f"{year}-{month:02d} has already ended")

    with _admin_write(session, "release month"):
        override = OverrideRepository.create(
            session,
            AvailabilityOverride(year=year, month=month, open_from=now, open_until=open_until),
        )
    logger.info("Released %s-%02d until %s (override %s)", year, month, open_until, override.id)
    return override


def release_current_month(session: Session, now: Optional[datetime] = None, tz: str = "UTC") -> AvailabilityOverride:
    local = to_local_naive(now or utc_now(), tz)
    return release_month(session, local.year, local.month, local, tz)


def release_next_month(session: Session, now: Optional[datetime] = None, tz: str = "UTC") -> AvailabilityOverride:
    local = to_local_naive(now or utc_now(), tz)
    year, month = next_month(local.year, local.month)
    return release_month(session, year, month, local, tz)


def revoke_override(session: Session, override_id: int) -> bool:
    """Delete a manual release. Returns False if it did not exist."""
    with _admin_write(session, "revoke override"):
        deleted = OverrideRepository.delete(session, override_id)
    if deleted:
        logger.info("Revoked override %s", override_id)
    return deleted > 0


def active_overrides(session: Session, now: Optional[datetime] = None, tz: str = "UTC") -> List[AvailabilityOverride]:
    """Overrides that have not expired yet (open_until >= now)."""
    now = to_local_naive(now or utc_now(), tz)
    return OverrideRepository.get_not_expired(session, now)


# ---------------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------------

def _normalize_times(times: Optional[Iterable]) -> Optional[List[str]]:
    if not times:
        return None
    if isinstance(times, str):
        times = [times]
    return sorted({format_time(parse_time_string(t)) for t in times})


def save_block(
    session: Session,
    day: date,
    times: Optional[Iterable] = None,
    reason: Optional[str] = None,
    block_id: Optional[int] = None,
) -> BlockedMass:
    """
    Create or update a block.

    An empty or missing ``times`` list blocks the whole date.

    Raises:
        InvalidSelection: On a bad time string, a non-date ``day`` or an unknown block_id
    """
    if isinstance(day, datetime) or not isinstance(day, date):
        raise InvalidSelection(f"Block date must be a date, got {day!r}")
    blocked_times = _normalize_times(times)
    reason = (reason or "").strip() or None

    with _admin_write(session, "save block"):
        if block_id is None:
            block = BlockedMassRepository.create(
                session, BlockedMass(date=day, blocked_times=blocked_times, reason=reason)
            )
        else:
            block = BlockedMassRepository.get_by_id(session, block_id)
            if block is None:
                raise InvalidSelection(f"Unknown block: {block_id}", details={"block_id": block_id})
            block.date = day
            block.blocked_times = blocked_times
            block.reason = reason
            block = BlockedMassRepository.update(session, block)

    logger.info("Block %s saved for %s (%s)", block.id, day.isoformat(),
                "whole day" if blocked_times is None else ", ".join(blocked_times))
    return block


def remove_block(session: Session, block_id: int) -> bool:
    with _admin_write(session, "remove block"):
        deleted = BlockedMassRepository.delete(session, block_id)
    if deleted:
        logger.info("Removed block %s", block_id)
    return deleted > 0


def block_candidate_times(session: Session, day: date) -> List[time]:
    """Times that can be blocked on ``day``: active recurring masses plus active extras."""
    times = {parse_time_string(m.time) for m in MassTimeRepository.get_by_weekday(session, parish_weekday(day))}
    times.update(parse_time_string(e.time) for e in ExtraEventRepository.get_active_on(session, day))
    return sorted(times)


def blocks_between(session: Session, start: date, end: date) -> List[BlockSpec]:
    return [BlockSpec.from_model(row) for row in BlockedMassRepository.get_between(session, start, end)]
