"""WindowPolicy - decides whether a month's availability may be edited right now."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Callable, Iterable, Optional, Sequence

from sqlalchemy.orm import Session

from roster.config import RosterConfig
from roster.domain.models import AvailabilityOverride, AvailabilityWindowConfig
from roster.domain.repositories import OverrideRepository, WindowConfigRepository
from roster.errors import WindowNotEditable
from roster.services.timeplan import check_month, end_of_month, next_month, to_local_naive, utc_now

logger = logging.getLogger(__name__)

DEFAULT_DAYS_BEFORE_NEXT_MONTH = 10


class WindowReason(str, Enum):
    MANUAL_OVERRIDE = "ManualOverride"
    HARD_CLOSED = "HardClosed"
    WRONG_MONTH = "WrongMonth"
    NOT_YET_OPEN = "NotYetOpen"
    CLOSED = "Closed"
    OPEN = "Open"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class WindowSettings:
    """Latest default window rule."""

    days_before_next_month: int = DEFAULT_DAYS_BEFORE_NEXT_MONTH
    hard_close: bool = False

    @classmethod
    def from_model(
        cls,
        row: Optional[AvailabilityWindowConfig],
        default_days: int = DEFAULT_DAYS_BEFORE_NEXT_MONTH,
    ) -> "WindowSettings":
        if row is None:
            return cls(days_before_next_month=default_days)
        days = row.days_before_next_month
        if days is None or days < 1:
            days = default_days
        return cls(days_before_next_month=days, hard_close=bool(row.hard_close))


@dataclass(frozen=True)
class OverrideSpec:
    """Manual release of (year, month) between two instants, inclusive."""

    year: int
    month: int
    open_from: datetime
    open_until: datetime
    id: Optional[int] = None

    @classmethod
    def from_model(cls, row: AvailabilityOverride) -> "OverrideSpec":
        return cls(year=row.year, month=row.month, open_from=row.open_from, open_until=row.open_until, id=row.id)


@dataclass(frozen=True)
class WindowDecision:
    allowed: bool
    reason: WindowReason
    opens_at: Optional[datetime] = None
    closes_at: Optional[datetime] = None

    @property
    def message(self) -> str:
        if self.reason is WindowReason.MANUAL_OVERRIDE:
            return f"Editing manually released until {self.closes_at:%Y-%m-%d %H:%M}."
        if self.reason is WindowReason.HARD_CLOSED:
            return "The editing window was closed by the coordination."
        if self.reason is WindowReason.WRONG_MONTH:
            return "Only the upcoming month set by the coordination can be edited."
        if self.reason is WindowReason.NOT_YET_OPEN:
            return f"Availability for this month opens on {self.opens_at:%Y-%m-%d}."
        if self.reason is WindowReason.CLOSED:
            return "The editing window for this month has already ended."
        return "Editing window is open. Confirm your choices before leaving."


def is_editable(
    year: int,
    month: int,
    now: datetime,
    config: WindowSettings,
    overrides: Iterable[OverrideSpec] = (),
    tz: str = "UTC",
) -> WindowDecision:
    """
    Decide whether (year, month) is editable at ``now``. Pure; first match wins.

    1. A matching override active at ``now`` opens the month, even when hard-closed.
    2. Hard close denies everything else.
    3. Only the calendar month after ``now`` is open by default. A month whose
       last day has already passed reports Closed; any other month WrongMonth.
    4. The next month opens ``days_before_next_month`` days before its first day
       and closes at the end of its last day.

    Raises:
        InvalidSelection: If month is outside 1..12
    """
    check_month(year, month)
    now = to_local_naive(now, tz)

    for ov in overrides:
        if ov.year != year or ov.month != month:
            continue
        if to_local_naive(ov.open_from, tz) <= now <= to_local_naive(ov.open_until, tz):
            return WindowDecision(True, WindowReason.MANUAL_OVERRIDE, closes_at=to_local_naive(ov.open_until, tz))

    if config.hard_close:
        return WindowDecision(False, WindowReason.HARD_CLOSED)

    next_year, next_mon = next_month(now.year, now.month)
    if (year, month) != (next_year, next_mon):
        if (year, month) < (next_year, next_mon) and now > end_of_month(year, month):
            return WindowDecision(False, WindowReason.CLOSED, closes_at=end_of_month(year, month))
        return WindowDecision(False, WindowReason.WRONG_MONTH)

    days = config.days_before_next_month
    if days is None or days < 1:
        days = DEFAULT_DAYS_BEFORE_NEXT_MONTH
    open_from = datetime.combine(date(next_year, next_mon, 1) - timedelta(days=days), time.min)
    close_at = end_of_month(next_year, next_mon)

    if now < open_from:
        return WindowDecision(False, WindowReason.NOT_YET_OPEN, opens_at=open_from, closes_at=close_at)
    if now > close_at:
        return WindowDecision(False, WindowReason.CLOSED, opens_at=open_from, closes_at=close_at)
    return WindowDecision(True, WindowReason.OPEN, opens_at=open_from, closes_at=close_at)


class WindowPolicy:
    """Binds the window rule inputs to a clock so drafts can re-check on every mutation."""

    def __init__(
        self,
        settings: WindowSettings,
        overrides: Sequence[OverrideSpec] = (),
        clock: Optional[Callable[[], datetime]] = None,
        tz: str = "UTC",
    ):
        self.settings = settings
        self.overrides = tuple(overrides)
        self.clock = clock or utc_now
        self.tz = tz

    @classmethod
    def load(
        cls,
        session: Session,
        cfg: RosterConfig,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> "WindowPolicy":
        """Read the latest settings row and all overrides from the store."""
        settings = WindowSettings.from_model(
            WindowConfigRepository.get_latest(session),
            default_days=cfg.default_days_before_next_month,
        )
        overrides = [OverrideSpec.from_model(row) for row in OverrideRepository.get_all(session)]
        return cls(settings, overrides, clock=clock, tz=cfg.timezone)

    def now(self) -> datetime:
        return self.clock()

    def check(self, year: int, month: int) -> WindowDecision:
        return is_editable(year, month, self.now(), self.settings, self.overrides, tz=self.tz)

    def require_editable(self, year: int, month: int, error_cls=WindowNotEditable) -> WindowDecision:
        """
        Raises:
            WindowNotEditable: (or ``error_cls``) if the month is not editable now
        """
        decision = self.check(year, month)
        if not decision.allowed:
            logger.debug("Window denied for %s-%02d: %s", year, month, decision.reason)
            raise error_cls(decision.reason, decision.message)
        return decision
