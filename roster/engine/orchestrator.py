"""Orchestrator - the operations the availability screen calls."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Callable, Dict, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from roster.config import RosterConfig
from roster.domain.repositories import MinisterRepository, SelectionRepository
from roster.errors import InvalidSelection, PersistenceFailure
from roster.services.timeplan import check_month, dates_in_month, month_bounds, next_month, to_local_naive, utc_now

from .blocks import BlockOverlay
from .catalog import ExtraRef, SlotRef, Target, TimeCatalog
from .coordinator import CommitCoordinator, CommitResult
from .draft import AvailabilityDraft, SelectionSet
from .ledger import CapacityLedger, Occupancy
from .window import WindowDecision, WindowPolicy

logger = logging.getLogger(__name__)


class AvailabilityOrchestrator:
    """
    Wires the catalog, blocks, window policy, ledger and coordinator together.

    One instance is shared by every minister session of a process so that all
    commits go through the same ledger locks.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        cfg: Optional[RosterConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
        ledger: Optional[CapacityLedger] = None,
    ):
        self.session_factory = session_factory
        self.cfg = cfg or RosterConfig()
        self.clock = clock or utc_now
        self.ledger = ledger or CapacityLedger(lock_timeout=self.cfg.lock_timeout_seconds)
        self.coordinator = CommitCoordinator(session_factory, self.ledger, self.cfg, clock=self.clock)

    def default_month(self) -> Tuple[int, int]:
        """The calendar month after today in the parish timezone."""
        now = to_local_naive(self.clock(), self.cfg.timezone)
        return next_month(now.year, now.month)

    def _resolve_month(self, year: Optional[int], month: Optional[int]) -> Tuple[int, int]:
        if year is None or month is None:
            return self.default_month()
        check_month(year, month)
        return year, month

    def window_status(self, year: Optional[int] = None, month: Optional[int] = None) -> WindowDecision:
        year, month = self._resolve_month(year, month)
        try:
            with self.session_factory() as session:
                policy = WindowPolicy.load(session, self.cfg, clock=self.clock)
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Could not read window settings: {e}") from e
        return policy.check(year, month)

    def open_draft(
        self,
        minister_id: int,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> AvailabilityDraft:
        """
        Load a minister's committed selections for a month into a fresh draft.

        Opening is always allowed; whether edits are accepted depends on the
        window at the time of each mutation.

        Raises:
            InvalidSelection: If the minister does not exist or the month is invalid
            PersistenceFailure: If the store cannot be read
        """
        year, month = self._resolve_month(year, month)
        first, last = month_bounds(year, month)
        try:
            with self.session_factory() as session:
                if MinisterRepository.get_by_id(session, minister_id) is None:
                    raise InvalidSelection(f"Unknown minister: {minister_id}", details={"minister_id": minister_id})
                catalog = TimeCatalog.load(session, first, last)
                blocks = BlockOverlay.load(session, first, last)
                policy = WindowPolicy.load(session, self.cfg, clock=self.clock)
                committed = SelectionSet(
                    regular=frozenset(SelectionRepository.regular_for_minister(session, minister_id, first, last)),
                    extras=frozenset(
                        SelectionRepository.extras_for_minister(session, minister_id, [e.id for e in catalog.extras])
                    ),
                )
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Could not load availability: {e}") from e

        logger.debug("Opened draft for minister %s (%s-%02d) with %d regular, %d extras",
                     minister_id, year, month, len(committed.regular), len(committed.extras))
        return AvailabilityDraft(minister_id, year, month, catalog, blocks, policy, committed)

    def commit(self, draft: AvailabilityDraft) -> CommitResult:
        return self.coordinator.commit(draft)

    def occupancy(self, year: Optional[int] = None, month: Optional[int] = None) -> Dict[Target, Occupancy]:
        """Current claims for every slot and extra of a month."""
        year, month = self._resolve_month(year, month)
        first, last = month_bounds(year, month)
        try:
            with self.session_factory() as session:
                catalog = TimeCatalog.load(session, first, last)
                return self.ledger.snapshot(session, catalog, dates_in_month(year, month))
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Could not read occupancy: {e}") from e

    def slot_counts(self, start: date, end: date) -> Dict[SlotRef, int]:
        try:
            with self.session_factory() as session:
                return self.ledger.slot_counts(session, start, end)
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Could not read slot counts: {e}") from e

    def extra_counts(self, extra_ids) -> Dict[ExtraRef, int]:
        try:
            with self.session_factory() as session:
                return self.ledger.extra_counts(session, extra_ids)
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Could not read extra counts: {e}") from e

    def rebuild_occupancy(self) -> int:
        """Recompute every occupancy record from the selection rows."""
        try:
            with self.session_factory() as session, session.begin():
                written = self.ledger.rebuild(session)
        except SQLAlchemyError as e:
            logger.error("Occupancy rebuild failed", exc_info=True)
            raise PersistenceFailure(f"Could not rebuild occupancy: {e}") from e
        return written
