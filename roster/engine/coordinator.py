"""CommitCoordinator - applies a draft's diff to the store as one all-or-nothing unit."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from roster.config import RosterConfig
from roster.domain.repositories import SelectionRepository
from roster.errors import InvalidSelection, PersistenceFailure, RosterError, WindowClosed

from .blocks import BlockOverlay
from .catalog import ExtraRef, SlotRef, Target, TimeCatalog
from .draft import AvailabilityDraft, DraftDiff
from .ledger import CapacityLedger, OccupancyConflict, SlotChange
from .window import WindowPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommitResult:
    """What a successful commit wrote."""

    inserted_regular: int = 0
    deleted_regular: int = 0
    inserted_extras: int = 0
    deleted_extras: int = 0
    occupancy: Dict[Target, int] = field(default_factory=dict)
    attempts: int = 0

    @property
    def noop(self) -> bool:
        return self.attempts == 0


def build_changes(
    insert_regular, delete_regular, insert_extras, delete_extras,
) -> List[SlotChange]:
    """Releases first, then claims; each group keeps the given (chronological) order."""
    changes = [SlotChange(SlotRef(d, s), -1) for d, s in delete_regular]
    changes += [SlotChange(ExtraRef(e), -1) for e in delete_extras]
    changes += [SlotChange(SlotRef(d, s), +1) for d, s in insert_regular]
    changes += [SlotChange(ExtraRef(e), +1) for e in insert_extras]
    return changes


class CommitCoordinator:
    """
    Reconciles drafts against persisted state.

    Each attempt re-checks the window, the catalog and the blocks against fresh
    store data, then validates capacity and writes the selection rows plus the
    occupancy records in a single transaction while holding the per-target
    locks. Any failure rolls the transaction back and leaves the draft as it was.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        ledger: Optional[CapacityLedger] = None,
        cfg: Optional[RosterConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session_factory = session_factory
        self.cfg = cfg or RosterConfig()
        self.ledger = ledger or CapacityLedger(lock_timeout=self.cfg.lock_timeout_seconds)
        self.clock = clock

    def commit(self, draft: AvailabilityDraft) -> CommitResult:
        """
        Persist the draft's pending changes.

        Returns:
            CommitResult (``noop`` when there was nothing to write)

        Raises:
            WindowClosed: If the month is no longer editable
            InvalidSelection: If an insertion references an unknown slot or extra
            BlockedSlot: If an insertion collides with a block
            CapacityExceeded: If a claim would exceed a maximum
            PersistenceFailure: If the store fails, a lock times out or conflicts persist
        """
        diff = draft.diff()
        if diff.is_empty:
            return CommitResult()

        targets = [c.target for c in build_changes(
            diff.to_insert_regular, diff.to_delete_regular, diff.to_insert_extras, diff.to_delete_extras,
        )]
        retries = self.cfg.max_commit_retries
        last_conflict: Optional[OccupancyConflict] = None

        for attempt in range(1, retries + 1):
            try:
                with self.ledger.locked(targets):
                    result = self._attempt(draft, diff, attempt)
            except OccupancyConflict as e:
                last_conflict = e
                logger.warning("Commit attempt %d/%d for minister %s conflicted on %s",
                               attempt, retries, draft.minister_id, e.key)
                continue
            except RosterError as e:
                logger.warning("Commit rejected for minister %s (%s-%02d): %s",
                               draft.minister_id, draft.year, draft.month, e.code)
                raise
            except SQLAlchemyError as e:
                logger.error("Commit failed for minister %s", draft.minister_id, exc_info=True)
                raise PersistenceFailure(f"Store error while saving availability: {e}") from e

            draft.mark_committed()
            logger.info(
                "Committed availability for minister %s (%s-%02d): +%d/-%d regular, +%d/-%d extras",
                draft.minister_id, draft.year, draft.month,
                result.inserted_regular, result.deleted_regular,
                result.inserted_extras, result.deleted_extras,
            )
            return result

        raise PersistenceFailure(
            f"Availability changed concurrently {retries} times; please retry",
            details={"target": last_conflict.key if last_conflict else None},
        )

    def _attempt(self, draft: AvailabilityDraft, diff: DraftDiff, attempt: int) -> CommitResult:
        with self.session_factory() as session, session.begin():
            clock = self.clock or draft.policy.clock
            policy = WindowPolicy.load(session, self.cfg, clock=clock)
            policy.require_editable(draft.year, draft.month, error_cls=WindowClosed)

            catalog = TimeCatalog.load(session, draft.first_day, draft.last_day)
            blocks = BlockOverlay.load(session, draft.first_day, draft.last_day)
            self._validate_insertions(draft, diff, catalog, blocks)

            insert_regular, delete_regular, insert_extras, delete_extras = self._reconcile(session, draft, diff)
            changes = build_changes(insert_regular, delete_regular, insert_extras, delete_extras)
            occupancy = self.ledger.check_and_reserve(session, changes, catalog)

            SelectionRepository.delete_regular(session, draft.minister_id, delete_regular)
            SelectionRepository.delete_extras(session, draft.minister_id, delete_extras)
            SelectionRepository.insert_regular(session, draft.minister_id, insert_regular)
            SelectionRepository.insert_extras(session, draft.minister_id, insert_extras)

        return CommitResult(
            inserted_regular=len(insert_regular),
            deleted_regular=len(delete_regular),
            inserted_extras=len(insert_extras),
            deleted_extras=len(delete_extras),
            occupancy=occupancy,
            attempts=attempt,
        )

    @staticmethod
    def _validate_insertions(
        draft: AvailabilityDraft, diff: DraftDiff, catalog: TimeCatalog, blocks: BlockOverlay,
    ) -> None:
        for day, slot_id in diff.to_insert_regular:
            slot = catalog.slot_on_date(day, slot_id)
            blocks.check(day, slot.time)
        for extra_id in diff.to_insert_extras:
            extra = catalog.extra(extra_id)
            if not draft.first_day <= extra.date <= draft.last_day:
                raise InvalidSelection(f"Extra {extra_id} is not in {draft.year}-{draft.month:02d}")
            blocks.check(extra.date, extra.time)

    @staticmethod
    def _reconcile(session: Session, draft: AvailabilityDraft, diff: DraftDiff):
        """Drop insertions already stored and deletions already gone."""
        stored_regular = SelectionRepository.regular_for_minister(
            session, draft.minister_id, draft.first_day, draft.last_day,
        )
        stored_extras = SelectionRepository.extras_for_minister(
            session, draft.minister_id, list(diff.to_insert_extras) + list(diff.to_delete_extras),
        )
        return (
            [p for p in diff.to_insert_regular if p not in stored_regular],
            [p for p in diff.to_delete_regular if p in stored_regular],
            [e for e in diff.to_insert_extras if e not in stored_extras],
            [e for e in diff.to_delete_extras if e in stored_extras],
        )
