"""CapacityLedger - occupancy per slot/extra and the max-occupancy invariant."""

from __future__ import annotations

import logging
import threading
import time as _time
import zlib
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from typing import Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from roster.domain.repositories import OccupancyRepository
from roster.errors import CapacityExceeded, InvalidSelection, PersistenceFailure

from .catalog import ExtraRef, SlotRef, Target, TimeCatalog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotChange:
    """One claim (+1) or release (-1) of a target."""

    target: Target
    delta: int

    def __post_init__(self):
        if self.delta not in (1, -1):
            raise InvalidSelection(f"Slot change delta must be +1 or -1, got {self.delta}")


@dataclass(frozen=True)
class Occupancy:
    """Current claims against a target's capacity range."""

    target: Target
    current: int
    min_required: int
    max_allowed: int

    @property
    def is_low(self) -> bool:
        return self.current < self.min_required

    @property
    def is_full(self) -> bool:
        return self.current >= self.max_allowed

    @property
    def status(self) -> str:
        if self.is_low:
            return "LOW"
        if self.is_full:
            return "FULL"
        return "OK"


class OccupancyConflict(Exception):
    """Another writer bumped an occupancy record between our read and our write."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Occupancy for {key} changed concurrently")


def apply_changes(
    changes: Sequence[SlotChange],
    counts: Mapping[Target, int],
    capacity: Callable[[Target], int],
    label: Optional[Callable[[Target], str]] = None,
) -> Dict[Target, int]:
    """
    Evaluate a batch of changes against current counts without mutating them.

    All releases are applied before any claim is checked, so swapping one
    selection for another within the same batch is never falsely blocked.
    Claims are checked in input order and the first violation is reported.

    Args:
        changes: Ordered claims and releases
        counts: Current occupancy per target (missing targets count as 0)
        capacity: Maximum allowed for a target
        label: Optional display name for error messages

    Returns:
        Post-change occupancy for every touched target

    Raises:
        CapacityExceeded: On the first claim that would exceed its maximum
    """
    working: Dict[Target, int] = {}
    for change in changes:
        working.setdefault(change.target, int(counts.get(change.target, 0)))

    for change in changes:
        if change.delta < 0:
            working[change.target] = max(0, working[change.target] - 1)

    for change in changes:
        if change.delta > 0:
            current = working[change.target]
            max_allowed = capacity(change.target)
            if current + 1 > max_allowed:
                raise CapacityExceeded(
                    change.target,
                    current,
                    max_allowed,
                    label=label(change.target) if label else None,
                )
            working[change.target] = current + 1

    return working


class CapacityLedger:
    """
    Authoritative occupancy for commits.

    Counts are recomputed from committed selection rows inside the caller's
    transaction; the per-target ``slot_occupancy`` record is then written with a
    version check, so two writers touching the same target cannot both succeed.
    In-process locks serialize same-target commits. Target keys hash onto a
    fixed pool of ``lock_stripes`` locks, so memory stays bounded in a
    long-lived process; disjoint targets proceed in parallel unless they share
    a stripe.
    """

    def __init__(self, lock_timeout: float = 5.0, lock_stripes: int = 64):
        if lock_stripes < 1:
            raise ValueError(f"lock_stripes must be >= 1, got {lock_stripes}")
        self.lock_timeout = lock_timeout
        self._stripes = [threading.Lock() for _ in range(lock_stripes)]

    def stripe_of(self, key: str) -> int:
        return zlib.crc32(key.encode("utf-8")) % len(self._stripes)

    @contextmanager
    def locked(self, targets: Iterable[Target]) -> Iterator[None]:
        """
        Hold the stripe locks of every target, acquired in stripe order.

        Raises:
            PersistenceFailure: If the locks are not obtained within ``lock_timeout``
        """
        keys = {t.key for t in targets}
        stripes = sorted({self.stripe_of(k) for k in keys})
        deadline = _time.monotonic() + self.lock_timeout
        acquired: List[threading.Lock] = []
        try:
            for stripe in stripes:
                lock = self._stripes[stripe]
                remaining = max(0.0, deadline - _time.monotonic())
                if not lock.acquire(timeout=remaining):
                    raise PersistenceFailure(
                        f"Timed out waiting for lock stripe {stripe}",
                        details={"targets": sorted(keys), "timeout": self.lock_timeout},
                    )
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()

    def current_counts(self, session: Session, targets: Iterable[Target]) -> Dict[Target, int]:
        """Recount committed rows for each target."""
        counts: Dict[Target, int] = {}
        for target in targets:
            if target in counts:
                continue
            if isinstance(target, SlotRef):
                counts[target] = OccupancyRepository.count_regular(session, target.date, target.slot_id)
            else:
                counts[target] = OccupancyRepository.count_extra(session, target.extra_id)
        return counts

    def check_and_reserve(
        self,
        session: Session,
        changes: Sequence[SlotChange],
        catalog: TimeCatalog,
    ) -> Dict[Target, int]:
        """
        Validate ``changes`` against fresh counts and stage the new occupancy.

        Nothing is written when a claim fails. On success the occupancy records
        are updated in ``session`` (not committed) and the new counts returned.

        Raises:
            CapacityExceeded: On the first claim past its maximum
            OccupancyConflict: If a record was bumped by another writer
        """
        targets: List[Target] = []
        for change in changes:
            if change.target not in targets:
                targets.append(change.target)
        if not targets:
            return {}

        records = OccupancyRepository.get_records(session, [t.key for t in targets])
        versions = {key: record.version for key, record in records.items()}
        counts = self.current_counts(session, targets)
        new_counts = apply_changes(changes, counts, catalog.capacity, catalog.label)

        for target in targets:
            key = target.key
            if key not in versions:
                try:
                    OccupancyRepository.insert_record(session, key, new_counts[target])
                except IntegrityError as e:
                    raise OccupancyConflict(key) from e
            elif not OccupancyRepository.compare_and_set(session, key, versions[key], new_counts[target]):
                raise OccupancyConflict(key)

        return new_counts

    @staticmethod
    def slot_counts(session: Session, start: date, end: date) -> Dict[SlotRef, int]:
        return {
            SlotRef(day, slot_id): total
            for (day, slot_id), total in OccupancyRepository.slot_counts(session, start, end).items()
        }

    @staticmethod
    def extra_counts(session: Session, extra_ids: Iterable[int]) -> Dict[ExtraRef, int]:
        return {ExtraRef(extra_id): total for extra_id, total in OccupancyRepository.extra_counts(session, extra_ids).items()}

    def snapshot(self, session: Session, catalog: TimeCatalog, days: Iterable[date]) -> Dict[Target, Occupancy]:
        """Occupancy for every catalog slot and extra falling on ``days``."""
        days = sorted(set(days))
        if not days:
            return {}
        slot_counts = self.slot_counts(session, days[0], days[-1])
        extras = [e for day in days for e in catalog.extras_on(day)]
        extra_counts = self.extra_counts(session, [e.id for e in extras])

        result: Dict[Target, Occupancy] = {}
        for day in days:
            for slot in catalog.slots_on(day):
                ref = SlotRef(day, slot.id)
                result[ref] = Occupancy(ref, slot_counts.get(ref, 0), slot.min_required, slot.max_allowed)
        for extra in extras:
            ref = ExtraRef(extra.id)
            result[ref] = Occupancy(ref, extra_counts.get(ref, 0), extra.min_required, extra.max_allowed)
        return result

    def rebuild(self, session: Session) -> int:
        """
        Recompute every occupancy record from selection rows. Does not commit.

        Returns:
            Number of records written
        """
        totals: Dict[str, int] = {
            ref.key: total for ref, total in self.slot_counts(session, date.min, date.max).items()
        }
        totals.update({
            ExtraRef(extra_id).key: total
            for extra_id, total in OccupancyRepository.all_extra_counts(session).items()
        })

        records = {r.target_key: r for r in OccupancyRepository.get_all_records(session)}
        for key in records:
            totals.setdefault(key, 0)

        for key, total in sorted(totals.items()):
            record = records.get(key)
            if record is None:
                OccupancyRepository.insert_record(session, key, total)
            else:
                OccupancyRepository.compare_and_set(session, key, record.version, total)
        logger.info("Rebuilt %d occupancy records", len(totals))
        return len(totals)
