"""BlockOverlay - administrator blackouts that veto slots regardless of capacity."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, time
from typing import Dict, FrozenSet, Iterable, List, Optional, Set

from sqlalchemy.orm import Session

from roster.domain.models import BlockedMass
from roster.domain.repositories import BlockedMassRepository
from roster.errors import BlockedSlot, InvalidSelection
from roster.services.timeplan import parse_time_string


@dataclass(frozen=True)
class BlockSpec:
    """A block on one date; ``times`` of None covers the whole date."""

    id: Optional[int]
    date: date
    times: Optional[FrozenSet[time]]
    reason: Optional[str] = None

    @classmethod
    def from_model(cls, row: BlockedMass) -> "BlockSpec":
        times = None
        if row.blocked_times is not None:
            if not isinstance(row.blocked_times, (list, tuple)):
                raise InvalidSelection(f"Block {row.id}: blocked_times must be a list")
            times = frozenset(parse_time_string(t) for t in row.blocked_times)
        return cls(id=row.id, date=row.date, times=times, reason=row.reason)

    @property
    def whole_day(self) -> bool:
        return self.times is None

    def covers(self, at: time) -> bool:
        return self.times is None or at in self.times


class BlockOverlay:
    """Read-only view over the blocks for a date range."""

    def __init__(self, blocks: Iterable[BlockSpec] = ()):
        self._by_date: Dict[date, List[BlockSpec]] = defaultdict(list)
        for block in blocks:
            self._by_date[block.date].append(block)
        for day_blocks in self._by_date.values():
            # whole-day blocks first so their reason is the one reported
            day_blocks.sort(key=lambda b: (not b.whole_day, b.id or 0))

    @classmethod
    def load(cls, session: Session, start: date, end: date) -> "BlockOverlay":
        return cls(BlockSpec.from_model(row) for row in BlockedMassRepository.get_between(session, start, end))

    def blocks_on(self, day: date) -> List[BlockSpec]:
        return list(self._by_date.get(day, []))

    def block_for(self, day: date, at) -> Optional[BlockSpec]:
        """First block covering ``day`` at ``at`` (minute granularity), if any."""
        at = parse_time_string(at)
        for block in self._by_date.get(day, []):
            if block.covers(at):
                return block
        return None

    def is_blocked(self, day: date, at) -> bool:
        """
        True if a whole-day block exists for ``day`` or a block lists ``at``.

        Raises:
            InvalidSelection: If ``at`` is not a valid time of day
        """
        return self.block_for(day, at) is not None

    def check(self, day: date, at) -> None:
        """
        Raises:
            BlockedSlot: If the date/time is blocked
        """
        block = self.block_for(day, at)
        if block is not None:
            raise BlockedSlot(day, parse_time_string(at), block.reason)

    def blocked_dates(self) -> Set[date]:
        """Dates carrying at least one effective block (for calendar shading)."""
        return {
            day for day, blocks in self._by_date.items()
            if any(b.whole_day or b.times for b in blocks)
        }
