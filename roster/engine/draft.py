"""AvailabilityDraft - a minister's staged selections for one month."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import FrozenSet, Iterable, List, Tuple

from roster.errors import InvalidSelection
from roster.services.timeplan import dates_in_month, month_bounds, parish_weekday

from .blocks import BlockOverlay
from .catalog import TimeCatalog
from .window import WindowDecision, WindowPolicy

RegularKey = Tuple[date, int]


class RecurrenceMode(str, Enum):
    SET = "set"
    CLEAR = "clear"


@dataclass(frozen=True)
class SelectionSet:
    """Immutable set of regular (date, slot) pairs and extra ids."""

    regular: FrozenSet[RegularKey] = field(default_factory=frozenset)
    extras: FrozenSet[int] = field(default_factory=frozenset)

    def toggled_regular(self, day: date, slot_id: int) -> "SelectionSet":
        return SelectionSet(self.regular ^ {(day, slot_id)}, self.extras)

    def toggled_extra(self, extra_id: int) -> "SelectionSet":
        return SelectionSet(self.regular, self.extras ^ {extra_id})

    def with_regular(self, pairs: Iterable[RegularKey]) -> "SelectionSet":
        return SelectionSet(self.regular | frozenset(pairs), self.extras)

    def without_regular(self, pairs: Iterable[RegularKey]) -> "SelectionSet":
        return SelectionSet(self.regular - frozenset(pairs), self.extras)


@dataclass(frozen=True)
class DraftDiff:
    """Pending changes, each list in chronological order."""

    to_insert_regular: Tuple[RegularKey, ...] = ()
    to_delete_regular: Tuple[RegularKey, ...] = ()
    to_insert_extras: Tuple[int, ...] = ()
    to_delete_extras: Tuple[int, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.to_insert_regular or self.to_delete_regular or self.to_insert_extras or self.to_delete_extras)

    @property
    def size(self) -> int:
        return (
            len(self.to_insert_regular) + len(self.to_delete_regular)
            + len(self.to_insert_extras) + len(self.to_delete_extras)
        )


class AvailabilityDraft:
    """
    Staging area for one minister and month.

    ``committed`` mirrors what the store held when the draft was loaded (or last
    committed); ``working`` holds the proposed selections. Both are immutable
    SelectionSets, replaced wholesale on every edit. Every mutation re-checks the
    editing window and the blocks; a rejected edit raises and leaves the draft
    unchanged.
    """

    def __init__(
        self,
        minister_id: int,
        year: int,
        month: int,
        catalog: TimeCatalog,
        blocks: BlockOverlay,
        policy: WindowPolicy,
        committed: SelectionSet | None = None,
    ):
        self.minister_id = minister_id
        self.year = year
        self.month = month
        self.first_day, self.last_day = month_bounds(year, month)
        self.catalog = catalog
        self.blocks = blocks
        self.policy = policy
        self.committed = committed or SelectionSet()
        self.working = self.committed

    def __repr__(self) -> str:
        return (
            f"<AvailabilityDraft(minister={self.minister_id}, month={self.year}-{self.month:02d}, "
            f"pending={self.diff().size})>"
        )

    @property
    def committed_regular(self) -> FrozenSet[RegularKey]:
        return self.committed.regular

    @property
    def committed_extras(self) -> FrozenSet[int]:
        return self.committed.extras

    @property
    def draft_regular(self) -> FrozenSet[RegularKey]:
        return self.working.regular

    @property
    def draft_extras(self) -> FrozenSet[int]:
        return self.working.extras

    def window(self) -> WindowDecision:
        return self.policy.check(self.year, self.month)

    def is_selected(self, day: date, slot_id: int) -> bool:
        return (day, slot_id) in self.working.regular

    def is_extra_selected(self, extra_id: int) -> bool:
        return extra_id in self.working.extras

    def _check_day(self, day: date) -> None:
        if isinstance(day, datetime) or not isinstance(day, date) or not self.first_day <= day <= self.last_day:
            raise InvalidSelection(
                f"{day!r} is outside {self.year}-{self.month:02d}",
                details={"date": str(day)},
            )

    def toggle(self, day: date, slot_id: int) -> bool:
        """
        Flip the selection of a recurring slot on ``day``.

        Returns:
            True if the pair is now selected

        Raises:
            WindowNotEditable: If the month is not editable now
            InvalidSelection: If the date or slot is not valid for this month
            BlockedSlot: If the date/time is blocked
        """
        self.policy.require_editable(self.year, self.month)
        self._check_day(day)
        slot = self.catalog.slot_on_date(day, slot_id)
        self.blocks.check(day, slot.time)
        self.working = self.working.toggled_regular(day, slot_id)
        return self.is_selected(day, slot_id)

    def toggle_extra(self, extra_id: int) -> bool:
        """
        Flip the selection of an extra event.

        Raises:
            WindowNotEditable: If the month is not editable now
            InvalidSelection: If the extra is unknown or outside this month
            BlockedSlot: If the extra's date/time is blocked
        """
        self.policy.require_editable(self.year, self.month)
        extra = self.catalog.extra(extra_id)
        self._check_day(extra.date)
        self.blocks.check(extra.date, extra.time)
        self.working = self.working.toggled_extra(extra_id)
        return self.is_extra_selected(extra_id)

    def apply_recurrence(self, weekday: int, slot_id: int, mode: RecurrenceMode | str = RecurrenceMode.SET) -> List[date]:
        """
        Add or remove ``slot_id`` on every ``weekday`` of the month, skipping blocked dates.

        Returns:
            The dates that were set or cleared

        Raises:
            WindowNotEditable: If the month is not editable now
            InvalidSelection: On a bad weekday, mode or slot, or a slot not held on that weekday
        """
        self.policy.require_editable(self.year, self.month)
        try:
            mode = RecurrenceMode(mode)
        except ValueError:
            raise InvalidSelection(f"Unknown recurrence mode: {mode!r}") from None
        if not isinstance(weekday, int) or not 0 <= weekday <= 6:
            raise InvalidSelection(f"Weekday must be 0..6, got {weekday!r}")
        slot = self.catalog.slot(slot_id)
        if slot.weekday != weekday:
            raise InvalidSelection(
                f"Mass time {slot_id} is not held on weekday {weekday}",
                details={"slot_id": slot_id, "weekday": weekday},
            )

        days = [
            d for d in dates_in_month(self.year, self.month)
            if parish_weekday(d) == weekday and not self.blocks.is_blocked(d, slot.time)
        ]
        pairs = [(d, slot_id) for d in days]
        if mode is RecurrenceMode.SET:
            self.working = self.working.with_regular(pairs)
        else:
            self.working = self.working.without_regular(pairs)
        return days

    def _regular_order(self, key: RegularKey):
        day, slot_id = key
        slot_time = self.catalog.slot(slot_id).time if self.catalog.has_slot(slot_id) else time.max
        return (day, slot_time, slot_id)

    def _extra_order(self, extra_id: int):
        if self.catalog.has_extra(extra_id):
            extra = self.catalog.extra(extra_id)
            return (0, extra.date, extra.time, extra_id)
        return (1, date.max, time.max, extra_id)

    def diff(self) -> DraftDiff:
        """Changes between the committed baseline and the working sets. Pure."""
        committed, working = self.committed, self.working
        return DraftDiff(
            to_insert_regular=tuple(sorted(working.regular - committed.regular, key=self._regular_order)),
            to_delete_regular=tuple(sorted(committed.regular - working.regular, key=self._regular_order)),
            to_insert_extras=tuple(sorted(working.extras - committed.extras, key=self._extra_order)),
            to_delete_extras=tuple(sorted(committed.extras - working.extras, key=self._extra_order)),
        )

    def has_pending_changes(self) -> bool:
        return self.committed != self.working

    def discard(self) -> None:
        """Drop every pending change."""
        self.working = self.committed

    def mark_committed(self) -> None:
        """Adopt the working sets as the new baseline."""
        self.committed = self.working
