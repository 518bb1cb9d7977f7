"""TimeCatalog - read-only registry of recurring mass slots and extra events."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, time
from typing import Dict, Iterable, List, Union

from sqlalchemy.orm import Session

from roster.domain.models import ExtraEvent, MassTime
from roster.domain.repositories import ExtraEventRepository, MassTimeRepository
from roster.errors import InvalidSelection
from roster.services.timeplan import format_time, parish_weekday, parse_time_string


@dataclass(frozen=True)
class SlotSpec:
    """Recurring weekly mass time with its capacity range."""

    id: int
    weekday: int
    time: time
    min_required: int
    max_allowed: int
    active: bool = True

    def __post_init__(self):
        if not 0 <= self.weekday <= 6:
            raise InvalidSelection(f"Slot {self.id}: weekday must be 0..6, got {self.weekday}")
        if self.min_required < 0 or self.min_required > self.max_allowed:
            raise InvalidSelection(
                f"Slot {self.id}: need 0 <= min_required <= max_allowed, got {self.min_required}/{self.max_allowed}"
            )

    @classmethod
    def from_model(cls, row: MassTime) -> "SlotSpec":
        return cls(
            id=row.id,
            weekday=row.weekday,
            time=parse_time_string(row.time),
            min_required=row.min_required,
            max_allowed=row.max_allowed,
            active=bool(row.active),
        )


@dataclass(frozen=True)
class ExtraSpec:
    """One-off dated event with its capacity range."""

    id: int
    date: date
    time: time
    title: str
    min_required: int
    max_allowed: int
    active: bool = True

    def __post_init__(self):
        if self.min_required < 0 or self.min_required > self.max_allowed:
            raise InvalidSelection(
                f"Extra {self.id}: need 0 <= min_required <= max_allowed, got {self.min_required}/{self.max_allowed}"
            )

    @classmethod
    def from_model(cls, row: ExtraEvent) -> "ExtraSpec":
        return cls(
            id=row.id,
            date=row.event_date,
            time=parse_time_string(row.time),
            title=row.title,
            min_required=row.min_required,
            max_allowed=row.max_allowed,
            active=bool(row.active),
        )


@dataclass(frozen=True, order=True)
class SlotRef:
    """A recurring slot on one concrete date."""

    date: date
    slot_id: int

    @property
    def key(self) -> str:
        return f"slot:{self.date.isoformat()}:{self.slot_id}"


@dataclass(frozen=True, order=True)
class ExtraRef:
    """An extra event."""

    extra_id: int

    @property
    def key(self) -> str:
        return f"extra:{self.extra_id}"


Target = Union[SlotRef, ExtraRef]


class TimeCatalog:
    """
    Snapshot of the active slots and extras.

    Inactive entries are dropped on construction, so they behave like unknown ids.
    """

    def __init__(self, slots: Iterable[SlotSpec] = (), extras: Iterable[ExtraSpec] = ()):
        self._slots: Dict[int, SlotSpec] = {s.id: s for s in slots if s.active}
        self._extras: Dict[int, ExtraSpec] = {e.id: e for e in extras if e.active}
        self._slots_by_weekday: Dict[int, List[SlotSpec]] = defaultdict(list)
        for slot in sorted(self._slots.values(), key=lambda s: (s.weekday, s.time, s.id)):
            self._slots_by_weekday[slot.weekday].append(slot)
        self._extras_by_date: Dict[date, List[ExtraSpec]] = defaultdict(list)
        for extra in sorted(self._extras.values(), key=lambda e: (e.date, e.time, e.id)):
            self._extras_by_date[extra.date].append(extra)

    @classmethod
    def load(cls, session: Session, start: date, end: date) -> "TimeCatalog":
        """Load active slots and the active extras dated within [start, end]."""
        slots = [SlotSpec.from_model(m) for m in MassTimeRepository.get_active(session)]
        extras = [ExtraSpec.from_model(e) for e in ExtraEventRepository.get_active_between(session, start, end)]
        return cls(slots, extras)

    @property
    def slots(self) -> List[SlotSpec]:
        return [s for wd in range(7) for s in self._slots_by_weekday.get(wd, [])]

    @property
    def extras(self) -> List[ExtraSpec]:
        return [e for d in sorted(self._extras_by_date) for e in self._extras_by_date[d]]

    def has_slot(self, slot_id: int) -> bool:
        return slot_id in self._slots

    def has_extra(self, extra_id: int) -> bool:
        return extra_id in self._extras

    def slot(self, slot_id: int) -> SlotSpec:
        try:
            return self._slots[slot_id]
        except (KeyError, TypeError):
            raise InvalidSelection(f"Unknown mass time: {slot_id!r}", details={"slot_id": slot_id}) from None

    def extra(self, extra_id: int) -> ExtraSpec:
        try:
            return self._extras[extra_id]
        except (KeyError, TypeError):
            raise InvalidSelection(f"Unknown extra event: {extra_id!r}", details={"extra_id": extra_id}) from None

    def slots_for_weekday(self, weekday: int) -> List[SlotSpec]:
        return list(self._slots_by_weekday.get(weekday, []))

    def slots_on(self, day: date) -> List[SlotSpec]:
        return self.slots_for_weekday(parish_weekday(day))

    def extras_on(self, day: date) -> List[ExtraSpec]:
        return list(self._extras_by_date.get(day, []))

    def slot_on_date(self, day: date, slot_id: int) -> SlotSpec:
        """
        Resolve a slot for a concrete date.

        Raises:
            InvalidSelection: If the slot is unknown or does not run on that weekday
        """
        slot = self.slot(slot_id)
        if parish_weekday(day) != slot.weekday:
            raise InvalidSelection(
                f"Mass time {slot_id} does not take place on {day.isoformat()}",
                details={"slot_id": slot_id, "date": day.isoformat()},
            )
        return slot

    def date_of(self, target: Target) -> date:
        if isinstance(target, SlotRef):
            return target.date
        return self.extra(target.extra_id).date

    def time_of(self, target: Target) -> time:
        if isinstance(target, SlotRef):
            return self.slot(target.slot_id).time
        return self.extra(target.extra_id).time

    def capacity(self, target: Target) -> int:
        if isinstance(target, SlotRef):
            return self.slot(target.slot_id).max_allowed
        return self.extra(target.extra_id).max_allowed

    def label(self, target: Target) -> str:
        """Human readable name used in error messages."""
        if isinstance(target, SlotRef):
            if self.has_slot(target.slot_id):
                return f"{target.date.isoformat()} at {format_time(self.slot(target.slot_id).time)}"
            return f"{target.date.isoformat()} (mass time {target.slot_id})"
        if self.has_extra(target.extra_id):
            extra = self.extra(target.extra_id)
            return f'the extra mass "{extra.title}" on {extra.date.isoformat()}'
        return f"extra {target.extra_id}"
