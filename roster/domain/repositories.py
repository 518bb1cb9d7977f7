"""Repository classes for data access.

Catalog repositories commit on create/update like any admin write. Selection
and occupancy repositories never commit: they run inside the transaction the
commit coordinator owns.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.orm import Session

from .models import (
    AvailabilityOverride,
    AvailabilityWindowConfig,
    BlockedMass,
    ExtraAvailability,
    ExtraEvent,
    MassTime,
    Minister,
    RegularAvailability,
    SlotOccupancy,
)


class MinisterRepository:
    """Repository for minister data access."""

    @staticmethod
    def get_all(session: Session) -> List[Minister]:
        """Get all ministers ordered by name."""
        return session.query(Minister).order_by(Minister.name).all()

    @staticmethod
    def get_by_id(session: Session, minister_id: int) -> Optional[Minister]:
        return session.get(Minister, minister_id)

    @staticmethod
    def create(session: Session, minister: Minister) -> Minister:
        session.add(minister)
        session.commit()
        session.refresh(minister)
        return minister

    @staticmethod
    def bulk_create(session: Session, ministers: List[Minister]) -> None:
        session.add_all(ministers)
        session.commit()


class MassTimeRepository:
    """Repository for recurring mass slots."""

    @staticmethod
    def get_all(session: Session) -> List[MassTime]:
        return session.query(MassTime).order_by(MassTime.weekday, MassTime.time).all()

    @staticmethod
    def get_active(session: Session) -> List[MassTime]:
        """Get active slots ordered by weekday and time."""
        return (
            session.query(MassTime)
            .filter(MassTime.active.is_(True))
            .order_by(MassTime.weekday, MassTime.time)
            .all()
        )

    @staticmethod
    def get_by_weekday(session: Session, weekday: int) -> List[MassTime]:
        """Get active slots for a weekday (0 = Sunday)."""
        return (
            session.query(MassTime)
            .filter(MassTime.weekday == weekday, MassTime.active.is_(True))
            .order_by(MassTime.time)
            .all()
        )

    @staticmethod
    def get_by_id(session: Session, mass_time_id: int) -> Optional[MassTime]:
        return session.get(MassTime, mass_time_id)

    @staticmethod
    def create(session: Session, mass_time: MassTime) -> MassTime:
        session.add(mass_time)
        session.commit()
        session.refresh(mass_time)
        return mass_time

    @staticmethod
    def bulk_create(session: Session, mass_times: List[MassTime]) -> None:
        session.add_all(mass_times)
        session.commit()


class ExtraEventRepository:
    """Repository for one-off extra events."""

    @staticmethod
    def get_active_between(session: Session, start: date, end: date) -> List[ExtraEvent]:
        """Get active extras dated within [start, end]."""
        return (
            session.query(ExtraEvent)
            .filter(
                ExtraEvent.active.is_(True),
                ExtraEvent.event_date >= start,
                ExtraEvent.event_date <= end,
            )
            .order_by(ExtraEvent.event_date, ExtraEvent.time)
            .all()
        )

    @staticmethod
    def get_active_on(session: Session, day: date) -> List[ExtraEvent]:
        return ExtraEventRepository.get_active_between(session, day, day)

    @staticmethod
    def get_by_id(session: Session, extra_id: int) -> Optional[ExtraEvent]:
        return session.get(ExtraEvent, extra_id)

    @staticmethod
    def create(session: Session, extra: ExtraEvent) -> ExtraEvent:
        session.add(extra)
        session.commit()
        session.refresh(extra)
        return extra

    @staticmethod
    def bulk_create(session: Session, extras: List[ExtraEvent]) -> None:
        session.add_all(extras)
        session.commit()


class BlockedMassRepository:
    """Repository for administrator blocks."""

    @staticmethod
    def get_between(session: Session, start: date, end: date) -> List[BlockedMass]:
        return (
            session.query(BlockedMass)
            .filter(BlockedMass.date >= start, BlockedMass.date <= end)
            .order_by(BlockedMass.date, BlockedMass.id)
            .all()
        )

    @staticmethod
    def get_on(session: Session, day: date) -> List[BlockedMass]:
        return BlockedMassRepository.get_between(session, day, day)

    @staticmethod
    def get_by_id(session: Session, block_id: int) -> Optional[BlockedMass]:
        return session.get(BlockedMass, block_id)

    @staticmethod
    def create(session: Session, block: BlockedMass) -> BlockedMass:
        session.add(block)
        session.commit()
        session.refresh(block)
        return block

    @staticmethod
    def update(session: Session, block: BlockedMass) -> BlockedMass:
        block = session.merge(block)
        session.commit()
        return block

    @staticmethod
    def delete(session: Session, block_id: int) -> int:
        """Delete a block. Returns number of deleted rows."""
        count = session.query(BlockedMass).filter(BlockedMass.id == block_id).delete(synchronize_session=False)
        session.commit()
        return count


class WindowConfigRepository:
    """Repository for versioned window settings."""

    @staticmethod
    def get_latest(session: Session) -> Optional[AvailabilityWindowConfig]:
        return session.query(AvailabilityWindowConfig).order_by(AvailabilityWindowConfig.id.desc()).first()

    @staticmethod
    def create(session: Session, config: AvailabilityWindowConfig) -> AvailabilityWindowConfig:
        session.add(config)
        session.commit()
        session.refresh(config)
        return config


class OverrideRepository:
    """Repository for manual window overrides."""

    @staticmethod
    def get_all(session: Session) -> List[AvailabilityOverride]:
        return session.query(AvailabilityOverride).order_by(AvailabilityOverride.open_from).all()

    @staticmethod
    def get_for_month(session: Session, year: int, month: int) -> List[AvailabilityOverride]:
        return (
            session.query(AvailabilityOverride)
            .filter(AvailabilityOverride.year == year, AvailabilityOverride.month == month)
            .order_by(AvailabilityOverride.open_from)
            .all()
        )

    @staticmethod
    def get_not_expired(session: Session, now: datetime) -> List[AvailabilityOverride]:
        """Overrides whose open_until has not passed yet."""
        return (
            session.query(AvailabilityOverride)
            .filter(AvailabilityOverride.open_until >= now)
            .order_by(AvailabilityOverride.open_from)
            .all()
        )

    @staticmethod
    def create(session: Session, override: AvailabilityOverride) -> AvailabilityOverride:
        session.add(override)
        session.commit()
        session.refresh(override)
        return override

    @staticmethod
    def delete(session: Session, override_id: int) -> int:
        count = (
            session.query(AvailabilityOverride)
            .filter(AvailabilityOverride.id == override_id)
            .delete(synchronize_session=False)
        )
        session.commit()
        return count


class SelectionRepository:
    """Committed selections. Never commits; callers own the transaction."""

    @staticmethod
    def regular_for_minister(session: Session, minister_id: int, start: date, end: date) -> Set[Tuple[date, int]]:
        rows = session.execute(
            select(RegularAvailability.date, RegularAvailability.mass_time_id).where(
                RegularAvailability.minister_id == minister_id,
                RegularAvailability.date >= start,
                RegularAvailability.date <= end,
            )
        ).all()
        return {(row.date, row.mass_time_id) for row in rows}

    @staticmethod
    def extras_for_minister(session: Session, minister_id: int, extra_ids: Iterable[int]) -> Set[int]:
        extra_ids = list(extra_ids)
        if not extra_ids:
            return set()
        rows = session.execute(
            select(ExtraAvailability.extra_id).where(
                ExtraAvailability.minister_id == minister_id,
                ExtraAvailability.extra_id.in_(extra_ids),
            )
        ).all()
        return {row.extra_id for row in rows}

    @staticmethod
    def regular_between(session: Session, start: date, end: date) -> List[RegularAvailability]:
        return (
            session.query(RegularAvailability)
            .filter(RegularAvailability.date >= start, RegularAvailability.date <= end)
            .all()
        )

    @staticmethod
    def extras_for_ids(session: Session, extra_ids: Iterable[int]) -> List[ExtraAvailability]:
        extra_ids = list(extra_ids)
        if not extra_ids:
            return []
        return session.query(ExtraAvailability).filter(ExtraAvailability.extra_id.in_(extra_ids)).all()

    @staticmethod
    def extras_between(session: Session, start: date, end: date) -> List[ExtraAvailability]:
        """Extra claims on active events dated within [start, end]."""
        return (
            session.query(ExtraAvailability)
            .join(ExtraEvent, ExtraEvent.id == ExtraAvailability.extra_id)
            .filter(
                ExtraEvent.active.is_(True),
                ExtraEvent.event_date >= start,
                ExtraEvent.event_date <= end,
            )
            .all()
        )

    @staticmethod
    def insert_regular(session: Session, minister_id: int, pairs: Iterable[Tuple[date, int]]) -> int:
        rows = [RegularAvailability(minister_id=minister_id, date=d, mass_time_id=s) for d, s in pairs]
        session.add_all(rows)
        session.flush()
        return len(rows)

    @staticmethod
    def delete_regular(session: Session, minister_id: int, pairs: Iterable[Tuple[date, int]]) -> int:
        pairs = list(pairs)
        if not pairs:
            return 0
        result = session.execute(
            delete(RegularAvailability).where(
                RegularAvailability.minister_id == minister_id,
                or_(*[
                    and_(RegularAvailability.date == d, RegularAvailability.mass_time_id == s)
                    for d, s in pairs
                ]),
            )
        )
        return result.rowcount

    @staticmethod
    def insert_extras(session: Session, minister_id: int, extra_ids: Iterable[int]) -> int:
        rows = [ExtraAvailability(minister_id=minister_id, extra_id=e) for e in extra_ids]
        session.add_all(rows)
        session.flush()
        return len(rows)

    @staticmethod
    def delete_extras(session: Session, minister_id: int, extra_ids: Iterable[int]) -> int:
        extra_ids = list(extra_ids)
        if not extra_ids:
            return 0
        result = session.execute(
            delete(ExtraAvailability).where(
                ExtraAvailability.minister_id == minister_id,
                ExtraAvailability.extra_id.in_(extra_ids),
            )
        )
        return result.rowcount


class OccupancyRepository:
    """Occupancy counts derived from selection rows plus the per-target version records."""

    @staticmethod
    def slot_counts(session: Session, start: date, end: date) -> Dict[Tuple[date, int], int]:
        """Number of committed claims per (date, slot) within [start, end]."""
        rows = session.execute(
            select(
                RegularAvailability.date,
                RegularAvailability.mass_time_id,
                func.count(RegularAvailability.id).label("total"),
            )
            .where(RegularAvailability.date >= start, RegularAvailability.date <= end)
            .group_by(RegularAvailability.date, RegularAvailability.mass_time_id)
        ).all()
        return {(row.date, row.mass_time_id): row.total for row in rows}

    @staticmethod
    def extra_counts(session: Session, extra_ids: Iterable[int]) -> Dict[int, int]:
        extra_ids = list(extra_ids)
        if not extra_ids:
            return {}
        rows = session.execute(
            select(ExtraAvailability.extra_id, func.count(ExtraAvailability.id).label("total"))
            .where(ExtraAvailability.extra_id.in_(extra_ids))
            .group_by(ExtraAvailability.extra_id)
        ).all()
        return {row.extra_id: row.total for row in rows}

    @staticmethod
    def all_extra_counts(session: Session) -> Dict[int, int]:
        rows = session.execute(
            select(ExtraAvailability.extra_id, func.count(ExtraAvailability.id).label("total"))
            .group_by(ExtraAvailability.extra_id)
        ).all()
        return {row.extra_id: row.total for row in rows}

    @staticmethod
    def count_regular(session: Session, day: date, mass_time_id: int) -> int:
        return session.execute(
            select(func.count(RegularAvailability.id)).where(
                RegularAvailability.date == day,
                RegularAvailability.mass_time_id == mass_time_id,
            )
        ).scalar_one()

    @staticmethod
    def count_extra(session: Session, extra_id: int) -> int:
        return session.execute(
            select(func.count(ExtraAvailability.id)).where(ExtraAvailability.extra_id == extra_id)
        ).scalar_one()

    @staticmethod
    def get_records(session: Session, keys: Iterable[str]) -> Dict[str, SlotOccupancy]:
        keys = list(keys)
        if not keys:
            return {}
        rows = session.query(SlotOccupancy).filter(SlotOccupancy.target_key.in_(keys)).all()
        return {row.target_key: row for row in rows}

    @staticmethod
    def get_all_records(session: Session) -> List[SlotOccupancy]:
        return session.query(SlotOccupancy).order_by(SlotOccupancy.target_key).all()

    @staticmethod
    def compare_and_set(session: Session, key: str, expected_version: int, total: int) -> bool:
        """Write ``total`` only if the record is still at ``expected_version``."""
        result = session.execute(
            update(SlotOccupancy)
            .where(SlotOccupancy.target_key == key, SlotOccupancy.version == expected_version)
            .values(total=total, version=expected_version + 1, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def insert_record(session: Session, key: str, total: int) -> None:
        session.add(SlotOccupancy(target_key=key, total=total, version=1))
        session.flush()
