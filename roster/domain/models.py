"""SQLAlchemy models for the parish roster."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, relationship


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class Minister(Base):
    """A minister who signs up for masses."""

    __tablename__ = "ministers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    is_admin = Column(Boolean, nullable=False, default=False)

    regular_selections = relationship("RegularAvailability", back_populates="minister")
    extra_selections = relationship("ExtraAvailability", back_populates="minister")

    def __repr__(self) -> str:
        return f"<Minister(id={self.id}, name='{self.name}', admin={self.is_admin})>"


class MassTime(Base):
    """Recurring weekly mass slot."""

    __tablename__ = "mass_times"

    id = Column(Integer, primary_key=True, autoincrement=True)
    weekday = Column(Integer, nullable=False)  # 0 = Sunday ... 6 = Saturday
    time = Column(Time, nullable=False)
    min_required = Column(Integer, nullable=False, default=1)
    max_allowed = Column(Integer, nullable=False, default=1)
    active = Column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<MassTime(id={self.id}, weekday={self.weekday}, time={self.time}, max={self.max_allowed})>"


class ExtraEvent(Base):
    """One-off dated mass or celebration."""

    __tablename__ = "extra_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_date = Column(Date, nullable=False)
    time = Column(Time, nullable=False)
    title = Column(String(200), nullable=False)
    min_required = Column(Integer, nullable=False, default=1)
    max_allowed = Column(Integer, nullable=False, default=1)
    active = Column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<ExtraEvent(id={self.id}, date={self.event_date}, title='{self.title}')>"


class BlockedMass(Base):
    """Administrator blackout for a whole date or specific times on it."""

    __tablename__ = "blocked_masses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, nullable=False, index=True)
    blocked_times = Column(JSON, nullable=True)  # list of "HH:MM"; NULL blocks the whole date
    reason = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<BlockedMass(id={self.id}, date={self.date}, times={self.blocked_times})>"


class RegularAvailability(Base):
    """Committed claim of a minister on a recurring slot for one date."""

    __tablename__ = "regular_availability"

    id = Column(Integer, primary_key=True, autoincrement=True)
    minister_id = Column(Integer, ForeignKey("ministers.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    mass_time_id = Column(Integer, ForeignKey("mass_times.id"), nullable=False)

    minister = relationship("Minister", back_populates="regular_selections")

    __table_args__ = (
        UniqueConstraint("minister_id", "date", "mass_time_id", name="uq_regular_availability"),
    )

    def __repr__(self) -> str:
        return f"<RegularAvailability(minister={self.minister_id}, date={self.date}, slot={self.mass_time_id})>"


class ExtraAvailability(Base):
    """Committed claim of a minister on an extra event."""

    __tablename__ = "extra_availability"

    id = Column(Integer, primary_key=True, autoincrement=True)
    minister_id = Column(Integer, ForeignKey("ministers.id"), nullable=False, index=True)
    extra_id = Column(Integer, ForeignKey("extra_events.id"), nullable=False, index=True)

    minister = relationship("Minister", back_populates="extra_selections")

    __table_args__ = (
        UniqueConstraint("minister_id", "extra_id", name="uq_extra_availability"),
    )

    def __repr__(self) -> str:
        return f"<ExtraAvailability(minister={self.minister_id}, extra={self.extra_id})>"


class AvailabilityWindowConfig(Base):
    """Default editing window. Rows are versioned; the highest id wins."""

    __tablename__ = "availability_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    days_before_next_month = Column(Integer, nullable=True)
    hard_close = Column(Boolean, nullable=True, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<AvailabilityWindowConfig(id={self.id}, days={self.days_before_next_month}, hard_close={self.hard_close})>"


class AvailabilityOverride(Base):
    """Manual release of a month between two instants."""

    __tablename__ = "availability_overrides"

    id = Column(Integer, primary_key=True, autoincrement=True)
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)  # 1..12
    open_from = Column(DateTime, nullable=False)
    open_until = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<AvailabilityOverride(id={self.id}, {self.year}-{self.month:02d}, {self.open_from} -> {self.open_until})>"


class SlotOccupancy(Base):
    """Per-target occupancy record; ``version`` is bumped by every commit touching it."""

    __tablename__ = "slot_occupancy"

    target_key = Column(String(64), primary_key=True)  # "slot:2025-11-03:5" or "extra:7"
    total = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<SlotOccupancy(key='{self.target_key}', total={self.total}, v={self.version})>"
