"""Domain models and data access layer."""

from .models import (
    AvailabilityOverride,
    AvailabilityWindowConfig,
    Base,
    BlockedMass,
    ExtraAvailability,
    ExtraEvent,
    MassTime,
    Minister,
    RegularAvailability,
    SlotOccupancy,
)
from .repositories import (
    BlockedMassRepository,
    ExtraEventRepository,
    MassTimeRepository,
    MinisterRepository,
    OccupancyRepository,
    OverrideRepository,
    SelectionRepository,
    WindowConfigRepository,
)

__all__ = [
    "AvailabilityOverride",
    "AvailabilityWindowConfig",
    "Base",
    "BlockedMass",
    "ExtraAvailability",
    "ExtraEvent",
    "MassTime",
    "Minister",
    "RegularAvailability",
    "SlotOccupancy",
    "BlockedMassRepository",
    "ExtraEventRepository",
    "MassTimeRepository",
    "MinisterRepository",
    "OccupancyRepository",
    "OverrideRepository",
    "SelectionRepository",
    "WindowConfigRepository",
]
