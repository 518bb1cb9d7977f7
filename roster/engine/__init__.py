"""Availability engine: window policy, blocks, capacity ledger, drafts and commits."""

from .blocks import BlockOverlay, BlockSpec
from .catalog import ExtraRef, ExtraSpec, SlotRef, SlotSpec, Target, TimeCatalog
from .coordinator import CommitCoordinator, CommitResult
from .draft import AvailabilityDraft, DraftDiff, RecurrenceMode, SelectionSet
from .ledger import CapacityLedger, Occupancy, SlotChange, apply_changes
from .orchestrator import AvailabilityOrchestrator
from .window import OverrideSpec, WindowDecision, WindowPolicy, WindowReason, WindowSettings, is_editable

__all__ = [
    "AvailabilityDraft",
    "AvailabilityOrchestrator",
    "BlockOverlay",
    "BlockSpec",
    "CapacityLedger",
    "CommitCoordinator",
    "CommitResult",
    "DraftDiff",
    "ExtraRef",
    "ExtraSpec",
    "Occupancy",
    "OverrideSpec",
    "RecurrenceMode",
    "SelectionSet",
    "SlotChange",
    "SlotRef",
    "SlotSpec",
    "Target",
    "TimeCatalog",
    "WindowDecision",
    "WindowPolicy",
    "WindowReason",
    "WindowSettings",
    "apply_changes",
    "is_editable",
]
