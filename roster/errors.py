"""
Error taxonomy for the availability engine.

Every failure a caller can see is a RosterError carrying a stable code, a
details mapping and a user-facing message. None of them invalidate a draft:
the working selections survive and the caller may adjust and retry.
"""

from __future__ import annotations

from datetime import date, time
from typing import Any, Dict, Optional


class RosterError(Exception):
    """Base exception for all roster errors."""

    retryable = False

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    @property
    def user_message(self) -> str:
        return self.message


class ConfigError(RosterError):
    """Raised when configuration cannot be loaded or is invalid."""


class InvalidSelection(RosterError):
    """Raised for malformed input: bad time strings, unknown ids, dates outside the month."""


class WindowNotEditable(RosterError):
    """Raised when a draft is mutated while the month's window is not open."""

    def __init__(self, reason: Any, message: Optional[str] = None) -> None:
        self.reason = reason
        super().__init__(
            message or f"Availability for this month cannot be edited ({reason})",
            details={"reason": str(reason)},
        )


class WindowClosed(WindowNotEditable):
    """Raised by commit when the window closed after the draft was opened."""


class BlockedSlot(RosterError):
    """Raised when a selection touches an administratively blocked date or time."""

    def __init__(self, blocked_date: date, blocked_time: Optional[time], reason: Optional[str]) -> None:
        self.date = blocked_date
        self.time = blocked_time
        self.reason = reason or "No reason given"
        when = blocked_date.isoformat()
        if blocked_time is not None:
            when = f"{when} {blocked_time.strftime('%H:%M')}"
        super().__init__(
            f"{when} is blocked. Reason: {self.reason}",
            details={"date": blocked_date.isoformat(),
                     "time": blocked_time.strftime("%H:%M") if blocked_time else None,
                     "reason": self.reason},
        )


class CapacityExceeded(RosterError):
    """Raised when a claim would push a slot or extra past its maximum."""

    def __init__(self, target: Any, current: int, max_allowed: int, label: Optional[str] = None) -> None:
        self.target = target
        self.current = current
        self.max_allowed = max_allowed
        self.label = label or str(target)
        super().__init__(
            f"Limit reached for {self.label} ({current}/{max_allowed}). Adjust your choices.",
            details={"target": str(target), "current": current, "max_allowed": max_allowed},
        )


class PersistenceFailure(RosterError):
    """Raised when the store call fails, times out or keeps conflicting."""

    retryable = True

    @property
    def user_message(self) -> str:
        return "Could not save your availability. Please try again."
