"""Priority arbitration for the single coaching message shown each frame."""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import IntEnum


class Priority(IntEnum):
    STATE = 0
    HINT = 1
    FAULT = 2
    SUCCESS = 3


# HUD palette
BLUE = "#3B82F6"
GREEN = "#10B981"
AMBER = "#F59E0B"
RED = "#EF4444"
LIGHT_BLUE = "#60A5FA"
SLATE = "#64748B"


@dataclass(frozen=True)
class FeedbackLock:
    """A message held on screen until ``expires_at`` (ms on the engine clock)."""

    message: str = "STAND STRAIGHT"
    color: str = BLUE
    priority: Priority = Priority.STATE
    expires_at: float = 0.0

    @classmethod
    def hold(cls, message: str, color: str, priority: Priority, now: float, duration_ms: float) -> "FeedbackLock":
        return cls(message=message, color=color, priority=priority, expires_at=now + duration_ms)

    def is_active(self, now: float) -> bool:
        return now < self.expires_at

    def try_override(self, candidate: "FeedbackLock", now: float) -> "FeedbackLock":
        """Return the lock that wins: ``candidate`` unless self is active and outranks it."""
        if self.is_active(now) and candidate.priority < self.priority:
            return self
        return candidate

    def settle(self, now: float) -> "FeedbackLock":
        """Drop back to STATE priority once the hold has expired."""
        if self.is_active(now) or self.priority is Priority.STATE:
            return self
        return replace(self, priority=Priority.STATE)
