"""Rolling history of engine output for coaching reviews."""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional

from .mechanics import ExerciseState, TrackingMode

GENERIC_MESSAGES: FrozenSet[str] = frozenset(
    {"GO LOWER", "DRIVE UP", "STAND TALL", "GOOD DEPTH!", "PERFECT REP!", "SHOW FULL BODY"}
)


@dataclass(frozen=True)
class TelemetrySummary:
    frames: int = 0
    lowest_angle: Optional[float] = None
    rep_count: int = 0
    last_score: int = 0
    messages: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "frames": self.frames,
            "lowest_angle": self.lowest_angle,
            "rep_count": self.rep_count,
            "last_score": self.last_score,
            "messages": list(self.messages),
        }


class SessionTelemetry:
    """Keeps the most recent tracked frames and signals when a review is due.

    Args:
        max_frames: Number of non-LOST states retained (about 10 s at 30 fps).
        review_every: A review is due each time the rep count hits a multiple of this.
    """

    def __init__(self, max_frames: int = 300, review_every: int = 5) -> None:
        if max_frames < 1 or review_every < 1:
            raise ValueError("max_frames and review_every must be >= 1")
        self.review_every = review_every
        self._history: deque[ExerciseState] = deque(maxlen=max_frames)

    def __len__(self) -> int:
        return len(self._history)

    def record(self, state: ExerciseState) -> bool:
        """Store ``state`` and return True when a coaching review should be requested."""
        if state.tracking_mode is not TrackingMode.LOST:
            self._history.append(state)
        return bool(state.did_finish_rep and state.rep_count > 0 and state.rep_count % self.review_every == 0)

    def summary(self) -> TelemetrySummary:
        if not self._history:
            return TelemetrySummary()
        latest = self._history[-1]
        messages = sorted({s.feedback for s in self._history} - GENERIC_MESSAGES)
        return TelemetrySummary(
            frames=len(self._history),
            lowest_angle=min(s.angle for s in self._history),
            rep_count=latest.rep_count,
            last_score=latest.rep_score,
            messages=messages,
        )

    def reset(self) -> None:
        self._history.clear()
