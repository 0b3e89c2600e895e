"""Signal conditioning: smoothing buffers, visibility gating and landmark stabilization."""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from loguru import logger

from .landmarks import LOWER_BODY, Landmark


class MovingAverage:
    """Arithmetic mean over the last ``size`` values."""

    def __init__(self, size: int = 5) -> None:
        if size < 1:
            raise ValueError(f"MovingAverage size must be >= 1, got {size}")
        self.size = size
        self._window: deque[float] = deque(maxlen=size)

    def update(self, value: float) -> float:
        self._window.append(float(value))
        return self.average()

    def average(self) -> float:
        return float(sum(self._window) / len(self._window)) if self._window else 0.0

    def reset(self) -> None:
        self._window.clear()

    def __len__(self) -> int:
        return len(self._window)


class ExponentialMovingAverage:
    """EMA with ``alpha = 2 / (window + 1)``; the first sample seeds the value."""

    def __init__(self, window: int = 30) -> None:
        if window < 1:
            raise ValueError(f"ExponentialMovingAverage window must be >= 1, got {window}")
        self.alpha = 2.0 / (window + 1)
        self.value: Optional[float] = None

    def update(self, value: float) -> float:
        if self.value is None:
            self.value = float(value)
        else:
            self.value = self.alpha * float(value) + (1 - self.alpha) * self.value
        return self.value

    def reset(self) -> None:
        self.value = None


def joints_visible(skeleton: Sequence[Landmark], indices: Iterable[int], threshold: float = 0.5) -> bool:
    """True iff every index exists in ``skeleton`` with visibility above ``threshold``."""
    for index in indices:
        if index < 0 or index >= len(skeleton):
            return False
        if not skeleton[index].score > threshold:
            return False
    return True


@dataclass(frozen=True)
class StabilizedFrame:
    """Stabilizer output: the skeleton to analyse (or None) and whether it was estimated."""

    landmarks: Optional[List[Landmark]]
    estimated: bool = False

    @property
    def lost(self) -> bool:
        return self.landmarks is None


class LandmarkStabilizer:
    """Confidence-weighted blending between the last accepted skeleton and the current one.

    Invalid frames reuse the last accepted skeleton (flagged as estimated) for
    up to ``max_missing`` consecutive frames; after that the body is lost until
    a valid frame arrives. Valid frames are blended with the history using a
    factor derived from the mean lower-body visibility: at or above
    ``high_confidence`` the current frame is trusted fully, at or below
    ``low_confidence`` the history dominates, with a linear ramp in between.
    """

    HISTORY_WEIGHT_FLOOR = 0.1

    def __init__(self, max_missing: int = 10, low_confidence: float = 0.5, high_confidence: float = 0.7) -> None:
        if high_confidence <= low_confidence:
            raise ValueError("high_confidence must exceed low_confidence")
        self.max_missing = max_missing
        self.low_confidence = low_confidence
        self.high_confidence = high_confidence
        self._last: Optional[List[Landmark]] = None
        self._missing = 0

    @property
    def missing_frames(self) -> int:
        return self._missing

    def reset(self) -> None:
        self._last = None
        self._missing = 0

    def blend_factor(self, skeleton: Sequence[Landmark]) -> float:
        avg = sum(skeleton[i].score for i in LOWER_BODY) / len(LOWER_BODY)
        if avg >= self.high_confidence:
            return 1.0
        if avg <= self.low_confidence:
            return self.HISTORY_WEIGHT_FLOOR
        return (avg - self.low_confidence) / (self.high_confidence - self.low_confidence)

    def process(self, current: Sequence[Landmark], is_valid: bool) -> StabilizedFrame:
        if self._last is None:
            if is_valid:
                self._last = list(current)
                self._missing = 0
                return StabilizedFrame(list(current), estimated=False)
            return StabilizedFrame(None)

        if not is_valid:
            self._missing += 1
            if self._missing <= self.max_missing:
                return StabilizedFrame(self._last, estimated=True)
            if self._missing == self.max_missing + 1:
                logger.debug("Stabilizer dropped held skeleton after {} missing frames", self.max_missing)
            return StabilizedFrame(None)

        self._missing = 0
        t = self.blend_factor(current)
        blended = [prev.lerp(cur, t) for prev, cur in zip(self._last, current)]
        self._last = blended
        return StabilizedFrame(blended, estimated=t < 1.0)
