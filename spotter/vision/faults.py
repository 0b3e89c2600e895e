"""Hysteresis fault confirmation shared by every form check."""
from __future__ import annotations

from enum import Enum


class FaultState(str, Enum):
    CLEAR = "clear"
    SUSPECTED = "suspected"
    CONFIRMED = "confirmed"
    CLEARING = "clearing"


class FaultDetector:
    """Four-state hysteresis detector over a scalar signal.

    A fault is confirmed after ``confirm_frames`` consecutive frames strictly
    above ``on_threshold`` and released after ``clear_frames`` consecutive
    frames strictly below ``off_threshold``. While suspected, two consecutive
    frames at or below ``on_threshold`` drop the suspicion. The frame that
    crosses a threshold counts towards its window, so a window of one reacts
    on that same frame.

    Args:
        on_threshold: Value that must be exceeded to suspect the fault.
        off_threshold: Value the signal must fall below to start clearing.
        confirm_frames: Frames above ``on_threshold`` needed to confirm.
        clear_frames: Frames below ``off_threshold`` needed to clear.
    """

    MISSES_TO_DROP = 2

    def __init__(self, on_threshold: float, off_threshold: float, confirm_frames: int, clear_frames: int) -> None:
        if confirm_frames < 1 or clear_frames < 1:
            raise ValueError("confirm_frames and clear_frames must be >= 1")
        self.on_threshold = float(on_threshold)
        self.off_threshold = float(off_threshold)
        self.confirm_frames = int(confirm_frames)
        self.clear_frames = int(clear_frames)
        self.state = FaultState.CLEAR
        self.frames_in_state = 0
        self.frames_below = 0

    @property
    def asserted(self) -> bool:
        return self.state in (FaultState.CONFIRMED, FaultState.CLEARING)

    def reset(self) -> None:
        self.state = FaultState.CLEAR
        self.frames_in_state = 0
        self.frames_below = 0

    def update(self, value: float) -> bool:
        """Feed one frame's value; return True while the fault is asserted."""
        if self.state is FaultState.CLEAR:
            if value > self.on_threshold:
                self.state = FaultState.SUSPECTED
                self.frames_in_state = 1
                self.frames_below = 0
                if self.frames_in_state >= self.confirm_frames:
                    self.state = FaultState.CONFIRMED
                    self.frames_in_state = 0
        elif self.state is FaultState.SUSPECTED:
            if value > self.on_threshold:
                self.frames_in_state += 1
                self.frames_below = 0
                if self.frames_in_state >= self.confirm_frames:
                    self.state = FaultState.CONFIRMED
                    self.frames_in_state = 0
            else:
                self.frames_below += 1
                if self.frames_below >= self.MISSES_TO_DROP:
                    self.reset()
        elif self.state is FaultState.CONFIRMED:
            if value < self.off_threshold:
                self.state = FaultState.CLEARING
                self.frames_in_state = 1
                if self.frames_in_state >= self.clear_frames:
                    self.reset()
        else:  # CLEARING
            if value < self.off_threshold:
                self.frames_in_state += 1
                if self.frames_in_state >= self.clear_frames:
                    self.reset()
            else:
                self.state = FaultState.CONFIRMED
                self.frames_in_state = 0
        return self.asserted
