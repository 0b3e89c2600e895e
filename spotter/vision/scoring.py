"""Per-rep fault bookkeeping and the 0-100 rep score."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from ..core.config import EngineSettings
from .feedback import AMBER, GREEN, RED

GOOD_REP_SCORE = 70


class LeanFault(str, Enum):
    NONE = "none"
    STATIC = "static"
    FALLING = "falling"
    MISMATCH = "mismatch"
    INSTABILITY = "instability"


class Side(str, Enum):
    NONE = "none"
    LEFT = "left"
    RIGHT = "right"

    @property
    def initial(self) -> str:
        return "L" if self is Side.LEFT else "R"


@dataclass
class RepAccumulator:
    """Everything observed during one rep; replaced wholesale at each rep boundary."""

    min_angle: float = 180.0
    hit_depth: bool = False
    descent_started_at: float = 0.0
    start_torso_angle: float = 0.0
    hip_center_start: Optional[float] = None
    hip_width_start: float = 0.0
    valgus: bool = False
    lean: bool = False
    lean_fault: LeanFault = LeanFault.NONE
    max_lean_excess: float = 0.0
    asymmetry: bool = False
    max_leg_diff: float = 0.0
    asymmetry_side: Side = Side.NONE
    hip_shift: bool = False
    hip_shift_side: Side = Side.NONE
    speed: bool = False

    def track_min(self, angle: float) -> None:
        if angle < self.min_angle:
            self.min_angle = angle


@dataclass(frozen=True)
class RepScore:
    score: int
    faults: Tuple[str, ...] = ()

    @property
    def is_good(self) -> bool:
        return self.score >= GOOD_REP_SCORE


def score_rep(rep: RepAccumulator, settings: EngineSettings) -> RepScore:
    """Deduct from 100 for every fault recorded in ``rep``; never below 0."""
    score = 100
    faults: List[str] = []

    if rep.min_angle > settings.parallel_angle:
        score -= 50
        faults.append("GO DEEPER")
    if rep.valgus:
        score -= 20
        faults.append("KNEES IN")
    if rep.asymmetry:
        if rep.max_leg_diff > settings.asymmetry_crit:
            score -= 20
            faults.append(f"IMBALANCE {rep.asymmetry_side.initial}")
        elif rep.max_leg_diff > settings.asymmetry_warn:
            score -= 10
            faults.append("ASYMMETRY")
    if rep.hip_shift:
        score -= 15
        faults.append("HIP SHIFT")
    if rep.lean:
        if rep.max_lean_excess > settings.lean_crit:
            score -= 25
            faults.append("EXCESSIVE LEAN")
        elif rep.lean_fault is LeanFault.FALLING:
            score -= 20
            faults.append("CHEST FALLING")
        elif rep.lean_fault is LeanFault.MISMATCH:
            score -= 15
            faults.append("HIP DOMINANT")
        else:
            score -= 10
            faults.append("CHEST UP")
    if rep.speed:
        score -= 15
        faults.append("TOO FAST")

    return RepScore(score=max(0, score), faults=tuple(faults))


def completion_message(score: int) -> Tuple[str, str]:
    """Message and colour shown when a rep finishes standing up."""
    if score >= 90:
        return "PERFECT REP!", GREEN
    if score >= GOOD_REP_SCORE:
        return "GOOD REP", GREEN
    if score >= 50:
        return "OKAY - WATCH FORM", AMBER
    return "TRY AGAIN", RED
