from __future__ import annotations

import math
from typing import Iterable, List, Optional

import pytest

from spotter.core.config import EngineSettings
from spotter.vision.landmarks import NUM_LANDMARKS, Landmark, PoseLandmark
from spotter.vision.mechanics import ExerciseState, SquatMechanics

SHIN = 0.2
THIGH = 0.2
TORSO_LENGTH = 0.3
KNEE_Y = 0.7
LEFT_X = 0.55
RIGHT_X = 0.45
MIDLINE_X = 0.5


class ManualClock:
    """Millisecond clock that advances a fixed step each time it is read."""

    def __init__(self, step_ms: float = 100.0) -> None:
        self.step_ms = step_ms
        self.now = 0.0

    def __call__(self) -> float:
        self.now += self.step_ms
        return self.now

    def reset(self) -> None:
        self.now = 0.0


def make_skeleton(
    knee_angle: float = 170.0,
    *,
    right_angle: Optional[float] = None,
    visibility: float = 0.9,
    left_leg_visibility: Optional[float] = None,
    right_leg_visibility: Optional[float] = None,
    torso_lean: float = 0.0,
    hip_dx: float = 0.0,
    knee_dx: float = 0.0,
    knee_y: float = KNEE_Y,
    mirrored: bool = False,
) -> List[Landmark]:
    """Front-facing skeleton with vertical shins; knee bend is expressed by moving the hips in depth.

    ``knee_dx`` pulls both knees towards the midline (negative pushes them
    out). ``mirrored`` swaps which side of the image each leg sits on.
    """
    right_angle = knee_angle if right_angle is None else right_angle
    left_vis = visibility if left_leg_visibility is None else left_leg_visibility
    right_vis = visibility if right_leg_visibility is None else right_leg_visibility
    left_x, right_x = (RIGHT_X, LEFT_X) if mirrored else (LEFT_X, RIGHT_X)
    joints = [Landmark(0.5, 0.2, 0.0, visibility) for _ in range(NUM_LANDMARKS)]

    def leg(x: float, angle: float, vis: float, hip_i: int, knee_i: int, ankle_i: int) -> None:
        rad = math.radians(angle)
        knee_x = x - math.copysign(knee_dx, x - MIDLINE_X)
        joints[knee_i] = Landmark(knee_x, knee_y, 0.0, vis)
        joints[ankle_i] = Landmark(x, knee_y + SHIN, 0.0, vis)
        joints[hip_i] = Landmark(x + hip_dx, knee_y + THIGH * math.cos(rad), THIGH * math.sin(rad), vis)

    leg(left_x, knee_angle, left_vis, PoseLandmark.LEFT_HIP, PoseLandmark.LEFT_KNEE, PoseLandmark.LEFT_ANKLE)
    leg(right_x, right_angle, right_vis, PoseLandmark.RIGHT_HIP, PoseLandmark.RIGHT_KNEE, PoseLandmark.RIGHT_ANKLE)

    offset = TORSO_LENGTH * math.tan(math.radians(torso_lean))
    for shoulder, hip in (
        (PoseLandmark.LEFT_SHOULDER, PoseLandmark.LEFT_HIP),
        (PoseLandmark.RIGHT_SHOULDER, PoseLandmark.RIGHT_HIP),
    ):
        h = joints[hip]
        joints[shoulder] = Landmark(h.x + offset, h.y - TORSO_LENGTH, h.z, visibility)
    return joints


def feed(engine: SquatMechanics, angles: Iterable[float], **kwargs) -> List[ExerciseState]:
    return [engine.update(make_skeleton(a, **kwargs)) for a in angles]


def ramp(start: float, stop: float, step: float) -> List[float]:
    """Inclusive arithmetic sequence from ``start`` to ``stop``."""
    count = int(round(abs(stop - start) / abs(step)))
    sign = 1 if stop >= start else -1
    return [start + sign * abs(step) * i for i in range(count + 1)]


# Standing, smooth descent to 90 with a short pause, then back up
CLEAN_REP = [170.0] * 5 + ramp(165, 90, 5) + [90.0] * 5 + ramp(95, 170, 5) + [170.0] * 5
SHALLOW_REP = [170.0] * 5 + [160.0, 150.0, 140.0, 130.0, 120.0] + [112.0] * 10 + ramp(120, 170, 10) + [170.0] * 5
HALF_SQUAT = [170.0] * 5 + [160.0, 150.0, 140.0] + [130.0] * 10 + ramp(140, 170, 10) + [170.0] * 5


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings()


@pytest.fixture
def engine(settings: EngineSettings, clock: ManualClock) -> SquatMechanics:
    return SquatMechanics(settings=settings, clock=clock)
