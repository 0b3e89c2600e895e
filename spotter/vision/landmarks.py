"""Joint index table and landmark containers shared by every analysis stage."""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, List, Mapping, Optional, Sequence, Tuple


class SkeletonError(ValueError):
    """Raised when a caller hands the engine a malformed skeleton."""


class PoseLandmark(IntEnum):
    """MediaPipe Pose landmark indices (33 joints)."""

    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


NUM_LANDMARKS = len(PoseLandmark)

LEFT_LEG: Tuple[PoseLandmark, PoseLandmark, PoseLandmark] = (
    PoseLandmark.LEFT_HIP,
    PoseLandmark.LEFT_KNEE,
    PoseLandmark.LEFT_ANKLE,
)
RIGHT_LEG: Tuple[PoseLandmark, PoseLandmark, PoseLandmark] = (
    PoseLandmark.RIGHT_HIP,
    PoseLandmark.RIGHT_KNEE,
    PoseLandmark.RIGHT_ANKLE,
)
TORSO: Tuple[PoseLandmark, ...] = (
    PoseLandmark.LEFT_SHOULDER,
    PoseLandmark.RIGHT_SHOULDER,
    PoseLandmark.LEFT_HIP,
    PoseLandmark.RIGHT_HIP,
)
# Hips, knees, ankles: the joints whose confidence drives stabilization
LOWER_BODY: Tuple[PoseLandmark, ...] = tuple(PoseLandmark(i) for i in range(23, 29))


@dataclass(frozen=True)
class Landmark:
    """One joint sample in normalized image coordinates.

    Attributes:
        x: Horizontal position, 0 (left edge) to 1 (right edge). Either
            camera handedness works; form checks measure towards the midline.
        y: Vertical position, 0 (top) to 1 (bottom).
        z: Depth relative to the hips; 0 when the model gives none.
        visibility: Detector confidence in [0, 1], or None if not reported.
    """

    x: float
    y: float
    z: float = 0.0
    visibility: Optional[float] = None

    @property
    def score(self) -> float:
        return self.visibility if self.visibility is not None else 0.0

    def lerp(self, other: "Landmark", t: float) -> "Landmark":
        """Blend towards ``other``; ``t=0`` keeps self, ``t=1`` returns other's values."""
        return Landmark(
            x=self.x + (other.x - self.x) * t,
            y=self.y + (other.y - self.y) * t,
            z=self.z + (other.z - self.z) * t,
            visibility=self.score + (other.score - self.score) * t,
        )


def _point(x: float, y: float, z: float, visibility: Optional[float]) -> Landmark:
    # A joint with a non-finite coordinate is kept as an invisible point at the origin
    if not (math.isfinite(x) and math.isfinite(y) and math.isfinite(z)):
        return Landmark(0.0, 0.0, 0.0, 0.0)
    if visibility is not None and not math.isfinite(visibility):
        visibility = 0.0
    return Landmark(x=x, y=y, z=z, visibility=visibility)


def as_landmark(value: Any) -> Landmark:
    """Read a ``Landmark`` from a Landmark, mapping or ``(x, y[, z[, visibility]])`` sequence.

    NaN or infinite coordinates do not raise; the joint comes back with
    visibility 0 so every visibility gate skips it.
    """
    if isinstance(value, Landmark):
        return _point(value.x, value.y, value.z, value.visibility)
    try:
        if isinstance(value, Mapping):
            z = value.get("z")
            vis = value.get("visibility")
            return _point(
                float(value["x"]),
                float(value["y"]),
                float(z) if z is not None else 0.0,
                float(vis) if vis is not None else None,
            )
        if hasattr(value, "x") and hasattr(value, "y"):
            z = getattr(value, "z", None)
            vis = getattr(value, "visibility", None)
            return _point(
                float(value.x),
                float(value.y),
                float(z) if z is not None else 0.0,
                float(vis) if vis is not None else None,
            )
        coords = list(value)
        if not 2 <= len(coords) <= 4:
            raise SkeletonError(f"expected 2-4 coordinates per joint, got {len(coords)}")
        x, y = float(coords[0]), float(coords[1])
        z = float(coords[2]) if len(coords) > 2 and coords[2] is not None else 0.0
        vis = float(coords[3]) if len(coords) > 3 and coords[3] is not None else None
        return _point(x, y, z, vis)
    except SkeletonError:
        raise
    except (KeyError, TypeError, ValueError) as exc:
        raise SkeletonError(f"cannot read joint from {value!r}: {exc}") from exc


def coerce_skeleton(raw: Sequence[Any]) -> List[Landmark]:
    """Validate a full skeleton and normalize each joint to ``Landmark``.

    Raises:
        SkeletonError: if ``raw`` is None, has fewer than ``NUM_LANDMARKS``
            entries, or holds an entry that is not a readable point.
    """
    if raw is None:
        raise SkeletonError("skeleton is None")
    if len(raw) < NUM_LANDMARKS:
        raise SkeletonError(f"skeleton has {len(raw)} joints, expected {NUM_LANDMARKS}")
    return [as_landmark(item) for item in raw]
