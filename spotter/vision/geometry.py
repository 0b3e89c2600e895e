"""Joint geometry helpers (angles, distances, segment tilt)."""
from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from .landmarks import Landmark, PoseLandmark

# Torso scale below which normalized distances are meaningless
MIN_TORSO_SCALE = 0.01
# Vertical extent below which a segment is treated as lying flat
MIN_SEGMENT_HEIGHT = 0.01


def _vec(p: Landmark) -> np.ndarray:
    return np.array([p.x, p.y, p.z], dtype=float)


def joint_angle(a: Landmark, b: Landmark, c: Landmark) -> float:
    """Angle in degrees at vertex ``b`` between rays ``b->a`` and ``b->c``.

    A zero-length ray yields 180 (no bend).
    """
    v1 = _vec(a) - _vec(b)
    v2 = _vec(c) - _vec(b)
    norm = np.linalg.norm(v1) * np.linalg.norm(v2)
    if norm == 0:
        return 180.0
    cos = np.clip(np.dot(v1, v2) / norm, -1.0, 1.0)
    return math.degrees(math.acos(cos))


def distance(a: Landmark, b: Landmark) -> float:
    """Planar Euclidean distance in normalized image units."""
    return math.hypot(a.x - b.x, a.y - b.y)


def midpoint(a: Landmark, b: Landmark) -> Landmark:
    return Landmark(x=(a.x + b.x) / 2, y=(a.y + b.y) / 2, z=(a.z + b.z) / 2)


def normalized_distance(skeleton: Sequence[Landmark], a: Landmark, b: Landmark) -> float:
    """Distance between ``a`` and ``b`` divided by the average shoulder-hip length.

    Returns 0 when the torso joints are missing or the torso is too small to
    act as a scale.
    """
    try:
        left = distance(skeleton[PoseLandmark.LEFT_SHOULDER], skeleton[PoseLandmark.LEFT_HIP])
        right = distance(skeleton[PoseLandmark.RIGHT_SHOULDER], skeleton[PoseLandmark.RIGHT_HIP])
    except (IndexError, TypeError):
        return 0.0
    scale = (left + right) / 2
    if scale < MIN_TORSO_SCALE:
        return 0.0
    return distance(a, b) / scale


def segment_tilt(upper: Landmark, lower: Landmark, degenerate: float = 90.0) -> float:
    """Tilt of the segment ``upper``-``lower`` away from vertical, in degrees.

    ``upper`` is expected above ``lower`` in image space (smaller y). When the
    vertical extent is under ``MIN_SEGMENT_HEIGHT`` the ``degenerate`` value is
    returned instead of an unstable ratio.
    """
    dx = abs(upper.x - lower.x)
    dy = lower.y - upper.y
    if dy <= MIN_SEGMENT_HEIGHT:
        return degenerate
    return math.degrees(math.atan(dx / dy))
