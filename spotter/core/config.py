"""Engine configuration and constants.

Thresholds are read from environment variables so they can be tuned without code changes.
"""
from __future__ import annotations

from functools import lru_cache
import os
from typing import Any, Callable

from pydantic import BaseModel, Field, model_validator


def _env(name: str, default: str, cast: Callable[[str], Any] = float) -> Any:
    """Field whose default is read from ``name`` each time a model is built."""
    return Field(default_factory=lambda: cast(os.getenv(name, default)))


class EngineSettings(BaseModel):
    """Squat analysis settings loaded from environment variables.

    The environment is read when an instance is created, not at import time.

    Angles are knee-bend angles in degrees (180 = straight leg). Ratios are
    fractions of a reference width. Durations are milliseconds.

    Attributes:
        standing_angle: Smoothed knee angle above which the user is standing.
        descent_start_angle: Knee angle below which a descent begins.
        parallel_angle: Knee angle below which depth counts as reached.
        deep_squat_angle: Knee angle below which the squat is "ass to grass".
        ascent_threshold: Rise above the running minimum that confirms ascent.
        angle_change_min: Net drop from the ascent peak that restarts a descent.
        visibility_min: Per-joint visibility needed to trust a joint.
        smoothing_frames: Moving-average window for knee and torso angles.
        speed_min_ms: Descents faster than this are flagged as too fast.
        valgus_on: Knee/ankle width-ratio drop that suspects valgus.
        valgus_off: Ratio drop below which a valgus fault starts clearing.
        lean_info: Excess lean (deg) that shows a hint.
        lean_warn: Excess lean (deg) that suspects a static lean fault.
        lean_crit: Excess lean (deg) treated as critical.
        asymmetry_info: Left/right knee difference (deg) that attributes a side.
        asymmetry_warn: Left/right knee difference (deg) that flags the rep.
        asymmetry_crit: Left/right knee difference (deg) with the larger penalty.
        hip_shift_threshold: Hip-centre drift, as a fraction of hip width.
        log_level: Logging level string.
    """

    # Phase ladder
    standing_angle: float = _env("SQUAT_STANDING_ANGLE", "120")
    descent_start_angle: float = _env("SQUAT_DESCENT_START_ANGLE", "115")
    parallel_angle: float = _env("SQUAT_PARALLEL_ANGLE", "110")
    deep_squat_angle: float = _env("SQUAT_DEEP_ANGLE", "65")
    ascent_threshold: float = _env("SQUAT_ASCENT_THRESHOLD", "3")
    angle_change_min: float = _env("SQUAT_ANGLE_CHANGE_MIN", "3")
    calibration_frames: int = _env("SQUAT_CALIBRATION_FRAMES", "30", int)
    calibration_margin: float = _env("SQUAT_CALIBRATION_MARGIN", "10")
    continuous_rep_min_frames: int = _env("SQUAT_CONTINUOUS_REP_MIN_FRAMES", "5", int)
    speed_min_ms: float = _env("SQUAT_SPEED_MIN_MS", "500")

    # Signal conditioning
    visibility_min: float = _env("SQUAT_VISIBILITY_MIN", "0.5")
    smoothing_frames: int = _env("SQUAT_SMOOTHING_FRAMES", "5", int)
    knee_height_window: int = _env("SQUAT_KNEE_HEIGHT_WINDOW", "30", int)
    stabilizer_max_missing: int = _env("SQUAT_STABILIZER_MAX_MISSING", "10", int)
    stabilizer_low_confidence: float = _env("SQUAT_STABILIZER_LOW_CONF", "0.5")
    stabilizer_high_confidence: float = _env("SQUAT_STABILIZER_HIGH_CONF", "0.7")

    # Knee valgus
    valgus_on: float = _env("SQUAT_VALGUS_ON", "0.18")
    valgus_off: float = _env("SQUAT_VALGUS_OFF", "0.12")
    valgus_confirm_frames: int = _env("SQUAT_VALGUS_CONFIRM_FRAMES", "5", int)
    valgus_clear_frames: int = _env("SQUAT_VALGUS_CLEAR_FRAMES", "3", int)
    valgus_baseline_window: int = _env("SQUAT_VALGUS_BASELINE_WINDOW", "30", int)
    valgus_calibration_frames: int = _env("SQUAT_VALGUS_CALIBRATION_FRAMES", "20", int)
    valgus_inward_margin: float = _env("SQUAT_VALGUS_INWARD_MARGIN", "0.02")

    # Torso lean
    lean_info: float = _env("SQUAT_LEAN_INFO", "3")
    lean_warn: float = _env("SQUAT_LEAN_WARN", "5")
    lean_crit: float = _env("SQUAT_LEAN_CRIT", "15")
    lean_hysteresis: float = _env("SQUAT_LEAN_HYSTERESIS", "2")
    lean_confirm_frames: int = _env("SQUAT_LEAN_CONFIRM_FRAMES", "5", int)
    lean_clear_frames: int = _env("SQUAT_LEAN_CLEAR_FRAMES", "3", int)
    lean_base_allowance: float = _env("SQUAT_LEAN_BASE_ALLOWANCE", "10")
    lean_depth_factor: float = _env("SQUAT_LEAN_DEPTH_FACTOR", "0.375")
    lean_sudden_change: float = _env("SQUAT_LEAN_SUDDEN_CHANGE", "5")
    lean_descent_change: float = _env("SQUAT_LEAN_DESCENT_CHANGE", "15")
    shin_torso_deviation: float = _env("SQUAT_SHIN_TORSO_DEVIATION", "15")

    # Asymmetry and hip shift
    asymmetry_info: float = _env("SQUAT_ASYMMETRY_INFO", "8")
    asymmetry_warn: float = _env("SQUAT_ASYMMETRY_WARN", "15")
    asymmetry_crit: float = _env("SQUAT_ASYMMETRY_CRIT", "25")
    hip_shift_threshold: float = _env("SQUAT_HIP_SHIFT_THRESHOLD", "0.05")
    hip_shift_hysteresis: float = _env("SQUAT_HIP_SHIFT_HYSTERESIS", "0.02")
    hip_shift_confirm_frames: int = _env("SQUAT_HIP_SHIFT_CONFIRM_FRAMES", "4", int)
    hip_shift_clear_frames: int = _env("SQUAT_HIP_SHIFT_CLEAR_FRAMES", "3", int)

    # Feedback lock durations (ms)
    hint_duration_ms: float = _env("FEEDBACK_HINT_MS", "500")
    fault_duration_ms: float = _env("FEEDBACK_FAULT_MS", "1000")
    depth_duration_ms: float = _env("FEEDBACK_DEPTH_MS", "1500")
    rep_duration_ms: float = _env("FEEDBACK_REP_MS", "2000")

    log_level: str = _env("LOG_LEVEL", "INFO", str)

    @model_validator(mode="after")
    def _check_thresholds(self) -> "EngineSettings":
        if not (self.deep_squat_angle < self.parallel_angle < self.descent_start_angle < self.standing_angle):
            raise ValueError("angle ladder must satisfy deep < parallel < descent_start < standing")
        if self.valgus_off >= self.valgus_on:
            raise ValueError("valgus_off must be below valgus_on")
        if self.lean_hysteresis <= 0 or self.hip_shift_hysteresis <= 0:
            raise ValueError("hysteresis bands must be positive")
        if self.smoothing_frames < 1 or self.knee_height_window < 1:
            raise ValueError("smoothing windows must hold at least one frame")
        return self


@lru_cache
def get_settings() -> EngineSettings:
    """Return cached settings instance."""

    return EngineSettings()
