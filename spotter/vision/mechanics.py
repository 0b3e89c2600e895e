"""Squat analysis engine: rep phases, form faults, scoring and feedback selection."""
from __future__ import annotations

import time
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence, Tuple

from loguru import logger

from ..core.config import EngineSettings, get_settings
from .faults import FaultDetector
from .feedback import AMBER, BLUE, GREEN, LIGHT_BLUE, RED, SLATE, FeedbackLock, Priority
from .geometry import joint_angle, midpoint, segment_tilt
from .landmarks import LEFT_LEG, RIGHT_LEG, TORSO, Landmark, PoseLandmark, coerce_skeleton
from .scoring import LeanFault, RepAccumulator, RepScore, Side, completion_message, score_rep
from .signal import ExponentialMovingAverage, LandmarkStabilizer, MovingAverage, joints_visible

Clock = Callable[[], float]

DEFAULT_KNEE_Y = 0.8
DEFAULT_RATIO = 1.0
STRAIGHT_LEG = 180.0


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class Phase(str, Enum):
    INITIALIZING = "INITIALIZING"
    NEUTRAL = "NEUTRAL"
    DESCENDING = "DESCENDING"
    ASCENDING = "ASCENDING"


class TrackingMode(str, Enum):
    OPTIMAL = "OPTIMAL"
    DEGRADED = "DEGRADED"
    ESTIMATED = "ESTIMATED"
    LOST = "LOST"


@dataclass(frozen=True)
class VisualContext:
    valgus: bool = False
    baseline_knee_y: float = DEFAULT_KNEE_Y
    is_deep: bool = False
    lean: bool = False
    hip_shift: bool = False
    asymmetry: bool = False


@dataclass(frozen=True)
class ExerciseState:
    phase: Phase
    angle: float
    rep_count: int
    feedback: str
    feedback_color: str
    is_good_rep: Optional[bool]
    did_finish_rep: bool
    tracking_mode: TrackingMode
    visual_context: VisualContext
    rep_score: int
    min_angle_reached: float
    depth_hit: bool
    faults: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        result = asdict(self)
        result["phase"] = self.phase.value
        result["tracking_mode"] = self.tracking_mode.value
        result["faults"] = list(self.faults)
        return result


def _leg_angle(skeleton: Sequence[Landmark], leg: Tuple[PoseLandmark, ...]) -> float:
    hip, knee, ankle = leg
    return joint_angle(skeleton[hip], skeleton[knee], skeleton[ankle])


class SquatMechanics:
    """Frame-by-frame squat analysis.

    Call :meth:`update` once per pose estimate; each call returns a fresh
    :class:`ExerciseState`. The engine is synchronous and keeps no references
    to its inputs. :meth:`reset` restores the state of a newly built engine.

    Args:
        settings: Thresholds and window sizes; defaults to :func:`get_settings`.
        clock: Zero-argument callable returning milliseconds; read once per frame.
    """

    def __init__(self, settings: Optional[EngineSettings] = None, clock: Optional[Clock] = None) -> None:
        self.settings = settings if settings is not None else get_settings()
        self._clock: Clock = clock or _monotonic_ms
        s = self.settings
        self._angle_smoother = MovingAverage(s.smoothing_frames)
        self._torso_smoother = MovingAverage(s.smoothing_frames)
        self._knee_height = MovingAverage(s.knee_height_window)
        self._ratio_baseline = ExponentialMovingAverage(s.valgus_baseline_window)
        self._stabilizer = LandmarkStabilizer(
            max_missing=s.stabilizer_max_missing,
            low_confidence=s.stabilizer_low_confidence,
            high_confidence=s.stabilizer_high_confidence,
        )
        self._valgus = FaultDetector(s.valgus_on, s.valgus_off, s.valgus_confirm_frames, s.valgus_clear_frames)
        self._lean = FaultDetector(
            s.lean_warn, s.lean_warn - s.lean_hysteresis, s.lean_confirm_frames, s.lean_clear_frames
        )
        self._hip_shift = FaultDetector(
            s.hip_shift_threshold,
            s.hip_shift_threshold - s.hip_shift_hysteresis,
            s.hip_shift_confirm_frames,
            s.hip_shift_clear_frames,
        )
        self.reset()

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def rep_count(self) -> int:
        return self._rep_count

    @property
    def last_score(self) -> Optional[RepScore]:
        return self._last_score

    @property
    def current_rep(self) -> RepAccumulator:
        """Faults gathered for the rep in progress, or the last one until a new descent."""
        return self._rep

    def reset(self) -> None:
        """Return every buffer, detector and counter to its initial value."""
        for component in (
            self._angle_smoother,
            self._torso_smoother,
            self._knee_height,
            self._ratio_baseline,
            self._stabilizer,
            self._valgus,
            self._lean,
            self._hip_shift,
        ):
            component.reset()
        self._phase = Phase.INITIALIZING
        self._rep_count = 0
        self._frame_counter = 0
        self._rep = RepAccumulator()
        self._max_ascent_angle = 0.0
        self._baseline_knee_y = DEFAULT_KNEE_Y
        self._baseline_ratio = DEFAULT_RATIO
        self._baseline_frames = 0
        self._baseline_calibrated = False
        self._torso_angle = 0.0
        self._prev_torso_angle = 0.0
        self._knee_valgus = False
        self._excessive_lean = False
        self._lean_info = False
        self._hip_shift_detected = False
        self._lock = FeedbackLock()
        self._last_score: Optional[RepScore] = None
        self._last_mode: Optional[TrackingMode] = None
        logger.debug("Squat engine reset")

    # ------------------------------------------------------------------
    # Frame update
    # ------------------------------------------------------------------
    def update(self, raw: Sequence[Any]) -> ExerciseState:
        """Analyse one skeleton.

        Raises:
            SkeletonError: if ``raw`` is shorter than the joint table or holds
                an unreadable joint.
        """
        skeleton = coerce_skeleton(raw)
        s = self.settings
        left_visible = joints_visible(skeleton, LEFT_LEG, s.visibility_min)
        right_visible = joints_visible(skeleton, RIGHT_LEG, s.visibility_min)

        frame = self._stabilizer.process(skeleton, left_visible or right_visible)
        if frame.lost:
            self._note_tracking(TrackingMode.LOST)
            return self._lost_state()
        landmarks = frame.landmarks
        both_visible = left_visible and right_visible

        if frame.estimated:
            mode = TrackingMode.ESTIMATED
            left_angle = _leg_angle(landmarks, LEFT_LEG)
            right_angle = _leg_angle(landmarks, RIGHT_LEG)
        elif both_visible:
            mode = TrackingMode.OPTIMAL
            left_angle = _leg_angle(landmarks, LEFT_LEG)
            right_angle = _leg_angle(landmarks, RIGHT_LEG)
            if self._phase in (Phase.NEUTRAL, Phase.INITIALIZING):
                knee_y = (landmarks[PoseLandmark.LEFT_KNEE].y + landmarks[PoseLandmark.RIGHT_KNEE].y) / 2
                self._baseline_knee_y = self._knee_height.update(knee_y)
        else:
            mode = TrackingMode.DEGRADED
            left_angle = right_angle = _leg_angle(landmarks, LEFT_LEG if left_visible else RIGHT_LEG)
        self._note_tracking(mode)
        angle = self._angle_smoother.update((left_angle + right_angle) / 2)

        torso_visible = joints_visible(landmarks, TORSO, s.visibility_min)
        if torso_visible:
            shoulders = midpoint(landmarks[PoseLandmark.LEFT_SHOULDER], landmarks[PoseLandmark.RIGHT_SHOULDER])
            hips = midpoint(landmarks[PoseLandmark.LEFT_HIP], landmarks[PoseLandmark.RIGHT_HIP])
            self._torso_angle = self._torso_smoother.update(segment_tilt(shoulders, hips))

        now = self._clock()
        self._frame_counter += 1
        message, color, did_finish = self._advance_phase(angle, landmarks, now)

        # Faults run after the phase step so a freshly started rep is judged this frame
        if both_visible:
            self._check_valgus(landmarks, now)
        if mode is TrackingMode.OPTIMAL and self._phase in (Phase.DESCENDING, Phase.ASCENDING):
            self._check_symmetry(left_angle, right_angle, landmarks, now)
        if torso_visible:
            self._check_lean(angle, landmarks, both_visible, now)

        if self._lock.is_active(now):
            message, color = self._lock.message, self._lock.color
        self._lock = self._lock.settle(now)

        rep = self._rep
        return ExerciseState(
            phase=self._phase,
            angle=angle,
            rep_count=self._rep_count,
            feedback=message,
            feedback_color=color,
            is_good_rep=self._last_score.is_good if self._last_score else None,
            did_finish_rep=did_finish,
            tracking_mode=mode,
            visual_context=VisualContext(
                valgus=self._knee_valgus,
                baseline_knee_y=self._baseline_knee_y,
                is_deep=rep.hit_depth,
                lean=self._excessive_lean,
                hip_shift=self._hip_shift_detected,
                asymmetry=rep.max_leg_diff > s.asymmetry_warn,
            ),
            rep_score=self._last_score.score if self._last_score else 0,
            min_angle_reached=rep.min_angle,
            depth_hit=rep.hit_depth,
            faults=self._last_score.faults if self._last_score else (),
        )

    # ------------------------------------------------------------------
    # Phase machine
    # ------------------------------------------------------------------
    def _advance_phase(self, angle: float, landmarks: List[Landmark], now: float) -> Tuple[str, str, bool]:
        s = self.settings
        message, color = "STAND STRAIGHT", BLUE

        if self._phase is Phase.INITIALIZING:
            self._excessive_lean = False
            if angle > s.standing_angle:
                self._enter(Phase.NEUTRAL)
                message = "READY"
            elif angle < s.descent_start_angle:
                self._enter(Phase.DESCENDING)
                self._begin_rep(landmarks, now, min_angle=angle)
                message = "GO LOWER"
            elif self._frame_counter > s.calibration_frames and angle > s.standing_angle - s.calibration_margin:
                self._enter(Phase.NEUTRAL)
                message = "CALIBRATED!"
                self._set_feedback(message, GREEN, Priority.SUCCESS, s.rep_duration_ms, now)
            return message, color, False

        if self._phase is Phase.NEUTRAL:
            if angle < s.descent_start_angle:
                self._enter(Phase.DESCENDING)
                self._begin_rep(landmarks, now, min_angle=STRAIGHT_LEG)
                return "GO LOWER", AMBER, False
            return "STAND TALL", BLUE, False

        if self._phase is Phase.DESCENDING:
            rep = self._rep
            rep.track_min(angle)
            if angle < s.parallel_angle:
                rep.hit_depth = True
                message = "ATG DEEP!" if angle < s.deep_squat_angle else "GOOD DEPTH!"
                color = GREEN
                self._set_feedback(message, color, Priority.SUCCESS, s.depth_duration_ms, now)
            else:
                message, color = "LOWER...", AMBER
            if angle > rep.min_angle + s.ascent_threshold and rep.min_angle < s.descent_start_angle:
                self._enter(Phase.ASCENDING)
                self._max_ascent_angle = angle
                if max(0.0, now - rep.descent_started_at) < s.speed_min_ms:
                    rep.speed = True
            return message, color, False

        # ASCENDING
        self._max_ascent_angle = max(self._max_ascent_angle, angle)
        if (
            angle < s.standing_angle
            and self._frame_counter > s.continuous_rep_min_frames
            and self._max_ascent_angle - angle > s.angle_change_min
        ):
            reached_depth = self._rep.hit_depth
            self._finish_rep()
            self._enter(Phase.DESCENDING)
            self._begin_rep(landmarks, now, min_angle=angle)
            if reached_depth:
                self._set_feedback("KEEP PUMPING", GREEN, Priority.SUCCESS, s.depth_duration_ms, now)
            else:
                self._set_feedback("GO LOWER (PUMP)", RED, Priority.FAULT, s.depth_duration_ms, now)
            return message, color, True

        if angle > s.standing_angle:
            result = self._finish_rep()
            self._enter(Phase.NEUTRAL)
            message, color = completion_message(result.score)
            self._set_feedback(message, color, Priority.SUCCESS, s.rep_duration_ms, now)
            return message, color, True
        return "DRIVE UP", GREEN, False

    def _enter(self, phase: Phase) -> None:
        logger.debug("Phase {} -> {}", self._phase.value, phase.value)
        self._phase = phase
        self._frame_counter = 0

    def _begin_rep(self, landmarks: List[Landmark], now: float, min_angle: float) -> None:
        left_hip = landmarks[PoseLandmark.LEFT_HIP]
        right_hip = landmarks[PoseLandmark.RIGHT_HIP]
        self._rep = RepAccumulator(
            min_angle=min_angle,
            descent_started_at=now,
            start_torso_angle=self._torso_angle,
            hip_center_start=(left_hip.x + right_hip.x) / 2,
            hip_width_start=abs(left_hip.x - right_hip.x),
        )
        self._valgus.reset()
        self._lean.reset()
        self._hip_shift.reset()
        self._knee_valgus = False
        self._excessive_lean = False
        self._lean_info = False
        self._hip_shift_detected = False

    def _finish_rep(self) -> RepScore:
        self._rep_count += 1
        result = score_rep(self._rep, self.settings)
        self._last_score = result
        logger.info(
            "Rep {} scored {} (min angle {:.1f}) faults={}",
            self._rep_count,
            result.score,
            self._rep.min_angle,
            list(result.faults),
        )
        return result

    # ------------------------------------------------------------------
    # Form checks
    # ------------------------------------------------------------------
    def _check_valgus(self, landmarks: List[Landmark], now: float) -> None:
        s = self.settings
        left_knee = landmarks[PoseLandmark.LEFT_KNEE]
        right_knee = landmarks[PoseLandmark.RIGHT_KNEE]
        left_ankle = landmarks[PoseLandmark.LEFT_ANKLE]
        right_ankle = landmarks[PoseLandmark.RIGHT_ANKLE]
        knee_width = abs(left_knee.x - right_knee.x)
        ankle_width = max(0.01, abs(left_ankle.x - right_ankle.x))
        ratio = knee_width / ankle_width

        if self._phase in (Phase.NEUTRAL, Phase.INITIALIZING):
            self._baseline_frames += 1
            self._baseline_ratio = self._ratio_baseline.update(ratio)
            if self._baseline_frames > s.valgus_calibration_frames:
                self._baseline_calibrated = True
            self._valgus.reset()
            self._knee_valgus = False
            return
        if not self._baseline_calibrated:
            return

        deviation = (self._baseline_ratio - ratio) / self._baseline_ratio if self._baseline_ratio > 0 else 0.0
        # Inward means towards the ankle midline, whichever way the image x axis runs
        centre = (left_ankle.x + right_ankle.x) / 2
        margin = s.valgus_inward_margin
        caving_in = any(
            abs(knee.x - centre) < abs(ankle.x - centre) - margin
            for knee, ankle in ((left_knee, left_ankle), (right_knee, right_ankle))
        )
        self._knee_valgus = self._valgus.update(deviation if caving_in else 0.0)
        if self._knee_valgus:
            self._rep.valgus = True
            self._set_feedback("KNEES OUT!", RED, Priority.FAULT, s.fault_duration_ms, now)

    def _check_symmetry(self, left_angle: float, right_angle: float, landmarks: List[Landmark], now: float) -> None:
        s = self.settings
        rep = self._rep
        diff = abs(left_angle - right_angle)
        if diff > rep.max_leg_diff:
            rep.max_leg_diff = diff
            if diff > s.asymmetry_info:
                rep.asymmetry_side = Side.LEFT if left_angle > right_angle else Side.RIGHT
        if rep.max_leg_diff > s.asymmetry_warn:
            rep.asymmetry = True
            self._set_feedback(f"EVEN OUT {rep.asymmetry_side.initial}!", AMBER, Priority.FAULT, s.fault_duration_ms, now)

        if rep.hip_center_start is None or rep.hip_width_start <= 0:
            return
        hip_x = (landmarks[PoseLandmark.LEFT_HIP].x + landmarks[PoseLandmark.RIGHT_HIP].x) / 2
        shift = abs(hip_x - rep.hip_center_start) / rep.hip_width_start
        if self._hip_shift.update(shift):
            self._hip_shift_detected = True
            rep.hip_shift = True
            rep.hip_shift_side = Side.RIGHT if hip_x > rep.hip_center_start else Side.LEFT
            self._set_feedback("CENTER HIPS!", AMBER, Priority.FAULT, s.fault_duration_ms, now)
        else:
            self._hip_shift_detected = False

    def _check_lean(self, angle: float, landmarks: List[Landmark], both_visible: bool, now: float) -> None:
        s = self.settings
        rep = self._rep
        torso = self._torso_angle
        self._lean_info = False

        acceptable = s.lean_base_allowance + (STRAIGHT_LEG - angle) * s.lean_depth_factor
        excess = max(0.0, torso - acceptable)
        rep.max_lean_excess = max(rep.max_lean_excess, excess)
        static = self._lean.update(excess)

        fault = LeanFault.NONE
        if self._phase is Phase.DESCENDING and torso - rep.start_torso_angle > s.lean_descent_change:
            fault = LeanFault.FALLING
        if static:
            fault = LeanFault.STATIC
        elif excess > s.lean_info:
            self._lean_info = True
        if fault is LeanFault.NONE and abs(torso - self._prev_torso_angle) > s.lean_sudden_change:
            fault = LeanFault.INSTABILITY
        if fault is LeanFault.NONE and both_visible:
            knees = midpoint(landmarks[PoseLandmark.LEFT_KNEE], landmarks[PoseLandmark.RIGHT_KNEE])
            ankles = midpoint(landmarks[PoseLandmark.LEFT_ANKLE], landmarks[PoseLandmark.RIGHT_ANKLE])
            if torso - segment_tilt(knees, ankles, degenerate=0.0) > s.shin_torso_deviation:
                fault = LeanFault.MISMATCH

        if fault is not LeanFault.NONE:
            rep.lean_fault = fault
            rep.lean = True
            self._excessive_lean = True
            if fault is LeanFault.FALLING:
                self._set_feedback("CONTROL CHEST!", RED, Priority.FAULT, s.fault_duration_ms, now)
            elif fault is LeanFault.MISMATCH:
                self._set_feedback("ALIGN SHINS!", AMBER, Priority.FAULT, s.fault_duration_ms, now)
            elif excess > s.lean_crit:
                self._set_feedback("CHEST UP NOW!", RED, Priority.FAULT, s.fault_duration_ms, now)
            else:
                self._set_feedback("CHEST UP", AMBER, Priority.FAULT, s.fault_duration_ms, now)
        else:
            self._excessive_lean = False
            if self._lean_info:
                self._set_feedback("WATCH LEAN", LIGHT_BLUE, Priority.HINT, s.hint_duration_ms, now)
        self._prev_torso_angle = torso

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _set_feedback(self, message: str, color: str, priority: Priority, duration_ms: float, now: float) -> None:
        candidate = FeedbackLock.hold(message, color, priority, now, duration_ms)
        self._lock = self._lock.try_override(candidate, now)

    def _note_tracking(self, mode: TrackingMode) -> None:
        previous = self._last_mode
        self._last_mode = mode
        if mode is TrackingMode.LOST and previous is not TrackingMode.LOST:
            logger.info("Body lost; waiting for a visible skeleton")
        elif previous is TrackingMode.LOST and mode is not TrackingMode.LOST:
            logger.info("Tracking restored ({})", mode.value)

    def _lost_state(self) -> ExerciseState:
        return ExerciseState(
            phase=self._phase,
            angle=STRAIGHT_LEG,
            rep_count=self._rep_count,
            feedback="SHOW FULL BODY",
            feedback_color=SLATE,
            is_good_rep=None,
            did_finish_rep=False,
            tracking_mode=TrackingMode.LOST,
            visual_context=VisualContext(baseline_knee_y=self._baseline_knee_y),
            rep_score=self._last_score.score if self._last_score else 0,
            min_angle_reached=STRAIGHT_LEG,
            depth_hit=False,
            faults=(),
        )
