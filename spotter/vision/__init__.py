"""Pose analysis pipeline for squat coaching."""

from .faults import FaultDetector, FaultState
from .feedback import FeedbackLock, Priority
from .landmarks import Landmark, PoseLandmark, SkeletonError
from .mechanics import ExerciseState, Phase, SquatMechanics, TrackingMode, VisualContext
from .scoring import RepAccumulator, RepScore, score_rep
from .signal import ExponentialMovingAverage, LandmarkStabilizer, MovingAverage, joints_visible
from .telemetry import SessionTelemetry, TelemetrySummary

__all__ = [
    "ExerciseState",
    "ExponentialMovingAverage",
    "FaultDetector",
    "FaultState",
    "FeedbackLock",
    "Landmark",
    "LandmarkStabilizer",
    "MovingAverage",
    "Phase",
    "PoseLandmark",
    "Priority",
    "RepAccumulator",
    "RepScore",
    "SessionTelemetry",
    "SkeletonError",
    "SquatMechanics",
    "TelemetrySummary",
    "TrackingMode",
    "VisualContext",
    "joints_visible",
    "score_rep",
]
