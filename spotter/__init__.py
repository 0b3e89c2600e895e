"""Real-time squat analysis engine."""

from .vision import ExerciseState, SquatMechanics

__all__ = ["ExerciseState", "SquatMechanics"]
__version__ = "0.1.0"
