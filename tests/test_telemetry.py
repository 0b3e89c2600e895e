from __future__ import annotations

import pytest

from spotter.vision.mechanics import ExerciseState, Phase, TrackingMode, VisualContext
from spotter.vision.telemetry import SessionTelemetry

from conftest import CLEAN_REP, feed, make_skeleton


def make_state(
    *,
    angle: float = 150.0,
    rep_count: int = 0,
    feedback: str = "STAND TALL",
    did_finish_rep: bool = False,
    tracking_mode: TrackingMode = TrackingMode.OPTIMAL,
    rep_score: int = 0,
) -> ExerciseState:
    return ExerciseState(
        phase=Phase.NEUTRAL,
        angle=angle,
        rep_count=rep_count,
        feedback=feedback,
        feedback_color="#3B82F6",
        is_good_rep=None,
        did_finish_rep=did_finish_rep,
        tracking_mode=tracking_mode,
        visual_context=VisualContext(),
        rep_score=rep_score,
        min_angle_reached=180.0,
        depth_hit=False,
    )


def test_lost_frames_are_not_recorded():
    tel = SessionTelemetry()
    tel.record(make_state(tracking_mode=TrackingMode.LOST))
    assert len(tel) == 0
    tel.record(make_state())
    assert len(tel) == 1


def test_buffer_is_bounded():
    tel = SessionTelemetry(max_frames=10)
    for i in range(25):
        tel.record(make_state(angle=100.0 + i))
    assert len(tel) == 10
    assert tel.summary().lowest_angle == 115.0


def test_review_due_every_fifth_rep():
    tel = SessionTelemetry(review_every=5)
    due = [tel.record(make_state(rep_count=n, did_finish_rep=True)) for n in range(1, 11)]
    assert due == [False, False, False, False, True, False, False, False, False, True]
    assert tel.record(make_state(rep_count=5, did_finish_rep=False)) is False


def test_summary_skips_generic_messages():
    tel = SessionTelemetry()
    for msg in ("STAND TALL", "KNEES OUT!", "GO LOWER", "CHEST UP", "KNEES OUT!", "PERFECT REP!"):
        tel.record(make_state(feedback=msg))
    tel.record(make_state(rep_count=3, rep_score=80, feedback="GOOD REP"))
    summary = tel.summary()
    assert summary.messages == ["CHEST UP", "GOOD REP", "KNEES OUT!"]
    assert summary.rep_count == 3
    assert summary.last_score == 80
    assert summary.frames == 7


def test_empty_summary():
    summary = SessionTelemetry().summary()
    assert summary.frames == 0
    assert summary.lowest_angle is None
    assert summary.to_dict()["messages"] == []


def test_reset_clears_history():
    tel = SessionTelemetry()
    tel.record(make_state())
    tel.reset()
    assert len(tel) == 0


def test_records_engine_output(engine):
    tel = SessionTelemetry()
    for state in feed(engine, CLEAN_REP):
        tel.record(state)
    for _ in range(12):
        tel.record(engine.update(make_skeleton(170.0, visibility=0.0)))
    summary = tel.summary()
    # Ten held frames are kept, the LOST ones are not
    assert summary.frames == len(CLEAN_REP) + 10
    assert summary.rep_count == 1
    assert summary.lowest_angle == pytest.approx(90.0)


def test_rejects_bad_sizes():
    with pytest.raises(ValueError):
        SessionTelemetry(max_frames=0)
