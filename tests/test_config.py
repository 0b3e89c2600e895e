from __future__ import annotations

import pytest
from loguru import logger
from pydantic import ValidationError

from spotter.core import logging_config
from spotter.core.config import EngineSettings, get_settings
from spotter.core.logging_config import setup_logging
from spotter.vision.mechanics import SquatMechanics

from conftest import HALF_SQUAT, ManualClock, feed


def test_defaults():
    s = EngineSettings()
    assert (s.deep_squat_angle, s.parallel_angle, s.descent_start_angle, s.standing_angle) == (65, 110, 115, 120)
    assert (s.valgus_on, s.valgus_off) == (0.18, 0.12)
    assert s.smoothing_frames == 5
    assert s.speed_min_ms == 500


def test_get_settings_is_cached():
    assert get_settings() is get_settings()


def test_engine_falls_back_to_cached_settings():
    assert SquatMechanics().settings is get_settings()


@pytest.mark.parametrize(
    "overrides",
    [
        {"parallel_angle": 118},
        {"deep_squat_angle": 112},
        {"valgus_off": 0.2},
        {"lean_hysteresis": 0},
        {"smoothing_frames": 0},
    ],
)
def test_inconsistent_thresholds_are_rejected(overrides):
    with pytest.raises(ValidationError):
        EngineSettings(**overrides)


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("SQUAT_STANDING_ANGLE", "125")
    monkeypatch.setenv("SQUAT_SMOOTHING_FRAMES", "7")
    s = EngineSettings()
    assert s.standing_angle == 125
    assert s.smoothing_frames == 7


def test_env_is_read_per_instance(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    assert EngineSettings().log_level == "WARNING"
    monkeypatch.delenv("LOG_LEVEL")
    assert EngineSettings().log_level == "INFO"


def test_custom_thresholds_turn_a_half_squat_into_a_rep():
    s = EngineSettings(standing_angle=160, descent_start_angle=150, parallel_angle=140, deep_squat_angle=100)
    engine = SquatMechanics(settings=s, clock=ManualClock())
    last = feed(engine, HALF_SQUAT)[-1]
    assert last.rep_count == 1
    assert last.rep_score == 100


def test_setup_logging_accepts_lowercase_level():
    setup_logging("debug")
    setup_logging("INFO")


def test_setup_logging_defaults_to_configured_level(monkeypatch, capsys):
    monkeypatch.setattr(logging_config, "get_settings", lambda: EngineSettings(log_level="warning"))
    setup_logging()
    try:
        logger.info("hidden line")
        logger.warning("shown line")
        err = capsys.readouterr().err
    finally:
        logger.remove()
    assert "shown line" in err
    assert "hidden line" not in err
