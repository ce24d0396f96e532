# assessment/config.py
import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from typing import Optional

from analysis.synthetic import TIMBRES
from assessment.errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssessmentConfig:
    # Measurement
    measurement_window_sec: float = 3.0
    onset_rms_threshold: float = 0.01
    frame_interval_ms: float = 60
    silence_rms: float = 0.001
    block_size: int = 2048
    sample_rate: int = 44100

    # Grading
    strong_cents: float = 30
    weak_cents: float = 75
    strong_percent: float = 0.6
    weak_percent: float = 0.4

    # Note range (C3..C5)
    midi_range_low: int = 48
    midi_range_high: int = 72

    # Tessitura
    max_retry_gaps: int = 1
    min_tessitura_notes: int = 3
    tessitura_strong_threshold: Optional[float] = None

    # Timing
    count_in_sec: float = 1.0
    tone_duration_sec: float = 1.0
    tone_tail_sec: float = 0.2
    onset_timeout_sec: float = 3.0
    onset_poll_ms: float = 100
    inter_note_pause_sec: float = 0.8
    tone_timbre: str = "sine"

    @property
    def strong_threshold(self) -> float:
        """strongRatio cutoff used by the tessitura scan."""
        if self.tessitura_strong_threshold is None:
            return self.strong_percent
        return self.tessitura_strong_threshold

    def validate(self):
        def fail(msg):
            raise ConfigError(msg)

        if not 0 < self.strong_cents < self.weak_cents:
            fail("require 0 < strong_cents < weak_cents")
        for name in ("strong_percent", "weak_percent"):
            if not 0.0 <= getattr(self, name) <= 1.0:
                fail(f"{name} must be within [0, 1]")
        if self.tessitura_strong_threshold is not None and \
                not 0.0 <= self.tessitura_strong_threshold <= 1.0:
            fail("tessitura_strong_threshold must be within [0, 1]")
        if not 0 <= self.midi_range_low <= self.midi_range_high <= 127:
            fail("require 0 <= midi_range_low <= midi_range_high <= 127")
        for name in ("measurement_window_sec", "frame_interval_ms",
                     "tone_duration_sec", "onset_timeout_sec", "onset_poll_ms",
                     "sample_rate"):
            if getattr(self, name) <= 0:
                fail(f"{name} must be positive")
        for name in ("count_in_sec", "tone_tail_sec", "inter_note_pause_sec",
                     "onset_rms_threshold", "silence_rms"):
            if getattr(self, name) < 0:
                fail(f"{name} must not be negative")
        if self.block_size < 2:
            fail("block_size must be at least 2")
        if self.min_tessitura_notes < 1:
            fail("min_tessitura_notes must be at least 1")
        if self.max_retry_gaps < 0:
            fail("max_retry_gaps must not be negative")
        if self.tone_timbre not in TIMBRES:
            fail(f"tone_timbre must be one of {TIMBRES}")
        return self

    def to_dict(self):
        return asdict(self)


PRESETS = {
    "recorder": AssessmentConfig(),
    "piano": AssessmentConfig(
        onset_rms_threshold=0.015,
        tone_duration_sec=2.0,
        tone_tail_sec=0.3,
        onset_timeout_sec=4.0,
        tone_timbre="piano",
    ),
}

DEFAULT_PRESET = "piano"


def get_preset(name: str) -> AssessmentConfig:
    try:
        return PRESETS[name]
    except KeyError:
        raise ConfigError(
            f"unknown preset {name!r}; choose from {sorted(PRESETS)}"
        ) from None


INT_FIELDS = frozenset({
    "block_size", "sample_rate", "midi_range_low", "midi_range_high",
    "max_retry_gaps", "min_tessitura_notes",
})
STR_FIELDS = frozenset({"tone_timbre"})
OPTIONAL_FIELDS = frozenset({"tessitura_strong_threshold"})


def _check_type(name, value):
    if value is None and name in OPTIONAL_FIELDS:
        return
    if name in STR_FIELDS:
        if not isinstance(value, str):
            raise ConfigError(f"{name} must be a string, got {value!r}")
        return
    # bool is an int subclass but never a valid setting here
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be a number, got {value!r}")
    if name in INT_FIELDS:
        if not isinstance(value, int):
            raise ConfigError(f"{name} must be an integer, got {value!r}")
    elif not isinstance(value, (int, float)):
        raise ConfigError(f"{name} must be a number, got {value!r}")


def config_from_dict(data: dict, base: Optional[AssessmentConfig] = None):
    base = base or AssessmentConfig()
    known = {f.name for f in fields(AssessmentConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"unknown config keys: {', '.join(unknown)}")
    for name, value in data.items():
        _check_type(name, value)
    return replace(base, **data).validate()


def load_config(path, preset: str = DEFAULT_PRESET) -> AssessmentConfig:
    """Overlay the keys of a JSON file on a preset."""
    base = get_preset(preset)
    if path is None:
        return base.validate()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid JSON in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a JSON object")

    cfg = config_from_dict(data, base)
    logger.info("Loaded config %s over preset %s", path, preset)
    return cfg


def save_config(path, config: AssessmentConfig) -> None:
    dirname = os.path.dirname(str(path))
    if dirname:
        os.makedirs(dirname, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(config.to_dict(), f, indent=2)
