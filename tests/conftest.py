# tests/conftest.py
import numpy as np
import pytest

from analysis.synthetic import synthetic_sine
from assessment.config import AssessmentConfig
from assessment.errors import DeviceError

SR = 44100


# ---------------------------------------------------------
# Fake collaborators for the sequence runner
# ---------------------------------------------------------
class FakeClock:
    """Time only moves when the runner sleeps."""

    def __init__(self):
        self.ms = 0
        self.sleeps = []

    def now(self):
        return self.ms / 1000.0

    def sleep(self, duration_ms):
        self.sleeps.append(duration_ms)
        self.ms += round(duration_ms)


class FakeTonePlayer:
    def __init__(self):
        self.plays = []
        self.stop_calls = 0

    def play(self, frequency, duration):
        self.plays.append((frequency, duration))

    def stop(self):
        self.stop_calls += 1

    @property
    def last_frequency(self):
        return self.plays[-1][0] if self.plays else None


class FakeHandle:
    def __init__(self, capture):
        self.capture = capture
        self.sample_rate = capture.sample_rate
        self.closed = False
        self.reads = 0

    def read_block(self, size):
        self.reads += 1
        target = self.capture.player.last_frequency
        sung = self.capture.singer(target) if target is not None else None
        if sung is None:
            return np.zeros(size)
        return synthetic_sine(sung, self.sample_rate, size, amplitude=0.3)

    def close(self):
        self.closed = True


class FakeCapture:
    """
    Scripted singer: every block is a sine at ``singer(last_reference_hz)``,
    or silence when the singer returns None.
    """

    def __init__(self, player, singer=None, sample_rate=SR, fail=False):
        self.player = player
        self.singer = singer or (lambda target: target)
        self.sample_rate = sample_rate
        self.fail = fail
        self.handles = []

    def open(self):
        if self.fail:
            raise DeviceError("permission denied")
        handle = FakeHandle(self)
        self.handles.append(handle)
        return handle


def cents_off(cents):
    return lambda target: target * 2 ** (cents / 1200.0)


def singer_by_midi(plan, default=None):
    """
    plan maps MIDI number -> cents offset (or None for silence).
    Notes missing from the plan use ``default``.
    """
    def sing(target):
        midi = int(round(69 + 12 * np.log2(target / 440.0)))
        cents = plan.get(midi, default)
        if cents is None:
            return None
        return target * 2 ** (cents / 1200.0)
    return sing


@pytest.fixture
def fast_config():
    return AssessmentConfig(
        measurement_window_sec=0.3,
        frame_interval_ms=60,
        count_in_sec=0.1,
        tone_duration_sec=0.1,
        tone_tail_sec=0.05,
        onset_timeout_sec=0.3,
        onset_poll_ms=100,
        inter_note_pause_sec=0.1,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def player():
    return FakeTonePlayer()


# ---------------------------------------------------------
# Graded result builders
# ---------------------------------------------------------
def make_result(note, grade, strong=None, weak=None):
    from analysis.scoring import Grade, NoteResult

    if strong is None:
        strong = {Grade.STRONG: 0.9, Grade.WEAK: 0.2, Grade.FAIL: 0.0}[grade]
    if weak is None:
        weak = {Grade.STRONG: 1.0, Grade.WEAK: 0.8, Grade.FAIL: 0.1}[grade]
    return NoteResult(note, strong, weak, grade, frame_count=10)


def results_from_codes(codes, midi_low=48):
    """"S"/"W"/"F" per natural note, starting at midi_low."""
    from analysis.notes import generate_note_list
    from analysis.scoring import Grade

    lookup = {"S": Grade.STRONG, "W": Grade.WEAK, "F": Grade.FAIL}
    notes = generate_note_list(midi_low, 127)[:len(codes)]
    return [make_result(n, lookup[c]) for n, c in zip(notes, codes)]
