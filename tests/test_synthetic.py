import numpy as np
import pytest

from analysis.pitch import estimate_pitch
from analysis.synthetic import synth_tone, synthetic_sine


def test_synthetic_sine_shape_and_amplitude():
    sig = synthetic_sine(220.0, sr=44100, n=2048, amplitude=0.3)
    assert sig.shape == (2048,)
    assert np.max(np.abs(sig)) <= 0.3 + 1e-12


def test_synthetic_sine_silence_for_no_pitch():
    assert not np.any(synthetic_sine(None, n=16))
    assert not np.any(synthetic_sine(-1, n=16))


def test_sine_tone_level():
    tone = synth_tone(440.0, duration=1.0, sr=44100, timbre="sine")
    assert tone.size == 44100
    assert np.max(np.abs(tone)) == pytest.approx(0.2, rel=1e-3)


def test_piano_tone_envelope():
    sr = 44100
    tone = synth_tone(440.0, duration=2.0, sr=sr, timbre="piano")
    assert tone.size == 2 * sr
    assert abs(tone[0]) < 1e-9
    head = np.max(np.abs(tone[: int(0.05 * sr)]))
    tail = np.max(np.abs(tone[-int(0.05 * sr):]))
    assert tail < head * 0.1


def test_piano_tone_keeps_its_pitch():
    sr = 44100
    tone = synth_tone(261.63, duration=2.0, sr=sr, timbre="piano")
    block = tone[sr // 2: sr // 2 + 2048]
    res = estimate_pitch(block, sr)
    assert res.frequency_hz == pytest.approx(261.63, rel=0.01)


def test_unknown_timbre():
    with pytest.raises(ValueError):
        synth_tone(440.0, timbre="organ")


def test_degenerate_tones_are_silent():
    assert synth_tone(0, duration=0.1).size == 4410
    assert not np.any(synth_tone(0, duration=0.1))
    assert synth_tone(440.0, duration=0).size == 0
