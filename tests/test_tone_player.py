import threading
from unittest.mock import MagicMock

import pytest

try:
    import tone_player
except OSError:  # PortAudio missing on the test host
    pytest.skip("sounddevice backend unavailable", allow_module_level=True)

from tone_player import TonePlayer


def test_play_synthesizes_and_plays(monkeypatch):
    fake_sd = MagicMock()
    monkeypatch.setattr(tone_player, "sd", fake_sd)

    player = TonePlayer(sample_rate=8000, timbre="piano")
    player.play(440.0, 0.5)
    player._thread.join(timeout=2.0)

    waveform, sr = fake_sd.play.call_args.args
    assert sr == 8000
    assert waveform.size == 4000
    fake_sd.wait.assert_called_once()


def test_playback_errors_are_logged_not_raised(monkeypatch, caplog):
    fake_sd = MagicMock()
    fake_sd.play.side_effect = RuntimeError("no output device")
    monkeypatch.setattr(tone_player, "sd", fake_sd)

    player = TonePlayer(sample_rate=8000)
    player.play(220.0, 0.1)
    player._thread.join(timeout=2.0)

    assert "Tone playback failed" in caplog.text


def test_stop(monkeypatch):
    fake_sd = MagicMock()
    monkeypatch.setattr(tone_player, "sd", fake_sd)
    TonePlayer().stop()
    fake_sd.stop.assert_called_once()


def test_stop_joins_playback_thread(monkeypatch):
    finished = threading.Event()
    fake_sd = MagicMock()
    fake_sd.wait.side_effect = lambda: finished.wait(2.0)
    fake_sd.stop.side_effect = finished.set
    monkeypatch.setattr(tone_player, "sd", fake_sd)

    player = TonePlayer(sample_rate=8000)
    player.play(440.0, 0.5)
    thread = player._thread
    assert thread.is_alive()

    player.stop()

    assert not thread.is_alive()
    assert player._thread is None
