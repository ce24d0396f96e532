import json

import pytest
from typer.testing import CliRunner

import assessment.runner
from assessment.report import build_report, save_report
from main import app
from tests.conftest import FakeCapture, FakeClock, FakeTonePlayer, results_from_codes, singer_by_midi

cli = CliRunner()


def test_notes_lists_default_range():
    out = cli.invoke(app, ["notes", "--preset", "recorder"])
    assert out.exit_code == 0
    assert "C3" in out.output and "C5" in out.output
    assert "C#3" not in out.output


def test_notes_with_config_file(tmp_path):
    cfg = tmp_path / "cfg.json"
    cfg.write_text(json.dumps({"midi_range_low": 60, "midi_range_high": 62}))
    out = cli.invoke(app, ["notes", "--config", str(cfg)])
    assert out.exit_code == 0
    assert "C4" in out.output and "D4" in out.output
    assert "C3" not in out.output


def test_invalid_config_exits(tmp_path):
    cfg = tmp_path / "cfg.json"
    cfg.write_text(json.dumps({"strong_cents": 100}))
    out = cli.invoke(app, ["notes", "--config", str(cfg)])
    assert out.exit_code == 2
    assert "Invalid configuration" in out.output


def test_analyze_saved_report(tmp_path):
    path = tmp_path / "report.json"
    save_report(path, build_report(results_from_codes("FSSFSSF")))

    out = cli.invoke(app, ["analyze", str(path), "--gaps", "1"])
    assert out.exit_code == 0
    assert "Tessitura" in out.output
    assert "1 qualifying segment(s)" in out.output

    out = cli.invoke(app, ["analyze", str(path), "--gaps", "0"])
    assert "No tessitura found" in out.output


# ---------------------------------------------------------
# run (fake devices)
# ---------------------------------------------------------
@pytest.fixture
def devices(monkeypatch, tmp_path):
    try:
        import mic_capture
        import tone_player
    except OSError:
        pytest.skip("sounddevice backend unavailable")

    player = FakeTonePlayer()
    capture = FakeCapture(player, singer=singer_by_midi({60: 0, 62: 0, 64: 0, 65: 55}))
    monkeypatch.setattr(mic_capture, "MicCapture", lambda sample_rate: capture)
    monkeypatch.setattr(tone_player, "TonePlayer", lambda sample_rate, timbre: player)
    monkeypatch.setattr(assessment.runner, "SystemClock", FakeClock)

    cfg = tmp_path / "cfg.json"
    cfg.write_text(json.dumps({
        "midi_range_low": 60,
        "midi_range_high": 67,
        "measurement_window_sec": 0.3,
    }))
    return capture, player, cfg


def test_run_writes_report_and_figure(devices, tmp_path):
    capture, player, cfg = devices
    report = tmp_path / "report.json"
    figure = tmp_path / "report.png"

    out = cli.invoke(app, [
        "run", "--config", str(cfg), "--no-retry",
        "--out", str(report), "--plot", str(figure),
    ])

    assert out.exit_code == 0, out.output
    assert "Tessitura" in out.output
    data = json.loads(report.read_text())
    assert [r["note"] for r in data["results"]] == ["C4", "D4", "E4", "F4", "G4"]
    assert data["tessitura"]["notes"] == ["C4", "D4", "E4"]
    assert data["summary"] == {"midi_min": 60, "midi_median": 62.0, "midi_max": 64}
    assert figure.exists()
    assert len(player.plays) == 5


def test_run_offers_retry(devices):
    capture, player, cfg = devices
    out = cli.invoke(app, ["run", "--config", str(cfg)], input="F4\n\n")
    assert out.exit_code == 0, out.output
    assert "Retry which note?" in out.output
    assert "retry F4" in out.output
    assert len(player.plays) == 5 + 1


def test_run_device_failure(devices):
    capture, player, cfg = devices
    capture.fail = True
    out = cli.invoke(app, ["run", "--config", str(cfg)])
    assert out.exit_code == 1
    assert "Cannot start" in out.output


def test_run_ctrl_c_aborts_cooperatively(devices, monkeypatch):
    capture, player, cfg = devices

    class InterruptingClock(FakeClock):
        def sleep(self, duration_ms):
            super().sleep(duration_ms)
            if len(self.sleeps) == 3:
                raise KeyboardInterrupt

    monkeypatch.setattr(assessment.runner, "SystemClock", InterruptingClock)
    out = cli.invoke(app, ["run", "--config", str(cfg)])

    assert out.exit_code == 130
    assert "Aborted" in out.output
    assert capture.handles[0].closed
    assert player.stop_calls >= 1


def test_run_figure_plots_last_note_against_its_reference(devices, monkeypatch, tmp_path):
    import utils.music_utils

    capture, player, cfg = devices
    calls = []
    monkeypatch.setattr(
        utils.music_utils, "save_report_figure",
        lambda *args: calls.append(args),
    )

    out = cli.invoke(app, [
        "run", "--config", str(cfg), "--no-retry", "--plot", str(tmp_path / "f.png"),
    ])

    assert out.exit_code == 0, out.output
    (_, results, _, history, target_midi), = calls
    # G4 stays silent, so F4 (sung 55 cents sharp) is the last traced note
    assert target_midi == 65
    sung = 349.2282 * 2 ** (55 / 1200)
    assert history and all(abs(f - sung) / sung < 0.01 for f in history)
