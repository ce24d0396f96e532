"""Command-line interface for the vocal range test.

Commands:
- notes: show the reference notes for a preset/config
- run: play each reference note, grade the sung pitch, find the tessitura
- analyze: re-run tessitura analysis on a saved report
"""
import logging
from pathlib import Path
from typing import Optional

import matplotlib
import typer
from rich.console import Console
from rich.table import Table

from analysis.notes import generate_note_list, midi_to_note_name, note_name_to_midi
from analysis.tessitura import analyze_tessitura, range_summary
from assessment.config import DEFAULT_PRESET, PRESETS, load_config
from assessment.errors import ConfigError, RetryRejected, SessionStartError
from assessment.report import build_report, load_results, save_report

app = typer.Typer(
    name="range-test",
    help="Vocal range test: sing back reference notes and find your tessitura",
)
console = Console()

GRADE_STYLES = {"Strong": "green", "Weak": "yellow", "Fail": "red"}


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _load(config_path: Optional[Path], preset: str):
    try:
        return load_config(config_path, preset=preset)
    except ConfigError as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        raise typer.Exit(2)


def results_table(results, tessitura=None) -> Table:
    included = set(tessitura.indices) if tessitura is not None else set()
    table = Table(title="Results")
    table.add_column("Note")
    table.add_column("Strong%", justify="right")
    table.add_column("Weak%", justify="right")
    table.add_column("Grade")
    table.add_column("Frames", justify="right")
    for i, r in enumerate(results):
        style = GRADE_STYLES[r.grade.value]
        name = f"[bold]{r.note.name}*[/bold]" if i in included else r.note.name
        table.add_row(
            name,
            f"{r.strong_ratio * 100:.0f}%",
            f"{r.weak_ratio * 100:.0f}%",
            f"[{style}]{r.grade.label}[/{style}]",
            str(r.frame_count) if r.onset_detected else "no onset",
        )
    return table


def print_tessitura(results, tessitura, summary) -> None:
    if tessitura is None:
        console.print("[yellow]No tessitura found[/yellow]")
        return
    names = ", ".join(results[i].note.name for i in tessitura.indices)
    console.print(
        f"[bold]Tessitura:[/bold] {tessitura.low_note.name}–{tessitura.high_note.name} "
        f"({tessitura.length} notes, avg strong {tessitura.avg_strong_ratio * 100:.0f}%)"
    )
    console.print(f"  notes: {names}")
    if summary:
        console.print(
            f"  MIDI min {summary['midi_min']} ({midi_to_note_name(summary['midi_min'])}), "
            f"median {summary['midi_median']:g}, "
            f"max {summary['midi_max']} ({midi_to_note_name(summary['midi_max'])})"
        )


@app.command()
def notes(
    preset: str = typer.Option(DEFAULT_PRESET, help=f"One of {sorted(PRESETS)}"),
    config: Optional[Path] = typer.Option(None, help="JSON config file"),
):
    """Show the reference notes that a run would test."""
    cfg = _load(config, preset)
    table = Table(title=f"Reference notes (MIDI {cfg.midi_range_low}..{cfg.midi_range_high})")
    table.add_column("Note")
    table.add_column("MIDI", justify="right")
    table.add_column("Hz", justify="right")
    for n in generate_note_list(cfg.midi_range_low, cfg.midi_range_high):
        table.add_row(n.name, str(n.midi), f"{n.freq:.2f}")
    console.print(table)


@app.command()
def run(
    preset: str = typer.Option(DEFAULT_PRESET, help=f"One of {sorted(PRESETS)}"),
    config: Optional[Path] = typer.Option(None, help="JSON config file"),
    out: Optional[Path] = typer.Option(None, help="Write the report as JSON"),
    plot: Optional[Path] = typer.Option(None, help="Write a PNG summary figure"),
    retry: bool = typer.Option(True, help="Offer to retry eligible notes"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Run a live range test with the default microphone and speakers."""
    _setup_logging(verbose)
    cfg = _load(config, preset)

    from assessment.runner import SequenceRunner
    from mic_capture import MicCapture
    from tone_player import TonePlayer

    aborted = []

    def on_event(event):
        if event["event"] == "aborted":
            aborted.append(True)
        elif event["event"] == "note_graded":
            r = event["result"]
            style = GRADE_STYLES[r.grade.value]
            console.print(
                f"{'retry ' if event['retry'] else ''}{r.note.name}: "
                f"[{style}]{r.grade.label}[/{style}] "
                f"(strong {r.strong_ratio * 100:.0f}%, weak {r.weak_ratio * 100:.0f}%)"
            )
        elif event["event"] == "phase" and event["phase"] == "count_in":
            console.print(f"[cyan]Listen: note {event['note_index'] + 1}[/cyan]")

    runner = SequenceRunner(
        MicCapture(sample_rate=cfg.sample_rate),
        TonePlayer(sample_rate=cfg.sample_rate, timbre=cfg.tone_timbre),
        config=cfg,
        listeners=[on_event],
    )

    # (note_index, accepted Hz) per measurement, in the order sung
    traces = []

    def record(events):
        trace = None
        for ev in events:
            if trace is None or trace[0] != ev.note_index:
                trace = (ev.note_index, [])
                traces.append(trace)
            trace[1].append(ev.frame.frequency_hz)

    try:
        record(runner.events())
    except SessionStartError as e:
        console.print(f"[red]Cannot start: {e}[/red]")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        runner.request_abort()
        aborted.append(True)

    if aborted:
        console.print("[yellow]Aborted[/yellow]")
        if runner.results:
            console.print(results_table(runner.results))
        raise typer.Exit(130)

    while retry and runner.eligible_notes():
        console.print(results_table(runner.results, runner.tessitura))
        choices = ", ".join(midi_to_note_name(m) for m in sorted(runner.eligible_notes()))
        answer = typer.prompt(f"Retry which note? ({choices}; blank to finish)", default="")
        if not answer.strip():
            break
        try:
            record(runner.retry_events(note_name_to_midi(answer)))
            if aborted:
                console.print("[yellow]Retry aborted[/yellow]")
                break
        except ValueError as e:
            console.print(f"[red]{e}[/red]")
        except RetryRejected as e:
            console.print(f"[yellow]{e}[/yellow]")
        except SessionStartError as e:
            console.print(f"[red]Cannot retry: {e}[/red]")
            break
        except KeyboardInterrupt:
            console.print("[yellow]Retry aborted[/yellow]")
            break

    results = runner.results
    console.print(results_table(results, runner.tessitura))
    print_tessitura(results, runner.tessitura, runner.summary)

    if out is not None:
        save_report(out, build_report(results, runner.analysis, runner.summary, cfg))
        console.print(f"Report saved to {out}")
    if plot is not None:
        matplotlib.use("Agg")
        from utils.music_utils import save_report_figure

        # the pitch panel shows the last sung note against its reference
        history, target_midi = [], None
        if traces:
            index, history = traces[-1]
            target_midi = results[index].note.midi
        save_report_figure(plot, results, runner.tessitura, history, target_midi)
        console.print(f"Figure saved to {plot}")


@app.command()
def analyze(
    report: Path = typer.Argument(..., exists=True, help="Report JSON from `run --out`"),
    min_notes: int = typer.Option(3, help="Minimum strong notes in a tessitura"),
    gaps: int = typer.Option(1, help="Non-strong notes allowed inside a run"),
    threshold: float = typer.Option(0.6, help="Strong ratio that counts as strong"),
):
    """Recompute the tessitura of a saved report with other parameters."""
    results = load_results(report)
    analysis = analyze_tessitura(
        results, strong_threshold=threshold, min_notes=min_notes, max_gaps=gaps
    )
    console.print(results_table(results, analysis.best))
    print_tessitura(results, analysis.best, range_summary(results, analysis.best))
    console.print(f"{len(analysis.all_segments)} qualifying segment(s)")


if __name__ == "__main__":
    app()
