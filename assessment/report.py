# assessment/report.py
import json
import logging
import os
from datetime import datetime, timezone

from analysis.notes import Note
from analysis.scoring import Grade, NoteResult

logger = logging.getLogger(__name__)


def result_to_dict(result: NoteResult) -> dict:
    return {
        "note": result.note.name,
        "midi": result.note.midi,
        "freq": result.note.freq,
        "strong": result.strong_ratio,
        "weak": result.weak_ratio,
        "grade": result.grade.value,
        "frames": result.frame_count,
        "onset_detected": result.onset_detected,
    }


def results_to_dicts(results) -> list[dict]:
    return [result_to_dict(r) for r in results]


def result_from_dict(entry: dict) -> NoteResult:
    note = Note(entry["note"], int(entry["midi"]), float(entry["freq"]))
    return NoteResult(
        note=note,
        strong_ratio=float(entry["strong"]),
        weak_ratio=float(entry["weak"]),
        grade=Grade(entry["grade"]),
        frame_count=int(entry.get("frames", 0)),
        onset_detected=bool(entry.get("onset_detected", True)),
    )


def segment_to_dict(results, segment):
    if segment is None:
        return None
    return {
        "low": segment.low_note.name,
        "high": segment.high_note.name,
        "notes": [results[i].note.name for i in segment.indices],
        "indices": list(segment.indices),
        "length": segment.length,
        "avg_strong": segment.avg_strong_ratio,
    }


def build_report(results, analysis=None, summary=None, config=None) -> dict:
    """JSON-ready record of a finished (or partial) session."""
    results = list(results)
    report = {
        "created_at": datetime.now(timezone.utc).isoformat(),
        "results": results_to_dicts(results),
        "tessitura": segment_to_dict(results, analysis.best) if analysis else None,
        "segments": [
            segment_to_dict(results, s) for s in analysis.all_segments
        ] if analysis else [],
        "summary": summary,
    }
    if config is not None:
        report["config"] = config.to_dict()
    return report


def save_report(path, report: dict) -> None:
    dirname = os.path.dirname(str(path))
    if dirname:
        os.makedirs(dirname, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(report, f, indent=2)
    logger.info("Saved report to %s", path)


def load_results(path) -> list[NoteResult]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    entries = data.get("results", []) if isinstance(data, dict) else data
    results = [result_from_dict(e) for e in entries]
    return sorted(results, key=lambda r: r.note.midi)
