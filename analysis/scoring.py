# analysis/scoring.py
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

import numpy as np

from analysis.notes import Note


class Grade(Enum):
    STRONG = "Strong"
    WEAK = "Weak"
    FAIL = "Fail"

    @property
    def label(self) -> str:
        return {
            Grade.STRONG: "Strong OK",
            Grade.WEAK: "Weak OK",
            Grade.FAIL: "Fail",
        }[self]

    @property
    def color(self) -> str:
        return {
            Grade.STRONG: "green",
            Grade.WEAK: "orange",
            Grade.FAIL: "red",
        }[self]


@dataclass(frozen=True)
class Frame:
    frequency_hz: float
    cents_deviation: float


@dataclass(frozen=True)
class NoteResult:
    note: Note
    strong_ratio: float
    weak_ratio: float
    grade: Grade
    frame_count: int = 0
    onset_detected: bool = True


# ---------------------------------------------------------
# Per-frame deviation
# ---------------------------------------------------------

def cents_deviation(target_hz, measured_hz):
    """
    Signed pitch difference in cents (1200 * log2(measured / target)).
    Returns +inf when either frequency is not positive.
    """
    if target_hz is None or measured_hz is None:
        return float("inf")
    if target_hz <= 0 or measured_hz <= 0:
        return float("inf")
    return float(1200.0 * np.log2(measured_hz / target_hz))


def classify_deviation(cents, strong_cents, weak_cents):
    """Return "strong", "weak" or "out" for a deviation magnitude."""
    mag = abs(cents)
    if not np.isfinite(mag):
        return "out"
    if mag <= strong_cents:
        return "strong"
    if mag <= weak_cents:
        return "weak"
    return "out"


def make_frame(target_hz, measured_hz):
    """Frame with the absolute deviation, or None for an unvoiced estimate."""
    if measured_hz is None or measured_hz <= 0:
        return None
    return Frame(float(measured_hz), abs(cents_deviation(target_hz, measured_hz)))


# ---------------------------------------------------------
# Per-note grade
# ---------------------------------------------------------

def grade_note(
    note: Note,
    frames: Sequence[Frame],
    strong_cents: float,
    weak_cents: float,
    strong_percent: float,
    weak_percent: float,
    onset_detected: bool = True,
) -> NoteResult:
    total = max(len(frames), 1)
    devs = [abs(f.cents_deviation) for f in frames]

    strong = sum(1 for d in devs if d <= strong_cents) / total
    weak = sum(1 for d in devs if d <= weak_cents) / total

    if strong >= strong_percent:
        grade = Grade.STRONG
    elif weak >= weak_percent:
        grade = Grade.WEAK
    else:
        grade = Grade.FAIL

    return NoteResult(
        note=note,
        strong_ratio=strong,
        weak_ratio=weak,
        grade=grade,
        frame_count=len(frames),
        onset_detected=onset_detected,
    )
