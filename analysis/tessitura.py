# analysis/tessitura.py
"""
Tessitura detection over an ordered list of graded notes.

A segment is a run of strong notes that may bridge up to ``max_gaps``
consecutive non-strong notes. Bridged notes count toward contiguity but are
not part of the segment's note list or its average.
"""
from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np

from analysis.notes import Note
from analysis.scoring import NoteResult


@dataclass(frozen=True)
class Segment:
    low_note: Note
    high_note: Note
    indices: tuple[int, ...]
    avg_strong_ratio: float

    @property
    def length(self) -> int:
        return len(self.indices)


@dataclass(frozen=True)
class TessituraAnalysis:
    best: Optional[Segment]
    all_segments: tuple[Segment, ...] = field(default_factory=tuple)


def _make_segment(results, strong_indices):
    ratios = [results[i].strong_ratio for i in strong_indices]
    return Segment(
        low_note=results[strong_indices[0]].note,
        high_note=results[strong_indices[-1]].note,
        indices=tuple(strong_indices),
        avg_strong_ratio=float(np.mean(ratios)),
    )


def analyze_tessitura(
    results: Sequence[NoteResult],
    strong_threshold: float = 0.6,
    min_notes: int = 3,
    max_gaps: int = 1,
) -> TessituraAnalysis:
    mask = [r.strong_ratio >= strong_threshold for r in results]
    n = len(mask)

    segments = []
    i = 0
    while i < n:
        if not mask[i]:
            i += 1
            continue

        strong_indices = [i]
        gaps = 0
        j = i + 1
        while j < n:
            if mask[j]:
                strong_indices.append(j)
                gaps = 0
            else:
                gaps += 1
                if gaps > max_gaps:
                    break
            j += 1

        if len(strong_indices) >= min_notes:
            segments.append(_make_segment(results, strong_indices))

        # Everything after the last strong index up to j is non-strong
        i = strong_indices[-1] + 1

    best = None
    for seg in segments:
        if best is None:
            best = seg
        elif seg.length > best.length:
            best = seg
        elif seg.length == best.length and seg.avg_strong_ratio > best.avg_strong_ratio:
            best = seg

    return TessituraAnalysis(best=best, all_segments=tuple(segments))


def segment_notes(results: Sequence[NoteResult], segment: Segment) -> list[Note]:
    return [results[i].note for i in segment.indices]


def range_summary(results: Sequence[NoteResult], segment: Optional[Segment]):
    """
    {midi_min, midi_median, midi_max} of the notes included in a segment,
    or None when there is no tessitura.
    """
    if segment is None or not segment.indices:
        return None

    midis = sorted(results[i].note.midi for i in segment.indices)
    median = float(np.median(midis))
    return {
        "midi_min": midis[0],
        "midi_median": median,
        "midi_max": midis[-1],
    }
