# assessment/retry.py
from typing import Iterable, Sequence

from analysis.scoring import Grade, NoteResult


class RetryPolicy:
    """
    Which notes may be measured once more.

    Eligible are the Weak/Fail notes between the lowest and highest Strong
    note, plus the unbroken runs of Weak notes directly below and above that
    span. Every note can be retried at most once per session.
    """

    def eligible_indices(self, results: Sequence[NoteResult], retried: Iterable[int] = ()):
        strong = [i for i, r in enumerate(results) if r.grade is Grade.STRONG]
        if not strong:
            return []

        lo, hi = strong[0], strong[-1]
        picked = [
            i for i in range(lo + 1, hi)
            if results[i].grade in (Grade.WEAK, Grade.FAIL)
        ]

        i = lo - 1
        while i >= 0 and results[i].grade is Grade.WEAK:
            picked.append(i)
            i -= 1

        i = hi + 1
        while i < len(results) and results[i].grade is Grade.WEAK:
            picked.append(i)
            i += 1

        done = set(retried)
        return sorted(i for i in picked if results[i].note.midi not in done)

    def eligible_notes(self, results: Sequence[NoteResult], retried: Iterable[int] = ()):
        """MIDI numbers of the notes that may be retried."""
        return {results[i].note.midi for i in self.eligible_indices(results, retried)}

    def check(self, results: Sequence[NoteResult], retried: Iterable[int], midi: int):
        """Return None if ``midi`` may be retried, otherwise the reason it may not."""
        retried = set(retried)
        if midi in retried:
            return "already retried"
        if all(r.note.midi != midi for r in results):
            return "not in results"
        if midi not in self.eligible_notes(results, retried):
            return "not eligible"
        return None
