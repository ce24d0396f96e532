# assessment/session.py
from enum import Enum
from typing import Optional

from analysis.notes import Note
from analysis.scoring import NoteResult


class SessionStatus(Enum):
    IDLE = "idle"
    RUNNING = "running"
    RETRYING = "retrying"
    DONE = "done"


class SessionState:
    """
    Mutable state of one assessment session.

    Each field is reassigned as a whole value so readers on another thread
    see either the old or the new value, never a partial update.
    """

    def __init__(self):
        self.status = SessionStatus.IDLE
        self.results: tuple[NoteResult, ...] = ()
        self.retried: frozenset[int] = frozenset()
        self.current_note: Optional[Note] = None

    @property
    def busy(self) -> bool:
        return self.status in (SessionStatus.RUNNING, SessionStatus.RETRYING)

    def begin(self):
        """Discard the previous session and start a new one."""
        self.results = ()
        self.retried = frozenset()
        self.current_note = None
        self.status = SessionStatus.RUNNING

    def append_result(self, result: NoteResult):
        self.results = self.results + (result,)

    def replace_result(self, index: int, result: NoteResult):
        if self.results[index].note.midi != result.note.midi:
            raise ValueError(
                f"result for MIDI {result.note.midi} cannot replace "
                f"MIDI {self.results[index].note.midi}"
            )
        updated = list(self.results)
        updated[index] = result
        self.results = tuple(updated)

    def mark_retried(self, midi: int):
        self.retried = self.retried | {midi}

    def index_of(self, midi: int) -> Optional[int]:
        for i, r in enumerate(self.results):
            if r.note.midi == midi:
                return i
        return None

    def reset(self):
        """Back to Idle after stop/abort. Graded results stay visible."""
        self.current_note = None
        self.status = SessionStatus.IDLE
