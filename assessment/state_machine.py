# assessment/state_machine.py
import logging

from assessment.errors import AssessmentError

logger = logging.getLogger(__name__)


class InvalidTransition(AssessmentError):
    pass


IDLE = "idle"
INITIALIZING = "initializing"
RETRYING = "retrying"
COUNT_IN = "count_in"
PLAY_REFERENCE = "play_reference"
WAIT_ONSET = "wait_onset"
MEASURING = "measuring"
GRADED = "graded"
COMPLETED = "completed"
ABORTED = "aborted"

TRANSITIONS = {
    IDLE: {INITIALIZING, RETRYING},
    INITIALIZING: {COUNT_IN, COMPLETED, IDLE},
    RETRYING: {PLAY_REFERENCE, IDLE},
    COUNT_IN: {PLAY_REFERENCE},
    PLAY_REFERENCE: {WAIT_ONSET},
    WAIT_ONSET: {MEASURING, GRADED},
    MEASURING: {GRADED},
    GRADED: {COUNT_IN, COMPLETED},
    COMPLETED: {IDLE},
    ABORTED: {IDLE},
}


class AssessmentStateMachine:
    """
    Phase tracker for one assessment run or single-note retry:

      idle → initializing → count_in → play_reference → wait_onset
           → [measuring] → graded → (count_in | completed) → idle

      idle → retrying → play_reference → wait_onset → [measuring]
           → graded → completed → idle

    ``aborted`` is reachable from every phase. The machine only validates
    and records transitions; timing is owned by the runner.
    """

    def __init__(self):
        self.phase = IDLE
        self.retrying = False
        self.note_index = None
        self.history = []

    def transition(self, phase, note_index=None):
        if phase == ABORTED:
            allowed = phase != self.phase
        else:
            allowed = phase in TRANSITIONS.get(self.phase, ())
            # a retry pass measures one note only
            if self.retrying and self.phase == GRADED and phase == COUNT_IN:
                allowed = False

        if not allowed:
            raise InvalidTransition(f"{self.phase} -> {phase}")

        logger.debug("phase %s -> %s (note=%s)", self.phase, phase, note_index)

        if phase == RETRYING:
            self.retrying = True
        elif phase == INITIALIZING:
            self.retrying = False
        elif phase == IDLE:
            self.retrying = False
            note_index = None

        self.phase = phase
        if note_index is not None or phase in (IDLE, COMPLETED, ABORTED):
            self.note_index = note_index
        self.history.append(phase)

        return {"event": "phase", "phase": phase, "note_index": self.note_index}

    def is_idle(self):
        return self.phase == IDLE

    def is_done(self):
        return self.phase == COMPLETED
