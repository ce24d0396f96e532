# assessment/runner.py
import logging
import queue
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Sequence

from analysis.notes import Note, generate_note_list
from analysis.pitch import estimate_pitch, frame_rms
from analysis.scoring import Frame, NoteResult, grade_note, make_frame
from analysis.tessitura import TessituraAnalysis, analyze_tessitura, range_summary
from assessment import state_machine as sm
from assessment.clock import SystemClock
from assessment.config import AssessmentConfig
from assessment.errors import (
    AbortRequested,
    DeviceError,
    RetryRejected,
    SessionBusy,
    SessionStartError,
)
from assessment.retry import RetryPolicy
from assessment.session import SessionState, SessionStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameEvent:
    note_index: int
    frame: Frame


class SequenceRunner:
    """
    Drives an assessment over the note table, one note at a time.

    Single-threaded: the runner only suspends inside ``clock.sleep``. Capture
    is pulled (``read_block``) at every poll; tone playback is fire-and-forget.
    Progress is published as status dicts to ``results_queue`` and to any
    ``listeners``; accepted pitch frames are yielded lazily by ``events()``.
    """

    def __init__(
        self,
        capture,
        player,
        config: Optional[AssessmentConfig] = None,
        clock=None,
        notes: Optional[Sequence[Note]] = None,
        results_queue: Optional[queue.Queue] = None,
        listeners: Optional[Sequence[Callable[[dict], None]]] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.config = (config or AssessmentConfig()).validate()
        self.capture = capture
        self.player = player
        self.clock = clock or SystemClock()
        if notes is None:
            notes = generate_note_list(
                self.config.midi_range_low, self.config.midi_range_high
            )
        self.notes = tuple(notes)
        self.results_queue = results_queue
        self.listeners = list(listeners or [])
        self.retry_policy = retry_policy or RetryPolicy()

        self.state = SessionState()
        self.machine = sm.AssessmentStateMachine()
        self.analysis = TessituraAnalysis(best=None)
        self.summary = None

        self._handle = None
        self._sample_rate = self.config.sample_rate
        self._abort_requested = False

    # -------------------------
    # Read-only views
    # -------------------------
    @property
    def status(self) -> SessionStatus:
        return self.state.status

    @property
    def results(self) -> tuple[NoteResult, ...]:
        return self.state.results

    @property
    def tessitura(self):
        return self.analysis.best

    def eligible_notes(self) -> set[int]:
        if self.state.status is not SessionStatus.DONE:
            return set()
        return self.retry_policy.eligible_notes(self.state.results, self.state.retried)

    def request_abort(self) -> None:
        """
        Stop at the next suspension point. Safe to call from any thread.
        A KeyboardInterrupt raised while sleeping is turned into this request.
        """
        self._abort_requested = True

    # -------------------------
    # Full session
    # -------------------------
    def events(self) -> Iterator[FrameEvent]:
        """
        Run a full session, yielding a FrameEvent for every accepted frame.

        Raises SessionBusy if another run or retry is active, and
        SessionStartError if the capture device cannot be opened.
        """
        if self.state.busy:
            raise SessionBusy("an assessment is already running")

        self._abort_requested = False
        self.state.begin()
        self.analysis = TessituraAnalysis(best=None)
        self.summary = None
        self._publish(self.machine.transition(sm.INITIALIZING))
        logger.info(
            "Starting assessment over %d notes (%s..%s)",
            len(self.notes),
            self.notes[0].name if self.notes else "-",
            self.notes[-1].name if self.notes else "-",
        )

        try:
            self._open_capture()

            for index, note in enumerate(self.notes):
                if index > 0:
                    self._sleep(self.config.inter_note_pause_sec * 1000)

                self.state.current_note = note
                self._publish(self.machine.transition(sm.COUNT_IN, index))
                self._sleep(self.config.count_in_sec * 1000)

                result = yield from self._measure_note(index, note)
                self.state.append_result(result)
                self._after_grading(index, result)

            self._finish()
        except AbortRequested:
            self._on_abort()
        finally:
            self._cleanup()

    def run(self) -> list[NoteResult]:
        for _ in self.events():
            pass
        return list(self.state.results)

    # -------------------------
    # Single-note retry
    # -------------------------
    def retry_events(self, midi: int) -> Iterator[FrameEvent]:
        """
        Measure one eligible note again and replace its result in place.

        Raises RetryRejected (without touching any state) when the session is
        not complete or the note is ineligible or already retried.
        """
        if self.state.busy:
            raise SessionBusy("an assessment is already running")
        if self.state.status is not SessionStatus.DONE:
            logger.warning("Retry of MIDI %s rejected: session not completed", midi)
            raise RetryRejected(midi, "session not completed")

        reason = self.retry_policy.check(self.state.results, self.state.retried, midi)
        if reason is not None:
            logger.warning("Retry of MIDI %s rejected: %s", midi, reason)
            raise RetryRejected(midi, reason)

        index = self.state.index_of(midi)
        note = self.state.results[index].note

        self._abort_requested = False
        self.state.status = SessionStatus.RETRYING
        self.state.current_note = note
        self._publish(self.machine.transition(sm.RETRYING, index))
        logger.info("Retrying %s", note.name)

        try:
            try:
                self._open_capture()
            except SessionStartError:
                # nothing was measured, the finished session stays as it was
                self._publish(self.machine.transition(sm.IDLE))
                self.state.current_note = None
                self.state.status = SessionStatus.DONE
                raise

            result = yield from self._measure_note(index, note)
            self.state.replace_result(index, result)
            self.state.mark_retried(midi)
            self._after_grading(index, result, retry=True)
            self._finish()
        except AbortRequested:
            self._on_abort()
        finally:
            self._cleanup()

    def retry(self, midi: int) -> NoteResult:
        for _ in self.retry_events(midi):
            pass
        return self.state.results[self.state.index_of(midi)]

    # -------------------------
    # Per-note pipeline
    # -------------------------
    def _measure_note(self, index: int, note: Note):
        cfg = self.config

        self._publish(self.machine.transition(sm.PLAY_REFERENCE, index))
        self.player.play(note.freq, cfg.tone_duration_sec)
        self._sleep((cfg.tone_duration_sec + cfg.tone_tail_sec) * 1000)

        self._publish(self.machine.transition(sm.WAIT_ONSET, index))
        onset = self._wait_for_onset()

        frames = []
        if onset:
            self._publish(self.machine.transition(sm.MEASURING, index))
            start = self.clock.now()
            while self.clock.now() - start < cfg.measurement_window_sec:
                block = self._handle.read_block(cfg.block_size)
                pitch = estimate_pitch(block, self._sample_rate, cfg.silence_rms)
                frame = make_frame(note.freq, pitch.frequency_hz)
                if frame is not None:
                    frames.append(frame)
                    yield FrameEvent(index, frame)
                self._sleep(cfg.frame_interval_ms)
        else:
            logger.info(
                "No voice onset for %s within %.1fs",
                note.name,
                cfg.onset_timeout_sec,
            )

        self._check_abort()
        result = grade_note(
            note,
            frames,
            cfg.strong_cents,
            cfg.weak_cents,
            cfg.strong_percent,
            cfg.weak_percent,
            onset_detected=onset,
        )
        self._publish(self.machine.transition(sm.GRADED, index))
        return result

    def _wait_for_onset(self) -> bool:
        cfg = self.config
        deadline = self.clock.now() + cfg.onset_timeout_sec
        while self.clock.now() < deadline:
            block = self._handle.read_block(cfg.block_size)
            if frame_rms(block) > cfg.onset_rms_threshold:
                return True
            self._sleep(cfg.onset_poll_ms)
        return False

    def _after_grading(self, index: int, result: NoteResult, retry: bool = False):
        cfg = self.config
        self.analysis = analyze_tessitura(
            self.state.results,
            strong_threshold=cfg.strong_threshold,
            min_notes=cfg.min_tessitura_notes,
            max_gaps=cfg.max_retry_gaps,
        )
        logger.info(
            "%s%s: %s (strong=%.0f%% weak=%.0f%% frames=%d)",
            "retry " if retry else "",
            result.note.name,
            result.grade.label,
            result.strong_ratio * 100,
            result.weak_ratio * 100,
            result.frame_count,
        )
        self._publish({
            "event": "note_graded",
            "index": index,
            "retry": retry,
            "result": result,
            "results": self.state.results,
            "tessitura": self.analysis.best,
        })

    # -------------------------
    # Lifecycle helpers
    # -------------------------
    def _open_capture(self):
        try:
            self._handle = self.capture.open()
        except DeviceError as e:
            logger.error("Cannot start assessment: %s", e)
            self._publish({"event": "start_failed", "error": str(e)})
            raise SessionStartError(f"cannot open audio capture: {e}") from e
        self._sample_rate = getattr(self._handle, "sample_rate", None) or self.config.sample_rate

    def _finish(self):
        self._publish(self.machine.transition(sm.COMPLETED))
        self.state.current_note = None
        self.state.status = SessionStatus.DONE
        self.summary = range_summary(self.state.results, self.analysis.best)
        best = self.analysis.best
        if best is None:
            logger.info("Assessment finished; no tessitura found")
        else:
            logger.info(
                "Assessment finished; tessitura %s..%s (%d notes)",
                best.low_note.name,
                best.high_note.name,
                best.length,
            )
        self._publish({
            "event": "completed",
            "results": self.state.results,
            "tessitura": best,
            "summary": self.summary,
        })
        self._publish(self.machine.transition(sm.IDLE))

    def _on_abort(self):
        logger.info("Assessment aborted")
        self._release()
        self._publish(self.machine.transition(sm.ABORTED))
        self._publish({"event": "aborted", "results": self.state.results})
        self._publish(self.machine.transition(sm.IDLE))
        self.state.reset()

    def _cleanup(self):
        self._release()
        self._abort_requested = False
        if self.state.busy:
            # left through an exception or an early close of the generator
            self.machine = sm.AssessmentStateMachine()
            self.state.reset()

    def _release(self):
        handle, self._handle = self._handle, None
        if handle is not None:
            try:
                handle.close()
            except Exception:  # noqa: BLE001
                logger.exception("Failed to close audio capture")
        stop = getattr(self.player, "stop", None)
        if callable(stop):
            try:
                stop()
            except Exception:  # noqa: BLE001
                logger.exception("Failed to stop tone playback")

    def _check_abort(self):
        if self._abort_requested:
            raise AbortRequested()

    def _sleep(self, duration_ms):
        self._check_abort()
        try:
            self.clock.sleep(duration_ms)
        except KeyboardInterrupt:
            logger.info("Interrupted; aborting assessment")
            self.request_abort()
        self._check_abort()

    def _publish(self, event: dict):
        for listener in self.listeners:
            try:
                listener(event)
            except Exception:  # noqa: BLE001
                logger.exception("Listener failed on %s event", event.get("event"))

        if self.results_queue is not None:
            try:
                self.results_queue.put_nowait(event)
            except queue.Full:
                logger.debug("results queue full; dropped %s event", event.get("event"))
