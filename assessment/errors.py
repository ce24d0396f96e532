# assessment/errors.py


class AssessmentError(Exception):
    """Base class for range-assessment failures."""


class DeviceError(AssessmentError):
    """The capture device could not be opened (missing device, permission denied)."""


class SessionStartError(AssessmentError):
    """A session could not start; nothing was graded."""


class SessionBusy(AssessmentError):
    """A run or retry is already active."""


class RetryRejected(AssessmentError):
    def __init__(self, midi, reason):
        super().__init__(f"retry of MIDI {midi} rejected: {reason}")
        self.midi = midi
        self.reason = reason


class ConfigError(AssessmentError, ValueError):
    """Invalid assessment configuration."""


class AbortRequested(Exception):
    """Raised at a suspension point after stop was requested."""
