# analysis/pitch.py
from dataclasses import dataclass

import numpy as np

NO_PITCH = -1.0
DEFAULT_SILENCE_RMS = 0.001


@dataclass(frozen=True)
class PitchResult:
    frequency_hz: float
    rms: float

    @property
    def voiced(self) -> bool:
        return self.frequency_hz > 0


def frame_rms(frame) -> float:
    """Root-mean-square amplitude of a block; 0.0 for an empty block."""
    frame = np.asarray(frame, dtype=float)
    if frame.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(frame * frame)))


def estimate_pitch(frame, sr, silence_rms=DEFAULT_SILENCE_RMS):
    """
    Autocorrelation pitch estimator with parabolic peak refinement.

    Returns a PitchResult whose frequency is NO_PITCH (-1) when the block is
    below the silence floor or has no usable periodicity. Never raises for
    bad input; an empty or non-finite block is simply unvoiced.
    """
    frame = np.asarray(frame, dtype=float).flatten()
    n = frame.size
    rms = frame_rms(frame)

    if n < 2 or not np.isfinite(rms) or rms < silence_rms:
        return PitchResult(NO_PITCH, rms if np.isfinite(rms) else 0.0)

    # r[lag] = sum_i x[i] * x[i + lag], lag = 0..n-1
    corr = np.correlate(frame, frame, mode="full")[n - 1:]

    # Skip the initial descending run so the zero-lag peak is ignored
    rising = np.nonzero(corr[1:] >= corr[:-1])[0]
    start = int(rising[0]) if rising.size else n - 1

    peak = start + int(np.argmax(corr[start:]))
    peak_val = corr[peak]
    if peak_val <= 0:
        return PitchResult(NO_PITCH, rms)

    left = corr[peak - 1] if peak > 0 else 0.0
    right = corr[peak + 1] if peak + 1 < n else 0.0
    denom = left - 2 * peak_val + right
    shift = (left - right) / (2 * denom) if denom != 0 else 0.0

    lag = peak + shift
    if not np.isfinite(lag) or lag <= 0:
        return PitchResult(NO_PITCH, rms)

    return PitchResult(float(sr / lag), rms)
