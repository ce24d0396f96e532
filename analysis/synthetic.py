import numpy as np

TIMBRES = ("sine", "piano")


def synthetic_sine(freq, sr=44100, n=2048, amplitude=0.5, phase=0.0):
    """
    Pure sine block of ``n`` samples, used as a stand-in for a sung note.

    Parameters
    ----------
    freq : float
        Frequency in Hz. A non-positive frequency yields silence.
    sr : int
        Sample rate.
    n : int
        Number of samples.
    amplitude : float
        Peak amplitude.
    phase : float
        Start phase in radians.

    Returns
    -------
    np.ndarray
    """
    if freq is None or freq <= 0:
        return np.zeros(int(n), dtype=float)
    t = np.arange(int(n)) / float(sr)
    return amplitude * np.sin(2 * np.pi * freq * t + phase)


def _piano_envelope(t, duration):
    # fast attack, decay to a sustain level, then release to silence
    env = np.empty_like(t)
    attack, decay = 0.02, 0.4

    a = t < attack
    env[a] = 0.7 * t[a] / attack

    d = (t >= attack) & (t < decay)
    frac = (t[d] - attack) / (decay - attack)
    env[d] = 0.7 * (0.4 / 0.7) ** frac

    r = t >= decay
    if duration > decay:
        frac = (t[r] - decay) / (duration - decay)
        env[r] = 0.4 + (0.0001 - 0.4) * frac
    else:
        env[r] = 0.4
    return env


def synth_tone(freq, duration=1.0, sr=44100, timbre="sine"):
    """
    Reference tone for playback.

    "sine" is a plain sine at gain 0.2. "piano" mixes a sine and a triangle
    at the same pitch under a piano-like envelope.
    """
    if timbre not in TIMBRES:
        raise ValueError(f"unknown timbre: {timbre!r}")

    n = max(int(sr * duration), 0)
    t = np.arange(n) / float(sr)
    if freq is None or freq <= 0 or n == 0:
        return np.zeros(n, dtype=float)

    phase = 2 * np.pi * freq * t
    if timbre == "sine":
        return 0.2 * np.sin(phase)

    # triangle from the phase of the sine
    cycle = (freq * t) % 1.0
    triangle = 4.0 * np.abs(cycle - 0.5) - 1.0
    mix = 0.6 * (np.sin(phase) + triangle)
    return mix * _piano_envelope(t, duration)
