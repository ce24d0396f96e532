# tone_player.py
import logging
import threading

import sounddevice as sd

from analysis.synthetic import synth_tone

logger = logging.getLogger(__name__)


class TonePlayer:
    """Fire-and-forget reference tone playback."""

    def __init__(self, sample_rate: int = 44100, timbre: str = "sine"):
        self.sample_rate = int(sample_rate)
        self.timbre = timbre
        self._thread = None

    def play(self, frequency, duration=1.0):
        waveform = synth_tone(frequency, duration, self.sample_rate, self.timbre)

        def _play():
            try:
                sd.play(waveform, self.sample_rate)
                sd.wait()
            except Exception:  # noqa: BLE001
                logger.exception("Tone playback failed at %.1f Hz", frequency)

        self._thread = threading.Thread(target=_play, daemon=True)
        self._thread.start()

    def stop(self, timeout=1.0):
        sd.stop()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            if thread.is_alive():
                logger.warning("Tone playback thread did not finish within %.1fs", timeout)
