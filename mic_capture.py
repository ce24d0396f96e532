# mic_capture.py
import logging
import threading
from collections import deque
from typing import Any, Optional

import numpy as np
import sounddevice as sd

from assessment.errors import DeviceError

logger = logging.getLogger(__name__)


class CaptureHandle:
    """Open microphone stream; the newest samples are kept in a rolling buffer."""

    def __init__(self, sample_rate: int, buffer_seconds: float = 3.0):
        self.sample_rate = int(sample_rate)
        self.buffer: deque[float] = deque(maxlen=int(self.sample_rate * buffer_seconds))
        self.stream: Optional[sd.InputStream] = None
        self._lock = threading.Lock()

    # -------------------------
    # Audio callback (fast)
    # -------------------------
    def audio_callback(
        self, indata: np.ndarray, _frames: int, _time_info: Any, status: Any
    ) -> None:
        if status:
            logger.debug("input stream status: %s", status)
        try:
            mono = np.asarray(indata[:, 0], dtype=float).flatten()
            with self._lock:
                self.buffer.extend(mono.tolist())
        except Exception:  # noqa: BLE001
            logger.exception("MicCapture audio callback failed")

    def read_block(self, size: int) -> np.ndarray:
        """Latest ``size`` samples, zero-padded at the front if fewer arrived."""
        size = int(size)
        with self._lock:
            data = list(self.buffer)[-size:] if size > 0 else []
        block = np.zeros(size, dtype=float)
        if data:
            block[size - len(data):] = data
        return block

    def close(self) -> None:
        stream, self.stream = self.stream, None
        if stream is None:
            return
        try:
            if getattr(stream, "active", False):
                stream.stop()
        except Exception:  # noqa: BLE001
            logger.exception("Error stopping audio stream")
        try:
            stream.close()
        except Exception:  # noqa: BLE001
            logger.exception("Error closing audio stream")
        logger.info("MicCapture audio stream stopped")


class MicCapture:
    """Opens the default input device through sounddevice."""

    def __init__(self, sample_rate: int = 44100, frame_ms: int = 20, device=None):
        self.sample_rate = int(sample_rate)
        self.frame_ms = int(frame_ms)
        self.device = device

    def open(self) -> CaptureHandle:
        handle = CaptureHandle(self.sample_rate)
        blocksize = max(64, int(self.sample_rate * self.frame_ms / 1000))
        try:
            handle.stream = sd.InputStream(
                samplerate=self.sample_rate,
                blocksize=blocksize,
                channels=1,
                dtype="float32",
                device=self.device,
                callback=handle.audio_callback,
            )
            handle.stream.start()
        except Exception as e:  # noqa: BLE001
            logger.exception("Failed to start audio stream")
            handle.close()
            raise DeviceError(str(e) or type(e).__name__) from e

        logger.info(
            "MicCapture audio stream started at %d Hz blocksize %d",
            self.sample_rate,
            blocksize,
        )
        return handle
