# assessment/clock.py
import time


class SystemClock:
    """Monotonic wall clock; sleep() is the runner's only suspension primitive."""

    def now(self) -> float:
        return time.monotonic()

    def sleep(self, duration_ms: float) -> None:
        if duration_ms > 0:
            time.sleep(duration_ms / 1000.0)
