import logging
import threading
import time

from .config import FPS

logger = logging.getLogger(__name__)


class FrameClock:
    """Fixed-rate timer on its own thread.

    Keeps firing whether or not anything is on screen. A late fire is not
    caught up; the next one is scheduled from now.
    """

    def __init__(self, callback, interval: float = 1.0 / FPS, name: str = "frame-clock"):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.callback = callback
        self.interval = interval
        self.name = name
        self.ticks = 0
        self._stop = threading.Event()
        self._thr: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thr is not None and self._thr.is_alive()

    def start(self):
        if self.running:
            return
        self._stop.clear()
        self.ticks = 0
        self._thr = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thr.start()

    def stop(self, timeout: float | None = 5.0):
        """Stop firing. When called from outside the clock thread, returns only after the last tick finished."""
        self._stop.set()
        thr = self._thr
        if thr and thr is not threading.current_thread():
            thr.join(timeout=timeout)
            if thr.is_alive():
                logger.warning("%s did not stop within %ss", self.name, timeout)
        self._thr = None

    def _run(self):
        next_fire = time.perf_counter()
        while not self._stop.is_set():
            try:
                self.callback()
            except Exception:
                logger.exception("%s callback failed", self.name)
            self.ticks += 1
            next_fire += self.interval
            delay = next_fire - time.perf_counter()
            if delay < 0:
                next_fire = time.perf_counter()
                delay = 0
            self._stop.wait(delay)
