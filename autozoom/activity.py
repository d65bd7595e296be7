"""Pointer/click/key activity: event types, significance tracking, event queue.

Events are stamped when they arrive and applied by the camera controller at
the next tick boundary, so the tracker itself never looks at a clock.
"""
import enum
import queue
import time
from dataclasses import dataclass, replace
from typing import Optional, Tuple


def now_ms() -> int:
    return int(time.monotonic() * 1000)


@dataclass(frozen=True)
class PointerMove:
    x: float
    y: float
    timestamp_ms: int


@dataclass(frozen=True)
class PointerDown:
    timestamp_ms: int


@dataclass(frozen=True)
class KeyActivity:
    timestamp_ms: int


@dataclass(frozen=True)
class ActivitySample:
    pos: Tuple[float, float]
    timestamp_ms: int


class Movement(enum.Enum):
    SEED = "seed"
    NOISE = "noise"
    SIGNIFICANT = "significant"


@dataclass(frozen=True)
class ActivityTracker:
    """Last accepted pointer sample and the last time the user did something.

    ``last_sample`` is seeded by the first pointer sample without counting as
    activity; after that it only moves when a sample clears the deadzone on
    either axis. ``last_active_ms`` is ``None`` until the first real activity.
    """

    deadzone_px: float = 60
    last_sample: Optional[ActivitySample] = None
    last_active_ms: Optional[int] = None

    @property
    def last_pos(self) -> Optional[Tuple[float, float]]:
        return self.last_sample.pos if self.last_sample else None

    def observe(self, x: float, y: float, timestamp_ms: int):
        """Classify a pointer sample. Returns ``(tracker, movement)``."""
        if self.last_sample is None:
            return replace(self, last_sample=ActivitySample((x, y), timestamp_ms)), Movement.SEED

        lx, ly = self.last_sample.pos
        if max(abs(x - lx), abs(y - ly)) > self.deadzone_px:
            tracker = replace(
                self,
                last_sample=ActivitySample((x, y), timestamp_ms),
                last_active_ms=timestamp_ms,
            )
            return tracker, Movement.SIGNIFICANT
        return self, Movement.NOISE

    def touch(self, timestamp_ms: int) -> "ActivityTracker":
        return replace(self, last_active_ms=timestamp_ms)

    def idle_for(self, now: int) -> Optional[int]:
        if self.last_active_ms is None:
            return None
        return now - self.last_active_ms

    def is_idle(self, now: int, timeout_ms: int) -> bool:
        elapsed = self.idle_for(now)
        return elapsed is None or elapsed > timeout_ms


class EventQueue:
    """FIFO between the input threads and the tick thread."""

    def __init__(self):
        self._q = queue.Queue()

    def put(self, event):
        self._q.put(event)

    def drain(self):
        events = []
        while True:
            try:
                events.append(self._q.get_nowait())
            except queue.Empty:
                return events

    def clear(self):
        self.drain()

    def __len__(self):
        return self._q.qsize()
