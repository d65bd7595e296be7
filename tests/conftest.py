import numpy as np
import pytest

from autozoom.errors import CaptureError
from autozoom.session import RecordingSession


class FakeGrabber:
    def __init__(self, source_id, fps=60, on_ended=None, size=(320, 180), fail=False):
        self.source_id = source_id
        self.fps = fps
        self.on_ended = on_ended
        self.size = size
        self.fail = fail
        self.frame = None
        self.region = {"left": 0, "top": 0, "width": size[0], "height": size[1]}
        self.stopped = False

    def start(self):
        if self.fail:
            raise CaptureError("permission denied")
        w, h = self.size
        self.frame = np.full((h, w, 3), 128, dtype=np.uint8)

    def stop(self):
        self.stopped = True
        self.frame = None

    @property
    def resolution(self):
        return self.size

    @property
    def logical_size(self):
        return self.size


class FakeSink:
    mime_type = "video/webm"

    def __init__(self, fps=60):
        self.fps = fps
        self.frames = []
        self.paused = False
        self.started_with = None
        self.stopped = False

    def start(self, size):
        self.started_with = size

    def write(self, frame):
        if not self.paused:
            self.frames.append(frame)

    def pause(self):
        self.paused = True

    def resume(self):
        self.paused = False

    def stop(self):
        self.stopped = True
        return b"x" * len(self.frames)


class FakeClock:
    def __init__(self, callback, interval):
        self.callback = callback
        self.interval = interval
        self.running = False

    def start(self):
        self.running = True

    def stop(self):
        self.running = False

    def fire(self, n=1):
        for _ in range(n):
            self.callback()


class Parts:
    def __init__(self, fail=False):
        self.fail = fail
        self.grabber = self.sink = self.clock = None
        self.sleeps = []

    def grabber_factory(self, source_id, fps, on_ended):
        self.grabber = FakeGrabber(source_id, fps, on_ended, fail=self.fail)
        return self.grabber

    def sink_factory(self, fps):
        self.sink = FakeSink(fps)
        return self.sink

    def clock_factory(self, callback, interval):
        self.clock = FakeClock(callback, interval)
        return self.clock

    def session(self, **kwargs):
        return RecordingSession(
            grabber_factory=self.grabber_factory,
            sink_factory=self.sink_factory,
            observer_factory=None,
            clock_factory=self.clock_factory,
            sleep=self.sleeps.append,
            **kwargs,
        )


@pytest.fixture
def parts():
    return Parts()
