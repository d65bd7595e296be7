"""One recording session: capture -> camera -> compositor -> sink, on one clock."""
import logging
import threading
import time

from .camera import CameraController
from .capture import ScreenGrabber
from .clock import FrameClock
from .compositor import render
from .config import CameraConfig
from .encoder import VideoSink
from .errors import AutoZoomError, SessionError
from .input_source import ActivityObserver

logger = logging.getLogger(__name__)

IDLE, RECORDING, PAUSED = "idle", "recording", "paused"


class OutputPort:
    """Hands each composed frame to the sink and to any preview subscribers."""

    def __init__(self, sink):
        self.sink = sink
        self._subscribers = []
        self.frames_pushed = 0

    def subscribe(self, callback):
        self._subscribers.append(callback)
        return lambda: self._subscribers.remove(callback)

    def push(self, frame):
        self.frames_pushed += 1
        self.sink.write(frame)
        for callback in list(self._subscribers):
            callback(frame)


class RecordingSession:
    def __init__(
        self,
        config: CameraConfig = CameraConfig(),
        grabber_factory=ScreenGrabber,
        sink_factory=VideoSink,
        observer_factory=ActivityObserver,
        clock_factory=FrameClock,
        on_stopped=None,
        sleep=time.sleep,
    ):
        self.config = config
        self.grabber_factory = grabber_factory
        self.sink_factory = sink_factory
        self.observer_factory = observer_factory
        self.clock_factory = clock_factory
        self.on_stopped = on_stopped
        self.sleep = sleep

        self.controller = CameraController(config)
        self.state = IDLE
        self.source_id = None
        self.size = None
        self.last_recording = None
        self.mime_type = None
        self.port = None
        self._grabber = None
        self._sink = None
        self._observer = None
        self._clock = None
        self._lock = threading.RLock()

    @property
    def is_recording(self) -> bool:
        return self.state != IDLE

    @property
    def is_paused(self) -> bool:
        return self.state == PAUSED

    def start(self, source_id: str, countdown: int = 0):
        with self._lock:
            if self.is_recording:
                raise SessionError("recording is already in progress")
            for i in range(int(countdown), 0, -1):
                logger.info("recording starts in %d", i)
                self.sleep(1)
            try:
                self._grabber = self.grabber_factory(source_id, fps=self.config.fps, on_ended=self._on_track_ended)
                self._grabber.start()
                self.size = self._grabber.resolution
                self.controller.reset(self.size, self._grabber.logical_size)

                self._sink = self.sink_factory(fps=self.config.fps)
                self._sink.start(self.size)
                self.mime_type = self._sink.mime_type
                self.port = OutputPort(self._sink)

                if self.observer_factory is not None:
                    self._observer = self.observer_factory(self.controller, region=self._grabber.region)
                    self._observer.start()

                self._clock = self.clock_factory(self._tick, interval=self.config.tick_interval)
                self._clock.start()
            except Exception:
                logger.exception("failed to start recording %s", source_id)
                self._teardown()
                raise
            self.source_id = source_id
            self.state = RECORDING
            logger.info("recording %s at %sx%s", source_id, *self.size)

    def _tick(self):
        camera = self.controller.tick()
        frame = render(camera, self._grabber.frame, self.size)
        self.port.push(frame)

    def push_pointer(self, x, y):
        if self.is_recording:
            self.controller.on_pointer_move(x, y)

    def push_click(self):
        if self.is_recording:
            self.controller.on_pointer_down()

    def push_key(self):
        if self.is_recording:
            self.controller.on_key_activity()

    def pause(self):
        with self._lock:
            if self.state != RECORDING:
                raise SessionError("no active recording to pause")
            # the clock keeps ticking so the camera does not resume on a stale transform
            self._sink.pause()
            self.state = PAUSED

    def resume(self):
        with self._lock:
            if self.state != PAUSED:
                raise SessionError("recording is not paused")
            self._sink.resume()
            self.state = RECORDING

    def stop(self) -> bytes:
        with self._lock:
            if not self.is_recording:
                raise SessionError("no recording in progress")
            data = self._teardown()
            self.state = IDLE
            self.last_recording = data
            logger.info("recording of %s stopped, %d bytes", self.source_id, len(data))
        if self.on_stopped:
            self.on_stopped(data)
        return data

    def _teardown(self) -> bytes:
        if self._clock is not None:
            self._clock.stop()
        if self._observer is not None:
            self._observer.stop()
        if self._grabber is not None:
            self._grabber.stop()
        data = self._sink.stop() if self._sink is not None else b""
        self.controller.discard()
        self._clock = self._observer = self._grabber = self._sink = None
        self.port = None
        return data

    def _on_track_ended(self):
        threading.Thread(target=self._stop_after_track_end, name="track-ended", daemon=True).start()

    def _stop_after_track_end(self):
        try:
            self.stop()
        except SessionError:
            pass  # already stopped by the user

    def status(self) -> dict:
        snap = self.controller.snapshot()
        camera = None
        if snap is not None:
            camera = {
                "mode": snap.mode.value,
                "x": snap.current.x,
                "y": snap.current.y,
                "zoom": snap.current.zoom,
            }
        return {
            "is_recording": self.is_recording,
            "is_paused": self.is_paused,
            "source_id": self.source_id if self.is_recording else None,
            "size": list(self.size) if self.is_recording and self.size else None,
            "camera": camera,
            "has_recording": self.last_recording is not None,
        }


def start_in_background(session, source_id, done, countdown=0):
    """Start ``session`` on a worker thread; ``done(error)`` gets ``None`` on success."""

    def run():
        try:
            session.start(source_id, countdown=countdown)
        except AutoZoomError as e:
            logger.error("could not start recording: %s", e)
            done(e)
            return
        done(None)

    thread = threading.Thread(target=run, name="session-start", daemon=True)
    thread.start()
    return thread
