"""Encoding sink: composed frames in, container bytes out."""
import logging
import os
import shutil
import tempfile
import threading

import cv2

from .config import FPS, SINK_DEFAULT, SINK_PREFERENCES
from .errors import SessionError

logger = logging.getLogger(__name__)

MIME_TYPES = {
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    ".avi": "video/x-msvideo",
}

EXTENSIONS = {mime: ext for ext, mime in MIME_TYPES.items()}

INACTIVE, RECORDING, PAUSED = "inactive", "recording", "paused"


def even_size(size):
    # most codecs reject odd dimensions
    w, h = size
    return w - (w % 2), h - (h % 2)


class VideoSink:
    def __init__(self, fps: int = FPS, preferences=SINK_PREFERENCES):
        self.fps = fps
        self.preferences = list(preferences)
        self.state = INACTIVE
        self.fourcc = None
        self.extension = None
        self.size = None
        self.frames_written = 0
        self._writer = None
        self._path = None
        self._dir = None
        self._lock = threading.Lock()

    @property
    def mime_type(self) -> str:
        return MIME_TYPES.get(self.extension, "application/octet-stream")

    def _open(self, fourcc, ext):
        path = os.path.join(self._dir, "recording" + ext)
        code = fourcc if isinstance(fourcc, int) else cv2.VideoWriter_fourcc(*fourcc)
        writer = cv2.VideoWriter(path, code, float(self.fps), self.size)
        if writer.isOpened():
            return writer, path
        writer.release()
        if os.path.exists(path):
            os.remove(path)
        return None, None

    def start(self, size):
        with self._lock:
            if self.state != INACTIVE:
                raise SessionError("sink is already recording")
            self.size = even_size(size)
            self.frames_written = 0
            self._dir = tempfile.mkdtemp(prefix="autozoom-")
            for fourcc, ext in self.preferences:
                writer, path = self._open(fourcc, ext)
                if writer is not None:
                    break
                logger.debug("sink format %s%s not supported", fourcc, ext)
            else:
                fourcc, ext = SINK_DEFAULT
                logger.warning("no preferred format available, using writer defaults")
                writer, path = self._open(fourcc, ext)
                if writer is None:
                    shutil.rmtree(self._dir, ignore_errors=True)
                    self._dir = None
                    raise SessionError("could not open a video writer")
            self._writer, self._path = writer, path
            self.fourcc, self.extension = fourcc, ext
            self.state = RECORDING
            logger.info("recording with %s (%s) at %sx%s, %s fps", fourcc, ext, *self.size, self.fps)

    def write(self, frame) -> bool:
        with self._lock:
            if self.state != RECORDING:
                return False
            w, h = self.size
            self._writer.write(frame[:h, :w])
            self.frames_written += 1
            return True

    def pause(self):
        with self._lock:
            if self.state == RECORDING:
                self.state = PAUSED

    def resume(self):
        with self._lock:
            if self.state == PAUSED:
                self.state = RECORDING

    def stop(self) -> bytes:
        with self._lock:
            if self.state == INACTIVE:
                return b""
            self._writer.release()
            try:
                with open(self._path, "rb") as f:
                    data = f.read()
            finally:
                shutil.rmtree(self._dir, ignore_errors=True)
                self._writer = self._path = self._dir = None
                self.state = INACTIVE
            logger.info("recording finished: %d frames, %d bytes", self.frames_written, len(data))
            return data
