"""Capture sources: enumeration, thumbnails and the live screen grabber.

Source ids follow ``<kind>:<key>:0``: ``screen:<monitor index>:0`` for mss
monitors and ``window:<hwnd>:0`` for top-level windows (Windows only).
"""
import base64
import logging
import sys
import threading
import time
from dataclasses import asdict, dataclass
from typing import Optional

import cv2
import mss
from mss.exception import ScreenShotError
import numpy as np

from .config import FPS, THUMBNAIL_SIZE
from .errors import CaptureError

logger = logging.getLogger(__name__)

SCREEN_PREFIX = "screen:"
WINDOW_PREFIX = "window:"


@dataclass
class CaptureSourceInfo:
    id: str
    name: str
    thumbnail: str
    app_icon: Optional[str] = None

    @property
    def kind(self) -> str:
        return "screen" if self.id.startswith(SCREEN_PREFIX) else "window"

    def to_dict(self) -> dict:
        d = asdict(self)
        d["type"] = self.kind
        return d


def partition_sources(sources):
    screens = [s for s in sources if s.id.startswith(SCREEN_PREFIX)]
    windows = [s for s in sources if not s.id.startswith(SCREEN_PREFIX)]
    return screens, windows


def source_labels(sources) -> dict:
    """Display label -> source id; names shared by several sources get the id appended."""
    counts = {}
    for s in sources:
        counts[s.name] = counts.get(s.name, 0) + 1
    return {(s.name if counts[s.name] == 1 else f"{s.name} ({s.id})"): s.id for s in sources}


def to_bgr(shot):
    return cv2.cvtColor(np.array(shot), cv2.COLOR_BGRA2BGR)


def thumbnail_data_url(img, size=THUMBNAIL_SIZE) -> str:
    """Letterboxed PNG thumbnail as a data URL."""
    tw, th = size
    h, w = img.shape[:2]
    scale = min(tw / w, th / h)
    nw, nh = max(1, int(w * scale)), max(1, int(h * scale))
    canvas = np.zeros((th, tw, 3), dtype=np.uint8)
    x0, y0 = (tw - nw) // 2, (th - nh) // 2
    canvas[y0:y0 + nh, x0:x0 + nw] = cv2.resize(img, (nw, nh), interpolation=cv2.INTER_AREA)
    ok, buf = cv2.imencode(".png", canvas)
    if not ok:
        return ""
    return "data:image/png;base64," + base64.b64encode(buf.tobytes()).decode("ascii")


def _windows():
    if sys.platform != "win32":
        return []
    import pygetwindow as gw
    return [w for w in gw.getAllWindows() if w.title.strip() and w.width > 0 and w.height > 0 and not w.isMinimized]


def is_window_valid(hwnd) -> bool:
    import win32gui
    return bool(win32gui.IsWindow(hwnd) and win32gui.IsWindowVisible(hwnd))


def list_sources(thumbnail_size=THUMBNAIL_SIZE):
    sources = []
    with mss.mss() as sct:
        monitors = sct.monitors[1:]
        for i, monitor in enumerate(monitors, start=1):
            name = "Entire Screen" if len(monitors) == 1 else f"Screen {i}"
            thumb = thumbnail_data_url(to_bgr(sct.grab(monitor)), thumbnail_size)
            sources.append(CaptureSourceInfo(f"{SCREEN_PREFIX}{i}:0", name, thumb))
        for window in _windows():
            region = {"left": window.left, "top": window.top, "width": window.width, "height": window.height}
            try:
                thumb = thumbnail_data_url(to_bgr(sct.grab(region)), thumbnail_size)
            except ScreenShotError as e:
                logger.debug("skipping window %r: %s", window.title, e)
                continue
            sources.append(CaptureSourceInfo(f"{WINDOW_PREFIX}{window._hWnd}:0", window.title, thumb))
    return sources


def parse_source_id(source_id: str):
    try:
        kind, key, _ = source_id.split(":", 2)
        return kind, int(key)
    except (AttributeError, ValueError):
        raise CaptureError(f"malformed source id {source_id!r}") from None


def resolve_region(source_id: str) -> dict:
    """Screen-space rectangle of a source as an mss region dict."""
    kind, key = parse_source_id(source_id)
    if kind == "screen":
        with mss.mss() as sct:
            if not 1 <= key < len(sct.monitors):
                raise CaptureError(f"no such screen: {source_id}")
            m = sct.monitors[key]
            return {"left": m["left"], "top": m["top"], "width": m["width"], "height": m["height"]}
    if kind == "window":
        if sys.platform != "win32":
            raise CaptureError("window capture is only available on Windows")
        import pygetwindow as gw
        if not is_window_valid(key):
            raise CaptureError(f"window is gone: {source_id}")
        w = gw.Win32Window(key)
        return {"left": w.left, "top": w.top, "width": w.width, "height": w.height}
    raise CaptureError(f"unknown source kind {kind!r} in {source_id!r}")


class ScreenGrabber:
    """Grabs a source continuously and keeps only the newest frame.

    ``frame`` never blocks; it is ``None`` until the first grab lands.
    ``on_ended`` fires once if the source disappears while running.
    """

    def __init__(self, source_id: str, fps: int = FPS, on_ended=None, first_frame_timeout: float = 5.0):
        self.source_id = source_id
        self.fps = fps
        self.on_ended = on_ended
        self.first_frame_timeout = first_frame_timeout
        self.region: Optional[dict] = None
        self._frame = None
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._first = threading.Event()
        self._error: Optional[BaseException] = None
        self._thr: Optional[threading.Thread] = None

    @property
    def frame(self):
        with self._lock:
            return self._frame

    @property
    def ready(self) -> bool:
        return self._first.is_set() and self._error is None

    @property
    def resolution(self):
        """Native (w, h) of the grabbed frames."""
        frame = self.frame
        if frame is None:
            raise CaptureError("capture source has not produced a frame")
        return frame.shape[1], frame.shape[0]

    @property
    def logical_size(self):
        """Size of the region in pointer coordinates."""
        return self.region["width"], self.region["height"]

    def start(self):
        self.region = resolve_region(self.source_id)
        self._stop.clear()
        self._first.clear()
        self._error = None
        self._thr = threading.Thread(target=self._run, name="screen-grabber", daemon=True)
        self._thr.start()
        if not self._first.wait(self.first_frame_timeout):
            self.stop()
            raise CaptureError(f"no frame from {self.source_id} after {self.first_frame_timeout}s")
        if self._error is not None:
            self.stop()
            raise CaptureError(f"cannot capture {self.source_id}: {self._error}") from self._error
        logger.info("capturing %s at %sx%s", self.source_id, *self.resolution)

    def stop(self, timeout: float = 5.0):
        self._stop.set()
        thr = self._thr
        if thr and thr is not threading.current_thread():
            thr.join(timeout=timeout)
        self._thr = None
        with self._lock:
            self._frame = None

    def _alive(self) -> bool:
        if self.source_id.startswith(WINDOW_PREFIX):
            return is_window_valid(parse_source_id(self.source_id)[1])
        return True

    def _run(self):
        interval = 1.0 / self.fps
        try:
            with mss.mss() as sct:
                while not self._stop.is_set():
                    t = time.perf_counter()
                    if not self._alive():
                        raise CaptureError(f"{self.source_id} closed")
                    img = to_bgr(sct.grab(self.region))
                    with self._lock:
                        self._frame = img
                    self._first.set()
                    self._stop.wait(max(0.0, interval - (time.perf_counter() - t)))
        except Exception as e:
            self._error = e
            if not self._first.is_set():
                self._first.set()
                return
            if not self._stop.is_set():
                logger.warning("capture of %s ended: %s", self.source_id, e)
                if self.on_ended:
                    self.on_ended()
