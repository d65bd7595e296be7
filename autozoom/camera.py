"""Virtual camera controller.

The controller turns pointer, click and key activity into a camera transform
(center + zoom in source-frame pixels) once per tick. All decisions live in
the pure ``advance()`` function; ``CameraController`` only owns the state,
the inbound event queue and a lock.
"""
import enum
import logging
import math
import threading
from dataclasses import dataclass, replace
from typing import Iterable, Optional, Tuple

from .activity import (
    ActivityTracker,
    EventQueue,
    KeyActivity,
    Movement,
    PointerDown,
    PointerMove,
    now_ms,
)
from .config import CameraConfig

logger = logging.getLogger(__name__)


def clamp(v, lo, hi):
    return max(lo, min(hi, v))


class Mode(enum.Enum):
    IDLE = "idle"
    FOLLOWING = "following"
    CLICK_LOCKED = "click_locked"


@dataclass(frozen=True)
class CameraState:
    x: float
    y: float
    zoom: float


@dataclass(frozen=True)
class ControllerState:
    frame_size: Tuple[int, int]
    screen_size: Tuple[float, float]
    current: CameraState
    target: CameraState
    mode: Mode
    activity: ActivityTracker
    # last accepted position at the moment the click lock was entered
    lock_origin: Optional[Tuple[float, float]] = None

    @property
    def center(self) -> Tuple[float, float]:
        w, h = self.frame_size
        return w / 2, h / 2


def initial_state(frame_size, screen_size=None, config: CameraConfig = CameraConfig()) -> ControllerState:
    w, h = frame_size
    if w <= 0 or h <= 0:
        raise ValueError(f"frame size must be positive, got {frame_size}")
    screen = tuple(screen_size) if screen_size else (float(w), float(h))
    home = CameraState(w / 2, h / 2, config.zoom_idle_level)
    return ControllerState(
        frame_size=(int(w), int(h)),
        screen_size=screen,
        current=home,
        target=home,
        mode=Mode.IDLE,
        activity=ActivityTracker(deadzone_px=config.activity_deadzone_px),
    )


def target_zoom(mode: Mode, config: CameraConfig) -> float:
    if mode is Mode.CLICK_LOCKED:
        return config.click_zoom_level
    if mode is Mode.FOLLOWING:
        return config.zoom_active_level
    return config.zoom_idle_level


def valid_range(frame_len: float, zoom: float) -> Tuple[float, float]:
    """Range of camera centers that keeps a ``frame_len / zoom`` wide view inside the frame."""
    view = frame_len / zoom
    if view >= frame_len:
        mid = frame_len / 2
        return mid, mid
    half = view / 2
    return half, frame_len - half


def viewport(camera: CameraState, frame_size) -> Tuple[float, float, float, float]:
    """Visible source rectangle as ``(left, top, width, height)``."""
    w, h = frame_size
    vw, vh = w / camera.zoom, h / camera.zoom
    return camera.x - vw / 2, camera.y - vh / 2, vw, vh


def _to_frame(state: ControllerState, x: float, y: float) -> Tuple[float, float]:
    fw, fh = state.frame_size
    sw, sh = state.screen_size
    return x * fw / sw, y * fh / sh


def _on_pointer_move(state: ControllerState, event: PointerMove, config: CameraConfig) -> ControllerState:
    x, y = _to_frame(state, event.x, event.y)
    activity, movement = state.activity.observe(x, y, event.timestamp_ms)
    if movement is not Movement.SIGNIFICANT:
        return replace(state, activity=activity)

    mode, target, lock_origin = state.mode, state.target, state.lock_origin
    if mode is Mode.CLICK_LOCKED and lock_origin is not None:
        ox, oy = lock_origin
        if max(abs(x - ox), abs(y - oy)) > config.click_breakout_px:
            mode, lock_origin = Mode.FOLLOWING, None

    if mode is not Mode.CLICK_LOCKED:
        if math.hypot(x - target.x, y - target.y) > config.move_deadzone_px:
            mode = Mode.FOLLOWING
            target = CameraState(x, y, target_zoom(mode, config))

    return replace(state, activity=activity, mode=mode, target=target, lock_origin=lock_origin)


def _on_pointer_down(state: ControllerState, event: PointerDown, config: CameraConfig) -> ControllerState:
    pos = state.activity.last_pos or state.center
    return replace(
        state,
        activity=state.activity.touch(event.timestamp_ms),
        mode=Mode.CLICK_LOCKED,
        target=CameraState(pos[0], pos[1], config.click_zoom_level),
        lock_origin=pos,
    )


def apply_event(state: ControllerState, event, config: CameraConfig = CameraConfig()) -> ControllerState:
    if isinstance(event, PointerMove):
        return _on_pointer_move(state, event, config)
    if isinstance(event, PointerDown):
        return _on_pointer_down(state, event, config)
    if isinstance(event, KeyActivity):
        return replace(state, activity=state.activity.touch(event.timestamp_ms))
    raise TypeError(f"unknown activity event {event!r}")


def step(state: ControllerState, now: int, config: CameraConfig = CameraConfig()) -> ControllerState:
    """One tick of idle detection and clamped smoothing, no event handling."""
    mode, target, lock_origin = state.mode, state.target, state.lock_origin
    if state.activity.is_idle(now, config.idle_timeout_ms):
        cx, cy = state.center
        mode, lock_origin = Mode.IDLE, None
        target = CameraState(cx, cy, config.zoom_idle_level)
    else:
        target = replace(target, zoom=target_zoom(mode, config))

    current = state.current
    # fast lock-on while zooming in, slow synchronized pull-back otherwise
    pan_k = config.pan_smooth_fast if target.zoom > current.zoom else config.pan_smooth_slow

    zoom = current.zoom + (target.zoom - current.zoom) * config.zoom_smooth
    zoom = clamp(zoom, config.zoom_idle_level, config.click_zoom_level)

    w, h = state.frame_size
    min_x, max_x = valid_range(w, zoom)
    min_y, max_y = valid_range(h, zoom)

    tx = clamp(target.x, min_x, max_x)
    ty = clamp(target.y, min_y, max_y)
    x = current.x + (tx - current.x) * pan_k
    y = current.y + (ty - current.y) * pan_k

    # a slow pan can sit outside the bounds of a zoom that moved faster
    x = clamp(x, min_x, max_x)
    y = clamp(y, min_y, max_y)

    return replace(
        state,
        current=CameraState(x, y, zoom),
        target=target,
        mode=mode,
        lock_origin=lock_origin,
    )


def advance(
    state: ControllerState,
    events: Iterable = (),
    now: int = 0,
    config: CameraConfig = CameraConfig(),
) -> ControllerState:
    """Apply queued events in arrival order, then run one tick at ``now`` (ms)."""
    for event in events:
        state = apply_event(state, event, config)
    return step(state, now, config)


class CameraController:
    """Session-scoped owner of the camera state.

    Input callbacks may come from any thread; they only enqueue. ``tick`` drains
    the queue and advances the state under the lock, so a tick never sees half
    an event.
    """

    def __init__(self, config: CameraConfig = CameraConfig(), clock=now_ms):
        self.config = config
        self._clock = clock
        self._lock = threading.Lock()
        self._events = EventQueue()
        self._state: Optional[ControllerState] = None

    def reset(self, frame_size, screen_size=None):
        with self._lock:
            self._events.clear()
            self._state = initial_state(frame_size, screen_size, self.config)
        logger.debug("camera reset to %sx%s (screen %s)", frame_size[0], frame_size[1], screen_size)

    def discard(self):
        with self._lock:
            self._events.clear()
            self._state = None

    @property
    def active(self) -> bool:
        return self._state is not None

    def on_pointer_move(self, x, y):
        self._events.put(PointerMove(float(x), float(y), self._clock()))

    def on_pointer_down(self):
        self._events.put(PointerDown(self._clock()))

    def on_key_activity(self):
        self._events.put(KeyActivity(self._clock()))

    def tick(self, now: Optional[int] = None) -> CameraState:
        with self._lock:
            if self._state is None:
                raise RuntimeError("camera controller is not running; call reset() first")
            now = self._clock() if now is None else now
            self._state = advance(self._state, self._events.drain(), now, self.config)
            return self._state.current

    def snapshot(self) -> Optional[ControllerState]:
        with self._lock:
            return self._state

    @property
    def mode(self) -> Optional[Mode]:
        state = self.snapshot()
        return state.mode if state else None
