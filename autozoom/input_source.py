"""Global input observer feeding a camera controller.

Pointer position is polled (like a cursor-point timer) rather than taken from
move events, so the controller sees a steady sample stream at ``poll_hz``.
Clicks and key presses come from pynput listeners.
"""
import logging
import threading

from .config import FPS

logger = logging.getLogger(__name__)


class ActivityObserver:
    def __init__(self, target, region=None, poll_hz: float = FPS):
        """``target`` needs ``on_pointer_move(x, y)``, ``on_pointer_down()`` and ``on_key_activity()``.

        ``region`` is the captured rectangle in screen coordinates; pointer
        positions are reported relative to its top-left corner.
        """
        self.target = target
        self.region = region or {"left": 0, "top": 0}
        self.poll_interval = 1.0 / poll_hz
        self._stop = threading.Event()
        self._poller = None
        self._mouse_listener = None
        self._key_listener = None
        self._pointer = None
        self._last = None

    def start(self):
        # pynput binds its platform backend at import time and raises without a display
        from pynput import keyboard, mouse

        self._stop.clear()
        self._last = None
        self._pointer = mouse.Controller()
        self._mouse_listener = mouse.Listener(on_click=self._on_click)
        self._key_listener = keyboard.Listener(on_press=self._on_press)
        self._mouse_listener.start()
        self._key_listener.start()
        self._poller = threading.Thread(target=self._poll, name="pointer-poll", daemon=True)
        self._poller.start()
        logger.debug("input observer started")

    def stop(self):
        self._stop.set()
        for listener in (self._mouse_listener, self._key_listener):
            if listener is not None:
                listener.stop()
        if self._poller and self._poller is not threading.current_thread():
            self._poller.join(timeout=1.0)
        self._mouse_listener = self._key_listener = self._poller = None

    def _poll(self):
        while not self._stop.wait(self.poll_interval):
            pos = self._pointer.position
            if pos is None or pos == self._last:
                continue
            self._last = pos
            self.target.on_pointer_move(pos[0] - self.region["left"], pos[1] - self.region["top"])

    def _on_click(self, x, y, button, pressed):
        if pressed and not self._stop.is_set():
            self.target.on_pointer_down()

    def _on_press(self, key):
        if not self._stop.is_set():
            self.target.on_key_activity()
