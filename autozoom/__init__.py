"""AutoZoom: screen recording with a virtual camera that follows pointer, click and key activity."""

from .camera import CameraController, CameraState, ControllerState, Mode, advance
from .config import CameraConfig, Settings
from .errors import AutoZoomError, CaptureError, SessionError, TranscodeError
from .session import RecordingSession

__all__ = [
    "CameraController",
    "CameraState",
    "ControllerState",
    "Mode",
    "advance",
    "CameraConfig",
    "Settings",
    "AutoZoomError",
    "CaptureError",
    "SessionError",
    "TranscodeError",
    "RecordingSession",
]

__version__ = "0.1.0"
