class AutoZoomError(Exception):
    """Base class for recorder errors surfaced to the host application."""


class CaptureError(AutoZoomError):
    """The capture source could not be opened or stopped producing frames."""


class SessionError(AutoZoomError):
    """An operation was requested in the wrong session state."""


class TranscodeError(AutoZoomError):
    def __init__(self, message, stderr=""):
        super().__init__(message)
        self.stderr = stderr
