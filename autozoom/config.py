import os
from dataclasses import dataclass, field

FPS = 60
THUMBNAIL_SIZE = (320, 180)
COUNTDOWN_SECONDS = 3
BLUR_FILTER = "boxblur=10:1"

# Tried in order when the sink opens; first one the OpenCV build accepts wins
SINK_PREFERENCES = [
    ("avc1", ".mp4"),
    ("H264", ".mp4"),
    ("VP90", ".webm"),
    ("VP80", ".webm"),
    ("mp4v", ".mp4"),
]
SINK_DEFAULT = (0, ".avi")


@dataclass(frozen=True)
class CameraConfig:
    zoom_idle_level: float = 1.0
    zoom_active_level: float = 1.5
    click_zoom_level: float = 2.0
    move_deadzone_px: float = 100
    activity_deadzone_px: float = 60
    click_breakout_px: float = 20
    idle_timeout_ms: int = 2000
    pan_smooth_fast: float = 0.2
    pan_smooth_slow: float = 0.04
    zoom_smooth: float = 0.04
    fps: int = FPS

    def __post_init__(self):
        if not (self.zoom_idle_level <= self.zoom_active_level <= self.click_zoom_level):
            raise ValueError(
                "zoom levels must satisfy idle <= active <= click, got "
                f"{self.zoom_idle_level}, {self.zoom_active_level}, {self.click_zoom_level}"
            )
        if self.zoom_idle_level <= 0:
            raise ValueError("zoom_idle_level must be positive")
        for name in ("pan_smooth_fast", "pan_smooth_slow", "zoom_smooth"):
            value = getattr(self, name)
            if not 0 < value <= 1:
                raise ValueError(f"{name} must be in (0, 1], got {value}")
        if self.fps <= 0:
            raise ValueError("fps must be positive")

    @property
    def tick_interval(self) -> float:
        """Clock period in seconds."""
        return 1.0 / self.fps


def _split_origins(raw):
    return [o.strip() for o in raw.split(",") if o.strip()]


@dataclass
class Settings:
    host: str = "0.0.0.0"
    port: int = 5000
    ffmpeg: str = "ffmpeg"
    log_level: str = "INFO"
    # false when a host process pushes input events over HTTP instead
    global_input: bool = True
    cors_origins: list = field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:5173"]
    )

    @classmethod
    def from_env(cls, environ=None):
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            host=env.get("AUTOZOOM_HOST", defaults.host),
            port=int(env.get("AUTOZOOM_PORT", defaults.port)),
            ffmpeg=env.get("AUTOZOOM_FFMPEG", defaults.ffmpeg),
            log_level=env.get("AUTOZOOM_LOG_LEVEL", defaults.log_level).upper(),
            global_input=env.get("AUTOZOOM_GLOBAL_INPUT", "1").lower() not in ("0", "false", "no"),
            cors_origins=_split_origins(env["AUTOZOOM_CORS_ORIGINS"])
            if "AUTOZOOM_CORS_ORIGINS" in env
            else defaults.cors_origins,
        )
