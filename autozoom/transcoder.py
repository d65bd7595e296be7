"""Post-recording trim/crop/blur through the ffmpeg command line.

Blur is a uniform full-frame box blur, even when a crop is requested in the
same call; there is no region selection.
"""
import contextlib
import logging
import os
import subprocess
import tempfile
from dataclasses import dataclass
from typing import Optional, Union

from .config import BLUR_FILTER
from .errors import TranscodeError

logger = logging.getLogger(__name__)

Dim = Union[int, float, str]

FILTER_SEPARATORS = set(",;[]:")


@dataclass
class Trim:
    start: float
    end: float

    def __post_init__(self):
        if self.start < 0 or self.end <= self.start:
            raise ValueError(f"invalid trim range {self.start}..{self.end}")

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass
class Crop:
    """Crop rectangle; each field is pixels or an ffmpeg expression such as ``(in_w-1080)/2``."""
    w: Dim
    h: Dim
    x: Dim = "(in_w-out_w)/2"
    y: Dim = "(in_h-out_h)/2"

    def __post_init__(self):
        # each field must stay a single crop argument inside the -vf chain
        for name in ("w", "h", "x", "y"):
            value = str(getattr(self, name))
            if not value or any(c in FILTER_SEPARATORS for c in value):
                raise ValueError(f"invalid crop {name} {value!r}")

    def filter(self) -> str:
        return f"crop={self.w}:{self.h}:{self.x}:{self.y}"


@dataclass
class TranscodeOptions:
    trim: Optional[Trim] = None
    crop: Optional[Crop] = None
    blur: bool = False

    @classmethod
    def from_dict(cls, d):
        d = d or {}
        trim = d.get("trim")
        crop = d.get("crop")
        return cls(
            trim=Trim(float(trim["start"]), float(trim["end"])) if trim else None,
            crop=Crop(crop["w"], crop["h"], crop.get("x", Crop.x), crop.get("y", Crop.y)) if crop else None,
            blur=bool(d.get("blur", False)),
        )

    def filters(self):
        vf = []
        if self.crop:
            vf.append(self.crop.filter())
        if self.blur:
            vf.append(BLUR_FILTER)
        return vf


def trim_from_range(lo_pct: float, hi_pct: float, duration: float) -> Optional[Trim]:
    """Editor slider percentages to a trim in seconds; ``None`` when nothing would be cut."""
    if not duration or duration <= 0:
        return None
    lo = max(0.0, min(100.0, lo_pct))
    hi = max(0.0, min(100.0, hi_pct))
    if hi <= lo:
        return None
    if lo == 0 and hi == 100:
        return None
    return Trim(lo / 100 * duration, hi / 100 * duration)


def center_crop(size: int) -> Crop:
    return Crop(size, size, f"(in_w-{size})/2", f"(in_h-{size})/2")


def build_command(src, dst, options: TranscodeOptions, ffmpeg="ffmpeg"):
    cmd = [ffmpeg, "-y"]
    if options.trim:
        cmd += ["-ss", f"{options.trim.start:.3f}"]
    cmd += ["-i", src]
    if options.trim:
        cmd += ["-t", f"{options.trim.duration:.3f}"]
    vf = options.filters()
    if vf:
        cmd += ["-vf", ",".join(vf)]
    cmd += ["-c:v", "libx264", "-preset", "fast", "-crf", "23", "-movflags", "+faststart", dst]
    return cmd


def _remove_quietly(path):
    with contextlib.suppress(OSError):
        os.remove(path)


def _temp_path(suffix):
    fd, path = tempfile.mkstemp(prefix="autozoom-", suffix=suffix)
    os.close(fd)
    return path


def transcode(data: bytes, options: TranscodeOptions, ffmpeg="ffmpeg",
              input_suffix=".webm", output_suffix=".mp4") -> bytes:
    src = _temp_path(input_suffix)
    dst = _temp_path(output_suffix)
    try:
        with open(src, "wb") as f:
            f.write(data)
        cmd = build_command(src, dst, options, ffmpeg)
        logger.info("transcoding: %s", " ".join(cmd))
        try:
            p = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            raise TranscodeError(f"could not run {ffmpeg}: {e}") from e
        if p.returncode != 0:
            logger.error("ffmpeg exited with %s: %s", p.returncode, p.stderr[-2000:])
            raise TranscodeError(f"ffmpeg exited with status {p.returncode}", p.stderr)
        with open(dst, "rb") as f:
            return f.read()
    finally:
        _remove_quietly(src)
        _remove_quietly(dst)
