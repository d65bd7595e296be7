import logging
import os
import time

logger = logging.getLogger(__name__)


def default_filename(ext=".mp4", now=None):
    ts = int((time.time() if now is None else now) * 1000)
    return f"recording-{ts}{ext}"


def ask_save_path(default_name):
    """Stock save dialog; returns ``None`` when the user cancels."""
    from tkinter import filedialog

    ext = os.path.splitext(default_name)[1]
    path = filedialog.asksaveasfilename(
        title="Save video",
        initialfile=default_name,
        defaultextension=ext,
        filetypes=[("Video", f"*{ext}"), ("All files", "*.*")],
    )
    return path or None


def save_video(data: bytes, chooser=ask_save_path, ext=".mp4"):
    """Write ``data`` where ``chooser(default_name)`` says. Returns the path, or ``None`` if cancelled."""
    path = chooser(default_filename(ext))
    if not path:
        logger.info("save cancelled")
        return None
    with open(path, "wb") as f:
        f.write(data)
    logger.info("saved %d bytes to %s", len(data), path)
    return path
