"""Small desktop control panel: pick a source, record, pause, stop and save."""
import logging
import threading

import customtkinter as ctk

from .capture import list_sources, partition_sources, source_labels
from .config import COUNTDOWN_SECONDS, Settings
from .encoder import EXTENSIONS
from .errors import AutoZoomError
from .session import RecordingSession, start_in_background
from .storage import save_video
from .transcoder import TranscodeOptions, center_crop, transcode

logger = logging.getLogger(__name__)


def build_panel(session=None, settings=None):
    settings = settings or Settings.from_env()

    ctk.set_appearance_mode("system")
    ctk.set_default_color_theme("blue")
    app = ctk.CTk()
    app.title("AutoZoom Recorder")
    app.geometry("520x360")

    def on_stopped(data):
        # fired from the track-ended thread as well as from stop_recording
        app.after(0, lambda: finish(data))

    session = session or RecordingSession(on_stopped=on_stopped)
    if session.on_stopped is None:
        session.on_stopped = on_stopped

    status_var = ctk.StringVar(value="Ready.")
    ctk.CTkLabel(app, textvariable=status_var).pack(pady=(12, 0))

    screens, windows = partition_sources(list_sources())
    sources = source_labels(screens + windows)
    dropdown = ctk.CTkComboBox(app, values=list(sources) or ["No sources"], width=480)
    dropdown.pack(pady=12)

    crop_var = ctk.BooleanVar(value=False)
    blur_var = ctk.BooleanVar(value=False)
    ctk.CTkCheckBox(app, text="Crop to centered 1080x1080", variable=crop_var).pack(pady=4)
    ctk.CTkCheckBox(app, text="Blur (whole frame)", variable=blur_var).pack(pady=4)

    def set_status(text):
        app.after(0, lambda: status_var.set(text))

    def countdown(n, source_id):
        if n > 0:
            status_var.set(f"Recording in {n}…")
            app.after(1000, countdown, n - 1, source_id)
            return
        status_var.set("Starting…")
        start_in_background(session, source_id, started)

    def started(error):
        set_status(f"Error: {error}" if error else "Recording…")

    def start_recording():
        source_id = sources.get(dropdown.get())
        if source_id is None:
            status_var.set("Pick a source first.")
            return
        countdown(COUNTDOWN_SECONDS, source_id)

    def toggle_pause():
        try:
            if session.is_paused:
                session.resume()
                status_var.set("Recording…")
            else:
                session.pause()
                status_var.set("Paused.")
        except AutoZoomError as e:
            status_var.set(f"Error: {e}")

    def stop_recording():
        status_var.set("Stopping…")
        threading.Thread(target=_stop, daemon=True).start()

    def _stop():
        try:
            session.stop()
        except AutoZoomError as e:
            set_status(f"Error: {e}")

    def finish(data):
        options = TranscodeOptions(
            crop=center_crop(1080) if crop_var.get() else None,
            blur=blur_var.get(),
        )
        ext = EXTENSIONS.get(session.mime_type, ".webm")
        if options.crop or options.blur:
            status_var.set("Processing…")
            threading.Thread(target=process_and_save, args=(data, options, ext), daemon=True).start()
        else:
            save(data, ext)

    def process_and_save(data, options, ext):
        try:
            result = transcode(data, options, ffmpeg=settings.ffmpeg, input_suffix=ext)
        except AutoZoomError as e:
            logger.error("processing failed: %s", e)
            set_status(f"Error: {e}")
            return
        app.after(0, save, result, ".mp4")

    def save(data, ext):
        path = save_video(data, ext=ext)
        status_var.set(f"Saved: {path}" if path else "Not saved.")

    ctk.CTkButton(app, text="Start Recording", command=start_recording).pack(pady=6)
    ctk.CTkButton(app, text="Pause / Resume", command=toggle_pause).pack(pady=6)
    ctk.CTkButton(app, text="Stop & Save", command=stop_recording).pack(pady=6)
    return app


def main():
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    build_panel(settings=settings).mainloop()


if __name__ == "__main__":
    main()
