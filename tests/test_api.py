import io
import json
import time

import pytest

from autozoom import api
from autozoom.capture import CaptureSourceInfo
from autozoom.config import Settings
from autozoom.errors import CaptureError, SessionError, TranscodeError


class FakeSession:
    mime_type = "video/webm"
    on_stopped = None

    def __init__(self):
        self.recording = False
        self.started = []
        self.pointer = []
        self.clicks = 0
        self.keys = 0
        self.start_error = None

    def start(self, source_id, countdown=0):
        if self.start_error:
            raise self.start_error
        if self.recording:
            raise SessionError("recording is already in progress")
        self.recording = True
        self.started.append((source_id, countdown))

    def pause(self):
        if not self.recording:
            raise SessionError("no active recording to pause")

    def resume(self):
        if not self.recording:
            raise SessionError("recording is not paused")

    def stop(self):
        if not self.recording:
            raise SessionError("no recording in progress")
        self.recording = False
        if self.on_stopped:
            self.on_stopped(b"webm-bytes")
        return b"webm-bytes"

    def push_pointer(self, x, y):
        self.pointer.append((x, y))

    def push_click(self):
        self.clicks += 1

    def push_key(self):
        self.keys += 1

    def status(self):
        return {"is_recording": self.recording, "is_paused": False}


SOURCES = [
    CaptureSourceInfo("screen:1:0", "Entire Screen", "data:image/png;base64,AA=="),
    CaptureSourceInfo("window:77:0", "Editor", "data:image/png;base64,AA=="),
]


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def saved(tmp_path):
    return {"path": str(tmp_path / "out.webm")}


@pytest.fixture
def client(session, saved):
    app = api.create_app(
        settings=Settings(),
        session=session,
        source_lister=lambda: SOURCES,
        save_path_chooser=lambda default_name: saved["path"],
    )
    app.testing = True
    return app.test_client()


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.get_json()["status"] == "healthy"


def test_sources_are_partitioned_by_prefix(client):
    body = client.get("/sources").get_json()
    assert [s["id"] for s in body["screens"]] == ["screen:1:0"]
    assert [s["id"] for s in body["windows"]] == ["window:77:0"]
    assert body["windows"][0]["type"] == "window"


def test_start_requires_source(client):
    res = client.post("/start-recording", json={})
    assert res.status_code == 400
    assert res.get_json()["success"] is False


def test_start_pause_resume_stop(client, session):
    res = client.post("/start-recording", json={"source_id": "screen:1:0", "countdown": 0})
    assert res.get_json()["status"] == "recording"
    assert session.started == [("screen:1:0", 0)]

    assert client.post("/pause-recording").get_json()["status"] == "paused"
    assert client.post("/resume-recording").get_json()["status"] == "recording"

    res = client.post("/stop-recording")
    body = res.get_json()
    assert body["status"] == "completed"
    assert body["size"] == len(b"webm-bytes")

    video = client.get("/video")
    assert video.status_code == 200
    assert video.data == b"webm-bytes"
    assert video.mimetype == "video/webm"


def test_session_errors_are_bad_requests(client):
    res = client.post("/stop-recording")
    assert res.status_code == 400
    assert res.get_json() == {"success": False, "message": "no recording in progress"}


def test_capture_errors_are_server_errors(client, session):
    session.start_error = CaptureError("permission denied")
    res = client.post("/start-recording", json={"source_id": "screen:1:0"})
    assert res.status_code == 500
    assert "permission denied" in res.get_json()["message"]


def test_input_events(client, session):
    assert client.post("/events/pointer", json={"x": 10, "y": 20.5}).status_code == 200
    assert client.post("/events/pointer", json={"x": "left"}).status_code == 400
    client.post("/events/click")
    client.post("/events/key")
    assert session.pointer == [(10.0, 20.5)]
    assert session.clicks == 1
    assert session.keys == 1


def test_video_missing(client):
    assert client.get("/video").status_code == 404


def test_transcode_current_video(client, monkeypatch):
    calls = []

    def fake_transcode(data, options, ffmpeg, input_suffix):
        calls.append((data, options, input_suffix))
        return b"mp4-bytes"

    monkeypatch.setattr(api, "transcode", fake_transcode)
    client.post("/start-recording", json={"source_id": "screen:1:0"})
    client.post("/stop-recording")

    res = client.post("/transcode", json={"trim": {"start": 1, "end": 2}, "blur": True})
    assert res.status_code == 200
    assert res.data == b"mp4-bytes"
    data, options, suffix = calls[0]
    assert data == b"webm-bytes"
    assert options.blur and options.trim.end == 2
    assert suffix == ".webm"
    assert client.get("/video").mimetype == "video/mp4"


def test_transcode_upload(client, monkeypatch):
    monkeypatch.setattr(api, "transcode", lambda data, options, ffmpeg, input_suffix: data.upper())
    res = client.post(
        "/transcode",
        data={
            "video": (io.BytesIO(b"clip"), "clip.mp4", "video/mp4"),
            "options": json.dumps({"crop": {"w": 10, "h": 10}}),
        },
        content_type="multipart/form-data",
    )
    assert res.status_code == 200
    assert res.data == b"CLIP"


def test_transcode_rejects_bad_options(client, monkeypatch):
    monkeypatch.setattr(api, "transcode", lambda *a, **k: b"")
    client.post("/start-recording", json={"source_id": "screen:1:0"})
    client.post("/stop-recording")
    res = client.post("/transcode", json={"trim": {"start": 5, "end": 1}})
    assert res.status_code == 400


def test_transcode_failure_is_reported(client, monkeypatch):
    def failing(*args, **kwargs):
        raise TranscodeError("ffmpeg exited with status 1", "boom")

    monkeypatch.setattr(api, "transcode", failing)
    client.post("/start-recording", json={"source_id": "screen:1:0"})
    client.post("/stop-recording")
    res = client.post("/transcode", json={"blur": True})
    assert res.status_code == 500
    assert res.get_json()["success"] is False


def test_transcode_without_video(client):
    assert client.post("/transcode", json={}).status_code == 400


def test_save_writes_to_chosen_path(client, saved):
    client.post("/start-recording", json={"source_id": "screen:1:0"})
    client.post("/stop-recording")
    res = client.post("/save")
    assert res.get_json() == {"success": True, "path": saved["path"]}
    with open(saved["path"], "rb") as f:
        assert f.read() == b"webm-bytes"


def test_save_cancelled(client, saved):
    client.post("/start-recording", json={"source_id": "screen:1:0"})
    client.post("/stop-recording")
    saved["path"] = None
    res = client.post("/save")
    assert res.get_json()["success"] is False


def test_status_includes_video_flag(client):
    body = client.get("/recording-status").get_json()
    assert body["is_recording"] is False
    assert body["video"] is False


def test_track_end_keeps_the_recording_reachable(parts, saved):
    session = parts.session()
    app = api.create_app(
        settings=Settings(),
        session=session,
        source_lister=lambda: SOURCES,
        save_path_chooser=lambda default_name: saved["path"],
    )
    client = app.test_client()
    client.post("/start-recording", json={"source_id": "window:77:0"})
    parts.clock.fire(3)
    parts.grabber.on_ended()

    deadline = time.monotonic() + 2
    while app.config["CURRENT_VIDEO"]["data"] is None and time.monotonic() < deadline:
        time.sleep(0.01)

    status = client.get("/recording-status").get_json()
    assert status["is_recording"] is False
    assert status["video"] is True
    video = client.get("/video")
    assert video.status_code == 200
    assert video.data == b"xxx"
    assert video.mimetype == "video/webm"
    assert client.post("/save").get_json() == {"success": True, "path": saved["path"]}


def test_stop_keeps_an_existing_stop_callback(session):
    seen = []
    session.on_stopped = seen.append
    client = api.create_app(settings=Settings(), session=session, source_lister=lambda: SOURCES).test_client()
    client.post("/start-recording", json={"source_id": "screen:1:0"})
    client.post("/stop-recording")
    assert seen == [b"webm-bytes"]
    assert client.get("/video").data == b"webm-bytes"


def test_transcode_rejects_chained_filters(client, monkeypatch):
    calls = []
    monkeypatch.setattr(api, "transcode", lambda *a, **k: calls.append(a) or b"")
    client.post("/start-recording", json={"source_id": "screen:1:0"})
    client.post("/stop-recording")
    res = client.post("/transcode", json={"crop": {"w": "100,drawtext=text=x", "h": 100}})
    assert res.status_code == 400
    assert calls == []
