"""Unit tests for the BleepForge job API."""

import io
import json
from unittest.mock import patch

import pytest

from bleepforge.engine import EngineResult
from bleepforge.errors import TranscriptionError
from bleepforge.models import Interval
from bleepforge.web import create_app


@pytest.fixture
def app(tmp_path):
    app = create_app(work_dir=tmp_path)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def _upload(client, filename="test.mp4", content=b"fake video data"):
    return client.post(
        "/api/upload",
        data={"file": (io.BytesIO(content), filename)},
        content_type="multipart/form-data",
    )


def _events(client, job_id):
    resp = client.get(f"/api/jobs/{job_id}/progress")
    assert resp.mimetype == "text/event-stream"
    body = resp.get_data(as_text=True)
    return [json.loads(chunk[len("data: "):]) for chunk in body.split("\n\n") if chunk]


def _result(tmp_path):
    return EngineResult(
        output_filename="censored_abc.mp4",
        output_path=tmp_path / "censored_abc.mp4",
        censored_count=2,
        intervals=[Interval(1.3, 1.7, "shit"), Interval(7.6, 8.0, "damn")],
        duration_input=12.0,
        duration_output=12.0,
    )


class TestHealth:
    def test_ok(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.get_json() == {"status": "ok"}


class TestUpload:
    def test_upload_success(self, client):
        resp = _upload(client)
        assert resp.status_code == 200
        data = resp.get_json()
        assert "job_id" in data
        assert data["filename"] == "test.mp4"

    def test_upload_no_file(self, client):
        resp = client.post("/api/upload")
        assert resp.status_code == 400

    def test_upload_creates_file(self, client, tmp_path):
        resp = _upload(client, filename="clip.mov", content=b"CONTENT")
        job_id = resp.get_json()["job_id"]
        input_file = tmp_path / job_id / "input.mov"
        assert input_file.exists()
        assert input_file.read_bytes() == b"CONTENT"

    def test_upload_too_large(self, app, client):
        app.config["MAX_CONTENT_LENGTH"] = 10
        resp = _upload(client, content=b"x" * 100)
        assert resp.status_code == 413
        assert resp.get_json()["error"] == "File too large"


class TestProcess:
    def test_process_unknown_job(self, client):
        resp = client.post("/api/jobs/nonexistent/process", json={})
        assert resp.status_code == 404

    @patch("bleepforge.web.routes.process")
    def test_process_streams_progress(self, mock_process, client, tmp_path):
        def run(manifest, on_progress, cancel):
            on_progress(5, "Verifying input video...")
            on_progress(40, "Transcribing audio...")
            return _result(tmp_path)

        mock_process.side_effect = run
        job_id = _upload(client).get_json()["job_id"]

        resp = client.post(f"/api/jobs/{job_id}/process", json={"censor": {"tone": False}})
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "started"

        events = _events(client, job_id)
        assert events[0] == {"progress": 5, "status": "Verifying input video..."}
        assert events[1] == {"progress": 40, "status": "Transcribing audio..."}
        assert events[-1]["status"] == "complete"
        assert events[-1]["result"]["censored_count"] == 2
        assert events[-1]["result"]["output_filename"] == "censored_abc.mp4"

        manifest = mock_process.call_args[0][0]
        assert manifest.censor.tone is False
        assert manifest.input == tmp_path / job_id / "input.mp4"
        assert manifest.output_dir == tmp_path / job_id / "output"

        status = client.get(f"/api/jobs/{job_id}/status").get_json()
        assert status["status"] == "done"
        assert status["result"]["censored_count"] == 2

    @patch("bleepforge.web.routes.process")
    def test_process_error(self, mock_process, client):
        def run(manifest, on_progress, cancel):
            on_progress(-1, "Error: No transcription found")
            raise TranscriptionError("No transcription found")

        mock_process.side_effect = run
        job_id = _upload(client).get_json()["job_id"]
        client.post(f"/api/jobs/{job_id}/process", json={})

        events = _events(client, job_id)
        assert events == [{"error": "No transcription found"}]
        status = client.get(f"/api/jobs/{job_id}/status").get_json()
        assert status["status"] == "error"
        assert status["error"] == "No transcription found"

    def test_invalid_censor_config(self, client):
        job_id = _upload(client).get_json()["job_id"]
        resp = client.post(f"/api/jobs/{job_id}/process", json={"censor": {"volume": 3}})
        assert resp.status_code == 400

    def test_unknown_backend(self, client):
        job_id = _upload(client).get_json()["job_id"]
        resp = client.post(f"/api/jobs/{job_id}/process", json={"transcription": {"backend": "vosk"}})
        assert resp.status_code == 400
        assert "vosk" in resp.get_json()["error"]

    def test_progress_before_process(self, client):
        job_id = _upload(client).get_json()["job_id"]
        resp = client.get(f"/api/jobs/{job_id}/progress")
        assert resp.status_code == 409


class TestCancel:
    def test_cancel_unknown_job(self, client):
        assert client.post("/api/jobs/nonexistent/cancel").status_code == 404

    def test_cancel_idle_job(self, client):
        job_id = _upload(client).get_json()["job_id"]
        assert client.post(f"/api/jobs/{job_id}/cancel").status_code == 409

    @patch("bleepforge.web.routes.process")
    def test_cancel_running_job(self, mock_process, client):
        def run(manifest, on_progress, cancel):
            cancel.wait(5)
            cancel.raise_if_cancelled()

        mock_process.side_effect = run
        job_id = _upload(client).get_json()["job_id"]
        client.post(f"/api/jobs/{job_id}/process", json={})

        resp = client.post(f"/api/jobs/{job_id}/cancel")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "cancelling"

        events = _events(client, job_id)
        assert events == [{"error": "Job was cancelled"}]


class TestStatus:
    def test_status_after_upload(self, client):
        job_id = _upload(client).get_json()["job_id"]
        resp = client.get(f"/api/jobs/{job_id}/status")
        assert resp.status_code == 200
        assert resp.get_json() == {"status": "uploaded", "filename": "test.mp4"}

    def test_status_unknown_job(self, client):
        resp = client.get("/api/jobs/nonexistent/status")
        assert resp.status_code == 404
