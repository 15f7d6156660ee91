"""Job API routes for BleepForge."""

import json
import queue
import threading
import uuid
from pathlib import Path

from flask import Blueprint, Response, current_app, jsonify, request

from bleepforge.engine import FAILED, process
from bleepforge.errors import PipelineError
from bleepforge.ffutil import CancelToken
from bleepforge.manifest import CensorConfig, Manifest, load_transcribe_config

bp = Blueprint("web", __name__)

# In-memory job store: job_id -> job dict
_jobs: dict[str, dict] = {}


@bp.route("/api/health")
def health():
    return jsonify({"status": "ok"})


@bp.route("/api/upload", methods=["POST"])
def upload():
    if "file" not in request.files:
        return jsonify({"error": "No file provided"}), 400

    f = request.files["file"]
    if not f.filename:
        return jsonify({"error": "Empty filename"}), 400

    job_id = uuid.uuid4().hex[:12]
    job_dir = Path(current_app.config["WORK_DIR"]) / job_id
    job_dir.mkdir(parents=True, exist_ok=True)

    ext = Path(f.filename).suffix or ".mp4"
    input_path = job_dir / f"input{ext}"
    f.save(input_path)

    _jobs[job_id] = {
        "dir": job_dir,
        "input_path": input_path,
        "filename": f.filename,
        "status": "uploaded",
    }

    return jsonify({"job_id": job_id, "filename": f.filename})


@bp.route("/api/jobs/<job_id>/process", methods=["POST"])
def start_process(job_id: str):
    if job_id not in _jobs:
        return jsonify({"error": "Job not found"}), 404

    job = _jobs[job_id]
    if job["status"] not in ("uploaded", "done", "error"):
        return jsonify({"error": f"Job is already {job['status']}"}), 409

    config = request.get_json(silent=True) or {}
    try:
        censor = CensorConfig(**config.get("censor", {}))
        transcription = load_transcribe_config(config.get("transcription", {}))
    except (TypeError, ValueError) as e:
        return jsonify({"error": f"Invalid configuration: {e}"}), 400

    manifest = Manifest(
        input=job["input_path"],
        output_dir=job["dir"] / "output",
        work_dir=job["dir"] / "work",
        censor=censor,
        transcription=transcription,
    )

    progress_queue: queue.Queue = queue.Queue()
    cancel = CancelToken()
    job["progress_queue"] = progress_queue
    job["cancel"] = cancel
    job["status"] = "processing"
    job["error"] = None

    def run():
        try:
            def on_progress(percent: int, message: str):
                if percent != FAILED:
                    progress_queue.put({"progress": percent, "status": message})

            result = process(manifest, on_progress=on_progress, cancel=cancel)
            job["result"] = {
                "output_filename": result.output_filename,
                "output_path": str(result.output_path),
                "censored_count": result.censored_count,
                "duration_input": result.duration_input,
                "duration_output": result.duration_output,
            }
            job["status"] = "done"
        except PipelineError as e:
            job["status"] = "error"
            job["error"] = str(e)
        finally:
            progress_queue.put(None)  # sentinel

    threading.Thread(target=run, daemon=True).start()
    return jsonify({"status": "started"})


@bp.route("/api/jobs/<job_id>/cancel", methods=["POST"])
def cancel_job(job_id: str):
    if job_id not in _jobs:
        return jsonify({"error": "Job not found"}), 404

    job = _jobs[job_id]
    if job["status"] != "processing":
        return jsonify({"error": f"Job is {job['status']}"}), 409

    job["cancel"].cancel()
    return jsonify({"status": "cancelling"})


@bp.route("/api/jobs/<job_id>/progress")
def progress_stream(job_id: str):
    if job_id not in _jobs:
        return jsonify({"error": "Job not found"}), 404

    job = _jobs[job_id]
    q = job.get("progress_queue")

    if q is None:
        return jsonify({"error": "No processing in progress"}), 409

    def generate():
        while True:
            try:
                msg = q.get(timeout=120)
            except queue.Empty:
                yield "data: {\"error\": \"timeout\"}\n\n"
                break
            if msg is None:
                if job["status"] == "error":
                    data = json.dumps({"error": job["error"]})
                else:
                    data = json.dumps({
                        "progress": 100,
                        "status": "complete",
                        "result": job.get("result"),
                    })
                yield f"data: {data}\n\n"
                break
            yield f"data: {json.dumps(msg)}\n\n"

    return Response(generate(), mimetype="text/event-stream")


@bp.route("/api/jobs/<job_id>/status")
def job_status(job_id: str):
    if job_id not in _jobs:
        return jsonify({"error": "Job not found"}), 404

    job = _jobs[job_id]
    resp = {"status": job["status"], "filename": job.get("filename")}
    if job["status"] == "done":
        resp["result"] = job.get("result")
    if job["status"] == "error":
        resp["error"] = job.get("error")
    return jsonify(resp)
