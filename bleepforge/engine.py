"""Pipeline orchestrator for censoring one video."""

import logging
import tempfile
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from bleepforge import ffutil
from bleepforge.acquire import acquire_local
from bleepforge.analyzers.profanity import detect_profanity
from bleepforge.analyzers.transcribe import Transcriber, make_transcriber
from bleepforge.editors.pcm import SAMPLE_RATE, censor_audio
from bleepforge.errors import (
    AcquisitionError,
    CorruptOutputError,
    DetectionError,
    PipelineError,
    ProbeError,
    TranscriptionError,
)
from bleepforge.ffutil import CancelToken
from bleepforge.manifest import CensorConfig, Manifest, TranscribeConfig
from bleepforge.models import Interval

logger = logging.getLogger(__name__)

ProgressSink = Callable[[int, str], None]

# Percent reported with the terminal error event.
FAILED = -1

MIN_OUTPUT_BYTES = 100 * 1024
SYNC_TOLERANCE = 2.0


@dataclass
class EngineResult:
    output_filename: str
    output_path: Path
    censored_count: int = 0
    intervals: list[Interval] = field(default_factory=list)
    duration_input: float = 0.0
    duration_output: float = 0.0


@dataclass
class Job:
    """Per-request state; every path carries the job token."""

    input_path: Path
    output_dir: Path
    work_dir: Path
    token: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    temp_files: list[Path] = field(default_factory=list)

    def temp(self, kind: str, suffix: str, directory: Path | None = None) -> Path:
        path = (directory or self.work_dir) / f"{kind}_{self.token}{suffix}"
        self.temp_files.append(path)
        return path

    @property
    def final_path(self) -> Path:
        return self.output_dir / f"censored_{self.token}.mp4"

    def cleanup(self) -> None:
        for path in self.temp_files:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning("Could not remove temp file %s: %s", path, e)


class _SafeSink:
    """Wraps the caller's progress sink so it can never break the pipeline.

    After the first failure the sink is treated as closed.
    """

    def __init__(self, sink: ProgressSink | None):
        self._sink = sink
        self.closed = sink is None

    def __call__(self, percent: int, message: str) -> None:
        if self.closed:
            return
        try:
            self._sink(percent, message)
        except Exception:
            logger.warning("Progress sink failed; no further progress will be sent", exc_info=True)
            self.closed = True


def process_video(
    input_path: Path,
    output_dir: Path,
    on_progress: ProgressSink | None = None,
    censor: CensorConfig | None = None,
    transcription: TranscribeConfig | None = None,
    transcriber: Transcriber | None = None,
    cancel: CancelToken | None = None,
    work_dir: Path | None = None,
) -> EngineResult:
    """Censor profanity in *input_path* and write a web-ready MP4 to *output_dir*.

    Args:
        on_progress: Optional callback(percent, message). A terminal failure
            is reported once with percent ``FAILED``.
        transcriber: Overrides the transcriber built from *transcription*.
        cancel: Checked between stages and while ffmpeg runs.
    """
    progress = _SafeSink(on_progress)
    cancel = cancel or CancelToken()
    censor = censor or CensorConfig()

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    job = Job(
        input_path=Path(input_path),
        output_dir=output_dir,
        work_dir=Path(work_dir) if work_dir else Path(tempfile.gettempdir()),
    )
    job.work_dir.mkdir(parents=True, exist_ok=True)
    succeeded = False

    def _sub_progress(base: int, span: int, message: str):
        """Return a callback that maps ffmpeg's [0,1] to [base, base+span]."""
        last = -1

        def cb(frac: float) -> None:
            nonlocal last
            percent = base + int(frac * span)
            if percent != last:
                last = percent
                progress(percent, f"{message} {int(frac * 100)}%")
        return cb

    try:
        progress(0, "Received")
        ffutil.check_ffmpeg()

        # --- Verify input ---
        cancel.raise_if_cancelled()
        progress(5, "Verifying input video...")
        source = acquire_local(job.input_path)
        try:
            input_info = ffutil.probe(source)
        except ProbeError as e:
            raise AcquisitionError(f"Input is not readable media: {e}") from e
        if input_info.video is None:
            raise AcquisitionError(f"No video stream found in {source.name}")
        if input_info.audio is None:
            raise AcquisitionError(f"No audio stream found in {source.name}")

        # --- Extract audio ---
        cancel.raise_if_cancelled()
        progress(25, "Extracting audio from video...")
        audio_path = job.temp("audio", ".wav")
        ffutil.extract_audio(source, audio_path, sample_rate=SAMPLE_RATE, cancel=cancel)

        # --- Transcribe ---
        cancel.raise_if_cancelled()
        progress(40, "Transcribing audio...")
        if transcriber is None:
            transcriber = make_transcriber(transcription or TranscribeConfig())
        tokens = transcriber.transcribe(audio_path)
        if not tokens:
            raise TranscriptionError("No transcription found. The video may not contain speech.")

        # --- Detect ---
        cancel.raise_if_cancelled()
        progress(60, "Detecting swear words...")
        try:
            detections = detect_profanity(tokens)
        except Exception as e:
            raise DetectionError(f"Swear detection failed: {e}") from e

        # --- Edit audio ---
        cancel.raise_if_cancelled()
        progress(70, "Adding bleep sounds..." if censor.tone else "Muting swear words...")
        censored = censor_audio(
            audio_path,
            job.temp("censored_audio", ".m4a"),
            detections,
            config=censor,
            cancel=cancel,
        )
        if censored.path not in job.temp_files:
            job.temp_files.append(censored.path)

        censored_info = ffutil.probe(censored.path)
        drift = abs(input_info.duration - censored_info.duration)
        if drift > SYNC_TOLERANCE:
            logger.warning(
                "Duration mismatch: input=%.2fs censored=%.2fs (diff %.2fs)",
                input_info.duration, censored_info.duration, drift,
            )

        # --- Combine ---
        cancel.raise_if_cancelled()
        progress(85, "Rendering final video...")
        combined = job.temp("censored_temp", ".mp4", directory=job.output_dir)
        ffutil.combine_audio_video(
            source,
            censored.path,
            combined,
            on_progress=_sub_progress(85, 10, "Rendering video..."),
            cancel=cancel,
        )

        # --- Remux ---
        cancel.raise_if_cancelled()
        progress(95, "Finalizing video...")
        final_path = job.final_path
        ffutil.remux_faststart(combined, final_path, cancel=cancel)

        # --- Validate ---
        cancel.raise_if_cancelled()
        progress(98, "Validating output...")
        final_info = ffutil.validate_video(final_path, cancel=cancel)
        size = ffutil.wait_for_stable_file(final_path)
        if size < MIN_OUTPUT_BYTES:
            raise CorruptOutputError(
                f"Output file is suspiciously small ({size / 1024:.2f} KB). File may be corrupted."
            )

        logger.info(
            "Video processing complete: %s (%.2f MB, %.2fs -> %.2fs)",
            final_path, size / (1024 * 1024), input_info.duration, final_info.duration,
        )
        succeeded = True
        progress(100, "Complete")
        return EngineResult(
            output_filename=final_path.name,
            output_path=final_path,
            censored_count=len(detections),
            intervals=censored.intervals,
            duration_input=input_info.duration,
            duration_output=final_info.duration,
        )
    except PipelineError as e:
        logger.error("Job %s failed: %s", job.token, e)
        progress(FAILED, f"Error: {e}")
        raise
    except Exception as e:
        logger.exception("Job %s failed unexpectedly", job.token)
        progress(FAILED, f"Error: {e}")
        raise PipelineError(str(e)) from e
    finally:
        job.cleanup()
        if not succeeded:
            job.final_path.unlink(missing_ok=True)


def process(
    manifest: Manifest,
    on_progress: ProgressSink | None = None,
    cancel: CancelToken | None = None,
) -> EngineResult:
    """Run ``process_video`` with the settings from *manifest*."""
    return process_video(
        manifest.input,
        manifest.output_dir,
        on_progress=on_progress,
        censor=manifest.censor,
        transcription=manifest.transcription,
        cancel=cancel,
        work_dir=manifest.work_dir,
    )
