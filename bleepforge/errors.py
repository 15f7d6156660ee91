"""Pipeline error taxonomy.

Every fatal condition raised by the pipeline derives from ``PipelineError`` so
callers (CLI, web worker) can report it with a single ``except`` clause.
"""


class PipelineError(RuntimeError):
    pass


class FFmpegNotFoundError(PipelineError):
    pass


class AcquisitionError(PipelineError):
    """No usable input media."""


class TranscriptionError(PipelineError):
    """Transcriber unavailable, misconfigured, or input still too large."""


class DetectionError(PipelineError):
    """Unexpected failure inside the swear detector."""


class EncodingError(PipelineError):
    """An ffmpeg decode/encode/remux invocation failed."""

    def __init__(self, label: str, returncode: int | None = None, stderr: str = "", detail: str | None = None):
        self.label = label
        self.returncode = returncode
        self.stderr = stderr
        reason = detail or (f"exited with code {returncode}" if returncode is not None else "failed")
        tail = stderr.strip()[-500:]
        message = f"{label} failed: {reason}"
        if tail and detail is None:
            message = f"{message}\n{tail}"
        super().__init__(message)


class ProbeError(EncodingError):
    pass


class ValidationError(PipelineError):
    """Output failed probe, decode, or container checks."""


class CorruptOutputError(PipelineError):
    """Final artifact is missing, empty, or implausibly small."""


class JobCancelled(PipelineError):
    pass
