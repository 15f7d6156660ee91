"""Shared data types used across BleepForge."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Token:
    """One transcribed unit (word or segment) with timestamps in seconds."""

    text: str
    start: float
    end: float


@dataclass
class Interval:
    """A time span in seconds to be censored."""

    start: float
    end: float
    label: str = ""

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass
class StreamInfo:
    """A single stream as reported by ffprobe."""

    codec_type: str
    codec_name: str
    width: int | None = None
    height: int | None = None
    fps: float | None = None
    sample_rate: int | None = None
    channels: int | None = None


@dataclass
class ProbeResult:
    """Metadata extracted from a media file via ffprobe."""

    duration: float
    format_name: str = ""
    streams: list[StreamInfo] = field(default_factory=list)

    @property
    def video(self) -> StreamInfo | None:
        return next((s for s in self.streams if s.codec_type == "video"), None)

    @property
    def audio(self) -> StreamInfo | None:
        return next((s for s in self.streams if s.codec_type == "audio"), None)


@dataclass
class ToolResult:
    """Outcome of one ffmpeg/ffprobe invocation."""

    ok: bool
    returncode: int
    stderr: str = ""
    stdout: bytes = b""
    fatal_line: str | None = None
