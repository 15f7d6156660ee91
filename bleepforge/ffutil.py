"""FFmpeg/ffprobe subprocess helpers."""

import json
import logging
import os
import re
import shutil
import subprocess
import threading
import time
from pathlib import Path
from typing import Callable

from bleepforge.errors import (
    CorruptOutputError,
    EncodingError,
    FFmpegNotFoundError,
    JobCancelled,
    ProbeError,
    ValidationError,
)
from bleepforge.models import ProbeResult, StreamInfo, ToolResult

logger = logging.getLogger(__name__)

# ffmpeg sometimes exits 0 after a partial failure, so stderr is scanned too.
FATAL_PATTERNS = (
    "invalid data found when processing input",
    "moov atom not found",
    "non-monotonous dts",
    "invalid argument",
    "conversion failed",
    "error opening",
    "error while decoding",
    "could not write header",
)

_TIME_RE = re.compile(r"time=(?:(\d+):(\d{2}):(\d{2}(?:\.\d+)?)|(\d+(?:\.\d+)?))")
_DURATION_RE = re.compile(r"Duration: (\d+):(\d{2}):(\d{2}(?:\.\d+)?)")

_READ_CHUNK = 65536


class CancelToken:
    """Shared cancellation flag checked between stages and during tool runs."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise JobCancelled("Job was cancelled")


def check_ffmpeg() -> None:
    """Raise FFmpegNotFoundError if ffmpeg/ffprobe are not on PATH."""
    for cmd in ("ffmpeg", "ffprobe"):
        if shutil.which(cmd) is None:
            raise FFmpegNotFoundError(f"{cmd} not found on PATH")


# ---------------------------------------------------------------------------
# Diagnostic stream parsing
# ---------------------------------------------------------------------------

def parse_time_marker(text: str) -> float | None:
    """Return the last ``time=`` position in *text* as seconds, if any."""
    matches = list(_TIME_RE.finditer(text))
    if not matches:
        return None
    m = matches[-1]
    if m.group(4) is not None:
        return float(m.group(4))
    return int(m.group(1)) * 3600 + int(m.group(2)) * 60 + float(m.group(3))


def parse_duration_line(stderr: str) -> float | None:
    """Parse the ``Duration: HH:MM:SS.cc`` line ffmpeg prints for its input."""
    m = _DURATION_RE.search(stderr)
    if m is None:
        return None
    return int(m.group(1)) * 3600 + int(m.group(2)) * 60 + float(m.group(3))


def find_fatal_error(stderr: str) -> str | None:
    """Return the first stderr line matching a known fatal pattern."""
    for line in stderr.splitlines():
        lowered = line.lower()
        if any(p in lowered for p in FATAL_PATTERNS):
            return line.strip()
    return None


class ProgressParser:
    """Incrementally extract elapsed positions from ffmpeg's stderr.

    ffmpeg rewrites its status line with ``\\r``, so chunks are split on both
    carriage returns and newlines. An incomplete trailing line is held back
    until the next chunk (or ``flush``) completes it.
    """

    def __init__(self) -> None:
        self._pending = ""

    def feed(self, chunk: str) -> list[float]:
        data = self._pending + chunk
        lines = re.split(r"[\r\n]", data)
        self._pending = lines.pop()
        return self._positions(lines)

    def flush(self) -> list[float]:
        lines, self._pending = [self._pending], ""
        return self._positions(lines)

    @staticmethod
    def _positions(lines: list[str]) -> list[float]:
        out: list[float] = []
        for line in lines:
            elapsed = parse_time_marker(line)
            if elapsed is not None:
                out.append(elapsed)
        return out


# ---------------------------------------------------------------------------
# Process runner
# ---------------------------------------------------------------------------

def run_tool(
    tool: str,
    args: list[str],
    *,
    input_bytes: bytes | None = None,
    on_progress: Callable[[float], None] | None = None,
    total_duration: float | None = None,
    cancel: CancelToken | None = None,
) -> ToolResult:
    """Run *tool* with *args*, draining stdout and stderr while it runs.

    stdout is collected by a reader thread and stdin (when *input_bytes* is
    given) is fed by a writer thread, so neither pipe can fill up while the
    calling thread parses stderr. ``on_progress`` receives ``elapsed /
    total_duration`` clamped to [0, 1] once per ``time=`` marker.
    """
    cmd = [tool, *args]
    logger.debug("Running: %s", " ".join(cmd))
    if cancel is not None:
        cancel.raise_if_cancelled()

    try:
        proc = subprocess.Popen(
            cmd,
            stdin=subprocess.PIPE if input_bytes is not None else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise FFmpegNotFoundError(f"{tool} not found on PATH") from e

    stdout_chunks: list[bytes] = []

    def _drain_stdout() -> None:
        for chunk in iter(lambda: proc.stdout.read(_READ_CHUNK), b""):
            stdout_chunks.append(chunk)

    def _feed_stdin() -> None:
        try:
            proc.stdin.write(input_bytes)
        except BrokenPipeError:
            logger.debug("%s closed stdin early", tool)
        finally:
            try:
                proc.stdin.close()
            except BrokenPipeError:
                pass

    def _watch_cancel() -> None:
        while proc.poll() is None:
            if cancel.wait(0.2):
                logger.info("Cancelling %s (pid %s)", tool, proc.pid)
                proc.terminate()
                return

    threads = [threading.Thread(target=_drain_stdout, daemon=True)]
    if input_bytes is not None:
        threads.append(threading.Thread(target=_feed_stdin, daemon=True))
    if cancel is not None:
        threads.append(threading.Thread(target=_watch_cancel, daemon=True))
    for t in threads:
        t.start()

    parser = ProgressParser()
    stderr_parts: list[str] = []

    def _report(positions: list[float]) -> None:
        if on_progress is None or not total_duration or total_duration <= 0:
            return
        for elapsed in positions:
            on_progress(min(1.0, max(0.0, elapsed / total_duration)))

    for chunk in iter(lambda: proc.stderr.read1(_READ_CHUNK), b""):
        text = chunk.decode("utf-8", errors="replace")
        stderr_parts.append(text)
        _report(parser.feed(text))
    _report(parser.flush())

    returncode = proc.wait()
    for t in threads:
        t.join()

    if cancel is not None:
        cancel.raise_if_cancelled()

    stderr = "".join(stderr_parts)
    fatal_line = find_fatal_error(stderr)
    return ToolResult(
        ok=returncode == 0 and fatal_line is None,
        returncode=returncode,
        stderr=stderr,
        stdout=b"".join(stdout_chunks),
        fatal_line=fatal_line,
    )


def run_ffmpeg(
    args: list[str],
    label: str,
    *,
    input_bytes: bytes | None = None,
    on_progress: Callable[[float], None] | None = None,
    total_duration: float | None = None,
    cancel: CancelToken | None = None,
) -> ToolResult:
    """Run ffmpeg and raise EncodingError unless it succeeded cleanly."""
    result = run_tool(
        "ffmpeg",
        args,
        input_bytes=input_bytes,
        on_progress=on_progress,
        total_duration=total_duration,
        cancel=cancel,
    )
    if not result.ok:
        detail = f"ffmpeg error detected: {result.fatal_line}" if result.fatal_line else None
        logger.error("%s failed (rc=%s): ffmpeg %s", label, result.returncode, " ".join(args))
        raise EncodingError(label, result.returncode, result.stderr, detail=detail)
    return result


# ---------------------------------------------------------------------------
# Probing
# ---------------------------------------------------------------------------

def _parse_fps(rate: str | None) -> float | None:
    if not rate or "/" not in rate:
        return None
    num, den = rate.split("/")
    if int(den) == 0:
        return None
    return int(num) / int(den)


def _int_or_none(value) -> int | None:
    return int(value) if value not in (None, "") else None


def parse_probe(data: dict) -> ProbeResult:
    """Build a ProbeResult from ffprobe's ``-show_format -show_streams`` JSON."""
    fmt = data.get("format", {})
    streams: list[StreamInfo] = []
    for s in data.get("streams", []):
        streams.append(
            StreamInfo(
                codec_type=s.get("codec_type", ""),
                codec_name=s.get("codec_name", ""),
                width=_int_or_none(s.get("width")),
                height=_int_or_none(s.get("height")),
                fps=_parse_fps(s.get("r_frame_rate")),
                sample_rate=_int_or_none(s.get("sample_rate")),
                channels=_int_or_none(s.get("channels")),
            )
        )
    return ProbeResult(
        duration=float(fmt.get("duration") or 0.0),
        format_name=fmt.get("format_name", ""),
        streams=streams,
    )


def probe(input_path: Path) -> ProbeResult:
    """Extract media metadata via ffprobe."""
    args = [
        "-v", "error",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(input_path),
    ]
    result = run_tool("ffprobe", args)
    if result.returncode != 0:
        raise ProbeError(f"ffprobe {input_path.name}", result.returncode, result.stderr)
    try:
        data = json.loads(result.stdout.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ProbeError(f"ffprobe {input_path.name}", detail=f"unparseable output: {e}") from e

    info = parse_probe(data)
    logger.debug(
        "Probed %s: %.2fs, %s",
        input_path.name,
        info.duration,
        ", ".join(f"{s.codec_type}:{s.codec_name}" for s in info.streams) or "no streams",
    )
    return info


# ---------------------------------------------------------------------------
# Audio
# ---------------------------------------------------------------------------

def extract_audio(
    input_path: Path,
    output_path: Path,
    sample_rate: int = 44100,
    cancel: CancelToken | None = None,
) -> Path:
    """Extract audio as mono 16-bit WAV at the given sample rate."""
    args = [
        "-y",
        "-i", str(input_path),
        "-vn",
        "-acodec", "pcm_s16le",
        "-ar", str(sample_rate),
        "-ac", "1",
        str(output_path),
    ]
    run_ffmpeg(args, "Audio extraction", cancel=cancel)
    return output_path


def decode_to_pcm(
    input_path: Path,
    sample_rate: int,
    channels: int = 1,
    cancel: CancelToken | None = None,
) -> tuple[bytes, float | None]:
    """Decode to raw s16le PCM on stdout.

    Returns the PCM bytes and the input duration ffmpeg reported, if any.
    """
    args = [
        "-i", str(input_path),
        "-f", "s16le",
        "-ar", str(sample_rate),
        "-ac", str(channels),
        "-",
    ]
    result = run_ffmpeg(args, "PCM decode", cancel=cancel)
    return result.stdout, parse_duration_line(result.stderr)


def encode_pcm_to_aac(
    pcm: bytes,
    output_path: Path,
    sample_rate: int,
    channels: int = 1,
    bitrate: str = "192k",
    cancel: CancelToken | None = None,
) -> Path:
    """Encode raw s16le PCM from stdin into an AAC (m4a) file."""
    args = [
        "-f", "s16le",
        "-ar", str(sample_rate),
        "-ac", str(channels),
        "-i", "-",
        "-c:a", "aac",
        "-b:a", bitrate,
        "-ar", str(sample_rate),
        "-ac", str(channels),
        "-y",
        str(output_path),
    ]
    run_ffmpeg(args, "AAC encode", input_bytes=pcm, cancel=cancel)
    if not output_path.exists() or output_path.stat().st_size == 0:
        raise EncodingError("AAC encode", detail="encoded audio file was not created or is empty")
    return output_path


def compress_audio(
    input_path: Path,
    output_path: Path,
    sample_rate: int,
    channels: int = 1,
    cancel: CancelToken | None = None,
) -> Path:
    """Re-encode to a smaller PCM WAV (lower rate/channels) for upload limits."""
    args = [
        "-y",
        "-i", str(input_path),
        "-acodec", "pcm_s16le",
        "-ar", str(sample_rate),
        "-ac", str(channels),
        str(output_path),
    ]
    run_ffmpeg(args, f"Audio compression ({sample_rate} Hz)", cancel=cancel)
    return output_path


def decode_check(
    input_path: Path,
    maps: tuple[str, ...] = (),
    cancel: CancelToken | None = None,
) -> None:
    """Decode the whole file to the null muxer; raise ValidationError on failure."""
    args = ["-v", "error", "-i", str(input_path)]
    for m in maps:
        args += ["-map", m]
    args += ["-f", "null", "-"]
    result = run_tool("ffmpeg", args, cancel=cancel)
    if not result.ok:
        reason = result.fatal_line or f"exited with code {result.returncode}"
        raise ValidationError(f"Decode test failed for {input_path.name}: {reason}")


# ---------------------------------------------------------------------------
# Video
# ---------------------------------------------------------------------------

COPYABLE_VIDEO_CODECS = ("h264", "avc1")


def combine_args(
    video_path: Path,
    audio_path: Path,
    output_path: Path,
    video: StreamInfo,
    audio: StreamInfo,
    video_duration: float,
    audio_duration: float,
) -> list[str]:
    """Build the ffmpeg arguments that mux edited audio onto the original video."""
    can_copy_video = video.codec_name in COPYABLE_VIDEO_CODECS
    args = [
        "-y",
        "-i", str(video_path),
        "-i", str(audio_path),
        "-map", "0:v:0",
        "-map", "1:a:0",
    ]
    if can_copy_video:
        args += ["-c:v", "copy", "-tag:v", "avc1"]
    else:
        fps = video.fps or 30.0
        args += [
            "-c:v", "libx264",
            "-profile:v", "high",
            "-level", "4.0",
            "-preset", "medium",
            "-crf", "23",
            "-maxrate", "5M",
            "-bufsize", "10M",
            "-pix_fmt", "yuv420p",
            "-g", str(round(fps * 2)),
            "-keyint_min", str(round(fps)),
            "-sc_threshold", "0",
        ]

    if audio.codec_name == "aac":
        args += ["-c:a", "copy"]
    else:
        args += ["-c:a", "aac", "-b:a", "192k"]

    # Trim to the shorter stream.
    if video_duration > 0 and audio_duration > 0 and video_duration != audio_duration:
        args += ["-t", f"{min(video_duration, audio_duration):.3f}"]

    if not can_copy_video:
        args += [
            "-avoid_negative_ts", "make_zero",
            "-fflags", "+genpts",
            "-fps_mode", "cfr",
        ]

    args += ["-movflags", "+faststart", "-f", "mp4", str(output_path)]
    return args


def combine_audio_video(
    video_path: Path,
    audio_path: Path,
    output_path: Path,
    on_progress: Callable[[float], None] | None = None,
    cancel: CancelToken | None = None,
) -> Path:
    """Mux *audio_path* against the untouched video stream of *video_path*."""
    video_info = probe(video_path)
    audio_info = probe(audio_path)
    if video_info.video is None:
        raise EncodingError("Video/audio combination", detail="no video stream found in input file")
    if audio_info.audio is None:
        raise EncodingError("Video/audio combination", detail="no audio stream found in censored audio")

    args = combine_args(
        video_path,
        audio_path,
        output_path,
        video_info.video,
        audio_info.audio,
        video_info.duration,
        audio_info.duration,
    )
    durations = [d for d in (video_info.duration, audio_info.duration) if d > 0]
    run_ffmpeg(
        args,
        "Video/audio combination",
        on_progress=on_progress,
        total_duration=min(durations) if durations else None,
        cancel=cancel,
    )
    if not output_path.exists() or output_path.stat().st_size == 0:
        raise EncodingError("Video/audio combination", detail="output video file was not created or is empty")
    return output_path


def remux_faststart(
    input_path: Path,
    output_path: Path,
    on_progress: Callable[[float], None] | None = None,
    total_duration: float | None = None,
    cancel: CancelToken | None = None,
) -> Path:
    """Rewrite the container with the moov atom first; codecs are copied."""
    args = [
        "-y",
        "-i", str(input_path),
        "-map", "0",
        "-c", "copy",
        "-tag:v", "avc1",
        "-movflags", "+faststart",
        "-f", "mp4",
        str(output_path),
    ]
    run_ffmpeg(
        args,
        "Final remux",
        on_progress=on_progress,
        total_duration=total_duration,
        cancel=cancel,
    )
    if not output_path.exists() or output_path.stat().st_size == 0:
        raise EncodingError("Final remux", detail="remuxed file was not created or is empty")
    return output_path


# ---------------------------------------------------------------------------
# Container checks
# ---------------------------------------------------------------------------

def read_top_level_boxes(path: Path, limit: int = 64) -> list[str]:
    """Return the types of the top-level ISO-BMFF boxes, in file order."""
    boxes: list[str] = []
    size_total = path.stat().st_size
    with path.open("rb") as f:
        offset = 0
        while offset + 8 <= size_total and len(boxes) < limit:
            f.seek(offset)
            header = f.read(8)
            if len(header) < 8:
                break
            size = int.from_bytes(header[:4], "big")
            box_type = header[4:8].decode("latin-1")
            if size == 1:
                size = int.from_bytes(f.read(8), "big")
            elif size == 0:
                size = size_total - offset
            if size < 8:
                break
            boxes.append(box_type)
            offset += size
    return boxes


def check_mp4_header(path: Path) -> None:
    """Require ``ftyp`` at byte offset 4 and ``moov`` ahead of ``mdat``."""
    with path.open("rb") as f:
        head = f.read(12)
    if len(head) < 8 or head[4:8] != b"ftyp":
        got = head[4:8].decode("latin-1") if len(head) >= 8 else ""
        raise ValidationError(f"Invalid MP4 header: expected 'ftyp' at offset 4, got {got!r}")

    boxes = read_top_level_boxes(path)
    if "moov" not in boxes:
        raise ValidationError("MP4 has no moov box")
    if "mdat" in boxes and boxes.index("moov") > boxes.index("mdat"):
        raise ValidationError("moov box is not at the front of the file (not streaming-ready)")


def validate_video(path: Path, cancel: CancelToken | None = None) -> ProbeResult:
    """Probe, decode-test and header-check a finished MP4."""
    try:
        info = probe(path)
    except ProbeError as e:
        raise ValidationError(str(e)) from e
    if info.video is None:
        raise ValidationError(f"No video stream in {path.name}")
    if info.audio is None:
        raise ValidationError(f"No audio stream in {path.name}")

    decode_check(path, maps=("0:v:0", "0:a:0"), cancel=cancel)
    check_mp4_header(path)
    return info


def wait_for_stable_file(
    path: Path,
    interval: float = 0.2,
    required_checks: int = 3,
    timeout: float = 5.0,
) -> int:
    """Block until *path*'s size is unchanged for *required_checks* polls.

    The file is fsync'ed first; polling remains as a portable fallback for
    filesystems where that is not enough. Returns the settled size.
    """
    if path.exists():
        fd = os.open(path, os.O_RDONLY)
        try:
            os.fsync(fd)
        except OSError:
            logger.debug("fsync not supported for %s", path)
        finally:
            os.close(fd)

    deadline = time.monotonic() + timeout
    previous = -1
    stable = 0
    while time.monotonic() < deadline:
        if path.exists():
            size = path.stat().st_size
            if size == previous and size > 0:
                stable += 1
                if stable >= required_checks:
                    return size
            else:
                stable = 0
            previous = size
        time.sleep(interval)

    if not path.exists():
        raise CorruptOutputError(f"{path.name} does not exist after waiting for it to settle")
    raise CorruptOutputError(f"{path.name} did not settle within {timeout:.1f}s")
