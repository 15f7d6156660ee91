"""PCM editor: overwrites censored spans of decoded audio with a tone or silence."""

import logging
import math
import shutil
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np

from bleepforge import ffutil
from bleepforge.errors import ProbeError, ValidationError
from bleepforge.ffutil import CancelToken
from bleepforge.intervals import sanitize_intervals
from bleepforge.manifest import CensorConfig
from bleepforge.models import Interval

logger = logging.getLogger(__name__)

SAMPLE_RATE = 44100
CHANNELS = 1
BYTES_PER_SAMPLE = 2
BYTES_PER_SECOND = SAMPLE_RATE * CHANNELS * BYTES_PER_SAMPLE
TONE_FREQUENCY = 800.0
AAC_BITRATE = "192k"
INT16_MAX = 32767


@dataclass
class CensorResult:
    path: Path
    intervals: list[Interval] = field(default_factory=list)
    copied: bool = False
    duration: float | None = None


def byte_range(interval: Interval, buffer_len: int) -> tuple[int, int]:
    """Sample-aligned ``[start, end)`` byte offsets of *interval*, clamped to the buffer."""
    aligned_len = buffer_len - buffer_len % BYTES_PER_SAMPLE
    start = math.floor(interval.start * SAMPLE_RATE) * BYTES_PER_SAMPLE
    end = math.floor(interval.end * SAMPLE_RATE) * BYTES_PER_SAMPLE
    start = max(0, min(start, aligned_len))
    end = max(start, min(end, aligned_len))
    return start, end


def synthesize_tone(num_samples: int, frequency: float = TONE_FREQUENCY) -> bytes:
    """Full-scale sine wave as signed 16-bit little-endian samples."""
    t = np.arange(num_samples, dtype=np.float64) / SAMPLE_RATE
    wave = np.rint(np.sin(2 * np.pi * frequency * t) * INT16_MAX)
    return wave.astype("<i2").tobytes()


def apply_edits(
    pcm: bytes,
    intervals: list[Interval],
    tone: bool = True,
    frequency: float = TONE_FREQUENCY,
) -> bytes:
    """Return a copy of *pcm* with every interval replaced by tone or silence.

    The output always has exactly the same length as the input.
    """
    edited = bytearray(pcm)
    for iv in intervals:
        start, end = byte_range(iv, len(edited))
        if end <= start:
            continue
        if tone:
            beep = synthesize_tone((end - start) // BYTES_PER_SAMPLE, frequency)
            edited[start:start + len(beep)] = beep
            # Anything the tone did not cover is silenced.
            if start + len(beep) < end:
                edited[start + len(beep):end] = bytes(end - start - len(beep))
        else:
            edited[start:end] = bytes(end - start)
        logger.debug(
            "Edited %r: bytes [%d, %d) = %.3fs-%.3fs",
            iv.label, start, end, start / BYTES_PER_SECOND, end / BYTES_PER_SECOND,
        )
    return bytes(edited)


def _copy_source(src: Path, dst: Path) -> Path:
    target = dst.with_suffix(src.suffix)
    shutil.copyfile(src, target)
    return target


def validate_audio(path: Path, cancel: CancelToken | None = None) -> None:
    """Probe and decode-test an encoded track; it must be mono 44.1 kHz AAC."""
    try:
        info = ffutil.probe(path)
    except ProbeError as e:
        raise ValidationError(str(e)) from e
    audio = info.audio
    if audio is None:
        raise ValidationError(f"No audio stream found in {path.name}")
    ffutil.decode_check(path, cancel=cancel)
    if audio.codec_name != "aac" or audio.sample_rate != SAMPLE_RATE or audio.channels != CHANNELS:
        raise ValidationError(
            f"Unexpected audio stream in {path.name}: "
            f"{audio.codec_name}, {audio.sample_rate}Hz, {audio.channels}ch"
        )
    logger.info("Validated %s: %s, %sHz, %sch", path.name, audio.codec_name, audio.sample_rate, audio.channels)


def censor_audio(
    src: Path,
    dst: Path,
    intervals: list[Interval],
    config: CensorConfig | None = None,
    cancel: CancelToken | None = None,
) -> CensorResult:
    """Censor *intervals* in *src* and write an AAC track to *dst*.

    Raw detector intervals are sanitized against the decoded duration. When
    nothing is left to censor, *src* is copied unchanged (keeping its own
    suffix) and no transcode happens.
    """
    config = config or CensorConfig()

    if not intervals:
        logger.info("No intervals to censor; copying %s unchanged", src.name)
        return CensorResult(path=_copy_source(src, dst), copied=True)

    pcm, reported = ffutil.decode_to_pcm(src, SAMPLE_RATE, CHANNELS, cancel=cancel)
    duration = reported if reported else len(pcm) / BYTES_PER_SECOND
    logger.info("Decoded %.2f MB of PCM, duration %.2fs", len(pcm) / (1024 * 1024), duration)

    clean = sanitize_intervals(intervals, duration)
    if not clean:
        logger.info("No valid intervals after sanitizing; copying %s unchanged", src.name)
        return CensorResult(path=_copy_source(src, dst), copied=True, duration=duration)

    edited = apply_edits(pcm, clean, tone=config.tone, frequency=config.frequency)
    ffutil.encode_pcm_to_aac(edited, dst, SAMPLE_RATE, CHANNELS, bitrate=AAC_BITRATE, cancel=cancel)
    validate_audio(dst, cancel=cancel)

    logger.info(
        "Censored %d spans with %s: %.2f KB",
        len(clean), "tone" if config.tone else "silence", dst.stat().st_size / 1024,
    )
    return CensorResult(path=dst, intervals=clean, duration=duration)
