"""Interval sanitizing: makes detector output safe for sample-level editing."""

import logging

from bleepforge.models import Interval

logger = logging.getLogger(__name__)

MIN_DURATION = 0.08
MAX_DURATION = 5.0
MAX_MERGE_GAP = 0.5

# Times are rounded to the microsecond so clamping arithmetic stays exact.
_PRECISION = 6
_EPSILON = 1e-9


def merge_close(intervals: list[Interval], max_gap: float = MAX_MERGE_GAP) -> list[Interval]:
    """Sort and merge intervals that start within *max_gap* of the previous end."""
    merged: list[Interval] = []
    for current in sorted(intervals, key=lambda iv: iv.start):
        last = merged[-1] if merged else None
        if last is not None and current.start <= last.end + max_gap:
            last.end = max(last.end, current.end)
            if current.label:
                last.label = f"{last.label} {current.label}" if last.label else current.label
        else:
            merged.append(Interval(current.start, current.end, current.label))
    return merged


def sanitize_intervals(intervals: list[Interval], duration: float) -> list[Interval]:
    """Merge, clamp and validate raw intervals against the media *duration*.

    Every returned interval lasts between MIN_DURATION and MAX_DURATION and
    lies inside ``[0, duration]``; the result is sorted and non-overlapping.
    Intervals that cannot be repaired are logged and dropped.
    """
    if not intervals:
        return []
    if duration <= 0:
        logger.warning("Media duration is %.3fs; dropping %d intervals", duration, len(intervals))
        return []

    sanitized: list[Interval] = []
    for iv in merge_close(intervals):
        start = max(0.0, min(round(iv.start, _PRECISION), duration - MIN_DURATION))
        end = max(start + MIN_DURATION, iv.end)
        # An end at the media boundary is pinned to it; rounding must not push it past.
        end = duration if end >= duration - _EPSILON else round(end, _PRECISION)

        if end - start > MAX_DURATION:
            logger.info(
                "Interval %r was %.2fs, capped to %.1fs", iv.label, end - start, MAX_DURATION
            )
            end = round(start + MAX_DURATION, _PRECISION)

        length = end - start
        if end <= start or end > duration or not MIN_DURATION - _EPSILON <= length <= MAX_DURATION + _EPSILON:
            logger.warning("Skipping invalid interval %r [%.3fs - %.3fs]", iv.label, start, end)
            continue
        # Clamping to the end of the media can pull a start back over its predecessor.
        if sanitized and start < sanitized[-1].end:
            logger.warning(
                "Skipping interval %r [%.3fs - %.3fs]: overlaps previous after clamping",
                iv.label, start, end,
            )
            continue
        sanitized.append(Interval(start, end, iv.label))

    logger.info("Sanitized %d intervals to %d", len(intervals), len(sanitized))
    return sanitized
