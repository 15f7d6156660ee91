"""Tests for interval sanitizing."""

import pytest

from bleepforge.intervals import MAX_DURATION, MIN_DURATION, merge_close, sanitize_intervals
from bleepforge.models import Interval


class TestMergeClose:
    def test_gap_within_limit_merges(self):
        merged = merge_close([Interval(1.0, 1.4, "damn"), Interval(1.8, 2.0, "shit")])
        assert merged == [Interval(1.0, 2.0, "damn shit")]

    def test_gap_beyond_limit_kept(self):
        merged = merge_close([Interval(1.0, 1.4), Interval(2.0, 2.3)])
        assert len(merged) == 2

    def test_unsorted_input(self):
        merged = merge_close([Interval(5.0, 5.5), Interval(1.0, 1.5)])
        assert [iv.start for iv in merged] == [1.0, 5.0]

    def test_contained_interval(self):
        merged = merge_close([Interval(1.0, 3.0, "a"), Interval(1.5, 2.0, "")])
        assert merged == [Interval(1.0, 3.0, "a")]


class TestSanitizeIntervals:
    def test_empty(self):
        assert sanitize_intervals([], 60.0) == []

    def test_non_positive_duration(self):
        assert sanitize_intervals([Interval(1.0, 2.0)], 0.0) == []

    def test_short_interval_extended(self):
        result = sanitize_intervals([Interval(10.0, 10.02, "ass")], 60.0)
        assert len(result) == 1
        assert result[0].start == pytest.approx(10.0)
        assert result[0].end == pytest.approx(10.08)

    def test_long_interval_capped(self):
        result = sanitize_intervals([Interval(5.0, 12.0)], 60.0)
        assert result == [Interval(5.0, 10.0)]

    def test_negative_start_clamped(self):
        result = sanitize_intervals([Interval(-0.5, 0.4)], 60.0)
        assert result[0].start == 0.0
        assert result[0].end == pytest.approx(0.4)

    def test_clamped_to_media_end(self):
        result = sanitize_intervals([Interval(9.8, 11.0)], 10.0)
        assert result == [Interval(9.8, 10.0)]

    def test_start_past_end_pulled_back(self):
        result = sanitize_intervals([Interval(12.0, 12.5)], 10.0)
        assert len(result) == 1
        assert result[0].end == pytest.approx(10.0)
        assert result[0].duration == pytest.approx(MIN_DURATION)

    def test_sample_accurate_duration_kept(self):
        # Ten seconds plus one 16-bit mono sample, as decoded from PCM.
        duration = (10 * 88200 + 2) / 88200
        result = sanitize_intervals([Interval(9.9, 11.0, "shit")], duration)
        assert len(result) == 1
        assert result[0].start == pytest.approx(9.9)
        assert result[0].end == duration

    def test_sample_accurate_duration_start_pulled_back(self):
        duration = (10 * 88200 + 2) / 88200
        result = sanitize_intervals([Interval(12.0, 12.5)], duration)
        assert len(result) == 1
        assert result[0].end == duration
        assert result[0].duration == pytest.approx(MIN_DURATION)

    def test_close_intervals_merged(self):
        result = sanitize_intervals([Interval(1.0, 1.3, "a"), Interval(1.6, 1.9, "b")], 60.0)
        assert result == [Interval(1.0, 1.9, "a b")]

    def test_invariants_hold(self):
        raw = [
            Interval(0.0, 0.01),
            Interval(3.0, 20.0),
            Interval(2.9, 3.1),
            Interval(29.99, 31.0),
            Interval(15.0, 15.2),
            Interval(-1.0, -0.5),
        ]
        result = sanitize_intervals(raw, 30.0)
        assert result
        for iv in result:
            assert 0.0 <= iv.start < iv.end <= 30.0
            assert MIN_DURATION - 1e-9 <= iv.duration <= MAX_DURATION + 1e-9
        for a, b in zip(result, result[1:]):
            assert a.end <= b.start

    def test_clamped_start_after_previous_kept(self):
        result = sanitize_intervals([Interval(9.0, 9.5), Interval(10.5, 11.0)], 10.0)
        assert len(result) == 2

    def test_overlap_after_clamping_dropped(self):
        # Both collapse onto the final MIN_DURATION window; only one survives.
        result = sanitize_intervals([Interval(9.95, 9.96), Interval(10.6, 10.7)], 10.0)
        assert len(result) == 1

    def test_input_not_mutated(self):
        raw = [Interval(1.0, 1.01)]
        sanitize_intervals(raw, 60.0)
        assert raw == [Interval(1.0, 1.01)]
