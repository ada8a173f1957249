"""
Timebase Module Tests

Tests for the frame grid and exported event clamping.
"""

import pytest

from choreo import timebase


class TestFrameCount:
    """Tests for compute_frame_count."""

    def test_exact_multiple(self):
        """Test sample count that is a multiple of the hop."""
        assert timebase.compute_frame_count(1024, 256) == 4

    def test_partial_last_frame(self):
        """Test that a partial trailing hop still gets a frame."""
        assert timebase.compute_frame_count(1000, 256) == 4
        assert timebase.compute_frame_count(1025, 256) == 5

    def test_empty_input(self):
        """Test with no samples."""
        assert timebase.compute_frame_count(0, 256) == 0

    def test_invalid_hop(self):
        """Test with non-positive hop size."""
        assert timebase.compute_frame_count(1000, 0) == 0

    def test_matches_frame_starts(self):
        """Test that the count agrees with the frame start iterator."""
        for total in (1, 255, 256, 257, 22050):
            starts = list(timebase.iter_frame_starts(total, 256))
            assert len(starts) == timebase.compute_frame_count(total, 256)


class TestFrameStarts:
    """Tests for iter_frame_starts."""

    def test_starts_are_hop_multiples(self):
        """Test that starts are 0, H, 2H, ... below the total."""
        assert list(timebase.iter_frame_starts(1000, 256)) == [0, 256, 512, 768]

    def test_empty(self):
        """Test that no samples means no frames."""
        assert list(timebase.iter_frame_starts(0, 256)) == []

    def test_invalid_hop_raises(self):
        """Test that a non-positive hop is rejected."""
        with pytest.raises(ValueError):
            timebase.iter_frame_starts(1000, 0)

    def test_sample_to_time(self):
        """Test sample index to seconds conversion."""
        assert timebase.sample_to_time(22050, 22050) == 1.0
        assert timebase.sample_to_time(441, 22050) == pytest.approx(0.02)


class TestClampPointEvent:
    """Tests for clamp_point_event."""

    def test_valid_time_unchanged(self):
        """Test that a valid time is not modified."""
        clamped, was_clamped = timebase.clamp_point_event(5.0, 10.0)
        assert clamped == 5.0
        assert not was_clamped

    def test_negative_time_clamped(self):
        """Test that negative time is clamped to 0."""
        clamped, was_clamped = timebase.clamp_point_event(-1.0, 10.0)
        assert clamped == 0.0
        assert was_clamped

    def test_time_beyond_duration_clamped(self):
        """Test that time beyond duration is clamped."""
        clamped, was_clamped = timebase.clamp_point_event(10.002, 10.0)
        assert clamped == 10.0
        assert was_clamped

    def test_time_within_epsilon_not_clamped(self):
        """Test that a time within epsilon of the duration is left alone."""
        clamped, was_clamped = timebase.clamp_point_event(10.0 + 1e-7, 10.0)
        assert not was_clamped


class TestValidatePointEvents:
    """Tests for validate_point_events."""

    def test_clamp_mode(self):
        """Test clamping of out-of-range entries."""
        entries = [{'time': 1.0, 'type': 'transient'}, {'time': 10.002, 'type': 'transient'}]
        validated = timebase.validate_point_events(entries, 10.0)
        assert [e['time'] for e in validated] == [1.0, 10.0]

    def test_drop_mode(self):
        """Test dropping of out-of-range entries."""
        entries = [{'time': 1.0}, {'time': 12.0}]
        validated = timebase.validate_point_events(entries, 10.0, drop_invalid=True)
        assert len(validated) == 1

    def test_input_not_mutated(self):
        """Test that the input entries are copied, not modified."""
        entries = [{'time': 12.0}]
        timebase.validate_point_events(entries, 10.0)
        assert entries[0]['time'] == 12.0

    def test_entries_without_time_kept(self):
        """Test that entries lacking the time key pass through."""
        validated = timebase.validate_point_events([{'type': 'note'}], 10.0)
        assert validated == [{'type': 'note'}]
