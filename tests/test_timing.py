"""Tests for timing arithmetic."""

import pytest

from scenereel.errors import InvalidConfiguration
from scenereel.timing import (
    build_timeline,
    seconds_to_frames,
    total_duration,
    transition_offsets,
    validate_timing,
)


class TestSecondsToFrames:
    def test_whole_seconds(self):
        assert seconds_to_frames(5, 30) == 150

    def test_rounds_half_up(self):
        assert seconds_to_frames(0.05, 30) == 2  # 1.5 frames
        assert seconds_to_frames(0.049, 30) == 1

    def test_fractional(self):
        assert seconds_to_frames(4.2, 24) == 101  # 100.8

    def test_monotonic_in_duration(self):
        durations = [i / 37 for i in range(1, 400)]
        frames = [seconds_to_frames(d, 30) for d in durations]
        assert frames == sorted(frames)

    def test_deterministic(self):
        assert seconds_to_frames(3.333, 25) == seconds_to_frames(3.333, 25)


class TestTransitionOffsets:
    def test_three_scenes(self):
        assert transition_offsets([4, 4, 4], 0.5) == [0.0, 3.5, 7.0]

    def test_uneven_scenes(self):
        assert transition_offsets([2.0, 3.0, 1.5, 4.0], 0.5) == pytest.approx(
            [0.0, 1.5, 4.0, 5.0]
        )

    def test_single_scene(self):
        assert transition_offsets([5], 0.5) == [0.0]

    def test_clamps_negative(self):
        assert transition_offsets([0.3, 0.3], 0.5) == [0.0, 0.0]

    def test_unclamped_exposes_negative(self):
        assert transition_offsets([0.3, 0.3], 0.5, clamp=False) == pytest.approx([0.0, -0.2])

    def test_non_decreasing_for_valid_configs(self):
        durations = [1.0, 2.5, 0.8, 3.0, 1.2]
        validate_timing(durations, 30, 0.7, True)
        offsets = transition_offsets(durations, 0.7)
        assert all(o >= 0 for o in offsets)
        assert offsets == sorted(offsets)


class TestTotalDuration:
    def test_with_transitions(self):
        assert total_duration([4, 4, 4], 0.5, True) == pytest.approx(11.0)

    def test_without_transitions(self):
        assert total_duration([4, 4, 4], 0.5, False) == pytest.approx(12.0)

    def test_single_scene_ignores_transition(self):
        assert total_duration([5], 0.5, True) == pytest.approx(5.0)


class TestValidateTiming:
    def test_valid(self):
        validate_timing([4, 4, 4], 30, 0.5, True)

    def test_transition_longer_than_scene(self):
        with pytest.raises(InvalidConfiguration, match="shorter than the shortest scene"):
            validate_timing([0.3], 30, 0.5, True)

    def test_transition_equal_to_scene(self):
        with pytest.raises(InvalidConfiguration):
            validate_timing([2.0, 0.5], 30, 0.5, True)

    def test_transition_ignored_when_disabled(self):
        validate_timing([0.3, 4.0], 30, 0.5, False)

    def test_zero_transition_when_enabled(self):
        with pytest.raises(InvalidConfiguration, match="transition duration"):
            validate_timing([2.0, 2.0], 30, 0, True)

    @pytest.mark.parametrize("fps", [0, -30, 29.97, True])
    def test_bad_fps(self, fps):
        with pytest.raises(InvalidConfiguration, match="frame rate"):
            validate_timing([2.0], fps, 0.5, False)

    @pytest.mark.parametrize("duration", [0, -1.0])
    def test_non_positive_duration(self, duration):
        with pytest.raises(InvalidConfiguration, match="scene 2"):
            validate_timing([2.0, duration], 30, 0.5, False)

    def test_shorter_than_one_frame(self):
        with pytest.raises(InvalidConfiguration, match="one frame"):
            validate_timing([0.01], 30, 0.5, False)


class TestBuildTimeline:
    def test_three_scene_crossfade(self):
        t = build_timeline([4, 4, 4], 30, 0.5, True)
        assert t.frames == [120, 120, 120]
        assert t.offsets == [0.0, 3.5, 7.0]
        assert t.total_duration == pytest.approx(11.0)
        assert t.total_frames == 330

    def test_single_scene_no_blending(self):
        t = build_timeline([5], 30, 0.5, True)
        assert not t.transitions_enabled
        assert t.transition == 0.0
        assert t.total_frames == 150

    def test_disabled_transitions(self):
        t = build_timeline([1.0, 2.0], 24, 0.5, False)
        assert t.offsets == [0.0, 0.0]
        assert t.total_duration == pytest.approx(3.0)

    def test_invalid_raises(self):
        with pytest.raises(InvalidConfiguration):
            build_timeline([0.3], 30, 0.5, True)
