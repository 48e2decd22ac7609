"""Tests for request and artifact models."""

from pathlib import Path

from scenereel.models import Artifact, CompositionRequest, Scene


class TestScene:
    def test_has_image(self):
        assert Scene(1, "a.png", 2.0).has_image
        assert Scene(1, b"\x89PNG", 2.0).has_image
        assert Scene(1, Path("a.png"), 2.0).has_image

    def test_missing_image(self):
        assert not Scene(1, None, 2.0).has_image
        assert not Scene(1, "   ", 2.0).has_image
        assert not Scene(1, b"", 2.0).has_image


class TestCompositionRequest:
    def test_defaults(self):
        r = CompositionRequest(scenes=[])
        assert r.frame_rate == 30
        assert r.resolution == "1080p"
        assert r.size == (1920, 1080)
        assert r.motion_enabled
        assert r.transition_enabled and r.transition_style == "fade"
        assert r.transition_duration_seconds == 0.5
        assert r.color_grade_enabled and r.color_grade_style == "cinematic"

    def test_renderable_scenes_keep_order(self):
        r = CompositionRequest(scenes=[
            Scene(1, "a.png", 1.0),
            Scene(2, None, 1.0),
            Scene(3, "c.png", 1.0),
        ])
        assert [s.index for s in r.renderable_scenes()] == [1, 3]


class TestArtifact:
    def test_save_appends_extension(self, tmp_path):
        a = Artifact(data=b"mp4", filename="x_video.mp4", duration_seconds=1.0, frame_count=30)
        path = a.save(tmp_path / "out" / "story")
        assert path == tmp_path / "out" / "story.mp4"
        assert path.read_bytes() == b"mp4"
        assert a.size_bytes == 3
        assert a.content_type == "video/mp4"

    def test_save_keeps_extension(self, tmp_path):
        a = Artifact(data=b"mp4", filename="x_video.mp4", duration_seconds=1.0, frame_count=30)
        assert a.save(tmp_path / "story.MP4") == tmp_path / "story.MP4"
