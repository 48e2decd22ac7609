"""Tests for environment-driven engine settings."""

from pathlib import Path

import pytest

from scenereel.config import EngineSettings

_VARS = [
    "FFMPEG", "ENGINE_MIRRORS", "CACHE_DIR", "WORKDIR", "USE_SYSTEM_FFMPEG",
    "USE_BUNDLED_FFMPEG", "CONTROL_TIMEOUT", "BINARY_TIMEOUT", "ENCODE_TIMEOUT", "THREADS",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _VARS:
        monkeypatch.delenv(f"SCENEREEL_{name}", raising=False)


class TestFromEnv:
    def test_defaults(self):
        s = EngineSettings.from_env()
        assert s.ffmpeg_path is None
        assert s.mirrors == []
        assert s.cache_dir == Path.home() / ".cache" / "scenereel"
        assert s.workdir is None
        assert s.use_system_ffmpeg and s.use_bundled_ffmpeg
        assert s.control_timeout == 15.0
        assert s.binary_timeout == 300.0
        assert s.encode_timeout == 1800.0
        assert s.threads is None

    def test_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SCENEREEL_FFMPEG", "/usr/local/bin/ffmpeg")
        monkeypatch.setenv("SCENEREEL_ENGINE_MIRRORS", " https://a.example/ , https://b.example,, ")
        monkeypatch.setenv("SCENEREEL_CACHE_DIR", str(tmp_path / "cache"))
        monkeypatch.setenv("SCENEREEL_WORKDIR", str(tmp_path / "work"))
        monkeypatch.setenv("SCENEREEL_USE_SYSTEM_FFMPEG", "false")
        monkeypatch.setenv("SCENEREEL_CONTROL_TIMEOUT", "5")
        monkeypatch.setenv("SCENEREEL_THREADS", "4")
        s = EngineSettings.from_env()
        assert s.ffmpeg_path == "/usr/local/bin/ffmpeg"
        assert s.mirrors == ["https://a.example", "https://b.example"]
        assert s.cache_dir == tmp_path / "cache"
        assert s.workdir == tmp_path / "work"
        assert not s.use_system_ffmpeg
        assert s.use_bundled_ffmpeg
        assert s.control_timeout == 5.0
        assert s.threads == 4

    def test_encode_timeout_minimum(self, monkeypatch):
        monkeypatch.setenv("SCENEREEL_ENCODE_TIMEOUT", "1")
        assert EngineSettings.from_env().encode_timeout == 10.0

    def test_bad_number(self, monkeypatch):
        monkeypatch.setenv("SCENEREEL_BINARY_TIMEOUT", "soon")
        with pytest.raises(ValueError, match="SCENEREEL_BINARY_TIMEOUT"):
            EngineSettings.from_env()
