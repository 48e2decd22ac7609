"""Tests for multi-source fetching."""

import threading

import pytest
import requests

from scenereel.sources import (
    AllSourcesFailed,
    FetchCancelled,
    fetch_bytes,
    first_success,
    format_bytes,
)


class TestFirstSuccess:
    def test_first_working_candidate_wins(self):
        calls = []

        def _attempt(c):
            calls.append(c)
            if c == "a":
                raise OSError("down")
            return c.upper()

        assert first_success(["a", "b", "c"], _attempt) == "B"
        assert calls == ["a", "b"]

    def test_all_fail_aggregates(self):
        def _attempt(c):
            raise TimeoutError(f"{c} timed out")

        with pytest.raises(AllSourcesFailed) as exc_info:
            first_success(["m1", "m2"], _attempt)
        assert exc_info.value.attempts == [("m1", "m1 timed out"), ("m2", "m2 timed out")]
        assert "all 2 source(s) failed" in str(exc_info.value)

    def test_no_candidates(self):
        with pytest.raises(AllSourcesFailed) as exc_info:
            first_success([], lambda c: c)
        assert exc_info.value.attempts == []

    def test_exception_without_message_uses_class_name(self):
        def _attempt(c):
            raise KeyError()

        with pytest.raises(AllSourcesFailed) as exc_info:
            first_success(["x"], _attempt)
        assert exc_info.value.attempts[0][1]

    def test_custom_names(self):
        with pytest.raises(AllSourcesFailed) as exc_info:
            first_success([1], lambda c: 1 / 0, name=lambda c: f"source-{c}")
        assert exc_info.value.attempts[0][0] == "source-1"

    def test_cancel_stops_before_next_candidate(self):
        cancel = threading.Event()

        def _attempt(c):
            cancel.set()
            raise OSError("down")

        with pytest.raises(FetchCancelled):
            first_success(["a", "b"], _attempt, cancel=cancel)

    def test_cancel_propagates_from_attempt(self):
        def _attempt(c):
            raise FetchCancelled()

        with pytest.raises(FetchCancelled):
            first_success(["a", "b"], _attempt)


class TestFetchBytes:
    def test_downloads_in_chunks(self, fake_http):
        session = fake_http({"https://m/ffmpeg": b"x" * 10}, chunk=4)
        seen = []
        data = fetch_bytes(
            "https://m/ffmpeg", timeout=5,
            on_chunk=lambda received, total: seen.append((received, total)),
            session=session,
        )
        assert data == b"x" * 10
        assert seen == [(4, 10), (8, 10), (10, 10)]
        session.get.assert_called_once_with("https://m/ffmpeg", stream=True, timeout=5)

    def test_http_error_raises(self, fake_http):
        session = fake_http({"https://m/ffmpeg": 404})
        with pytest.raises(requests.HTTPError):
            fetch_bytes("https://m/ffmpeg", timeout=5, session=session)

    def test_connection_error_raises(self, fake_http):
        session = fake_http({})
        with pytest.raises(requests.ConnectionError):
            fetch_bytes("https://unreachable/ffmpeg", timeout=5, session=session)

    def test_cancel_mid_download(self, fake_http):
        session = fake_http({"https://m/ffmpeg": b"x" * 10}, chunk=2)
        cancel = threading.Event()

        def _on_chunk(received, total):
            if received >= 4:
                cancel.set()

        with pytest.raises(FetchCancelled):
            fetch_bytes("https://m/ffmpeg", timeout=5, on_chunk=_on_chunk,
                        cancel=cancel, session=session)


class TestFormatBytes:
    def test_kilobytes(self):
        assert format_bytes(512 * 1024) == "512KB"

    def test_megabytes(self):
        assert format_bytes(int(31.4 * 1024 * 1024)) == "31.4MB"
