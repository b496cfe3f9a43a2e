"""Shared fixtures and test utilities for podcast_digest tests.

This module contains:
- Test constants
- Helper functions for creating test objects
- Fake provider, downloader and chunker used instead of network and ffmpeg
- Pytest hooks for validating marker behavior

Test modules import from it after adding the tests directory to ``sys.path``.
"""

import os
import threading
import time

import pytest
import requests

from podcast_digest import config
from podcast_digest.models import AudioChunk
from podcast_digest.workflow.sinks import CallbackProgressSink

# Test constants
TEST_BASE_URL = "https://example.com"
TEST_EPISODE_URL = f"{TEST_BASE_URL}/episodes/ep1.mp3"
TEST_OTHER_EPISODE_URL = f"{TEST_BASE_URL}/episodes/ep2.mp3"
TEST_API_KEY = "sk-test0123456789abcdefghijklmnop"
TEST_MEDIA_TYPE_MP3 = "audio/mpeg"
TEST_AUDIO_BYTES = b"ID3" + bytes(2048)
TEST_TRANSCRIPT = "hello and welcome to the show today we talk about testing"
TEST_SUMMARY = "The hosts discuss testing."
TEST_SUMMARY_TRIMMED = "The hosts discuss testing"
TEST_SUMMARY_AUDIO = b"\xff\xfb\x90\x64" + bytes(413)


# Test helper functions
def create_test_config(storage_root, **overrides):
    """Create test Config object with defaults.

    Args:
        storage_root: Directory for the local stores; working directories go
            under ``<storage_root>/work`` so tests can check they are removed.
        **overrides: Fields to override from defaults

    Returns:
        config.Config object with test defaults
    """
    defaults = {
        "provider": "mock",
        "storage_root": str(storage_root),
        "work_dir": os.path.join(str(storage_root), "work"),
        "user_agent": "test-agent",
        "timeout": 5,
        "http_retry_total": 0,
        "probe_duration": False,
        "mock_delay_seconds": 0.0,
        "log_level": "INFO",
    }
    defaults.update(overrides)
    return config.Config(**defaults)


def list_work_dirs(storage_root):
    """Return the per-run working directories left under ``storage_root``."""
    work = os.path.join(str(storage_root), "work")
    if not os.path.isdir(work):
        return []
    return sorted(os.listdir(work))


class RecordingSink(CallbackProgressSink):
    """Progress sink keeping every status it receives."""

    def __init__(self):
        self.statuses = []
        super().__init__(self.statuses.append)

    @property
    def stages(self):
        return [status.stage.value for status in self.statuses]


class FakeProvider:
    """In-memory AI provider that records calls and tracks concurrency.

    Args:
        transcript: Text returned for every chunk, or a callable taking the path
        summary: Text returned by ``summarize``
        fail_paths: Basenames whose transcription raises RuntimeError
        transcribe_delay: Seconds each transcription takes
        summarize_error: Exception raised by ``summarize`` when set
        synthesize_error: Exception raised by ``synthesize`` when set
        on_summarize: Callback run at the start of ``summarize``
    """

    name = "fake"

    def __init__(
        self,
        transcript=TEST_TRANSCRIPT,
        summary=TEST_SUMMARY,
        fail_paths=(),
        transcribe_delay=0.0,
        summarize_error=None,
        synthesize_error=None,
        on_summarize=None,
    ):
        self.transcript = transcript
        self.summary = summary
        self.fail_paths = set(fail_paths)
        self.transcribe_delay = transcribe_delay
        self.summarize_error = summarize_error
        self.synthesize_error = synthesize_error
        self.on_summarize = on_summarize
        self.transcribe_calls = []
        self.summarize_calls = []
        self.synthesize_calls = []
        self.settings_seen = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def transcribe(self, audio_path, settings, cancel_event=None):
        with self._lock:
            self.transcribe_calls.append(audio_path)
            self.settings_seen.append(settings)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.transcribe_delay:
                time.sleep(self.transcribe_delay)
            if os.path.basename(audio_path) in self.fail_paths:
                raise RuntimeError(f"provider rejected {os.path.basename(audio_path)}")
            if callable(self.transcript):
                return self.transcript(audio_path)
            return self.transcript
        finally:
            with self._lock:
                self.in_flight -= 1

    def summarize(self, text, settings, cancel_event=None):
        self.summarize_calls.append(text)
        self.settings_seen.append(settings)
        if self.on_summarize is not None:
            self.on_summarize()
        if self.summarize_error is not None:
            raise self.summarize_error
        return self.summary

    def synthesize(self, text, out_path, settings, cancel_event=None):
        self.synthesize_calls.append((text, out_path))
        self.settings_seen.append(settings)
        if self.synthesize_error is not None:
            raise self.synthesize_error
        with open(out_path, "wb") as fh:
            fh.write(TEST_SUMMARY_AUDIO)


class FakeDownloader:
    """Stand-in for ``downloader.download_to_file`` writing fixed bytes."""

    def __init__(self, content=TEST_AUDIO_BYTES, error=None):
        self.content = content
        self.error = error
        self.calls = []

    def __call__(self, url, out_path, **kwargs):
        self.calls.append((url, out_path, kwargs))
        if self.error is not None:
            raise self.error
        with open(out_path, "wb") as fh:
            fh.write(self.content)
        return len(self.content)


class FakeChunker:
    """Stand-in for ``AudioChunker`` that writes ``count`` chunk files without ffmpeg."""

    def __init__(self, count=1, span_seconds=60.0, overlap_seconds=1.0):
        self.count = count
        self.span_seconds = span_seconds
        self.overlap_seconds = overlap_seconds
        self.calls = []

    def split(self, audio_path, work_dir, cancel_event=None):
        self.calls.append(audio_path)
        chunks = []
        for index in range(self.count):
            path = os.path.join(work_dir, f"chunk_{index:03d}.mp3")
            with open(path, "wb") as fh:
                fh.write(TEST_AUDIO_BYTES)
            start = max(0.0, index * self.span_seconds - (self.overlap_seconds if index else 0))
            chunks.append(
                AudioChunk(index, start, self.span_seconds, self.overlap_seconds, path)
            )
        return chunks


class MockHTTPResponse:
    """Simple mock for streamed HTTP responses."""

    def __init__(self, *, url="", status_code=200, headers=None, chunks=None):
        self.url = url
        self.status_code = status_code
        self.headers = headers or {}
        self._chunks = chunks if chunks is not None else []
        self.closed = False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error for url: {self.url}")

    def iter_content(self, chunk_size=1):
        for chunk in self._chunks:
            if isinstance(chunk, Exception):
                raise chunk
            yield chunk

    def close(self):
        self.closed = True


def create_media_response(media_bytes, url=TEST_EPISODE_URL, content_type=TEST_MEDIA_TYPE_MP3):
    """Create MockHTTPResponse for an audio file."""
    headers = {"Content-Length": str(len(media_bytes))}
    if content_type is not None:
        headers["Content-Type"] = content_type
    return MockHTTPResponse(url=url, headers=headers, chunks=[media_bytes])


def pytest_collection_modifyitems(config, items):
    """Fail fast when an explicit ``-m integration`` run collects nothing."""
    marker_expr = config.getoption("-m", default=None)
    if marker_expr == "integration":
        if not [item for item in items if item.get_closest_marker("integration")]:
            pytest.fail(
                "ERROR: Running with -m integration but no integration tests collected! "
                "Check that tests carry @pytest.mark.integration."
            )
