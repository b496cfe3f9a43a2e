#!/usr/bin/env python3
"""Tests for HTTP session configuration and source audio download."""

import os
import shutil
import sys
import tempfile
import threading
import unittest
from contextlib import contextmanager
from pathlib import Path
from unittest.mock import Mock, patch

import pytest
import requests

from podcast_digest import downloader, progress
from podcast_digest.exceptions import CancelledError, SourceFetchError

# Add tests directory to path for conftest import
tests_dir = Path(__file__).resolve().parents[2]
if str(tests_dir) not in sys.path:
    sys.path.insert(0, str(tests_dir))

from conftest import (  # noqa: E402
    create_media_response,
    MockHTTPResponse,
    TEST_AUDIO_BYTES,
    TEST_EPISODE_URL,
)

pytestmark = [pytest.mark.unit]


class TestHTTPSessionConfiguration(unittest.TestCase):
    """Tests for HTTP session retry configuration."""

    def test_configure_http_session_mounts_retry_adapters(self):
        session = requests.Session()
        try:
            downloader._configure_http_session(session, retry_total=4, backoff_factor=0.25)
            for prefix in ("https://", "http://"):
                adapter = session.get_adapter(prefix)
                self.assertIsInstance(adapter, requests.adapters.HTTPAdapter)
                retry = adapter.max_retries
                self.assertEqual(retry.total, 4)
                self.assertEqual(retry.backoff_factor, 0.25)
                self.assertEqual(retry.allowed_methods, downloader.HTTP_RETRY_ALLOWED_METHODS)
                self.assertEqual(
                    set(retry.status_forcelist), set(downloader.HTTP_RETRY_STATUS_CODES)
                )
                self.assertFalse(retry.raise_on_status)
        finally:
            session.close()

    def test_thread_session_reused_for_same_settings(self):
        first = downloader._get_thread_request_session(2, 0.1)
        self.assertIs(downloader._get_thread_request_session(2, 0.1), first)
        self.assertIsNot(downloader._get_thread_request_session(1, 0.1), first)

    def test_sessions_are_per_thread(self):
        main_session = downloader._get_thread_request_session()
        seen = []
        worker = threading.Thread(
            target=lambda: seen.append(downloader._get_thread_request_session())
        )
        worker.start()
        worker.join()
        self.assertIsNot(seen[0], main_session)


class TestContentTypeCheck(unittest.TestCase):
    def test_audio_and_binary_accepted(self):
        for value in (
            "audio/mpeg",
            "audio/mp4; charset=binary",
            "application/octet-stream",
            "",
            None,
        ):
            self.assertTrue(downloader.is_audio_content_type(value), value)

    def test_other_types_rejected(self):
        for value in ("text/html; charset=utf-8", "application/json", "video/mp4"):
            self.assertFalse(downloader.is_audio_content_type(value), value)


class TestNormalizeURL(unittest.TestCase):
    def test_spaces_encoded(self):
        self.assertEqual(
            downloader.normalize_url("https://example.com/my episode.mp3"),
            "https://example.com/my%20episode.mp3",
        )

    def test_encoded_url_unchanged(self):
        url = "https://example.com/my%20episode.mp3?x=1"
        self.assertEqual(downloader.normalize_url(url), url)


class _CancellingResponse(MockHTTPResponse):
    """Sets the cancel event after yielding the first chunk."""

    def __init__(self, cancel_event, **kwargs):
        super().__init__(**kwargs)
        self.cancel_event = cancel_event

    def iter_content(self, chunk_size=1):
        for chunk in self._chunks:
            yield chunk
            self.cancel_event.set()


class TestDownloadToFile(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.out_path = os.path.join(self.temp_dir, "nested", "episode.mp3")
        self.session = Mock()
        patcher = patch.object(
            downloader, "_get_thread_request_session", return_value=self.session
        )
        self.get_session = patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_streams_body_to_file(self):
        resp = create_media_response(TEST_AUDIO_BYTES)
        self.session.get.return_value = resp

        size = downloader.download_to_file(
            TEST_EPISODE_URL, self.out_path, user_agent="agent/1.0", timeout=7, retry_total=2
        )

        self.assertEqual(size, len(TEST_AUDIO_BYTES))
        with open(self.out_path, "rb") as fh:
            self.assertEqual(fh.read(), TEST_AUDIO_BYTES)
        self.session.get.assert_called_once_with(
            TEST_EPISODE_URL, headers={"User-Agent": "agent/1.0"}, timeout=7, stream=True
        )
        self.get_session.assert_called_once_with(
            2, downloader.config_constants.DEFAULT_HTTP_BACKOFF_FACTOR
        )
        self.assertTrue(resp.closed)

    def test_non_2xx_response(self):
        resp = MockHTTPResponse(url=TEST_EPISODE_URL, status_code=404)
        self.session.get.return_value = resp
        with self.assertRaises(SourceFetchError) as ctx:
            downloader.download_to_file(TEST_EPISODE_URL, self.out_path)
        self.assertEqual(ctx.exception.status_code, 404)
        self.assertIn("HTTP 404", ctx.exception.user_message())
        self.assertFalse(os.path.exists(self.out_path))
        self.assertTrue(resp.closed)

    def test_non_audio_content_type(self):
        self.session.get.return_value = create_media_response(
            b"<html></html>", content_type="text/html"
        )
        with self.assertRaises(SourceFetchError) as ctx:
            downloader.download_to_file(TEST_EPISODE_URL, self.out_path)
        self.assertIn("text/html", ctx.exception.user_message())
        self.assertFalse(os.path.exists(self.out_path))

    def test_empty_body(self):
        self.session.get.return_value = MockHTTPResponse(
            url=TEST_EPISODE_URL, headers={"Content-Type": "audio/mpeg"}, chunks=[]
        )
        with self.assertRaises(SourceFetchError) as ctx:
            downloader.download_to_file(TEST_EPISODE_URL, self.out_path)
        self.assertIn("empty body", str(ctx.exception))
        self.assertFalse(os.path.exists(self.out_path))

    def test_connection_error(self):
        self.session.get.side_effect = requests.ConnectionError("connection refused")
        with self.assertRaises(SourceFetchError) as ctx:
            downloader.download_to_file(TEST_EPISODE_URL, self.out_path)
        self.assertIn("connection refused", str(ctx.exception))

    def test_timeout(self):
        self.session.get.side_effect = requests.Timeout("read timed out")
        with self.assertRaises(SourceFetchError) as ctx:
            downloader.download_to_file(TEST_EPISODE_URL, self.out_path)
        self.assertIn("Timed out", str(ctx.exception))

    def test_read_error_removes_partial_file(self):
        self.session.get.return_value = MockHTTPResponse(
            url=TEST_EPISODE_URL,
            headers={"Content-Type": "audio/mpeg"},
            chunks=[b"partial", requests.ConnectionError("reset by peer")],
        )
        with self.assertRaises(SourceFetchError):
            downloader.download_to_file(TEST_EPISODE_URL, self.out_path)
        self.assertFalse(os.path.exists(self.out_path))

    def test_cancel_during_transfer_removes_partial_file(self):
        cancel = threading.Event()
        resp = _CancellingResponse(
            cancel,
            url=TEST_EPISODE_URL,
            headers={"Content-Type": "audio/mpeg"},
            chunks=[b"one", b"two", b"three"],
        )
        self.session.get.return_value = resp
        with self.assertRaises(CancelledError):
            downloader.download_to_file(TEST_EPISODE_URL, self.out_path, cancel_event=cancel)
        self.assertFalse(os.path.exists(self.out_path))
        self.assertTrue(resp.closed)

    def test_cancel_before_request(self):
        cancel = threading.Event()
        cancel.set()
        with self.assertRaises(CancelledError):
            downloader.download_to_file(TEST_EPISODE_URL, self.out_path, cancel_event=cancel)
        self.session.get.assert_not_called()

    def test_progress_reporter_receives_bytes(self):
        updates = []
        totals = []

        @contextmanager
        def factory(total, description):
            totals.append(total)
            yield Mock(update=updates.append)

        self.session.get.return_value = MockHTTPResponse(
            url=TEST_EPISODE_URL,
            headers={"Content-Type": "audio/mpeg", "Content-Length": "6"},
            chunks=[b"abc", b"", b"def"],
        )
        progress.set_progress_factory(factory)
        try:
            downloader.download_to_file(TEST_EPISODE_URL, self.out_path)
        finally:
            progress.set_progress_factory(None)
        self.assertEqual(totals, [6])
        self.assertEqual(updates, [3, 3])
