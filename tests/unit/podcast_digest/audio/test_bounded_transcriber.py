#!/usr/bin/env python3
"""Unit tests for BoundedTranscriber."""

import os
import sys
import threading
import time
import unittest
from pathlib import Path

import pytest

from podcast_digest.audio.transcriber import BoundedTranscriber
from podcast_digest.config import ProviderSettings
from podcast_digest.exceptions import CancelledError, TranscriptionError
from podcast_digest.models import AudioChunk

# Add tests directory to path for conftest import
tests_dir = Path(__file__).resolve().parents[3]
if str(tests_dir) not in sys.path:
    sys.path.insert(0, str(tests_dir))

from conftest import FakeProvider  # noqa: E402

pytestmark = [pytest.mark.unit]


def _chunks(count):
    return [AudioChunk(i, i * 60.0, 60.0, 1.0, f"/work/chunk_{i:03d}.mp3") for i in range(count)]


def _by_path(path):
    return f"text-{os.path.basename(path)[6:9]}"


class TestBoundedTranscriber(unittest.TestCase):
    """Fan-out, ordering and failure semantics."""

    def setUp(self):
        self.settings = ProviderSettings()

    def _transcriber(self, provider, **kwargs):
        def transcribe(path):
            return provider.transcribe(path, self.settings)

        return BoundedTranscriber(transcribe, **kwargs)

    def test_joins_in_sequence_order(self):
        def slow_first(path):
            # Chunk 0 finishes last
            if path.endswith("000.mp3"):
                time.sleep(0.05)
            return _by_path(path)

        provider = FakeProvider(transcript=slow_first)
        result = self._transcriber(provider, concurrency=4).transcribe(_chunks(4))
        self.assertEqual(result, "text-000 text-001 text-002 text-003")

    def test_unordered_input_is_sorted(self):
        provider = FakeProvider(transcript=_by_path)
        chunks = list(reversed(_chunks(3)))
        result = self._transcriber(provider, concurrency=2).transcribe(chunks)
        self.assertEqual(result, "text-000 text-001 text-002")

    @pytest.mark.slow
    def test_concurrency_never_exceeds_ceiling(self):
        provider = FakeProvider(transcript=_by_path, transcribe_delay=0.02)
        self._transcriber(provider, concurrency=3).transcribe(_chunks(12))
        self.assertEqual(len(provider.transcribe_calls), 12)
        self.assertLessEqual(provider.max_in_flight, 3)
        self.assertGreaterEqual(provider.max_in_flight, 2)

    def test_concurrency_of_one_is_sequential(self):
        provider = FakeProvider(transcript=_by_path, transcribe_delay=0.01)
        self._transcriber(provider, concurrency=1).transcribe(_chunks(4))
        self.assertEqual(provider.max_in_flight, 1)

    def test_any_failure_fails_the_batch(self):
        provider = FakeProvider(transcript=_by_path, fail_paths={"chunk_002.mp3"})
        with self.assertRaises(TranscriptionError) as ctx:
            self._transcriber(provider, concurrency=2).transcribe(_chunks(4))
        self.assertIn(2, ctx.exception.failed_chunks)
        self.assertIn("chunk 2", str(ctx.exception))

    def test_failure_with_retry_recovers(self):
        attempts = {"count": 0}

        def flaky(path):
            if path.endswith("001.mp3"):
                attempts["count"] += 1
                if attempts["count"] == 1:
                    raise RuntimeError("rate limited")
            return _by_path(path)

        provider = FakeProvider(transcript=flaky)
        transcriber = self._transcriber(
            provider, concurrency=2, retry_attempts=2, retry_initial_delay=0.0
        )
        self.assertEqual(transcriber.transcribe(_chunks(3)), "text-000 text-001 text-002")
        self.assertEqual(attempts["count"], 2)

    def test_without_retry_a_failed_chunk_is_called_once(self):
        provider = FakeProvider(transcript=_by_path, fail_paths={"chunk_000.mp3"})
        with self.assertRaises(TranscriptionError):
            self._transcriber(provider, concurrency=1).transcribe(_chunks(1))
        self.assertEqual(provider.transcribe_calls, ["/work/chunk_000.mp3"])

    def test_cancel_before_start(self):
        provider = FakeProvider()
        cancel = threading.Event()
        cancel.set()
        with self.assertRaises(CancelledError):
            self._transcriber(provider).transcribe(_chunks(3), cancel)
        self.assertEqual(provider.transcribe_calls, [])

    def test_cancel_mid_batch_stops_remaining_chunks(self):
        cancel = threading.Event()

        def cancel_on_first(path):
            cancel.set()
            return _by_path(path)

        provider = FakeProvider(transcript=cancel_on_first)
        with self.assertRaises(CancelledError):
            self._transcriber(provider, concurrency=1).transcribe(_chunks(5), cancel)
        self.assertLess(len(provider.transcribe_calls), 5)

    def test_empty_chunk_list_rejected(self):
        with self.assertRaises(TranscriptionError):
            self._transcriber(FakeProvider()).transcribe([])

    def test_invalid_concurrency(self):
        with self.assertRaises(ValueError):
            BoundedTranscriber(lambda path: "", concurrency=0)
