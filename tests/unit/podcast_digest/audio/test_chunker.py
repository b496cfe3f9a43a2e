"""Unit tests for podcast_digest.audio.chunker."""

from __future__ import annotations

import math
import os
import subprocess
import threading
from unittest.mock import MagicMock, patch

import pytest

from podcast_digest.audio.chunker import AudioChunker, probe_duration
from podcast_digest.exceptions import CancelledError, TranscriptionError

MIB = 1024 * 1024


def _assert_contiguous(chunks, duration, overlap):
    assert chunks[0].start_offset_seconds == 0.0
    for previous, current in zip(chunks, chunks[1:]):
        assert current.sequence_index == previous.sequence_index + 1
        assert current.start_offset_seconds == pytest.approx(
            previous.end_offset_seconds - overlap
        )
    assert chunks[-1].end_offset_seconds == pytest.approx(duration)


@pytest.mark.unit
class TestChunkPlan:
    """Tests for AudioChunker.plan (pure arithmetic, no files)."""

    def test_small_file_is_single_chunk(self):
        chunker = AudioChunker()
        chunks = chunker.plan(1 * MIB)
        assert len(chunks) == 1
        assert chunks[0].sequence_index == 0
        assert chunks[0].start_offset_seconds == 0.0
        assert chunks[0].duration_seconds == pytest.approx(chunker.estimate_duration(1 * MIB))

    def test_file_at_threshold_is_single_chunk(self):
        chunks = AudioChunker().plan(5 * MIB)
        assert len(chunks) == 1

    def test_thirty_megabyte_file_yields_at_least_five_chunks(self):
        chunker = AudioChunker()
        size = 30 * MIB
        duration = chunker.estimate_duration(size)
        chunks = chunker.plan(size)

        span = chunker.chunk_span(size, duration)
        assert span == 294
        assert len(chunks) == math.ceil(duration / span) == 7
        _assert_contiguous(chunks, duration, overlap=1)

    def test_chunk_durations_within_bounds(self):
        chunker = AudioChunker()
        chunks = chunker.plan(30 * MIB)
        for chunk in chunks[:-1]:
            assert 60 <= chunk.duration_seconds <= 600 + 1
        assert all(chunk.overlap_seconds == 1 for chunk in chunks)

    def test_span_clamped_to_maximum(self):
        chunker = AudioChunker()
        chunks = chunker.plan(6 * MIB, duration_seconds=7200)
        assert chunker.chunk_span(6 * MIB, 7200) == 600
        assert len(chunks) == 12
        _assert_contiguous(chunks, 7200, overlap=1)

    def test_span_clamped_to_minimum(self):
        chunker = AudioChunker()
        chunks = chunker.plan(600 * MIB, duration_seconds=600)
        assert chunker.chunk_span(600 * MIB, 600) == 60
        assert len(chunks) == 10

    def test_short_audio_is_single_chunk_even_when_large(self):
        chunks = AudioChunker().plan(30 * MIB, duration_seconds=45)
        assert len(chunks) == 1
        assert chunks[0].duration_seconds == 45

    def test_known_duration_overrides_estimate(self):
        chunker = AudioChunker()
        chunks = chunker.plan(30 * MIB, duration_seconds=3000)
        assert chunks[-1].end_offset_seconds == pytest.approx(3000)

    def test_negative_size_rejected(self):
        with pytest.raises(ValueError):
            AudioChunker().plan(-1)

    def test_invalid_bounds_rejected(self):
        with pytest.raises(ValueError):
            AudioChunker(min_chunk_seconds=600, max_chunk_seconds=60)


@pytest.mark.unit
class TestChunkSplit:
    """Tests for AudioChunker.split with ffmpeg mocked out."""

    def _chunker(self):
        # 1000 bytes per second, 1000-byte threshold: a 5000-byte file is 5 one-second chunks
        return AudioChunker(
            max_file_bytes=1000,
            min_chunk_seconds=1,
            max_chunk_seconds=10,
            overlap_seconds=0,
            nominal_bitrate_bps=8000,
            use_ffprobe=False,
        )

    def _source(self, tmp_path, size):
        path = tmp_path / "source.mp3"
        path.write_bytes(b"\0" * size)
        return str(path)

    def test_single_chunk_reuses_source_without_ffmpeg(self, tmp_path):
        source = self._source(tmp_path, 500)
        with patch("podcast_digest.audio.chunker.subprocess.run") as mock_run:
            chunks = self._chunker().split(source, str(tmp_path))
        mock_run.assert_not_called()
        assert len(chunks) == 1
        assert chunks[0].path == source

    def test_missing_ffmpeg_fails_transcription(self, tmp_path):
        source = self._source(tmp_path, 5000)
        with patch(
            "podcast_digest.audio.chunker._check_ffmpeg_available", return_value=False
        ):
            with pytest.raises(TranscriptionError, match="ffmpeg"):
                self._chunker().split(source, str(tmp_path))

    def test_extracts_each_chunk(self, tmp_path):
        source = self._source(tmp_path, 5000)

        def fake_run(cmd, **kwargs):
            with open(cmd[-1], "wb") as fh:
                fh.write(b"chunk")
            return MagicMock(returncode=0)

        with patch(
            "podcast_digest.audio.chunker._check_ffmpeg_available", return_value=True
        ), patch("podcast_digest.audio.chunker.subprocess.run", side_effect=fake_run) as run:
            chunks = self._chunker().split(source, str(tmp_path))

        assert [c.sequence_index for c in chunks] == [0, 1, 2, 3, 4]
        assert [os.path.basename(c.path) for c in chunks] == [
            "chunk_000.mp3",
            "chunk_001.mp3",
            "chunk_002.mp3",
            "chunk_003.mp3",
            "chunk_004.mp3",
        ]
        first_cmd = run.call_args_list[1].args[0]
        assert first_cmd[:2] == ["ffmpeg", "-i"]
        assert first_cmd[first_cmd.index("-ss") + 1] == "1.000"
        assert "copy" in first_cmd

    def test_ffmpeg_failure_reports_chunk(self, tmp_path):
        source = self._source(tmp_path, 5000)
        error = subprocess.CalledProcessError(1, ["ffmpeg"], stderr="Invalid data found")
        with patch(
            "podcast_digest.audio.chunker._check_ffmpeg_available", return_value=True
        ), patch("podcast_digest.audio.chunker.subprocess.run", side_effect=error):
            with pytest.raises(TranscriptionError) as exc_info:
                self._chunker().split(source, str(tmp_path))
        assert exc_info.value.failed_chunks == (0,)
        assert "Invalid data found" in str(exc_info.value)

    def test_cancelled_before_extraction(self, tmp_path):
        source = self._source(tmp_path, 5000)
        cancel = threading.Event()
        cancel.set()
        with patch(
            "podcast_digest.audio.chunker._check_ffmpeg_available", return_value=True
        ), patch("podcast_digest.audio.chunker.subprocess.run") as run:
            with pytest.raises(CancelledError):
                self._chunker().split(source, str(tmp_path), cancel)
        run.assert_not_called()


@pytest.mark.unit
class TestProbeDuration:
    """Tests for probe_duration."""

    def test_returns_none_without_ffprobe(self):
        with patch("podcast_digest.audio.chunker._check_ffprobe_available", return_value=False):
            assert probe_duration("/tmp/x.mp3") is None

    def test_parses_ffprobe_output(self):
        with patch(
            "podcast_digest.audio.chunker._check_ffprobe_available", return_value=True
        ), patch(
            "podcast_digest.audio.chunker.subprocess.run",
            return_value=MagicMock(stdout="123.4\n"),
        ):
            assert probe_duration("/tmp/x.mp3") == pytest.approx(123.4)

    def test_unreadable_output_returns_none(self):
        with patch(
            "podcast_digest.audio.chunker._check_ffprobe_available", return_value=True
        ), patch(
            "podcast_digest.audio.chunker.subprocess.run",
            return_value=MagicMock(stdout="N/A\n"),
        ):
            assert probe_duration("/tmp/x.mp3") is None
