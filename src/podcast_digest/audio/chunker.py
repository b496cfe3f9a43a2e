"""Split oversized source audio into overlapping, time-bounded chunks.

Files at or below the size threshold are transcribed whole. Larger files are
cut with ffmpeg into consecutive slices whose stride is derived from the
size-to-threshold ratio and clamped to ``[min_chunk_seconds, max_chunk_seconds]``.
Every slice after the first starts ``overlap_seconds`` early so words that
straddle a cut are heard twice rather than lost.
"""

from __future__ import annotations

import logging
import math
import os
import shutil
import subprocess
import threading
from typing import List, Optional

from .. import config_constants
from ..exceptions import TranscriptionError
from ..models import AudioChunk
from ..utils.cancellation import raise_if_cancelled

logger = logging.getLogger(__name__)

CHUNK_FILE_TEMPLATE = "chunk_{index:03d}.mp3"
FFPROBE_TIMEOUT_SECONDS = 30


def _check_ffmpeg_available() -> bool:
    return shutil.which("ffmpeg") is not None


def _check_ffprobe_available() -> bool:
    return shutil.which("ffprobe") is not None


def probe_duration(audio_path: str) -> Optional[float]:
    """Return the duration of ``audio_path`` in seconds using ffprobe.

    Returns None when ffprobe is missing or cannot read the file.
    """
    if not _check_ffprobe_available():
        logger.debug("ffprobe not available, falling back to bitrate estimate")
        return None
    cmd = [
        "ffprobe",
        "-v",
        "error",
        "-show_entries",
        "format=duration",
        "-of",
        "default=noprint_wrappers=1:nokey=1",
        audio_path,
    ]
    try:
        result = subprocess.run(
            cmd, capture_output=True, text=True, timeout=FFPROBE_TIMEOUT_SECONDS, check=True
        )
        duration = float(result.stdout.strip())
    except (
        subprocess.CalledProcessError,
        subprocess.TimeoutExpired,
        FileNotFoundError,
        ValueError,
    ) as exc:
        logger.debug("ffprobe could not read duration of %s: %s", audio_path, exc)
        return None
    if duration <= 0 or math.isnan(duration) or math.isinf(duration):
        return None
    return duration


class AudioChunker:
    """Plan and extract transcription chunks for one source file."""

    def __init__(
        self,
        max_file_bytes: int = config_constants.DEFAULT_MAX_AUDIO_FILE_BYTES,
        min_chunk_seconds: int = config_constants.DEFAULT_MIN_CHUNK_SECONDS,
        max_chunk_seconds: int = config_constants.DEFAULT_MAX_CHUNK_SECONDS,
        overlap_seconds: int = config_constants.DEFAULT_CHUNK_OVERLAP_SECONDS,
        nominal_bitrate_bps: int = config_constants.DEFAULT_NOMINAL_BITRATE_BPS,
        safety_factor: float = config_constants.DEFAULT_CHUNK_SAFETY_FACTOR,
        use_ffprobe: bool = True,
        ffmpeg_timeout: int = config_constants.DEFAULT_FFMPEG_TIMEOUT_SECONDS,
    ) -> None:
        if min_chunk_seconds <= 0 or max_chunk_seconds < min_chunk_seconds:
            raise ValueError(
                f"Invalid chunk bounds: min={min_chunk_seconds}, max={max_chunk_seconds}"
            )
        self.max_file_bytes = max_file_bytes
        self.min_chunk_seconds = min_chunk_seconds
        self.max_chunk_seconds = max_chunk_seconds
        self.overlap_seconds = overlap_seconds
        self.nominal_bitrate_bps = nominal_bitrate_bps
        self.safety_factor = safety_factor
        self.use_ffprobe = use_ffprobe
        self.ffmpeg_timeout = ffmpeg_timeout

    @classmethod
    def from_config(cls, cfg) -> "AudioChunker":
        return cls(
            max_file_bytes=cfg.max_audio_file_bytes,
            min_chunk_seconds=cfg.min_chunk_seconds,
            max_chunk_seconds=cfg.max_chunk_seconds,
            overlap_seconds=cfg.chunk_overlap_seconds,
            nominal_bitrate_bps=cfg.nominal_bitrate_bps,
            safety_factor=cfg.chunk_safety_factor,
            use_ffprobe=cfg.probe_duration,
            ffmpeg_timeout=cfg.ffmpeg_timeout,
        )

    def estimate_duration(self, size_bytes: int) -> float:
        """Estimate duration in seconds from file size and the nominal bitrate."""
        return size_bytes * 8 / self.nominal_bitrate_bps

    def chunk_span(self, size_bytes: int, duration_seconds: float) -> int:
        """Seconds of new audio per chunk, clamped to the configured bounds."""
        raw = self.max_file_bytes / size_bytes * duration_seconds * self.safety_factor
        return int(min(max(raw, self.min_chunk_seconds), self.max_chunk_seconds))

    def plan(self, size_bytes: int, duration_seconds: Optional[float] = None) -> List[AudioChunk]:
        """Compute chunk boundaries without touching any file.

        Args:
            size_bytes: Size of the source file.
            duration_seconds: Known duration; estimated from size when None.

        Returns:
            Chunks ordered by ``sequence_index``. A file at or below the size
            threshold, or one shorter than ``min_chunk_seconds``, yields one chunk.
        """
        if size_bytes < 0:
            raise ValueError(f"size_bytes must be non-negative, got {size_bytes}")
        duration = duration_seconds if duration_seconds else self.estimate_duration(size_bytes)

        if size_bytes <= self.max_file_bytes or duration <= self.min_chunk_seconds:
            return [AudioChunk(0, 0.0, duration, self.overlap_seconds)]

        span = self.chunk_span(size_bytes, duration)
        count = math.ceil(duration / span)
        chunks: List[AudioChunk] = []
        for index in range(count):
            nominal_start = index * span
            lead_in = self.overlap_seconds if index > 0 else 0
            start = max(0.0, float(nominal_start - lead_in))
            end = min(duration, float(nominal_start + span))
            chunks.append(AudioChunk(index, start, end - start, self.overlap_seconds))
        logger.debug(
            "Planned %d chunks for %d bytes (duration=%.1fs, span=%ds)",
            count,
            size_bytes,
            duration,
            span,
        )
        return chunks

    def split(
        self,
        audio_path: str,
        work_dir: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[AudioChunk]:
        """Plan chunks for ``audio_path`` and extract each one into ``work_dir``.

        A single-chunk plan reuses the source file without running ffmpeg.

        Raises:
            TranscriptionError: If ffmpeg is missing or fails on a chunk
            CancelledError: If ``cancel_event`` is set before a chunk is cut
        """
        size_bytes = os.path.getsize(audio_path)
        duration = probe_duration(audio_path) if self.use_ffprobe else None
        chunks = self.plan(size_bytes, duration)
        if len(chunks) == 1:
            return [
                AudioChunk(0, 0.0, chunks[0].duration_seconds, self.overlap_seconds, audio_path)
            ]

        if not _check_ffmpeg_available():
            raise TranscriptionError(
                f"Audio is {size_bytes} bytes and must be split, but ffmpeg is not installed",
                suggestion="Install ffmpeg or raise max_audio_file_bytes",
            )

        logger.info("Splitting %s into %d chunks", os.path.basename(audio_path), len(chunks))
        extracted: List[AudioChunk] = []
        for chunk in chunks:
            raise_if_cancelled(cancel_event, "transcribing")
            file_name = CHUNK_FILE_TEMPLATE.format(index=chunk.sequence_index)
            out_path = os.path.join(work_dir, file_name)
            self._extract(audio_path, chunk, out_path)
            extracted.append(
                AudioChunk(
                    chunk.sequence_index,
                    chunk.start_offset_seconds,
                    chunk.duration_seconds,
                    chunk.overlap_seconds,
                    out_path,
                )
            )
        return extracted

    def _extract(self, audio_path: str, chunk: AudioChunk, out_path: str) -> None:
        cmd = [
            "ffmpeg",
            "-i",
            audio_path,
            "-ss",
            f"{chunk.start_offset_seconds:.3f}",
            "-t",
            f"{chunk.duration_seconds:.3f}",
            "-acodec",
            "copy",
            "-y",
            out_path,
        ]
        logger.debug(
            "Extracting chunk %d (%.1fs + %.1fs)",
            chunk.sequence_index,
            chunk.start_offset_seconds,
            chunk.duration_seconds,
        )
        try:
            subprocess.run(
                cmd, capture_output=True, text=True, timeout=self.ffmpeg_timeout, check=True
            )
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or "").strip().splitlines()
            detail = stderr[-1] if stderr else f"exit code {exc.returncode}"
            raise TranscriptionError(
                f"ffmpeg failed to extract chunk {chunk.sequence_index}: {detail}",
                failed_chunks=[chunk.sequence_index],
            ) from exc
        except (subprocess.TimeoutExpired, OSError) as exc:
            raise TranscriptionError(
                f"ffmpeg failed to extract chunk {chunk.sequence_index}: {exc}",
                failed_chunks=[chunk.sequence_index],
            ) from exc
        if not os.path.exists(out_path) or os.path.getsize(out_path) == 0:
            raise TranscriptionError(
                f"ffmpeg produced no audio for chunk {chunk.sequence_index}",
                failed_chunks=[chunk.sequence_index],
            )
