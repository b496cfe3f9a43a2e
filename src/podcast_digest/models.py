from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EpisodeRecord(BaseModel):
    """Metadata for a downloaded source audio file.

    Created when a source download completes and never mutated afterwards. The
    record is deleted only when the consistency check finds its blob missing.

    Attributes:
        cache_key: 32-character key derived from the source locator.
        original_locator: Source URL as given by the caller.
        artifact_path: Locator returned by the ArtifactStore for ``K.mp3``.
        downloaded_at: UTC timestamp of the completed download.
        size_bytes: Size of the stored source audio.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    cache_key: str
    original_locator: str = Field(max_length=2048)
    artifact_path: str
    downloaded_at: datetime = Field(default_factory=_utcnow)
    size_bytes: int = Field(ge=0)


class SummaryRecord(BaseModel):
    """Completion record for a processed episode.

    Related to its EpisodeRecord only by ``episode_key``; deleting the episode
    deletes this record as well.

    Attributes:
        episode_key: Cache key of the owning EpisodeRecord.
        transcript_artifact_path: Locator of ``K_transcript.txt``.
        summary_text_artifact_path: Locator of ``K_summary.txt``.
        summary_audio_artifact_path: Locator of ``K_summary.mp3``.
        transcript_word_count: Whitespace-separated word count of the transcript.
        summary_word_count: Whitespace-separated word count of the summary.
        processed_at: UTC timestamp of the successful synthesis.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    episode_key: str
    transcript_artifact_path: str
    summary_text_artifact_path: str
    summary_audio_artifact_path: str
    transcript_word_count: int = Field(ge=0)
    summary_word_count: int = Field(ge=0)
    processed_at: datetime = Field(default_factory=_utcnow)


@dataclass(frozen=True)
class AudioChunk:
    """A time slice of the source audio, transcribed independently.

    Attributes:
        sequence_index: 0-based position; defines reassembly order.
        start_offset_seconds: Start of the slice in the source audio.
        duration_seconds: Length of the slice, including the lead-in overlap.
        overlap_seconds: Configured overlap with the previous chunk's tail.
        path: File holding the slice once extracted, None while only planned.
    """

    sequence_index: int
    start_offset_seconds: float
    duration_seconds: float
    overlap_seconds: float
    path: Optional[str] = None

    @property
    def end_offset_seconds(self) -> float:
        return self.start_offset_seconds + self.duration_seconds


@dataclass
class ProcessResult:
    """Final outcome of one pipeline run in blocking mode.

    Attributes:
        success: True when the run reached the complete stage.
        message: Human-readable outcome.
        episode_key: Cache key for the locator.
        was_cached: True when the source audio came from the cache.
        summary_was_cached: True when the whole result was a cache hit.
        summary_artifact_path: Locator of the summary audio in the ArtifactStore.
        local_summary_path: Local copy of the summary audio, if one was requested.
        summary_text: Summary text with leading and trailing punctuation trimmed.
        transcript_word_count: Word count of the transcript.
        summary_word_count: Word count of the summary.
        elapsed_seconds: Wall-clock duration of the run.
    """

    success: bool
    message: str
    episode_key: str
    was_cached: bool = False
    summary_was_cached: bool = False
    summary_artifact_path: Optional[str] = None
    local_summary_path: Optional[str] = None
    summary_text: Optional[str] = None
    transcript_word_count: int = 0
    summary_word_count: int = 0
    elapsed_seconds: float = 0.0
