"""podcast_digest - turn a podcast episode into a short spoken summary.

The pipeline downloads the episode audio, transcribes it in bounded parallel
chunks, summarizes the transcript and renders the summary as speech, caching
every intermediate artifact by a key derived from the source URL.

Example:
    >>> from podcast_digest import Config, service
    >>> cfg = Config(provider="mock", storage_root="./digest_storage")
    >>> result = service.run(cfg, "https://example.com/episode.mp3")
    >>> result.success
    True
"""

from __future__ import annotations

__version__ = "0.1.0"

from .config import Config, ProviderOverrides, ProviderSettings, load_config_file
from .exceptions import (
    ArtifactNotFoundError,
    CancelledError,
    PipelineError,
    ProviderConfigError,
    SourceFetchError,
    StorageError,
    SummarizationError,
    SynthesisError,
    TranscriptionError,
)
from .models import AudioChunk, EpisodeRecord, ProcessResult, SummaryRecord
from .workflow import PipelineOrchestrator, ProcessingStatus, Stage

__all__ = [
    "ArtifactNotFoundError",
    "AudioChunk",
    "CancelledError",
    "Config",
    "EpisodeRecord",
    "PipelineError",
    "PipelineOrchestrator",
    "ProcessResult",
    "ProcessingStatus",
    "ProviderConfigError",
    "ProviderOverrides",
    "ProviderSettings",
    "SourceFetchError",
    "Stage",
    "StorageError",
    "SummarizationError",
    "SummaryRecord",
    "SynthesisError",
    "TranscriptionError",
    "__version__",
    "load_config_file",
]
