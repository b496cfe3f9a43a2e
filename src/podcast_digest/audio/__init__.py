"""Audio chunking and bounded-concurrency transcription."""

from .chunker import AudioChunker, probe_duration
from .transcriber import BoundedTranscriber

__all__ = ["AudioChunker", "BoundedTranscriber", "probe_duration"]
