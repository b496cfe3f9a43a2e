"""AI providers for transcription, summarization and speech synthesis."""

from .base import AIProvider, SummarizationProvider, SynthesisProvider, TranscriptionProvider
from .factory import create_provider
from .mock_provider import MockProvider
from .openai_provider import OpenAIProvider

__all__ = [
    "AIProvider",
    "MockProvider",
    "OpenAIProvider",
    "SummarizationProvider",
    "SynthesisProvider",
    "TranscriptionProvider",
    "create_provider",
]
