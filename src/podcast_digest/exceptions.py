"""Custom exceptions for the podcast digest pipeline.

Exception Hierarchy:
    PipelineError (base)
    ├── SourceFetchError - Network, timeout, non-2xx or non-audio content
    ├── StorageError - I/O failure against an artifact or metadata store
    │   └── ArtifactNotFoundError - A blob that was expected is missing
    ├── TranscriptionError - Any chunk failed; the whole batch fails
    ├── SummarizationError
    ├── SynthesisError
    └── CancelledError - The caller cancelled the run
    ProviderConfigError - A provider could not be constructed
"""

from typing import Optional, Sequence


class PipelineError(Exception):
    """Base exception for every failure the pipeline reports.

    Attributes:
        message: Human-readable error message
        stage: Pipeline stage token the error belongs to, if known
        suggestion: Optional hint for resolving the error
    """

    default_stage: Optional[str] = None

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        self.message = message
        self.stage = stage or self.default_stage
        self.suggestion = suggestion
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the full error message with stage and suggestion."""
        parts = [f"[{self.stage}] {self.message}" if self.stage else self.message]
        if self.suggestion:
            parts.append(f"Suggestion: {self.suggestion}")
        return " ".join(parts)

    def user_message(self) -> str:
        """Message for progress events, without the stage prefix."""
        if self.suggestion:
            return f"{self.message} Suggestion: {self.suggestion}"
        return self.message


class SourceFetchError(PipelineError):
    """Raised when the source audio cannot be downloaded.

    Attributes:
        status_code: HTTP status code when a non-2xx response caused the failure
    """

    default_stage = "downloading"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        self.status_code = status_code
        super().__init__(message, suggestion=suggestion)


class StorageError(PipelineError):
    """Raised on I/O failure against an ArtifactStore or MetadataStore."""


class ArtifactNotFoundError(StorageError):
    """Raised when a blob does not exist in its container."""

    def __init__(self, container: str, name: str) -> None:
        self.container = container
        self.name = name
        super().__init__(f"Artifact not found: {container}/{name}")


class TranscriptionError(PipelineError):
    """Raised when transcription fails.

    Attributes:
        failed_chunks: Sequence indexes of the chunks that failed
    """

    default_stage = "transcribing"

    def __init__(
        self,
        message: str,
        failed_chunks: Sequence[int] = (),
        suggestion: Optional[str] = None,
    ) -> None:
        self.failed_chunks = tuple(sorted(failed_chunks))
        super().__init__(message, suggestion=suggestion)


class SummarizationError(PipelineError):
    """Raised when the summarization capability fails."""

    default_stage = "summarizing"


class SynthesisError(PipelineError):
    """Raised when speech synthesis fails."""

    default_stage = "generating-speech"


class CancelledError(PipelineError):
    """Raised when the caller cancels a run.

    This is not a failure of the pipeline itself.
    """

    def __init__(self, message: str = "Processing was cancelled", stage: Optional[str] = None):
        super().__init__(message, stage=stage)


class ProviderConfigError(Exception):
    """Raised when a provider is misconfigured (missing API key, unknown provider).

    Attributes:
        provider: Name of the provider
        config_key: Config field that needs attention, if any
    """

    def __init__(
        self,
        message: str,
        provider: str = "Unknown",
        config_key: Optional[str] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        self.provider = provider
        self.config_key = config_key
        self.suggestion = suggestion
        if config_key and config_key not in message:
            message = f"{message} (config key: {config_key})"
        self.message = message
        parts = [f"[{provider}] {message}"]
        if suggestion:
            parts.append(f"Suggestion: {suggestion}")
        super().__init__(" ".join(parts))
