"""Run configuration: the frozen ``Config`` model, env fallbacks and config file loading."""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from . import config_constants


def _is_test_environment() -> bool:
    """Check if we're running in a test environment."""
    if "pytest" in sys.modules or "PYTEST_CURRENT_TEST" in os.environ:
        return True
    if "unittest" in sys.modules:
        return True
    if os.environ.get("TESTING", "").lower() in ("1", "true", "yes"):
        return True
    return False


# Tests configure everything through Config objects and must never read a developer's .env
if not _is_test_environment():
    try:
        load_dotenv(override=False)
    except (PermissionError, OSError):
        pass

# Re-exported for convenience
DEFAULT_LOG_LEVEL = config_constants.DEFAULT_LOG_LEVEL
DEFAULT_TIMEOUT_SECONDS = config_constants.DEFAULT_TIMEOUT_SECONDS
DEFAULT_USER_AGENT = config_constants.DEFAULT_USER_AGENT
DEFAULT_TTS_FORMAT = config_constants.DEFAULT_TTS_FORMAT
VALID_LOG_LEVELS = config_constants.VALID_LOG_LEVELS
VALID_PROVIDERS = config_constants.VALID_PROVIDERS
VALID_STORAGE_BACKENDS = config_constants.VALID_STORAGE_BACKENDS
VALID_METADATA_BACKENDS = config_constants.VALID_METADATA_BACKENDS
VALID_TTS_FORMATS = config_constants.VALID_TTS_FORMATS

_ENV_FALLBACKS = {
    "openai_api_key": "OPENAI_API_KEY",
    "openai_api_base": "OPENAI_API_BASE",
    "storage_backend": "PODCAST_DIGEST_STORAGE_BACKEND",
    "storage_root": "PODCAST_DIGEST_STORAGE_ROOT",
    "gcs_bucket": "PODCAST_DIGEST_GCS_BUCKET",
}


def _normalize_tts_format(value: Any) -> str:
    if value is None:
        return DEFAULT_TTS_FORMAT
    normalized = str(value).strip().lower()
    if normalized not in VALID_TTS_FORMATS:
        return DEFAULT_TTS_FORMAT
    return normalized


class ProviderOverrides(BaseModel):
    """Per-call overrides for the AI provider.

    Every field is optional; unset fields fall back to the values derived from
    ``Config``. Instances are passed explicitly down the call chain.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    api_key: Optional[str] = None
    api_base: Optional[str] = None
    api_version: Optional[str] = None
    transcription_model: Optional[str] = None
    summary_model: Optional[str] = None
    tts_model: Optional[str] = None
    tts_voice: Optional[str] = None
    tts_speed: Optional[float] = Field(
        default=None,
        ge=config_constants.MIN_TTS_SPEED,
        le=config_constants.MAX_TTS_SPEED,
    )
    tts_format: Optional[str] = None

    @field_validator(
        "api_key",
        "api_base",
        "api_version",
        "transcription_model",
        "summary_model",
        "tts_model",
        "tts_voice",
        "tts_format",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        return str(value).strip() or None

    def has_any_override(self) -> bool:
        """Return True when at least one field is set."""
        return any(value is not None for value in self.model_dump().values())


class ProviderSettings(BaseModel):
    """Resolved provider settings used for a single pipeline run."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    api_key: Optional[str] = None
    api_base: Optional[str] = None
    api_version: Optional[str] = None
    transcription_model: str = config_constants.DEFAULT_OPENAI_TRANSCRIPTION_MODEL
    summary_model: str = config_constants.DEFAULT_OPENAI_SUMMARY_MODEL
    summary_temperature: float = config_constants.DEFAULT_OPENAI_SUMMARY_TEMPERATURE
    summary_target_words: int = config_constants.DEFAULT_SUMMARY_TARGET_WORDS
    summary_max_words: int = config_constants.DEFAULT_SUMMARY_MAX_WORDS
    tts_model: str = config_constants.DEFAULT_OPENAI_TTS_MODEL
    tts_voice: str = config_constants.DEFAULT_TTS_VOICE
    tts_speed: float = config_constants.DEFAULT_TTS_SPEED
    tts_format: str = DEFAULT_TTS_FORMAT

    @field_validator("tts_format", mode="before")
    @classmethod
    def _coerce_tts_format(cls, value: Any) -> str:
        return _normalize_tts_format(value)

    def merged_with(self, overrides: Optional[ProviderOverrides]) -> "ProviderSettings":
        """Return a copy with every set override applied on top of these settings."""
        if overrides is None or not overrides.has_any_override():
            return self
        updates = {k: v for k, v in overrides.model_dump().items() if v is not None}
        if "tts_format" in updates:
            updates["tts_format"] = _normalize_tts_format(updates["tts_format"])
        return self.model_copy(update=updates)


class Config(BaseModel):
    """Configuration model for the podcast digest pipeline.

    Configuration can be created programmatically or loaded from JSON/YAML files
    using ``load_config_file()``. The model is immutable after creation.

    The options fall into these groups:

    - **HTTP**: user agent, timeout and transport retries for source downloads
    - **Provider**: which AI backend to use and its models and credentials
    - **Chunking**: size threshold, chunk bounds, overlap and bitrate estimate
    - **Transcription**: fan-out ceiling and optional per-chunk retries
    - **Summary**: target and maximum summary length in words
    - **Storage**: artifact backend, metadata backend and container names
    - **Logging**: level and optional log file

    Secrets and the storage backend may also come from the environment
    (``OPENAI_API_KEY``, ``OPENAI_API_BASE``, ``PODCAST_DIGEST_STORAGE_BACKEND``,
    ``PODCAST_DIGEST_STORAGE_ROOT``, ``PODCAST_DIGEST_GCS_BUCKET``) when the
    corresponding field is not given explicitly.
    """

    # HTTP
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="User-Agent for downloads")
    timeout: int = Field(
        default=DEFAULT_TIMEOUT_SECONDS,
        ge=config_constants.MIN_TIMEOUT_SECONDS,
        description="HTTP timeout in seconds",
    )
    http_retry_total: int = Field(default=config_constants.DEFAULT_HTTP_RETRY_TOTAL, ge=0)
    http_backoff_factor: float = Field(
        default=config_constants.DEFAULT_HTTP_BACKOFF_FACTOR, ge=0.0
    )

    # Provider
    provider: str = Field(
        default=config_constants.DEFAULT_PROVIDER,
        description="AI provider: 'openai' or 'mock'",
    )
    openai_api_key: Optional[str] = Field(
        default=None,
        description="OpenAI API key (prefer OPENAI_API_KEY env var or .env file)",
    )
    openai_api_base: Optional[str] = Field(
        default=None,
        description="Custom API base URL (OpenAI-compatible endpoint or Azure endpoint)",
    )
    openai_api_version: Optional[str] = Field(
        default=None,
        description="Azure OpenAI API version; when set, the Azure client is used",
    )
    openai_transcription_model: str = config_constants.DEFAULT_OPENAI_TRANSCRIPTION_MODEL
    openai_summary_model: str = config_constants.DEFAULT_OPENAI_SUMMARY_MODEL
    openai_summary_temperature: float = Field(
        default=config_constants.DEFAULT_OPENAI_SUMMARY_TEMPERATURE, ge=0.0, le=2.0
    )
    tts_model: str = config_constants.DEFAULT_OPENAI_TTS_MODEL
    tts_voice: str = config_constants.DEFAULT_TTS_VOICE
    tts_speed: float = Field(
        default=config_constants.DEFAULT_TTS_SPEED,
        ge=config_constants.MIN_TTS_SPEED,
        le=config_constants.MAX_TTS_SPEED,
    )
    tts_format: str = DEFAULT_TTS_FORMAT
    mock_delay_seconds: float = Field(
        default=config_constants.DEFAULT_MOCK_DELAY_SECONDS,
        ge=0.0,
        description="Simulated latency per mock provider call",
    )

    # Chunking
    max_audio_file_bytes: int = Field(default=config_constants.DEFAULT_MAX_AUDIO_FILE_BYTES, gt=0)
    min_chunk_seconds: int = Field(default=config_constants.DEFAULT_MIN_CHUNK_SECONDS, gt=0)
    max_chunk_seconds: int = Field(default=config_constants.DEFAULT_MAX_CHUNK_SECONDS, gt=0)
    chunk_overlap_seconds: int = Field(default=config_constants.DEFAULT_CHUNK_OVERLAP_SECONDS, ge=0)
    nominal_bitrate_bps: int = Field(default=config_constants.DEFAULT_NOMINAL_BITRATE_BPS, gt=0)
    chunk_safety_factor: float = Field(
        default=config_constants.DEFAULT_CHUNK_SAFETY_FACTOR, gt=0.0, le=1.0
    )
    probe_duration: bool = Field(
        default=True, description="Use ffprobe for the real duration when it is installed"
    )
    ffmpeg_timeout: int = Field(default=config_constants.DEFAULT_FFMPEG_TIMEOUT_SECONDS, gt=0)

    # Transcription
    transcription_concurrency: int = Field(
        default=config_constants.DEFAULT_TRANSCRIPTION_CONCURRENCY,
        ge=1,
        le=config_constants.MAX_TRANSCRIPTION_CONCURRENCY,
    )
    chunk_retry_attempts: int = Field(
        default=config_constants.DEFAULT_CHUNK_RETRY_ATTEMPTS,
        ge=0,
        description="Retries for a failed chunk before the batch fails (0 disables)",
    )
    chunk_retry_initial_delay: float = Field(
        default=config_constants.DEFAULT_CHUNK_RETRY_INITIAL_DELAY, ge=0.0
    )
    chunk_retry_max_delay: float = Field(
        default=config_constants.DEFAULT_CHUNK_RETRY_MAX_DELAY, ge=0.0
    )

    # Summary
    summary_target_words: int = Field(default=config_constants.DEFAULT_SUMMARY_TARGET_WORDS, gt=0)
    summary_max_words: int = Field(default=config_constants.DEFAULT_SUMMARY_MAX_WORDS, gt=0)

    # Storage
    storage_backend: str = config_constants.DEFAULT_STORAGE_BACKEND
    storage_root: str = config_constants.DEFAULT_STORAGE_ROOT
    gcs_bucket: Optional[str] = None
    gcs_project: Optional[str] = None
    metadata_backend: str = Field(
        default=config_constants.METADATA_BACKEND_LOCAL,
        description="'local' for JSON files under storage_root, 'blob' for the metadata container",
    )
    episodes_container: str = config_constants.DEFAULT_EPISODES_CONTAINER
    transcripts_container: str = config_constants.DEFAULT_TRANSCRIPTS_CONTAINER
    summaries_container: str = config_constants.DEFAULT_SUMMARIES_CONTAINER
    metadata_container: str = config_constants.DEFAULT_METADATA_CONTAINER
    work_dir: Optional[str] = Field(
        default=None, description="Parent for per-run working directories (system temp if unset)"
    )

    # Concurrency extension point
    dedupe_in_flight: bool = Field(
        default=False,
        description="Serialise concurrent runs for the same cache key in this process",
    )

    # Logging
    log_level: str = DEFAULT_LOG_LEVEL
    log_file: Optional[str] = None

    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    @model_validator(mode="before")
    @classmethod
    def _fill_from_environment(cls, data: Any) -> Any:
        """Fill unset secrets and storage settings from environment variables."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for field_name, env_name in _ENV_FALLBACKS.items():
            if data.get(field_name) is not None:
                continue
            env_value = os.getenv(env_name)
            if env_value and env_value.strip():
                data[field_name] = env_value.strip()
        return data

    @field_validator("openai_api_key", "openai_api_base", "openai_api_version", mode="before")
    @classmethod
    def _strip_optional(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        return str(value).strip() or None

    @field_validator("user_agent", mode="before")
    @classmethod
    def _coerce_user_agent(cls, value: Any) -> str:
        if value is None:
            return DEFAULT_USER_AGENT
        return str(value).strip() or DEFAULT_USER_AGENT

    @field_validator("provider", mode="before")
    @classmethod
    def _validate_provider(cls, value: Any) -> str:
        normalized = str(value or config_constants.DEFAULT_PROVIDER).strip().lower()
        if normalized not in VALID_PROVIDERS:
            raise ValueError(f"provider must be one of {VALID_PROVIDERS}, got: {value}")
        return normalized

    @field_validator("storage_backend", mode="before")
    @classmethod
    def _validate_storage_backend(cls, value: Any) -> str:
        normalized = str(value or config_constants.DEFAULT_STORAGE_BACKEND).strip().lower()
        if normalized not in VALID_STORAGE_BACKENDS:
            raise ValueError(
                f"storage_backend must be one of {VALID_STORAGE_BACKENDS}, got: {value}"
            )
        return normalized

    @field_validator("metadata_backend", mode="before")
    @classmethod
    def _validate_metadata_backend(cls, value: Any) -> str:
        normalized = str(value or config_constants.METADATA_BACKEND_LOCAL).strip().lower()
        if normalized not in VALID_METADATA_BACKENDS:
            raise ValueError(
                f"metadata_backend must be one of {VALID_METADATA_BACKENDS}, got: {value}"
            )
        return normalized

    @field_validator("tts_format", mode="before")
    @classmethod
    def _coerce_tts_format(cls, value: Any) -> str:
        return _normalize_tts_format(value)

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: Any) -> str:
        if value is None:
            return DEFAULT_LOG_LEVEL
        return str(value).strip().upper() or DEFAULT_LOG_LEVEL

    @field_validator("log_level", mode="after")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        if value not in VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {VALID_LOG_LEVELS}, got: {value}")
        return value

    @model_validator(mode="after")
    def _validate_ranges(self) -> "Config":
        if self.min_chunk_seconds > self.max_chunk_seconds:
            raise ValueError(
                f"min_chunk_seconds ({self.min_chunk_seconds}) cannot exceed "
                f"max_chunk_seconds ({self.max_chunk_seconds})"
            )
        if self.chunk_overlap_seconds >= self.min_chunk_seconds:
            raise ValueError("chunk_overlap_seconds must be smaller than min_chunk_seconds")
        if self.summary_target_words > self.summary_max_words:
            raise ValueError("summary_target_words cannot exceed summary_max_words")
        if self.storage_backend == config_constants.STORAGE_BACKEND_GCS and not self.gcs_bucket:
            raise ValueError("gcs_bucket is required when storage_backend is 'gcs'")
        return self

    def provider_settings(self, overrides: Optional[ProviderOverrides] = None) -> ProviderSettings:
        """Build the provider settings for one run, applying optional overrides."""
        settings = ProviderSettings(
            api_key=self.openai_api_key,
            api_base=self.openai_api_base,
            api_version=self.openai_api_version,
            transcription_model=self.openai_transcription_model,
            summary_model=self.openai_summary_model,
            summary_temperature=self.openai_summary_temperature,
            summary_target_words=self.summary_target_words,
            summary_max_words=self.summary_max_words,
            tts_model=self.tts_model,
            tts_voice=self.tts_voice,
            tts_speed=self.tts_speed,
            tts_format=self.tts_format,
        )
        return settings.merged_with(overrides)


def load_config_file(path: str) -> Dict[str, Any]:
    """Load configuration from a JSON or YAML file.

    The format is picked from the extension (``.json``, ``.yaml`` or ``.yml``).
    The returned dictionary unpacks into ``Config``::

        cfg = Config(**load_config_file("digest.yaml"))

    Raises:
        ValueError: If the path is empty, the file does not exist, the extension
            is not supported, or parsing fails.
    """
    if not path:
        raise ValueError("Config path cannot be empty")

    cfg_path = Path(path).expanduser()
    try:
        resolved = cfg_path.resolve()
    except (OSError, RuntimeError) as exc:
        raise ValueError(f"Invalid config path: {path} ({exc})") from exc

    if not resolved.exists():
        raise ValueError(f"Config file not found: {resolved}")

    suffix = resolved.suffix.lower()
    try:
        text = resolved.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Failed to read config file {resolved}: {exc}") from exc

    if suffix == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON config file {resolved}: {exc}") from exc
    elif suffix in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML config file {resolved}: {exc}") from exc
    else:
        raise ValueError(f"Unsupported config file type: {resolved.suffix}")

    if not isinstance(data, dict):
        raise ValueError("Config file must contain a mapping/object at the top level")

    return data
