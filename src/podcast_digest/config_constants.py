"""Configuration constants for podcast_digest.

All constants are re-exported from config.py for convenience.
"""

# General defaults
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_TIMEOUT_SECONDS = 30
DEFAULT_USER_AGENT = "podcast-digest/0.1 (+https://pypi.org/project/podcast-digest/)"
MIN_TIMEOUT_SECONDS = 1
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# HTTP transport retries for idempotent GETs (urllib3 Retry)
DEFAULT_HTTP_RETRY_TOTAL = 3
DEFAULT_HTTP_BACKOFF_FACTOR = 0.5

# Chunking. 5 MiB keeps each upload well below typical transcription payload limits.
BYTES_PER_MIB = 1024 * 1024
DEFAULT_MAX_AUDIO_FILE_BYTES = 5 * BYTES_PER_MIB
DEFAULT_MIN_CHUNK_SECONDS = 60
DEFAULT_MAX_CHUNK_SECONDS = 600
DEFAULT_CHUNK_OVERLAP_SECONDS = 1
DEFAULT_NOMINAL_BITRATE_BPS = 128_000
DEFAULT_CHUNK_SAFETY_FACTOR = 0.9
DEFAULT_FFMPEG_TIMEOUT_SECONDS = 300

# Transcription fan-out
DEFAULT_TRANSCRIPTION_CONCURRENCY = 10
MAX_TRANSCRIPTION_CONCURRENCY = 64
DEFAULT_CHUNK_RETRY_ATTEMPTS = 0
DEFAULT_CHUNK_RETRY_INITIAL_DELAY = 1.0
DEFAULT_CHUNK_RETRY_MAX_DELAY = 30.0

# Summary length: about five minutes of speech at 150 words per minute
SPOKEN_WORDS_PER_MINUTE = 150
DEFAULT_SUMMARY_MINUTES = 5
DEFAULT_SUMMARY_TARGET_WORDS = SPOKEN_WORDS_PER_MINUTE * DEFAULT_SUMMARY_MINUTES
DEFAULT_SUMMARY_MAX_WORDS = 800

# Provider defaults
PROVIDER_OPENAI = "openai"
PROVIDER_MOCK = "mock"
VALID_PROVIDERS = (PROVIDER_OPENAI, PROVIDER_MOCK)
DEFAULT_PROVIDER = PROVIDER_OPENAI
DEFAULT_OPENAI_TRANSCRIPTION_MODEL = "whisper-1"
DEFAULT_OPENAI_SUMMARY_MODEL = "gpt-4o-mini"
DEFAULT_OPENAI_TTS_MODEL = "tts-1"
DEFAULT_OPENAI_SUMMARY_TEMPERATURE = 0.3
DEFAULT_TTS_VOICE = "alloy"
DEFAULT_TTS_SPEED = 1.0
MIN_TTS_SPEED = 0.25
MAX_TTS_SPEED = 4.0
DEFAULT_TTS_FORMAT = "mp3"
VALID_TTS_FORMATS = ("mp3", "opus", "aac", "flac", "wav", "pcm")
DEFAULT_MOCK_DELAY_SECONDS = 0.0

# Storage
STORAGE_BACKEND_LOCAL = "local"
STORAGE_BACKEND_GCS = "gcs"
VALID_STORAGE_BACKENDS = (STORAGE_BACKEND_LOCAL, STORAGE_BACKEND_GCS)
DEFAULT_STORAGE_BACKEND = STORAGE_BACKEND_LOCAL
DEFAULT_STORAGE_ROOT = "./digest_storage"
DEFAULT_EPISODES_CONTAINER = "episodes"
DEFAULT_TRANSCRIPTS_CONTAINER = "transcripts"
DEFAULT_SUMMARIES_CONTAINER = "summaries"
DEFAULT_METADATA_CONTAINER = "metadata"
METADATA_BACKEND_LOCAL = "local"
METADATA_BACKEND_BLOB = "blob"
VALID_METADATA_BACKENDS = (METADATA_BACKEND_LOCAL, METADATA_BACKEND_BLOB)

# Fixed progress markers per pipeline stage
PROGRESS_DOWNLOADING = 10
PROGRESS_DOWNLOADED = 20
PROGRESS_TRANSCRIBING = 25
PROGRESS_TRANSCRIBED = 40
PROGRESS_SUMMARIZING = 50
PROGRESS_SUMMARIZED = 70
PROGRESS_GENERATING_SPEECH = 80
PROGRESS_COMPLETE = 100
PROGRESS_ERROR = 0

# Cache keys
CACHE_KEY_LENGTH = 32
