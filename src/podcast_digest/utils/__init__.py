"""Core utilities for podcast_digest.

This module provides:
- Filesystem helpers (working directories, atomic writes, name validation)
- Cancellation checks, retries, redaction and text helpers
"""

from .cancellation import is_cancelled, raise_if_cancelled
from .filesystem import (
    create_work_dir,
    ensure_within,
    remove_file_quietly,
    remove_work_dir,
    validate_blob_name,
    write_file_atomic,
)
from .redaction import redact_secrets, redact_text
from .retry import retry_with_exponential_backoff
from .text import trim_non_alphanumeric, word_count

__all__ = [
    "create_work_dir",
    "ensure_within",
    "is_cancelled",
    "raise_if_cancelled",
    "redact_secrets",
    "redact_text",
    "remove_file_quietly",
    "remove_work_dir",
    "retry_with_exponential_backoff",
    "trim_non_alphanumeric",
    "validate_blob_name",
    "word_count",
    "write_file_atomic",
]
