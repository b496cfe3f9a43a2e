"""Cache key derivation and the fixed artifact naming convention."""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass

from ..config_constants import CACHE_KEY_LENGTH

_KEY_PATTERN = re.compile(rf"^[0-9a-f]{{{CACHE_KEY_LENGTH}}}$")


def is_cache_key(value: str) -> bool:
    """Return True when ``value`` is already a derived key."""
    return bool(_KEY_PATTERN.match(value))


def derive_cache_key(locator: str) -> str:
    """Derive the 32-character artifact key for a source locator.

    The key is the first 32 lowercase hex characters of the SHA-256 digest of
    the locator's UTF-8 bytes, taken as given. A value that is already a
    32-character lowercase hex key is returned unchanged so callers may pass
    either a raw locator or a previously derived key.

    Raises:
        ValueError: If ``locator`` is empty or only whitespace
    """
    if locator is None or not str(locator).strip():
        raise ValueError("Locator cannot be empty")
    if is_cache_key(locator):
        return locator
    return hashlib.sha256(locator.encode("utf-8")).hexdigest()[:CACHE_KEY_LENGTH]


@dataclass(frozen=True)
class ArtifactNames:
    """Blob names for every artifact derived from one cache key."""

    key: str

    @property
    def source_audio(self) -> str:
        return f"{self.key}.mp3"

    @property
    def transcript(self) -> str:
        return f"{self.key}_transcript.txt"

    @property
    def summary_text(self) -> str:
        return f"{self.key}_summary.txt"

    @property
    def summary_audio(self) -> str:
        return f"{self.key}_summary.mp3"

    @property
    def episode_metadata(self) -> str:
        return f"{self.key}.json"

    @property
    def summary_metadata(self) -> str:
        return f"{self.key}_summary.json"
