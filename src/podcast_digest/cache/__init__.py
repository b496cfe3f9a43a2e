"""Cache keys and cache consistency checks."""

from .consistency import CacheConsistencyChecker, EPISODE, SUMMARY
from .keys import ArtifactNames, derive_cache_key, is_cache_key

__all__ = [
    "ArtifactNames",
    "CacheConsistencyChecker",
    "EPISODE",
    "SUMMARY",
    "derive_cache_key",
    "is_cache_key",
]
