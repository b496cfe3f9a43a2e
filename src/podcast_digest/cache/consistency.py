"""Decide whether cached artifacts are really available and repair drift.

The metadata store and the blob store can drift apart (for example after a
blob-store purge). A record whose bytes are gone is stale: it is deleted and
reported as a cache miss so the pipeline derives the artifact again.
"""

from __future__ import annotations

import logging
from typing import Tuple

from ..exceptions import ArtifactNotFoundError
from ..storage.base import ArtifactStore, MetadataStore, StorageLayout
from .keys import ArtifactNames

logger = logging.getLogger(__name__)

EPISODE = "episode"
SUMMARY = "summary"
CONTAINER_CLASSES = (EPISODE, SUMMARY)


class CacheConsistencyChecker:
    def __init__(
        self,
        artifacts: ArtifactStore,
        metadata: MetadataStore,
        layout: StorageLayout = StorageLayout(),
    ) -> None:
        self._artifacts = artifacts
        self._metadata = metadata
        self._layout = layout

    def is_available(self, container_class: str, key: str) -> bool:
        """Return True when both the record and its blobs exist for ``key``.

        ``container_class`` is ``"episode"`` (source audio) or ``"summary"``
        (transcript, summary text and summary audio). A record without its
        blobs is deleted before returning False.

        Raises:
            ValueError: For an unknown container class
            StorageError: When a store fails for a reason other than a missing blob
        """
        if container_class == EPISODE:
            return self._episode_available(key)
        if container_class == SUMMARY:
            return self._summary_available(key)
        raise ValueError(
            f"Unknown container class: {container_class!r} (expected one of {CONTAINER_CLASSES})"
        )

    def _blob_present(self, container: str, name: str) -> bool:
        try:
            self._artifacts.size(container, name)
        except ArtifactNotFoundError:
            return False
        return True

    def _episode_blobs(self, key: str) -> Tuple[Tuple[str, str], ...]:
        return ((self._layout.episodes, ArtifactNames(key).source_audio),)

    def _summary_blobs(self, key: str) -> Tuple[Tuple[str, str], ...]:
        names = ArtifactNames(key)
        return (
            (self._layout.transcripts, names.transcript),
            (self._layout.transcripts, names.summary_text),
            (self._layout.summaries, names.summary_audio),
        )

    def _episode_available(self, key: str) -> bool:
        if not self._metadata.episode_exists(key):
            return False
        missing = [
            f"{c}/{n}" for c, n in self._episode_blobs(key) if not self._blob_present(c, n)
        ]
        if missing:
            logger.warning(
                "Episode record %s has no backing blob (%s); deleting stale record",
                key,
                ", ".join(missing),
            )
            self._metadata.delete_episode(key)
            return False
        return True

    def _summary_available(self, key: str) -> bool:
        if not self._metadata.summary_exists(key):
            return False
        if not self._metadata.episode_exists(key):
            logger.warning("Summary record %s has no episode record; deleting it", key)
            self._metadata.delete_summary(key)
            return False
        missing = [
            f"{c}/{n}" for c, n in self._summary_blobs(key) if not self._blob_present(c, n)
        ]
        if missing:
            logger.warning(
                "Summary record %s is missing blobs (%s); deleting stale record",
                key,
                ", ".join(missing),
            )
            self._metadata.delete_summary(key)
            return False
        return True
