"""Storage interfaces.

``ArtifactStore`` persists byte blobs keyed by container and name;
``MetadataStore`` persists EpisodeRecord and SummaryRecord. Concrete backends
are picked once at wiring time by ``storage.factory``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO, Optional, Protocol, runtime_checkable

from .. import config_constants
from ..models import EpisodeRecord, SummaryRecord


@dataclass(frozen=True)
class StorageLayout:
    """Container names used for each artifact class."""

    episodes: str = config_constants.DEFAULT_EPISODES_CONTAINER
    transcripts: str = config_constants.DEFAULT_TRANSCRIPTS_CONTAINER
    summaries: str = config_constants.DEFAULT_SUMMARIES_CONTAINER
    metadata: str = config_constants.DEFAULT_METADATA_CONTAINER

    @classmethod
    def from_config(cls, cfg) -> "StorageLayout":
        return cls(
            episodes=cfg.episodes_container,
            transcripts=cfg.transcripts_container,
            summaries=cfg.summaries_container,
            metadata=cfg.metadata_container,
        )


@runtime_checkable
class ArtifactStore(Protocol):
    """Byte-level blob store.

    Implementations raise ``ArtifactNotFoundError`` when reading a blob that
    does not exist and ``StorageError`` for any other I/O failure.
    """

    def put(self, container: str, name: str, data: bytes) -> str:
        """Store ``data`` and return a locator for the blob."""
        ...

    def put_file(self, container: str, name: str, path: str) -> str:
        """Store the contents of a local file and return a locator for the blob."""
        ...

    def get_to_stream(self, container: str, name: str, sink: BinaryIO) -> None: ...

    def get_to_file(self, container: str, name: str, path: str) -> None: ...

    def exists(self, container: str, name: str) -> bool: ...

    def delete(self, container: str, name: str) -> None:
        """Delete a blob; deleting a missing blob is not an error."""
        ...

    def size(self, container: str, name: str) -> int: ...

    def locator(self, container: str, name: str) -> str:
        """Return the locator ``put`` would return for this blob."""
        ...


@runtime_checkable
class MetadataStore(Protocol):
    """Structured record store for episodes and their summaries."""

    def get_episode(self, key: str) -> Optional[EpisodeRecord]: ...

    def save_episode(self, record: EpisodeRecord) -> None: ...

    def episode_exists(self, key: str) -> bool: ...

    def get_summary(self, key: str) -> Optional[SummaryRecord]: ...

    def save_summary(self, key: str, record: SummaryRecord) -> None: ...

    def summary_exists(self, key: str) -> bool: ...

    def delete_episode(self, key: str) -> None:
        """Delete the EpisodeRecord and, by cascade, its SummaryRecord."""
        ...

    def delete_summary(self, key: str) -> None: ...
