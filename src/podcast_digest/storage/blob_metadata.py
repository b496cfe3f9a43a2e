"""MetadataStore that keeps records as JSON blobs in an ArtifactStore.

Records are stored in the metadata container as ``K.json`` (episode) and
``K_summary.json`` (summary), so a cloud deployment needs no database.
"""

from __future__ import annotations

import io
import logging
from typing import Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..cache.keys import ArtifactNames
from ..exceptions import ArtifactNotFoundError, StorageError
from ..models import EpisodeRecord, SummaryRecord
from .base import ArtifactStore

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


class BlobMetadataStore:
    def __init__(self, artifacts: ArtifactStore, container: str = "metadata") -> None:
        self._artifacts = artifacts
        self._container = container

    def _read(self, name: str, model: Type[RecordT]) -> Optional[RecordT]:
        buffer = io.BytesIO()
        try:
            self._artifacts.get_to_stream(self._container, name, buffer)
        except ArtifactNotFoundError:
            return None
        try:
            return model.model_validate_json(buffer.getvalue())
        except ValidationError as exc:
            raise StorageError(f"Corrupt record {self._container}/{name}: {exc}") from exc

    def _write(self, name: str, record: BaseModel) -> None:
        payload = record.model_dump_json(indent=2).encode("utf-8")
        self._artifacts.put(self._container, name, payload)

    def get_episode(self, key: str) -> Optional[EpisodeRecord]:
        return self._read(ArtifactNames(key).episode_metadata, EpisodeRecord)

    def save_episode(self, record: EpisodeRecord) -> None:
        self._write(ArtifactNames(record.cache_key).episode_metadata, record)
        logger.debug("Saved episode record %s", record.cache_key)

    def episode_exists(self, key: str) -> bool:
        return self._artifacts.exists(self._container, ArtifactNames(key).episode_metadata)

    def get_summary(self, key: str) -> Optional[SummaryRecord]:
        return self._read(ArtifactNames(key).summary_metadata, SummaryRecord)

    def save_summary(self, key: str, record: SummaryRecord) -> None:
        if not self.episode_exists(key):
            raise StorageError(f"Cannot save summary for {key}: no episode record")
        self._write(ArtifactNames(key).summary_metadata, record)
        logger.debug("Saved summary record %s", key)

    def summary_exists(self, key: str) -> bool:
        return self._artifacts.exists(self._container, ArtifactNames(key).summary_metadata)

    def delete_episode(self, key: str) -> None:
        self.delete_summary(key)
        self._artifacts.delete(self._container, ArtifactNames(key).episode_metadata)
        logger.debug("Deleted episode record %s", key)

    def delete_summary(self, key: str) -> None:
        self._artifacts.delete(self._container, ArtifactNames(key).summary_metadata)
