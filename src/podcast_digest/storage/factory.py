"""Storage backend factories, chosen once from configuration."""

from __future__ import annotations

import logging

from .. import config, config_constants
from .base import ArtifactStore, MetadataStore
from .blob_metadata import BlobMetadataStore
from .local import LocalArtifactStore, LocalMetadataStore

logger = logging.getLogger(__name__)


def create_artifact_store(cfg: config.Config) -> ArtifactStore:
    """Create the ArtifactStore selected by ``cfg.storage_backend``."""
    if cfg.storage_backend == config_constants.STORAGE_BACKEND_GCS:
        from .gcs import GCSArtifactStore

        logger.debug("Using GCS artifact store (bucket=%s)", cfg.gcs_bucket)
        return GCSArtifactStore(cfg.gcs_bucket or "", project=cfg.gcs_project)
    logger.debug("Using local artifact store at %s", cfg.storage_root)
    return LocalArtifactStore(cfg.storage_root)


def create_metadata_store(cfg: config.Config, artifacts: ArtifactStore) -> MetadataStore:
    """Create the MetadataStore selected by ``cfg.metadata_backend``.

    A GCS artifact backend always keeps its records as blobs next to the
    artifacts; local storage honours ``metadata_backend``.
    """
    if (
        cfg.metadata_backend == config_constants.METADATA_BACKEND_BLOB
        or cfg.storage_backend == config_constants.STORAGE_BACKEND_GCS
    ):
        return BlobMetadataStore(artifacts, container=cfg.metadata_container)
    return LocalMetadataStore(cfg.storage_root, container=cfg.metadata_container)
