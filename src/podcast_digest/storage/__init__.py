"""Artifact and metadata storage backends."""

from .base import ArtifactStore, MetadataStore, StorageLayout
from .blob_metadata import BlobMetadataStore
from .factory import create_artifact_store, create_metadata_store
from .local import LocalArtifactStore, LocalMetadataStore

__all__ = [
    "ArtifactStore",
    "BlobMetadataStore",
    "LocalArtifactStore",
    "LocalMetadataStore",
    "MetadataStore",
    "StorageLayout",
    "create_artifact_store",
    "create_metadata_store",
]
