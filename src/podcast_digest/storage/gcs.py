"""Google Cloud Storage backend.

All containers share one bucket; a container is a name prefix, so blob
``episodes/K.mp3`` lives at ``gs://<bucket>/episodes/K.mp3``.
"""

from __future__ import annotations

import logging
import mimetypes
from typing import BinaryIO, Optional

from google.api_core import exceptions as gcloud_exceptions
from google.cloud import storage

from ..exceptions import ArtifactNotFoundError, StorageError
from ..utils.filesystem import validate_blob_name

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def _content_type_for(name: str) -> str:
    guessed, _ = mimetypes.guess_type(name)
    return guessed or DEFAULT_CONTENT_TYPE


class GCSArtifactStore:
    """ArtifactStore backed by a single Google Cloud Storage bucket."""

    def __init__(
        self,
        bucket_name: str,
        project: Optional[str] = None,
        client: Optional[storage.Client] = None,
    ) -> None:
        if not bucket_name:
            raise ValueError("bucket_name is required for GCSArtifactStore")
        self.bucket_name = bucket_name
        self._client = client or storage.Client(project=project)
        self._bucket = self._client.bucket(bucket_name)

    def _blob(self, container: str, name: str):
        validate_blob_name(container)
        validate_blob_name(name)
        return self._bucket.blob(f"{container}/{name}")

    def _uri(self, container: str, name: str) -> str:
        return f"gs://{self.bucket_name}/{container}/{name}"

    def put(self, container: str, name: str, data: bytes) -> str:
        blob = self._blob(container, name)
        try:
            blob.upload_from_string(data, content_type=_content_type_for(name))
        except gcloud_exceptions.GoogleAPICallError as exc:
            raise StorageError(f"Failed to upload {container}/{name}: {exc}") from exc
        logger.debug("Uploaded %s (%d bytes)", self._uri(container, name), len(data))
        return self._uri(container, name)

    def put_file(self, container: str, name: str, path: str) -> str:
        blob = self._blob(container, name)
        try:
            blob.upload_from_filename(path, content_type=_content_type_for(name))
        except gcloud_exceptions.GoogleAPICallError as exc:
            raise StorageError(f"Failed to upload {path} to {container}/{name}: {exc}") from exc
        except OSError as exc:
            raise StorageError(f"Failed to read {path}: {exc}") from exc
        logger.debug("Uploaded %s to %s", path, self._uri(container, name))
        return self._uri(container, name)

    def get_to_stream(self, container: str, name: str, sink: BinaryIO) -> None:
        blob = self._blob(container, name)
        try:
            blob.download_to_file(sink)
        except gcloud_exceptions.NotFound:
            raise ArtifactNotFoundError(container, name) from None
        except gcloud_exceptions.GoogleAPICallError as exc:
            raise StorageError(f"Failed to download {container}/{name}: {exc}") from exc

    def get_to_file(self, container: str, name: str, path: str) -> None:
        blob = self._blob(container, name)
        try:
            blob.download_to_filename(path)
        except gcloud_exceptions.NotFound:
            raise ArtifactNotFoundError(container, name) from None
        except gcloud_exceptions.GoogleAPICallError as exc:
            raise StorageError(f"Failed to download {container}/{name}: {exc}") from exc
        except OSError as exc:
            raise StorageError(f"Failed to write {path}: {exc}") from exc

    def exists(self, container: str, name: str) -> bool:
        try:
            return bool(self._blob(container, name).exists())
        except gcloud_exceptions.GoogleAPICallError as exc:
            raise StorageError(f"Failed to check {container}/{name}: {exc}") from exc

    def delete(self, container: str, name: str) -> None:
        try:
            self._blob(container, name).delete()
        except gcloud_exceptions.NotFound:
            return
        except gcloud_exceptions.GoogleAPICallError as exc:
            raise StorageError(f"Failed to delete {container}/{name}: {exc}") from exc

    def size(self, container: str, name: str) -> int:
        validate_blob_name(container)
        validate_blob_name(name)
        try:
            blob = self._bucket.get_blob(f"{container}/{name}")
        except gcloud_exceptions.GoogleAPICallError as exc:
            raise StorageError(f"Failed to stat {container}/{name}: {exc}") from exc
        if blob is None:
            raise ArtifactNotFoundError(container, name)
        return int(blob.size or 0)

    def locator(self, container: str, name: str) -> str:
        validate_blob_name(container)
        validate_blob_name(name)
        return self._uri(container, name)
