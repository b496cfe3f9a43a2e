"""Local-disk storage backends.

Blobs live at ``<root>/<container>/<name>``; records live as JSON files at
``<root>/metadata/episodes/<key>.json`` and ``<root>/metadata/summaries/<key>.json``.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import BinaryIO, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..exceptions import ArtifactNotFoundError, StorageError
from ..models import EpisodeRecord, SummaryRecord
from ..utils.filesystem import ensure_within, validate_blob_name, write_file_atomic

logger = logging.getLogger(__name__)

COPY_BUFFER_SIZE = 1024 * 256
EPISODES_SUBDIR = "episodes"
SUMMARIES_SUBDIR = "summaries"

RecordT = TypeVar("RecordT", bound=BaseModel)


class LocalArtifactStore:
    """ArtifactStore backed by a directory per container."""

    def __init__(self, root: str) -> None:
        self.root = Path(root).expanduser().resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, container: str, name: str) -> Path:
        validate_blob_name(container)
        validate_blob_name(name)
        return ensure_within(self.root / container / name, self.root)

    def put(self, container: str, name: str, data: bytes) -> str:
        path = self._path(container, name)
        try:
            write_file_atomic(path, data)
        except OSError as exc:
            raise StorageError(f"Failed to write {container}/{name}: {exc}") from exc
        logger.debug("Stored %s/%s (%d bytes)", container, name, len(data))
        return path.as_uri()

    def put_file(self, container: str, name: str, path: str) -> str:
        target = self._path(container, name)
        tmp_target = target.with_name(f".{target.name}.part")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(path, tmp_target)
            os.replace(tmp_target, target)
        except OSError as exc:
            if tmp_target.exists():
                tmp_target.unlink()
            raise StorageError(f"Failed to store {path} as {container}/{name}: {exc}") from exc
        logger.debug("Stored %s as %s/%s", path, container, name)
        return target.as_uri()

    def get_to_stream(self, container: str, name: str, sink: BinaryIO) -> None:
        path = self._path(container, name)
        try:
            with open(path, "rb") as fh:
                shutil.copyfileobj(fh, sink, COPY_BUFFER_SIZE)
        except FileNotFoundError:
            raise ArtifactNotFoundError(container, name) from None
        except OSError as exc:
            raise StorageError(f"Failed to read {container}/{name}: {exc}") from exc

    def get_to_file(self, container: str, name: str, path: str) -> None:
        source = self._path(container, name)
        try:
            os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
            shutil.copyfile(source, path)
        except FileNotFoundError:
            if not source.exists():
                raise ArtifactNotFoundError(container, name) from None
            raise StorageError(f"Failed to copy {container}/{name} to {path}") from None
        except OSError as exc:
            raise StorageError(f"Failed to copy {container}/{name} to {path}: {exc}") from exc

    def exists(self, container: str, name: str) -> bool:
        return self._path(container, name).is_file()

    def delete(self, container: str, name: str) -> None:
        path = self._path(container, name)
        try:
            path.unlink()
            logger.debug("Deleted %s/%s", container, name)
        except FileNotFoundError:
            return
        except OSError as exc:
            raise StorageError(f"Failed to delete {container}/{name}: {exc}") from exc

    def size(self, container: str, name: str) -> int:
        path = self._path(container, name)
        try:
            return path.stat().st_size
        except FileNotFoundError:
            raise ArtifactNotFoundError(container, name) from None
        except OSError as exc:
            raise StorageError(f"Failed to stat {container}/{name}: {exc}") from exc

    def locator(self, container: str, name: str) -> str:
        return self._path(container, name).as_uri()


def _read_record(path: Path, model: Type[RecordT]) -> Optional[RecordT]:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise StorageError(f"Failed to read record {path}: {exc}") from exc
    try:
        return model.model_validate_json(text)
    except ValidationError as exc:
        raise StorageError(f"Corrupt record {path}: {exc}") from exc


def _write_record(path: Path, record: BaseModel) -> None:
    try:
        write_file_atomic(path, record.model_dump_json(indent=2).encode("utf-8"))
    except OSError as exc:
        raise StorageError(f"Failed to write record {path}: {exc}") from exc


def _delete_record(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        return
    except OSError as exc:
        raise StorageError(f"Failed to delete record {path}: {exc}") from exc


class LocalMetadataStore:
    """MetadataStore keeping one JSON file per record."""

    def __init__(self, root: str, container: str = "metadata") -> None:
        base = Path(root).expanduser().resolve() / validate_blob_name(container)
        self._episodes_dir = base / EPISODES_SUBDIR
        self._summaries_dir = base / SUMMARIES_SUBDIR
        self._episodes_dir.mkdir(parents=True, exist_ok=True)
        self._summaries_dir.mkdir(parents=True, exist_ok=True)

    def _episode_path(self, key: str) -> Path:
        return self._episodes_dir / f"{validate_blob_name(key)}.json"

    def _summary_path(self, key: str) -> Path:
        return self._summaries_dir / f"{validate_blob_name(key)}.json"

    def get_episode(self, key: str) -> Optional[EpisodeRecord]:
        return _read_record(self._episode_path(key), EpisodeRecord)

    def save_episode(self, record: EpisodeRecord) -> None:
        _write_record(self._episode_path(record.cache_key), record)
        logger.debug("Saved episode record %s", record.cache_key)

    def episode_exists(self, key: str) -> bool:
        return self._episode_path(key).is_file()

    def get_summary(self, key: str) -> Optional[SummaryRecord]:
        return _read_record(self._summary_path(key), SummaryRecord)

    def save_summary(self, key: str, record: SummaryRecord) -> None:
        if not self.episode_exists(key):
            raise StorageError(f"Cannot save summary for {key}: no episode record")
        _write_record(self._summary_path(key), record)
        logger.debug("Saved summary record %s", key)

    def summary_exists(self, key: str) -> bool:
        return self._summary_path(key).is_file()

    def delete_episode(self, key: str) -> None:
        self.delete_summary(key)
        _delete_record(self._episode_path(key))
        logger.debug("Deleted episode record %s", key)

    def delete_summary(self, key: str) -> None:
        _delete_record(self._summary_path(key))
