#!/usr/bin/env python3
"""Unit tests for BlobMetadataStore and the storage factories."""

import shutil
import tempfile
import unittest
from unittest.mock import patch

import pytest

from podcast_digest import config
from podcast_digest.exceptions import StorageError
from podcast_digest.models import EpisodeRecord, SummaryRecord
from podcast_digest.storage.blob_metadata import BlobMetadataStore
from podcast_digest.storage.factory import create_artifact_store, create_metadata_store
from podcast_digest.storage.local import LocalArtifactStore, LocalMetadataStore

pytestmark = [pytest.mark.unit]

KEY = "fedcba9876543210fedcba9876543210"


class TestBlobMetadataStore(unittest.TestCase):
    """Records kept as JSON blobs in the metadata container."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.artifacts = LocalArtifactStore(self.temp_dir)
        self.store = BlobMetadataStore(self.artifacts)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _save_both(self):
        self.store.save_episode(
            EpisodeRecord(
                cache_key=KEY,
                original_locator="https://example.com/x.mp3",
                artifact_path="file:///x",
                size_bytes=1,
            )
        )
        self.store.save_summary(
            KEY,
            SummaryRecord(
                episode_key=KEY,
                transcript_artifact_path="t",
                summary_text_artifact_path="s",
                summary_audio_artifact_path="a",
                transcript_word_count=5,
                summary_word_count=2,
            ),
        )

    def test_records_use_fixed_blob_names(self):
        self._save_both()
        self.assertTrue(self.artifacts.exists("metadata", f"{KEY}.json"))
        self.assertTrue(self.artifacts.exists("metadata", f"{KEY}_summary.json"))

    def test_round_trip(self):
        self._save_both()
        self.assertEqual(self.store.get_episode(KEY).size_bytes, 1)
        self.assertEqual(self.store.get_summary(KEY).summary_word_count, 2)

    def test_missing_record_is_none(self):
        self.assertIsNone(self.store.get_episode(KEY))
        self.assertIsNone(self.store.get_summary(KEY))
        self.assertFalse(self.store.episode_exists(KEY))

    def test_summary_requires_episode(self):
        with self.assertRaises(StorageError):
            self.store.save_summary(
                KEY,
                SummaryRecord(
                    episode_key=KEY,
                    transcript_artifact_path="t",
                    summary_text_artifact_path="s",
                    summary_audio_artifact_path="a",
                    transcript_word_count=0,
                    summary_word_count=0,
                ),
            )

    def test_delete_episode_cascades(self):
        self._save_both()
        self.store.delete_episode(KEY)
        self.assertFalse(self.store.episode_exists(KEY))
        self.assertFalse(self.store.summary_exists(KEY))

    def test_corrupt_blob_raises_storage_error(self):
        self.artifacts.put("metadata", f"{KEY}.json", b"[]")
        with self.assertRaises(StorageError):
            self.store.get_episode(KEY)


class TestStorageFactories(unittest.TestCase):
    """Backend selection from configuration."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_local_defaults(self):
        cfg = config.Config(storage_root=self.temp_dir)
        artifacts = create_artifact_store(cfg)
        self.assertIsInstance(artifacts, LocalArtifactStore)
        self.assertIsInstance(create_metadata_store(cfg, artifacts), LocalMetadataStore)

    def test_blob_metadata_on_request(self):
        cfg = config.Config(storage_root=self.temp_dir, metadata_backend="blob")
        artifacts = create_artifact_store(cfg)
        self.assertIsInstance(create_metadata_store(cfg, artifacts), BlobMetadataStore)

    @patch("podcast_digest.storage.gcs.storage.Client")
    def test_gcs_backend_uses_blob_metadata(self, mock_client_cls):
        cfg = config.Config(storage_backend="gcs", gcs_bucket="digest-bucket")
        artifacts = create_artifact_store(cfg)
        mock_client_cls.assert_called_once_with(project=None)
        mock_client_cls.return_value.bucket.assert_called_once_with("digest-bucket")
        self.assertIsInstance(create_metadata_store(cfg, artifacts), BlobMetadataStore)
