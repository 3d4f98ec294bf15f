"""
Unit tests for the staging area manager.
"""

from unittest.mock import patch

import pytest

from models.artifact import ArtifactIdentity, StagingPurpose
from services.errors import DirectoryCreationError, ExtractionError
from services.staging import StagingAreaManager


class TestStagingAreaManager:
    """Test staging directory lifecycle"""

    def test_acquire_creates_identity_scoped_directory(self, staging_manager, staging_root, identity):
        staging = staging_manager.acquire(identity, StagingPurpose.UNZIP)

        assert staging.root == staging_root / "unzip" / "7-3"
        assert staging.root.is_dir()
        assert staging.identity == identity
        assert staging.purpose is StagingPurpose.UNZIP
        assert staging.top_level is None

    def test_purposes_do_not_collide(self, staging_manager, identity):
        unzip = staging_manager.acquire(identity, StagingPurpose.UNZIP)
        conversion = staging_manager.acquire(identity, StagingPurpose.CONVERSION)

        assert unzip.root != conversion.root
        assert unzip.root.is_dir() and conversion.root.is_dir()

    def test_acquire_clears_stale_residue(self, staging_manager, identity):
        stale = staging_manager.path_for(identity, StagingPurpose.UNZIP)
        (stale / "package").mkdir(parents=True)
        (stale / "package" / "leftover.js").write_text("old")

        staging = staging_manager.acquire(identity, StagingPurpose.UNZIP)

        assert list(staging.root.iterdir()) == []

    def test_acquire_fails_when_filesystem_refuses(self, tmp_path, identity):
        blocker = tmp_path / "not-a-directory"
        blocker.write_text("file in the way")
        manager = StagingAreaManager(blocker)

        with pytest.raises(DirectoryCreationError):
            manager.acquire(identity, StagingPurpose.UNZIP)

    def test_release_removes_tree(self, staging_manager, identity):
        staging = staging_manager.acquire(identity, StagingPurpose.UNZIP)
        (staging.root / "package" / "src").mkdir(parents=True)
        (staging.root / "package" / "src" / "index.js").write_text("x")

        staging_manager.release(staging)

        assert not staging.root.exists()

    def test_release_of_absent_directory_is_noop(self, staging_manager, identity):
        staging = staging_manager.acquire(identity, StagingPurpose.UNZIP)
        staging_manager.release(staging)

        staging_manager.release(staging)

        assert not staging.root.exists()

    def test_release_propagates_other_filesystem_errors(self, staging_manager, identity):
        staging = staging_manager.acquire(identity, StagingPurpose.UNZIP)

        with patch("services.staging.shutil.rmtree", side_effect=PermissionError("denied")):
            with pytest.raises(ExtractionError):
                staging_manager.release(staging)

    def test_scoped_staging_released_on_error(self, staging_manager, identity):
        with pytest.raises(RuntimeError):
            with staging_manager.staging(identity, StagingPurpose.CONVERSION) as staging:
                (staging.root / "payload.tar.gz").write_bytes(b"data")
                raise RuntimeError("boom")

        assert not staging.root.exists()

    def test_release_failure_does_not_mask_block_error(self, staging_manager, identity):
        with patch("services.staging.shutil.rmtree", side_effect=PermissionError("denied")):
            with pytest.raises(RuntimeError, match="boom"):
                with staging_manager.staging(identity, StagingPurpose.UNZIP):
                    raise RuntimeError("boom")

    def test_release_failure_after_clean_block_raises(self, staging_manager, identity):
        with patch("services.staging.shutil.rmtree", side_effect=PermissionError("denied")):
            with pytest.raises(ExtractionError):
                with staging_manager.staging(identity, StagingPurpose.UNZIP):
                    pass


class TestArtifactIdentity:
    """Test identity-derived names"""

    def test_store_key_format(self):
        assert ArtifactIdentity(12, 4).store_key == "12-4.zip"
        assert ArtifactIdentity(12, 4).slug == "12-4"

    def test_identity_is_hashable_and_comparable(self):
        assert ArtifactIdentity(1, 2) == ArtifactIdentity(1, 2)
        assert len({ArtifactIdentity(1, 2), ArtifactIdentity(1, 2), ArtifactIdentity(2, 1)}) == 2

    def test_negative_ids_rejected(self):
        with pytest.raises(ValueError):
            ArtifactIdentity(-1, 0)
