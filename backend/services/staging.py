"""
Staging area manager for ephemeral archive working directories.
"""

import shutil
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

import env
from models.artifact import ArtifactIdentity, StagingDirectory, StagingPurpose
from services.errors import DirectoryCreationError, ExtractionError


class StagingAreaManager:
    """
    Creates and removes staging directories under a single root.

    Layout is <root>/<purpose>/<package_id>-<version_id>, so each identity has
    at most one live directory per purpose. Callers should go through
    staging(), which releases the directory on every exit path.

    Example:
        manager = StagingAreaManager("/var/tmp/package-staging")

        with manager.staging(identity, StagingPurpose.UNZIP) as staging:
            archive.extractall(staging.root)
        # Directory tree is gone here, even if extractall raised
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def path_for(self, identity: ArtifactIdentity, purpose: StagingPurpose) -> Path:
        return self.root / purpose.value / identity.slug

    def acquire(self, identity: ArtifactIdentity, purpose: StagingPurpose) -> StagingDirectory:
        """
        Create a fresh staging directory.

        Leftovers from a crashed process at the same path are removed first.

        Raises:
            DirectoryCreationError: If the filesystem refuses creation
        """
        path = self.path_for(identity, purpose)
        try:
            if path.exists():
                print(f"[staging] WARNING: Removing stale {purpose.value} directory {path}")
                shutil.rmtree(path)
            path.mkdir(parents=True)
        except OSError as e:
            print(f"[staging] ERROR: Failed to create {path}: {e}")
            raise DirectoryCreationError(
                f"Failed to create {purpose.value} staging directory: {e}", identity
            ) from e

        return StagingDirectory(identity=identity, purpose=purpose, root=path)

    def release(self, staging: StagingDirectory) -> None:
        """
        Delete a staging directory tree.

        An already-absent directory counts as released.

        Raises:
            ExtractionError: On any other filesystem failure
        """
        try:
            shutil.rmtree(staging.root)
        except FileNotFoundError:
            pass
        except OSError as e:
            print(f"[staging] ERROR: Failed to remove {staging.root}: {e}")
            raise ExtractionError(
                f"Failed to remove {staging.purpose.value} staging directory: {e}",
                staging.identity,
            ) from e

    @contextmanager
    def staging(
        self, identity: ArtifactIdentity, purpose: StagingPurpose
    ) -> Iterator[StagingDirectory]:
        """
        Acquire a staging directory for the duration of a with-block.

        If the block raised, a release failure is logged and the block's
        own exception propagates.
        """
        staging = self.acquire(identity, purpose)
        try:
            yield staging
        except BaseException:
            try:
                self.release(staging)
            except ExtractionError as release_error:
                print(f"[staging] WARNING: Cleanup after failure left residue: {release_error}")
            raise
        self.release(staging)


# Global singleton instance
_staging_manager: Optional[StagingAreaManager] = None


def get_staging_manager() -> StagingAreaManager:
    """Get or create the global staging manager rooted at STAGING_ROOT."""
    global _staging_manager
    if _staging_manager is None:
        _staging_manager = StagingAreaManager(env.STAGING_ROOT)
    return _staging_manager
