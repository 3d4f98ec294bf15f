"""
Archive codec for package artifacts.

Converts between the canonical zip blob and an expanded staging directory,
and normalizes inbound npm-style tarballs into the canonical zip.
"""

import gzip
import io
import lzma
import os
import tarfile
import zipfile
import zlib
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Union

from models.artifact import ArtifactIdentity, StagingDirectory, StagingPurpose
from services.errors import ArchiveFormatError, ExtractionError
from services.object_store import ObjectStoreGateway
from services.staging import StagingAreaManager

# Errors raised by the zip/tar readers on corrupt, truncated or encrypted payloads
# (RuntimeError covers encrypted entries and NotImplementedError for unknown compression)
_ZIP_FORMAT_ERRORS = (zipfile.BadZipFile, zlib.error, EOFError, RuntimeError)
_TAR_FORMAT_ERRORS = (tarfile.TarError, gzip.BadGzipFile, zlib.error, lzma.LZMAError, EOFError)


def read_zip_member_names(blob: bytes) -> List[str]:
    """
    List the entry names of a zip blob without extracting it.

    Raises:
        ArchiveFormatError: If the blob is not a readable zip
    """
    try:
        with zipfile.ZipFile(io.BytesIO(blob)) as archive:
            return archive.namelist()
    except _ZIP_FORMAT_ERRORS as e:
        raise ArchiveFormatError(f"Not a valid zip archive: {e}") from e


class ArchiveCodec:
    """Expand, collapse and convert package archives."""

    # Maximum compressed payload accepted (zip or tar)
    MAX_ARCHIVE_SIZE = 50_000_000

    # Maximum total uncompressed size of a zip's entries (500MB)
    MAX_EXPANDED_SIZE = 500_000_000

    def __init__(
        self,
        staging_manager: StagingAreaManager,
        object_store: ObjectStoreGateway,
        max_archive_size: Optional[int] = None,
    ):
        self.staging_manager = staging_manager
        self.object_store = object_store
        if max_archive_size is not None:
            self.MAX_ARCHIVE_SIZE = max_archive_size

    def expand(self, staging: StagingDirectory, blob: bytes) -> Optional[str]:
        """
        Extract a zip blob into a staging directory.

        Args:
            staging: Freshly acquired staging directory to extract into
            blob: Zip archive bytes

        Returns:
            Name of the archive's top-level folder, or None when the first
            entry sits at the archive root. Also recorded on staging.top_level.

        Raises:
            ArchiveFormatError: Empty, oversized, corrupt or path-escaping archive
            ExtractionError: Filesystem failure while writing the tree
        """
        identity = staging.identity
        if not blob:
            raise ArchiveFormatError("Archive is empty", identity)
        if len(blob) > self.MAX_ARCHIVE_SIZE:
            raise ArchiveFormatError(
                f"Archive exceeds size limit ({len(blob)} > {self.MAX_ARCHIVE_SIZE} bytes)",
                identity,
            )

        try:
            with zipfile.ZipFile(io.BytesIO(blob)) as archive:
                entries = archive.infolist()
                if not entries:
                    raise ArchiveFormatError("Archive has no entries", identity)

                expanded_size = sum(entry.file_size for entry in entries)
                if expanded_size > self.MAX_EXPANDED_SIZE:
                    raise ArchiveFormatError(
                        f"Archive expands past size limit ({expanded_size} bytes)", identity
                    )

                root = staging.root.resolve()
                for entry in entries:
                    target = (root / entry.filename).resolve()
                    if target != root and root not in target.parents:
                        raise ArchiveFormatError(
                            f"Archive entry escapes package root: {entry.filename}", identity
                        )

                archive.extractall(staging.root)
        except ArchiveFormatError:
            raise
        except _ZIP_FORMAT_ERRORS as e:
            print(f"[archive_codec] ERROR: Failed to extract zip for {identity}: {e}")
            raise ArchiveFormatError(f"Malformed zip archive: {e}", identity) from e
        except OSError as e:
            print(f"[archive_codec] ERROR: Failed to write expanded tree for {identity}: {e}")
            raise ExtractionError(f"Failed to expand archive: {e}", identity) from e

        # Packaging tools wrap everything in one folder (npm uses "package/")
        first = entries[0].filename.replace("\\", "/").split("/")
        staging.top_level = first[0] if len(first) > 1 and first[0] else None
        return staging.top_level

    @contextmanager
    def expanded(self, identity: ArtifactIdentity, blob: bytes) -> Iterator[StagingDirectory]:
        """Expand a blob into an "unzip" staging directory for a with-block."""
        with self.staging_manager.staging(identity, StagingPurpose.UNZIP) as staging:
            self.expand(staging, blob)
            yield staging

    def collapse(self, path: Union[StagingDirectory, str, Path]) -> bytes:
        """
        Zip every regular file under a directory.

        Entry names are paths relative to the directory, in sorted walk
        order. Symlinks and empty directories are not included.

        Raises:
            ExtractionError: If the tree cannot be read
        """
        identity = None
        if isinstance(path, StagingDirectory):
            identity = path.identity
            path = path.root
        root = Path(path)

        buffer = io.BytesIO()
        try:
            # Tar members commonly carry mtime 0, which zip cannot represent
            with zipfile.ZipFile(
                buffer, mode="w", compression=zipfile.ZIP_DEFLATED, strict_timestamps=False
            ) as archive:
                for dirpath, dirnames, filenames in os.walk(root):
                    dirnames.sort()
                    for filename in sorted(filenames):
                        file_path = Path(dirpath) / filename
                        if file_path.is_symlink() or not file_path.is_file():
                            continue
                        archive.write(file_path, file_path.relative_to(root).as_posix())
        except OSError as e:
            print(f"[archive_codec] ERROR: Failed to collapse {root}: {e}")
            raise ExtractionError(f"Failed to collapse directory: {e}", identity) from e

        return buffer.getvalue()

    def convert_tar_to_zip(self, identity: ArtifactIdentity, tar_bytes: bytes) -> bytes:
        """
        Normalize an inbound tarball into the canonical zip and persist it.

        The payload is staged as <slug>.tar.gz, extracted into an "unzip"
        staging directory, collapsed, and only then written to the store.
        Both staging directories are removed on every exit path.

        Args:
            identity: Artifact to write
            tar_bytes: Raw tar payload (gzip, bzip2, xz or uncompressed)

        Returns:
            The zip blob that was persisted

        Raises:
            ArchiveFormatError: Empty, oversized, truncated or corrupt tarball
            DirectoryCreationError, ExtractionError: Staging filesystem failures
            StoreError: If persisting the zip fails
        """
        if not tar_bytes:
            raise ArchiveFormatError("Tarball is empty", identity)
        if len(tar_bytes) > self.MAX_ARCHIVE_SIZE:
            raise ArchiveFormatError(
                f"Tarball exceeds size limit ({len(tar_bytes)} > {self.MAX_ARCHIVE_SIZE} bytes)",
                identity,
            )

        with self.staging_manager.staging(identity, StagingPurpose.CONVERSION) as conversion:
            tar_path = conversion.root / f"{identity.slug}.tar.gz"
            try:
                tar_path.write_bytes(tar_bytes)
            except OSError as e:
                raise ExtractionError(f"Failed to stage tarball: {e}", identity) from e

            with self.staging_manager.staging(identity, StagingPurpose.UNZIP) as unzipped:
                self._extract_tar(identity, tar_path, unzipped)
                blob = self.collapse(unzipped)

        self.object_store.put(identity.store_key, blob)
        print(f"[archive_codec] Converted tarball for {identity} ({len(tar_bytes)} -> {len(blob)} bytes)")
        return blob

    def _extract_tar(self, identity: ArtifactIdentity, tar_path: Path, staging: StagingDirectory) -> None:
        """Extract a staged tarball, rejecting corrupt or file-less archives."""
        try:
            with tarfile.open(tar_path, mode="r:*") as tar:
                members = tar.getmembers()
                if not any(member.isfile() for member in members):
                    raise ArchiveFormatError("Tarball contains no files", identity)
                tar.extractall(staging.root, members=members, filter="data")
        except ArchiveFormatError:
            raise
        except _TAR_FORMAT_ERRORS as e:
            print(f"[archive_codec] ERROR: Failed to extract tarball for {identity}: {e}")
            raise ArchiveFormatError(f"Malformed tarball: {e}", identity) from e
        except OSError as e:
            print(f"[archive_codec] ERROR: Failed to write tarball contents for {identity}: {e}")
            raise ExtractionError(f"Failed to extract tarball: {e}", identity) from e
