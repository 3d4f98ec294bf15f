"""
Manifest and README extraction from stored package artifacts.
Responsible for locating and reading metadata files, NOT analysing them.
"""

import json
import os
import re
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from models.artifact import ArtifactIdentity, ManifestDescriptor, StagingDirectory
from services.archive_codec import ArchiveCodec
from services.errors import ExtractionError, ManifestNotFoundError, ManifestParseError
from services.object_store import ObjectStoreGateway


class _SearchBudget:
    """Counts directory entries visited during a bounded search."""

    def __init__(self, max_entries: int):
        self.remaining = max_entries

    def spend(self) -> bool:
        self.remaining -= 1
        return self.remaining >= 0


class MetadataExtractor:
    """Reads package.json and README files out of package artifacts."""

    MANIFEST_NAME = "package.json"

    # README, README.md or README.txt in any case
    README_PATTERN = re.compile(r"README(\.md|\.txt)?", re.IGNORECASE)

    def __init__(
        self,
        codec: ArchiveCodec,
        object_store: ObjectStoreGateway,
        max_depth: int = 16,
        max_entries: int = 10_000,
    ):
        self.codec = codec
        self.object_store = object_store
        self.max_depth = max_depth
        self.max_entries = max_entries

    def read_manifest(self, identity: ArtifactIdentity) -> ManifestDescriptor:
        """
        Read package.json from a stored artifact.

        Args:
            identity: Artifact to read

        Returns:
            Parsed ManifestDescriptor

        Raises:
            NotFoundError: No artifact stored under identity
            ManifestNotFoundError: No package.json at the package root
            ManifestParseError: package.json is not a valid manifest
        """
        blob = self.object_store.get(identity.store_key)
        with self.codec.expanded(identity, blob) as staging:
            return self.load_manifest(staging)

    def load_manifest(self, staging: StagingDirectory) -> ManifestDescriptor:
        """Parse package.json from an already expanded staging directory."""
        manifest_path = staging.package_root / self.MANIFEST_NAME
        if not manifest_path.is_file():
            raise ManifestNotFoundError(
                f"{self.MANIFEST_NAME} not found in the package archive", staging.identity
            )

        try:
            content = manifest_path.read_text(encoding="utf-8")
        except OSError as e:
            raise ExtractionError(f"Failed to read {self.MANIFEST_NAME}: {e}", staging.identity) from e

        try:
            data = json.loads(content)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ManifestParseError(f"Malformed {self.MANIFEST_NAME}: {e}", staging.identity) from e

        if not isinstance(data, dict):
            raise ManifestParseError(
                f"{self.MANIFEST_NAME} must contain a JSON object", staging.identity
            )

        try:
            return ManifestDescriptor.from_package_json(data)
        except ValidationError as e:
            raise ManifestParseError(
                f"Invalid dependency declarations in {self.MANIFEST_NAME}: {e}", staging.identity
            ) from e

    def read_readme(self, identity: ArtifactIdentity) -> Optional[str]:
        """
        Find and read the first README anywhere in a stored artifact.

        The search is depth-first from the staging root. Within a directory,
        files are checked in sorted order before its subdirectories are
        descended into, also in sorted order.

        Args:
            identity: Artifact to search

        Returns:
            README content, or None if the package has no README (or the
            search bounds were exhausted before one was found)

        Raises:
            NotFoundError: No artifact stored under identity
            ExtractionError: The expanded tree could not be read
        """
        blob = self.object_store.get(identity.store_key)
        with self.codec.expanded(identity, blob) as staging:
            readme_path = self.find_readme(staging)
            if readme_path is None:
                return None
            try:
                return readme_path.read_bytes().decode("utf-8", errors="replace")
            except OSError as e:
                raise ExtractionError(f"Failed to read {readme_path.name}: {e}", identity) from e

    def find_readme(self, staging: StagingDirectory) -> Optional[Path]:
        """Locate a README under a staging directory, honouring search bounds."""
        budget = _SearchBudget(self.max_entries)
        try:
            found = self._search(staging.root, 0, budget)
        except OSError as e:
            print(f"[metadata_extractor] ERROR: Failed to search {staging.root}: {e}")
            raise ExtractionError(f"Failed to read staging directory: {e}", staging.identity) from e

        if found is None and budget.remaining < 0:
            print(
                f"[metadata_extractor] WARNING: README search for {staging.identity} stopped "
                f"after {self.max_entries} entries"
            )
        return found

    def _search(self, directory: Path, depth: int, budget: _SearchBudget) -> Optional[Path]:
        files = []
        subdirs = []
        with os.scandir(directory) as entries:
            for entry in entries:
                if not budget.spend():
                    return None
                if entry.is_dir(follow_symlinks=False):
                    subdirs.append(entry.name)
                elif entry.is_file(follow_symlinks=False):
                    files.append(entry.name)

        for name in sorted(files):
            if self.README_PATTERN.fullmatch(name):
                return directory / name

        if depth >= self.max_depth:
            return None

        for name in sorted(subdirs):
            found = self._search(directory / name, depth + 1, budget)
            if found is not None or budget.remaining < 0:
                return found
        return None
