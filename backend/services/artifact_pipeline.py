"""
Artifact pipeline orchestrator.

Async entry points for storing, converting, debloating and inspecting package
artifacts. Sequencing only: each operation holds the artifact's identity lock
and runs the blocking component call in a worker thread.
"""

import asyncio
import base64
import binascii
from typing import Any, Callable, Optional, TypeVar

import env
from models.artifact import ArtifactIdentity, DebloatReport, ManifestDescriptor
from services.archive_codec import ArchiveCodec, read_zip_member_names
from services.content_transformer import ContentTransformer
from services.errors import ArchiveFormatError, PipelineError
from services.identity_locks import IdentityLockRegistry, get_lock_registry
from services.metadata_extractor import MetadataExtractor
from services.object_store import ObjectStoreGateway, get_object_store
from services.staging import StagingAreaManager, get_staging_manager

T = TypeVar("T")


def decode_payload(payload: str, identity: Optional[ArtifactIdentity] = None) -> bytes:
    """
    Decode a base64 archive payload.

    Raises:
        ArchiveFormatError: If the payload is not valid base64
    """
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ArchiveFormatError(f"Payload is not valid base64: {e}", identity) from e


def _identity(package_id: int, version_id: int) -> ArtifactIdentity:
    try:
        return ArtifactIdentity(package_id, version_id)
    except (TypeError, ValueError) as e:
        raise PipelineError(f"Invalid artifact identity: {e}") from e


class ArtifactPipeline:
    """
    Composes the object store, staging manager, codec, extractor and
    transformer into the externally visible artifact operations.

    Every component failure reaches the caller as a PipelineError subclass;
    anything else is wrapped in PipelineError. Nothing is retried.
    """

    def __init__(
        self,
        object_store: ObjectStoreGateway,
        staging_manager: StagingAreaManager,
        locks: Optional[IdentityLockRegistry] = None,
        max_archive_size: Optional[int] = None,
        readme_max_depth: int = 16,
        readme_max_entries: int = 10_000,
    ):
        self.object_store = object_store
        self.staging_manager = staging_manager
        self.locks = locks or IdentityLockRegistry()
        self.codec = ArchiveCodec(staging_manager, object_store, max_archive_size=max_archive_size)
        self.extractor = MetadataExtractor(
            self.codec,
            object_store,
            max_depth=readme_max_depth,
            max_entries=readme_max_entries,
        )
        self.transformer = ContentTransformer(self.codec, self.extractor, object_store)

    async def ingest_from_tar(self, package_id: int, version_id: int, tar_bytes: bytes) -> None:
        """Convert an inbound tarball to the canonical zip and store it."""
        identity = _identity(package_id, version_id)
        await self._run(identity, "ingest", self.codec.convert_tar_to_zip, identity, tar_bytes)

    async def debloat(self, package_id: int, version_id: int, package_zip: str) -> DebloatReport:
        """Store a base64 zip, minify its sources and replace it with the result."""
        identity = _identity(package_id, version_id)
        blob = decode_payload(package_zip, identity)
        return await self._run(identity, "debloat", self.transformer.debloat, identity, blob)

    async def read_manifest(self, package_id: int, version_id: int) -> ManifestDescriptor:
        """Parse package.json out of a stored artifact."""
        identity = _identity(package_id, version_id)
        return await self._run(identity, "read_manifest", self.extractor.read_manifest, identity)

    async def read_readme(self, package_id: int, version_id: int) -> Optional[str]:
        """Return the first README found in a stored artifact, or None."""
        identity = _identity(package_id, version_id)
        return await self._run(identity, "read_readme", self.extractor.read_readme, identity)

    async def read_artifact(self, package_id: int, version_id: int) -> str:
        """Return a stored artifact as base64."""
        identity = _identity(package_id, version_id)
        blob = await self._run(identity, "read_artifact", self.object_store.get, identity.store_key)
        return base64.b64encode(blob).decode("ascii")

    async def write_artifact(self, package_id: int, version_id: int, package_zip: str) -> None:
        """Store a base64 zip, fully replacing any previous artifact."""
        identity = _identity(package_id, version_id)
        blob = decode_payload(package_zip, identity)
        await self._run(identity, "write_artifact", self._write_blob, identity, blob)

    def _write_blob(self, identity: ArtifactIdentity, blob: bytes) -> None:
        if not blob:
            raise ArchiveFormatError("Archive is empty", identity)
        read_zip_member_names(blob)
        self.object_store.put(identity.store_key, blob)

    async def _run(
        self,
        identity: ArtifactIdentity,
        operation: str,
        func: Callable[..., T],
        *args: Any,
    ) -> T:
        async with self.locks.hold(identity):
            try:
                result = await asyncio.to_thread(func, *args)
            except PipelineError as e:
                if e.identity is None:
                    e.identity = identity
                print(f"[artifact_pipeline] ERROR: {operation} failed for {identity}: {e}")
                raise
            except Exception as e:
                print(f"[artifact_pipeline] ERROR: {operation} failed for {identity}: {e}")
                raise PipelineError(f"{operation} failed: {e}", identity) from e

        print(f"[artifact_pipeline] {operation} completed for {identity}")
        return result


# Global singleton instance
_pipeline: Optional[ArtifactPipeline] = None


def get_artifact_pipeline() -> ArtifactPipeline:
    """Get or create the global artifact pipeline wired from env settings."""
    global _pipeline
    if _pipeline is None:
        _pipeline = ArtifactPipeline(
            object_store=get_object_store(),
            staging_manager=get_staging_manager(),
            locks=get_lock_registry(),
            max_archive_size=env.MAX_ARCHIVE_SIZE,
            readme_max_depth=env.README_SEARCH_MAX_DEPTH,
            readme_max_entries=env.README_SEARCH_MAX_ENTRIES,
        )
    return _pipeline
