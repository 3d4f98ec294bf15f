"""
Shared fixtures for artifact pipeline tests.
"""

import io
import tarfile
import zipfile
from pathlib import Path
from typing import Dict, List, Union

import pytest

from models.artifact import ArtifactIdentity
from services.archive_codec import ArchiveCodec
from services.artifact_pipeline import ArtifactPipeline
from services.content_transformer import ContentTransformer
from services.errors import NotFoundError, StoreError
from services.metadata_extractor import MetadataExtractor
from services.object_store import ObjectStoreGateway
from services.staging import StagingAreaManager

FileMap = Dict[str, Union[str, bytes]]


class InMemoryObjectStore(ObjectStoreGateway):
    """Dict-backed store that records writes and can be told to fail them."""

    def __init__(self):
        self.blobs: Dict[str, bytes] = {}
        self.puts: List[str] = []
        self.fail_puts = False

    def put(self, key: str, data: bytes) -> None:
        if self.fail_puts:
            raise StoreError(f"Failed to store {key}: store unavailable")
        self.puts.append(key)
        self.blobs[key] = bytes(data)

    def get(self, key: str) -> bytes:
        if key not in self.blobs:
            raise NotFoundError(f"No artifact stored under {key}")
        return self.blobs[key]


def _as_bytes(content: Union[str, bytes]) -> bytes:
    return content.encode("utf-8") if isinstance(content, str) else content


def make_zip(files: FileMap) -> bytes:
    """Build a zip blob with entries in dict order."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, content in files.items():
            archive.writestr(name, _as_bytes(content))
    return buffer.getvalue()


def make_tarball(files: FileMap, mode: str = "w:gz", directories: List[str] = ()) -> bytes:
    """Build a tarball (gzip by default) with entries in dict order."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode=mode) as tar:
        for name in directories:
            info = tarfile.TarInfo(name)
            info.type = tarfile.DIRTYPE
            info.mode = 0o755
            tar.addfile(info)
        for name, content in files.items():
            data = _as_bytes(content)
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def read_zip(blob: bytes) -> Dict[str, bytes]:
    with zipfile.ZipFile(io.BytesIO(blob)) as archive:
        return {name: archive.read(name) for name in archive.namelist() if not name.endswith("/")}


def staging_residue(staging_root: Path) -> List[Path]:
    """Anything under the staging root other than the per-purpose parent folders."""
    if not staging_root.exists():
        return []
    return [path for path in staging_root.rglob("*") if path.parent != staging_root]


@pytest.fixture
def identity() -> ArtifactIdentity:
    return ArtifactIdentity(7, 3)


@pytest.fixture
def store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def staging_root(tmp_path) -> Path:
    return tmp_path / "staging"


@pytest.fixture
def staging_manager(staging_root) -> StagingAreaManager:
    return StagingAreaManager(staging_root)


@pytest.fixture
def codec(staging_manager, store) -> ArchiveCodec:
    return ArchiveCodec(staging_manager, store)


@pytest.fixture
def extractor(codec, store) -> MetadataExtractor:
    return MetadataExtractor(codec, store)


@pytest.fixture
def transformer(codec, extractor, store) -> ContentTransformer:
    return ContentTransformer(codec, extractor, store)


@pytest.fixture
def pipeline(store, staging_manager) -> ArtifactPipeline:
    return ArtifactPipeline(object_store=store, staging_manager=staging_manager)
