"""
Services layer for the package artifact pipeline.
"""

from .errors import (
    PipelineError,
    NotFoundError,
    StoreError,
    ArchiveFormatError,
    ManifestNotFoundError,
    ManifestParseError,
    DirectoryCreationError,
    ExtractionError,
    TransformError,
)
from .object_store import ObjectStoreGateway, GridFSObjectStore, S3ObjectStore, get_object_store
from .staging import StagingAreaManager, get_staging_manager
from .archive_codec import ArchiveCodec
from .metadata_extractor import MetadataExtractor
from .content_transformer import ContentTransformer, minify_source
from .identity_locks import IdentityLockRegistry, get_lock_registry
from .artifact_pipeline import ArtifactPipeline, get_artifact_pipeline

__all__ = [
    "PipelineError",
    "NotFoundError",
    "StoreError",
    "ArchiveFormatError",
    "ManifestNotFoundError",
    "ManifestParseError",
    "DirectoryCreationError",
    "ExtractionError",
    "TransformError",
    "ObjectStoreGateway",
    "GridFSObjectStore",
    "S3ObjectStore",
    "get_object_store",
    "StagingAreaManager",
    "get_staging_manager",
    "ArchiveCodec",
    "MetadataExtractor",
    "ContentTransformer",
    "minify_source",
    "IdentityLockRegistry",
    "get_lock_registry",
    "ArtifactPipeline",
    "get_artifact_pipeline",
]
