"""
Data models for the package artifact pipeline.
"""

from .artifact import (
    ArtifactIdentity,
    DebloatReport,
    FileDebloatResult,
    ManifestDescriptor,
    StagingDirectory,
    StagingPurpose,
)

__all__ = [
    "ArtifactIdentity",
    "DebloatReport",
    "FileDebloatResult",
    "ManifestDescriptor",
    "StagingDirectory",
    "StagingPurpose",
]
