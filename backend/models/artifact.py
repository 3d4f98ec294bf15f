"""
Artifact model - stored package archives and their transient working forms.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


@dataclass(frozen=True)
class ArtifactIdentity:
    """Identity of one stored package version archive."""

    package_id: int
    version_id: int

    def __post_init__(self):
        if self.package_id < 0 or self.version_id < 0:
            raise ValueError(
                f"Artifact ids must be non-negative, got {self.package_id}-{self.version_id}"
            )

    @property
    def slug(self) -> str:
        return f"{self.package_id}-{self.version_id}"

    @property
    def store_key(self) -> str:
        """Object store key, e.g. '12-3.zip'."""
        return f"{self.slug}.zip"

    def __str__(self) -> str:
        return self.slug


class StagingPurpose(str, Enum):
    """What a staging directory is used for."""
    UNZIP = "unzip"
    CONVERSION = "conversion"


@dataclass
class StagingDirectory:
    """
    Ephemeral on-disk working directory owned by a single pipeline operation.

    Handles are created by the StagingAreaManager and passed explicitly to the
    codec, extractor and transformer; nothing else builds staging paths.
    """

    identity: ArtifactIdentity
    purpose: StagingPurpose
    root: Path
    top_level: Optional[str] = None  # Root folder inside the archive, if any

    @property
    def package_root(self) -> Path:
        """Directory holding package.json and sources."""
        if self.top_level and (self.root / self.top_level).is_dir():
            return self.root / self.top_level
        return self.root


class ManifestDescriptor(BaseModel):
    """Parsed package.json, restricted to what the pipeline needs."""

    name: Optional[str] = Field(default=None, description="Package name")
    version: Optional[str] = Field(default=None, description="Package version")
    dependencies: Dict[str, str] = Field(default_factory=dict)
    peer_dependencies: Dict[str, str] = Field(default_factory=dict, alias="peerDependencies")
    optional_dependencies: Dict[str, str] = Field(default_factory=dict, alias="optionalDependencies")
    raw: Dict[str, Any] = Field(default_factory=dict, description="Full package.json object")

    class Config:
        populate_by_name = True

    @classmethod
    def from_package_json(cls, data: Dict[str, Any]) -> "ManifestDescriptor":
        """Build a descriptor from a decoded package.json object."""
        return cls(
            name=data.get("name"),
            version=data.get("version"),
            dependencies=data.get("dependencies") or {},
            peerDependencies=data.get("peerDependencies") or {},
            optionalDependencies=data.get("optionalDependencies") or {},
            raw=data,
        )

    @property
    def external_dependencies(self) -> List[str]:
        """Names that must stay external references when minifying."""
        names = set(self.dependencies) | set(self.peer_dependencies) | set(self.optional_dependencies)
        return sorted(names)


class FileDebloatResult(BaseModel):
    """Outcome of minifying one source file."""

    path: str = Field(..., description="Path relative to the package root")
    original_size: int = Field(..., ge=0)
    minified_size: int = Field(..., ge=0)
    external_references: List[str] = Field(default_factory=list)
    undeclared_imports: List[str] = Field(default_factory=list)


class DebloatReport(BaseModel):
    """Aggregate outcome of a debloat pass over one artifact."""

    package_id: int
    version_id: int
    files: List[FileDebloatResult] = Field(default_factory=list)
    original_blob_size: int = Field(default=0, ge=0)
    debloated_blob_size: int = Field(default=0, ge=0)

    @property
    def bytes_saved(self) -> int:
        return sum(f.original_size - f.minified_size for f in self.files)
