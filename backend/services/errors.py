"""
Error taxonomy for the artifact pipeline.

Every component raises one of these; the pipeline orchestrator wraps anything
else in PipelineError before it reaches the caller.
"""

from typing import Optional

from models.artifact import ArtifactIdentity


class PipelineError(Exception):
    """Base (and generic wrapped) artifact pipeline error."""

    def __init__(self, message: str, identity: Optional[ArtifactIdentity] = None):
        super().__init__(message)
        self.message = message
        self.identity = identity

    def __str__(self) -> str:
        if self.identity is not None:
            return f"{self.message} (artifact {self.identity})"
        return self.message


class NotFoundError(PipelineError):
    """No artifact is stored under the requested identity."""


class StoreError(PipelineError):
    """Transport or store-side failure in the object store."""


class ArchiveFormatError(PipelineError):
    """Archive payload is empty, truncated, corrupt or not the expected format."""


class ManifestNotFoundError(PipelineError):
    """package.json is missing from the package root."""


class ManifestParseError(PipelineError):
    """package.json exists but cannot be parsed into a manifest."""


class DirectoryCreationError(PipelineError):
    """A staging directory could not be created."""


class ExtractionError(PipelineError):
    """A staging directory could not be read, written or removed."""


class TransformError(PipelineError):
    """Minification of a package source file failed."""
