"""
Artifact API router.

Authentication and package/version records live in front of this router;
ids reaching it are trusted.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path, Request, Response

from api.artifacts.schemas import ArtifactContent, ReadmeResponse
from models.artifact import DebloatReport
from services.artifact_pipeline import ArtifactPipeline, get_artifact_pipeline
from services.errors import (
    ArchiveFormatError,
    ManifestNotFoundError,
    ManifestParseError,
    NotFoundError,
    PipelineError,
    StoreError,
    TransformError,
)

router = APIRouter(
    prefix="/artifacts",
    tags=["artifacts"],
)

PackageId = Annotated[int, Path(ge=0, description="Package ID")]
VersionId = Annotated[int, Path(ge=0, description="Version ID")]


def get_pipeline() -> ArtifactPipeline:
    """Dependency injection for the ArtifactPipeline singleton."""
    return get_artifact_pipeline()


def to_http_error(error: PipelineError) -> HTTPException:
    """Map a pipeline error onto an HTTP status."""
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, (ArchiveFormatError, ManifestNotFoundError, ManifestParseError, TransformError)):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, StoreError):
        return HTTPException(status_code=502, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))


@router.get("/{package_id}/{version_id}", response_model=ArtifactContent)
async def download_artifact(
    package_id: PackageId,
    version_id: VersionId,
    pipeline: ArtifactPipeline = Depends(get_pipeline),
):
    """Download a stored package archive as base64."""
    try:
        content = await pipeline.read_artifact(package_id, version_id)
    except PipelineError as e:
        raise to_http_error(e) from e
    return ArtifactContent(content=content)


@router.put("/{package_id}/{version_id}", status_code=204)
async def upload_artifact(
    request: ArtifactContent,
    package_id: PackageId,
    version_id: VersionId,
    pipeline: ArtifactPipeline = Depends(get_pipeline),
):
    """Store a base64 zip archive, replacing any existing one."""
    try:
        await pipeline.write_artifact(package_id, version_id, request.content)
    except PipelineError as e:
        raise to_http_error(e) from e
    return Response(status_code=204)


@router.post("/{package_id}/{version_id}/tarball", status_code=201)
async def upload_tarball(
    raw: Request,
    package_id: PackageId,
    version_id: VersionId,
    pipeline: ArtifactPipeline = Depends(get_pipeline),
):
    """
    Store a package from a raw tarball request body.

    The tarball (e.g. an npm .tgz) is converted to the canonical zip form.
    """
    tar_bytes = await raw.body()
    try:
        await pipeline.ingest_from_tar(package_id, version_id, tar_bytes)
    except PipelineError as e:
        raise to_http_error(e) from e
    return {"package_id": package_id, "version_id": version_id, "status": "stored"}


@router.post("/{package_id}/{version_id}/debloat", response_model=DebloatReport)
async def debloat_artifact(
    request: ArtifactContent,
    package_id: PackageId,
    version_id: VersionId,
    pipeline: ArtifactPipeline = Depends(get_pipeline),
):
    """
    Store a base64 zip archive with its sources minified.

    Destructive: the stored artifact is the minified one.
    """
    try:
        return await pipeline.debloat(package_id, version_id, request.content)
    except PipelineError as e:
        raise to_http_error(e) from e


@router.get("/{package_id}/{version_id}/manifest")
async def get_manifest(
    package_id: PackageId,
    version_id: VersionId,
    pipeline: ArtifactPipeline = Depends(get_pipeline),
):
    """Return the package.json of a stored archive."""
    try:
        manifest = await pipeline.read_manifest(package_id, version_id)
    except PipelineError as e:
        raise to_http_error(e) from e
    return manifest.raw


@router.get("/{package_id}/{version_id}/readme", response_model=ReadmeResponse)
async def get_readme(
    package_id: PackageId,
    version_id: VersionId,
    pipeline: ArtifactPipeline = Depends(get_pipeline),
):
    """Return the README of a stored archive, or null if it has none."""
    try:
        readme = await pipeline.read_readme(package_id, version_id)
    except PipelineError as e:
        raise to_http_error(e) from e
    return ReadmeResponse(readme=readme)
