"""
Artifact API request/response schemas.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ArtifactContent(BaseModel):
    """Base64-encoded zip archive."""

    content: str = Field(..., min_length=1, description="Base64-encoded zip archive")


class ReadmeResponse(BaseModel):
    """README text of a package, if it has one."""

    readme: Optional[str] = Field(default=None, description="README content or null when absent")
