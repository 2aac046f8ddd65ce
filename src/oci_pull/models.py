"""
Data models for OCI manifests, indexes and descriptors.

These Pydantic models validate the JSON documents exchanged with registries
and written to image layouts. Unknown fields are kept so that documents
round-trip without loss; manifests themselves are always stored as the raw
bytes the registry served, never re-serialized from these models.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .media_types import OCI_IMAGE_INDEX

_DIGEST_PREFIXES = ("sha256:", "sha512:")


class PlatformSpec(BaseModel):
    """Platform of an index entry."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    architecture: str = Field(..., description="CPU architecture (amd64, arm64, ...)")
    os: str = Field(..., description="Operating system (linux, windows, ...)")
    variant: Optional[str] = Field(default=None, description="CPU variant (v7, v8, ...)")
    os_version: Optional[str] = Field(default=None, alias="os.version")


class Descriptor(BaseModel):
    """Content descriptor pointing at a blob or manifest."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    media_type: str = Field(..., alias="mediaType", description="Media type of the target")
    digest: str = Field(..., description="Content digest (sha256:...)")
    size: int = Field(..., ge=0, description="Content size in bytes")
    annotations: Optional[Dict[str, str]] = Field(default=None)
    platform: Optional[PlatformSpec] = Field(default=None)
    urls: Optional[List[str]] = Field(default=None)

    @field_validator("digest")
    @classmethod
    def validate_digest(cls, v: str) -> str:
        if not v.startswith(_DIGEST_PREFIXES):
            raise ValueError(f"Unsupported digest algorithm: {v}")
        return v

    @property
    def hex(self) -> str:
        return self.digest.split(":", 1)[1]

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class ImageManifest(BaseModel):
    """Single-platform image manifest (OCI or Docker schema 2)."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    schema_version: int = Field(..., alias="schemaVersion")
    media_type: Optional[str] = Field(default=None, alias="mediaType")
    config: Descriptor
    layers: List[Descriptor]
    annotations: Optional[Dict[str, str]] = Field(default=None)

    @field_validator("schema_version")
    @classmethod
    def validate_schema_version(cls, v: int) -> int:
        if v != 2:
            raise ValueError(f"Unsupported manifest schemaVersion: {v}")
        return v


class IndexManifest(BaseModel):
    """Multi-platform index (OCI index or Docker manifest list)."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    schema_version: int = Field(..., alias="schemaVersion")
    media_type: Optional[str] = Field(default=None, alias="mediaType")
    manifests: List[Descriptor]
    annotations: Optional[Dict[str, str]] = Field(default=None)

    @field_validator("schema_version")
    @classmethod
    def validate_schema_version(cls, v: int) -> int:
        if v != 2:
            raise ValueError(f"Unsupported index schemaVersion: {v}")
        return v

    @classmethod
    def empty(cls) -> IndexManifest:
        return cls(schemaVersion=2, mediaType=OCI_IMAGE_INDEX, manifests=[])

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


__all__ = ["PlatformSpec", "Descriptor", "ImageManifest", "IndexManifest"]
