"""
Registry source protocol definition.

Defines the read-only, repo-aware interface the pull pipeline consumes. All
operations are scoped to a registry and repository, which reflects how the
OCI Distribution API works and lets tests substitute an in-memory registry.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Iterator, Protocol, runtime_checkable

from ..media_types import (
    DOCKER_MANIFEST_V1,
    OCI_IMAGE_INDEX,
    OCI_IMAGE_MANIFEST,
)

__all__ = ["RawManifest", "RegistrySource", "detect_media_type"]


@dataclass(frozen=True)
class RawManifest:
    """
    Manifest exactly as served by the registry.

    Invariants:
    - content: the byte-exact body; digests are computed over it
    - digest: "algorithm:hex" of content
    - media_type: declared media type, or inferred from the body when the
      registry sent none
    """
    content: bytes
    media_type: str
    digest: str

    @property
    def size(self) -> int:
        return len(self.content)


@runtime_checkable
class RegistrySource(Protocol):
    """Read operations against an OCI registry."""

    def get_manifest(self, registry: str, repository: str, ref: str) -> RawManifest:
        """
        GET manifest content.

        Args:
            registry: Registry host (e.g., "ghcr.io")
            repository: Repository path (e.g., "library/nginx")
            ref: Tag or digest reference

        Returns:
            RawManifest with byte-exact content

        Raises:
            ManifestNotFoundError: If manifest doesn't exist
            RegistryAuthError: If authentication fails
            DigestMismatchError: If ref is a digest and content does not match
            FetchError: For other registry errors
        """
        ...

    def iter_blob(self, registry: str, repository: str, digest: str) -> Iterator[bytes]:
        """
        Stream blob content by digest.

        Args:
            registry: Registry host
            repository: Repository path
            digest: Content digest

        Yields:
            Chunks of blob content

        Raises:
            ManifestNotFoundError: If blob doesn't exist
            RegistryAuthError: If authentication fails
            FetchError: For other registry errors
        """
        ...


def detect_media_type(content: bytes, declared: str | None) -> str:
    """
    Work out a manifest's media type.

    The Content-Type the registry declared wins when present (ignoring any
    parameters). Otherwise the body's own "mediaType" field is used, and as a
    last resort the shape of the document.
    """
    if declared:
        declared = declared.split(";", 1)[0].strip()
        if declared and declared not in ("application/json", "text/plain", "application/octet-stream"):
            return declared

    try:
        body = json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return declared or "application/octet-stream"
    if not isinstance(body, dict):
        return declared or "application/octet-stream"

    media_type = body.get("mediaType")
    if isinstance(media_type, str) and media_type:
        return media_type
    if body.get("schemaVersion") == 1:
        return DOCKER_MANIFEST_V1
    if "manifests" in body:
        return OCI_IMAGE_INDEX
    if "layers" in body and "config" in body:
        return OCI_IMAGE_MANIFEST
    return declared or "application/octet-stream"

