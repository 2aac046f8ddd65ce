"""
Remote descriptor: the root manifest a reference points at.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from .errors import NotAnIndexError, NotASingleImageError, UnresolvableReferenceError
from .image import Image, ImageIndex, Platform
from .media_types import is_image, is_index
from .reference import Reference
from .remote.source import RawManifest, RegistrySource

logger = logging.getLogger(__name__)

__all__ = ["RemoteDescriptor", "fetch_descriptor"]


@dataclass(frozen=True)
class RemoteDescriptor:
    """
    Root manifest of a reference plus the means to fetch what it points at.

    Attributes:
        source: Registry the manifest came from
        reference: Reference that was fetched
        manifest: Raw root manifest
    """
    source: RegistrySource
    reference: Reference
    manifest: RawManifest

    @property
    def media_type(self) -> str:
        return self.manifest.media_type

    @property
    def digest(self) -> str:
        return self.manifest.digest

    @property
    def size(self) -> int:
        return self.manifest.size

    def image_index(self) -> ImageIndex:
        """
        Interpret the manifest as an index.

        Raises:
            NotAnIndexError: If the manifest is not an index
        """
        if not is_index(self.media_type):
            raise NotAnIndexError(f"{self.reference} is a {self.media_type}, not an index")
        return ImageIndex(self.source, self.reference.registry, self.reference.repository, self.manifest)

    def image(self, platform: Platform) -> Image:
        """
        Resolve a single-platform image.

        An image manifest is returned as is; an index is narrowed to the
        child matching platform.

        Raises:
            NotASingleImageError: If no single image can be resolved
        """
        if is_image(self.media_type):
            return Image(self.source, self.reference.registry, self.reference.repository, self.manifest)
        if is_index(self.media_type):
            return self.image_index().image_for(platform)
        raise NotASingleImageError(f"{self.reference} is a {self.media_type}, not an image")


def fetch_descriptor(source: RegistrySource, reference: Reference) -> RemoteDescriptor:
    """
    Fetch the root manifest for a reference.

    Raises:
        UnresolvableReferenceError: If the reference has neither tag nor digest
        FetchError: If the registry interaction fails
    """
    identifier = reference.identifier
    if identifier is None:
        raise UnresolvableReferenceError(f"Reference is neither a tag nor a digest: {reference}")
    manifest = source.get_manifest(reference.registry, reference.repository, identifier)
    logger.debug(f"Root manifest of {reference}: {manifest.media_type} {manifest.digest}")
    return RemoteDescriptor(source=source, reference=reference, manifest=manifest)
