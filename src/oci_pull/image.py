"""
Lazy handles over remote images and indexes.

An Image or ImageIndex wraps the raw manifest bytes the registry served and
fetches everything else (config, layers, child manifests) only when asked.
Every blob read is verified against the digest in its descriptor.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from functools import cached_property
from typing import Dict, Iterator, List, Optional, Union

from pydantic import ValidationError

from .digest import verified_chunks
from .errors import FetchError, NotASingleImageError
from .media_types import is_image, is_index
from .models import Descriptor, ImageManifest, IndexManifest, PlatformSpec
from .remote.source import RawManifest, RegistrySource

logger = logging.getLogger(__name__)

__all__ = ["Platform", "Image", "ImageIndex"]

# Variant assumed when a platform leaves it out
DEFAULT_VARIANTS: Dict[str, str] = {
    "arm64": "v8",
    "arm": "v7",
}


@dataclass(frozen=True)
class Platform:
    """Target platform, ``os/architecture[/variant]``."""
    os: str
    architecture: str
    variant: Optional[str] = None

    @classmethod
    def parse(cls, value: str) -> Platform:
        """
        Parse ``os/arch[/variant]``.

        Raises:
            ValueError: If value does not have two or three non-empty parts
        """
        parts = value.split("/")
        if len(parts) not in (2, 3) or not all(parts):
            raise ValueError(f"Invalid platform: {value!r}. Expected os/arch[/variant]")
        variant = parts[2] if len(parts) == 3 else None
        return cls(os=parts[0], architecture=parts[1], variant=variant)

    def matches(self, spec: Optional[PlatformSpec]) -> bool:
        """Whether an index entry's platform satisfies this one."""
        if spec is None:
            return False
        if spec.os != self.os or spec.architecture != self.architecture:
            return False
        wanted = self.variant or DEFAULT_VARIANTS.get(self.architecture)
        if wanted is None:
            return True
        return (spec.variant or DEFAULT_VARIANTS.get(spec.architecture)) == wanted

    def __str__(self) -> str:
        if self.variant:
            return f"{self.os}/{self.architecture}/{self.variant}"
        return f"{self.os}/{self.architecture}"


class _RemoteManifest:
    """Shared plumbing for handles backed by a raw manifest."""

    def __init__(self, source: RegistrySource, registry: str, repository: str, raw: RawManifest):
        self.source = source
        self.registry = registry
        self.repository = repository
        self.raw = raw

    @property
    def digest(self) -> str:
        return self.raw.digest

    @property
    def media_type(self) -> str:
        return self.raw.media_type

    @property
    def size(self) -> int:
        return self.raw.size

    def descriptor(self, annotations: Optional[Dict[str, str]] = None) -> Descriptor:
        """Descriptor pointing at this manifest."""
        return Descriptor(
            media_type=self.media_type,
            digest=self.digest,
            size=self.size,
            annotations=annotations or None,
        )

    def iter_blob(self, descriptor: Descriptor) -> Iterator[bytes]:
        """Stream a blob of this repository, verified against its descriptor."""
        return verified_chunks(
            self.source.iter_blob(self.registry, self.repository, descriptor.digest),
            descriptor.digest,
        )

    def read_blob(self, descriptor: Descriptor) -> bytes:
        return b"".join(self.iter_blob(descriptor))

    def _parse(self, model):
        try:
            return model.model_validate_json(self.raw.content)
        except ValidationError as e:
            raise FetchError(
                f"Registry served an unusable {self.media_type} for "
                f"{self.registry}/{self.repository}@{self.digest}: {e}"
            ) from e

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.registry}/{self.repository}@{self.digest})"


class Image(_RemoteManifest):
    """Single-platform image."""

    @cached_property
    def manifest(self) -> ImageManifest:
        return self._parse(ImageManifest)

    @property
    def config_name(self) -> str:
        """Digest of the config blob, which is also the image ID."""
        return self.manifest.config.digest

    @property
    def layers(self) -> List[Descriptor]:
        return list(self.manifest.layers)

    @cached_property
    def raw_config(self) -> bytes:
        """Config blob bytes, fetched once."""
        logger.debug(f"Fetching config {self.config_name} for {self!r}")
        return self.read_blob(self.manifest.config)

    def config_file(self) -> dict:
        """Parsed config blob."""
        try:
            return json.loads(self.raw_config)
        except ValueError as e:
            raise FetchError(f"Config blob {self.config_name} is not valid JSON: {e}") from e

    def iter_layer(self, layer: Descriptor) -> Iterator[bytes]:
        """Stream a layer blob exactly as stored in the registry."""
        logger.debug(f"Fetching layer {layer.digest} ({layer.size} bytes)")
        return self.iter_blob(layer)


class ImageIndex(_RemoteManifest):
    """Multi-platform index (OCI index or Docker manifest list)."""

    @cached_property
    def manifest(self) -> IndexManifest:
        return self._parse(IndexManifest)

    @property
    def children(self) -> List[Descriptor]:
        return list(self.manifest.manifests)

    def child(self, descriptor: Descriptor) -> Union[ImageIndex, Image, bytes]:
        """
        Resolve an index entry.

        Returns:
            ImageIndex or Image for manifest entries, raw blob bytes for
            entries of any other media type
        """
        if is_index(descriptor.media_type) or is_image(descriptor.media_type):
            raw = self.source.get_manifest(self.registry, self.repository, descriptor.digest)
            if is_index(descriptor.media_type):
                return ImageIndex(self.source, self.registry, self.repository, raw)
            return Image(self.source, self.registry, self.repository, raw)
        return self.read_blob(descriptor)

    def image_for(self, platform: Platform) -> Image:
        """
        Pick the child image for a platform.

        Raises:
            NotASingleImageError: If no image entry matches the platform
        """
        for descriptor in self.manifest.manifests:
            if is_image(descriptor.media_type) and platform.matches(descriptor.platform):
                logger.info(f"Selected {descriptor.digest} for platform {platform}")
                return self.child(descriptor)
        available = sorted(
            str(Platform(d.platform.os, d.platform.architecture, d.platform.variant))
            for d in self.manifest.manifests if d.platform is not None
        )
        raise NotASingleImageError(
            f"Index {self.registry}/{self.repository}@{self.digest} has no image for "
            f"platform {platform} (available: {', '.join(available) or 'none'})"
        )
