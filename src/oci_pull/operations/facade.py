"""
Operations Facade - Application service layer.

Provides a clean interface between the CLI and the pull pipeline,
centralizing command orchestration, configuration, and policy decisions
while keeping CLI commands thin and testable.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from ..dispatch import FormatDispatcher, OutputFormat
from ..errors import NotASingleImageError
from ..fetch import RemoteDescriptor, fetch_descriptor
from ..image import Image, Platform
from ..reference import Reference, parse_reference
from ..remote.source import RawManifest, RegistrySource
from ..settings import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OpsConfig:
    """
    Configuration for Operations facade.

    Per-invocation output policy, passed in explicitly rather than read from
    globals.
    """
    detail: bool = False          # Show manifest and digests after a pull
    verbose: bool = False         # Show detailed output


@dataclass(frozen=True)
class PullResult:
    """
    Outcome of a successful pull.

    Attributes:
        reference: Parsed reference that was pulled
        output_format: Format written
        target_path: Where it was written
        manifest: Root manifest as served by the registry
        image_digest: Digest of the single-platform image written, if one was resolved
        image_size: Size of that image manifest
    """
    reference: Reference
    output_format: OutputFormat
    target_path: Path
    manifest: RawManifest
    image_digest: Optional[str] = None
    image_size: Optional[int] = None


class Operations:
    """
    Application service facade for CLI operations.

    Design Notes: Operations Facade

    The facade separates CLI parsing/formatting from the pull pipeline. It
    centralizes:

    - Command orchestration (one method per CLI verb)
    - Configuration policy (platform, placeholder tag, output detail)
    - Registry injection (enables testing with fakes)
    - Error boundary (exceptions bubble up for central mapping)
    """

    def __init__(self, config: OpsConfig, registry: Optional[RegistrySource] = None,
                 settings: Optional[Settings] = None):
        """
        Initialize Operations facade.

        Args:
            config: Configuration settings
            registry: Registry source (if None, an HTTP client is built from settings)
            settings: Optional settings (if None, loaded from environment)
        """
        self.cfg = config

        # Load settings if not provided
        if settings is None:
            from ..settings import create_settings_from_env
            settings = create_settings_from_env()
        self.settings = settings

        # Create registry if not provided
        if registry is None:
            from ..remote.http import RegistryHTTP
            self.registry = RegistryHTTP(settings)
            self._owns_registry = True
        else:
            self.registry = registry
            self._owns_registry = False

    def pull(self, reference: str, output_format: Union[str, OutputFormat],
             target_path: Union[str, Path]) -> PullResult:
        """
        Fetch an image or index and persist it in one format.

        The format is validated before the reference is parsed and before any
        network or filesystem I/O.

        Args:
            reference: Image reference string (e.g. "ghcr.io/org/app:v1")
            output_format: Format token or OutputFormat
            target_path: Output file (tarballs) or directory (layout)

        Returns:
            PullResult describing what was written

        Raises:
            UnknownFormatError: If the format token is not supported
            InvalidReferenceError: If the reference cannot be parsed
            FetchError: If the registry interaction fails
            ManifestShapeError: If the manifest does not fit the format
            WriteError: If persisting fails
        """
        fmt = output_format if isinstance(output_format, OutputFormat) else OutputFormat.parse(output_format)
        ref = parse_reference(reference)
        target = Path(target_path)

        started = time.monotonic()
        descriptor = fetch_descriptor(self.registry, ref)
        logger.info(f"Fetched {ref} ({descriptor.media_type}) in {time.monotonic() - started:.2f}s")

        dispatcher = FormatDispatcher(
            platform=Platform.parse(self.settings.platform),
            digest_tag=self.settings.digest_tag,
        )
        started = time.monotonic()
        image = dispatcher.dispatch(descriptor, fmt, target, ref)
        logger.info(f"Saved {ref} as {fmt} to {target} in {time.monotonic() - started:.2f}s")

        if image is None and (self.cfg.detail or self.cfg.verbose):
            image = self._platform_image(descriptor, dispatcher.platform)
        if image is not None:
            logger.info(f"Image manifest {image.digest} ({image.size} bytes)")

        return PullResult(
            reference=ref,
            output_format=fmt,
            target_path=target,
            manifest=descriptor.manifest,
            image_digest=image.digest if image is not None else None,
            image_size=image.size if image is not None else None,
        )

    def _platform_image(self, descriptor: RemoteDescriptor, platform: Platform) -> Optional[Image]:
        """Image an index resolves to for the configured platform, for diagnostics only."""
        try:
            return descriptor.image(platform)
        except NotASingleImageError as e:
            logger.info(f"No image manifest to report: {e}")
            return None

    def close(self) -> None:
        """Close the registry client if this facade created it."""
        if self._owns_registry:
            self.registry.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
