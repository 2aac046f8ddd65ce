"""
Format dispatch: route a fetched descriptor to exactly one writer.

Design Notes: Format Dispatch

Each output format has different structural needs:

- ``tar-v1`` and ``tar-legacy`` hold a single image and record a
  ``repository:tag``; an index is narrowed to the configured platform and a
  digest reference gets a placeholder tag.
- ``oci-layout`` stores indexes and images alike and records the original
  reference string as an annotation instead of a tag.

Every shape decision is made before anything touches the filesystem. For
layouts the manifest is classified into a tagged union first, so data that
is neither an index nor an image is rejected without opening or creating the
layout directory.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Union

from .errors import NeitherImageNorIndexError, NotAnIndexError, NotASingleImageError, UnknownFormatError
from .fetch import RemoteDescriptor
from .image import Image, ImageIndex, Platform
from .media_types import ANNOTATION_REF_NAME, SCHEMA1_MANIFEST_TYPES
from .reference import Reference
from .resolver import DEFAULT_DIGEST_TAG, resolve_tag
from .settings import DEFAULT_PLATFORM
from .writers.atomic import atomic_file
from .writers.layout import open_or_create
from .writers.tarball import write_legacy_tarball, write_v1_tarball

logger = logging.getLogger(__name__)

__all__ = [
    "OutputFormat",
    "FORMAT_ALIASES",
    "IndexSubject",
    "ImageSubject",
    "NeitherSubject",
    "LayoutSubject",
    "classify_subject",
    "FormatDispatcher",
]


class OutputFormat(str, Enum):
    """Supported on-disk representations."""
    TAR_V1 = "tar-v1"
    TAR_LEGACY = "tar-legacy"
    OCI_LAYOUT = "oci-layout"

    @property
    def requires_tag(self) -> bool:
        return self is not OutputFormat.OCI_LAYOUT

    @classmethod
    def parse(cls, token: str) -> OutputFormat:
        """
        Map a format token (or one of its aliases) to an OutputFormat.

        Raises:
            UnknownFormatError: If the token names no supported format
        """
        name = FORMAT_ALIASES.get(token, token)
        try:
            return cls(name)
        except ValueError:
            choices = ", ".join(f.value for f in cls)
            raise UnknownFormatError(f"Unknown format {token!r}. Choose one of: {choices}", token=token) from None

    def __str__(self) -> str:
        return self.value


# Names the formats went by in earlier releases
FORMAT_ALIASES: Dict[str, str] = {
    "v1-tarball": OutputFormat.TAR_V1.value,
    "legacy-tarball": OutputFormat.TAR_LEGACY.value,
    "v1-layout": OutputFormat.OCI_LAYOUT.value,
}


@dataclass(frozen=True)
class IndexSubject:
    index: ImageIndex


@dataclass(frozen=True)
class ImageSubject:
    image: Image


@dataclass(frozen=True)
class NeitherSubject:
    media_type: str


LayoutSubject = Union[IndexSubject, ImageSubject, NeitherSubject]


def classify_subject(descriptor: RemoteDescriptor, platform: Platform) -> LayoutSubject:
    """
    Decide how a descriptor is stored in a layout.

    The index interpretation is tried first; the image interpretation only
    when that fails. Nothing is written.
    """
    try:
        return IndexSubject(descriptor.image_index())
    except NotAnIndexError as e:
        logger.debug(f"Not storing as index: {e}")
    try:
        return ImageSubject(descriptor.image(platform))
    except NotASingleImageError as e:
        logger.debug(f"Not storing as image: {e}")
    return NeitherSubject(descriptor.media_type)


class FormatDispatcher:
    """
    Materializes a descriptor in one output format.

    Args:
        platform: Platform picked from an index for tarball formats
        digest_tag: Placeholder tag recorded for digest references
    """

    def __init__(self, platform: Optional[Platform] = None, digest_tag: str = DEFAULT_DIGEST_TAG):
        self.platform = platform or Platform.parse(DEFAULT_PLATFORM)
        self.digest_tag = digest_tag

    def dispatch(self, descriptor: RemoteDescriptor, fmt: OutputFormat,
                 target_path: Union[str, Path], reference: Reference) -> Optional[Image]:
        """
        Write descriptor to target_path in format fmt.

        Returns:
            The single-platform image that was written, or None when an
            index was stored

        Raises:
            NotASingleImageError: Tarball format and no single image resolves
            UnresolvableReferenceError: Tarball format and no tag can be derived
            NeitherImageNorIndexError: Layout format and the manifest is neither
            FetchError: If fetching blobs fails
            WriteError: If persisting fails
        """
        target_path = Path(target_path)
        if not isinstance(fmt, OutputFormat):
            raise UnknownFormatError(f"Unknown format {fmt!r}", token=str(fmt))
        if not fmt.requires_tag:
            return self._write_layout(descriptor, target_path, reference)

        image = descriptor.image(self.platform)
        tag = resolve_tag(reference, self.digest_tag)
        if fmt is OutputFormat.TAR_V1:
            write_v1_tarball(target_path, tag, image)
        else:
            with atomic_file(target_path) as out:
                write_legacy_tarball(out, tag, image)
            logger.info(f"Saved legacy tarball to {target_path}")
        return image

    def _write_layout(self, descriptor: RemoteDescriptor, target_path: Path,
                      reference: Reference) -> Optional[Image]:
        subject = classify_subject(descriptor, self.platform)
        if isinstance(subject, NeitherSubject):
            if subject.media_type in SCHEMA1_MANIFEST_TYPES:
                raise NeitherImageNorIndexError(
                    f"{reference} is a schema 1 manifest ({subject.media_type}), which is not supported"
                )
            raise NeitherImageNorIndexError(
                f"{reference} is a {subject.media_type}, neither an image nor an index"
            )

        annotations = {ANNOTATION_REF_NAME: reference.original or reference.name}
        layout = open_or_create(target_path)
        if isinstance(subject, IndexSubject):
            layout.append_index(subject.index, annotations)
            return None
        layout.append_image(subject.image, annotations)
        return subject.image
