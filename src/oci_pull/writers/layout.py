"""
OCI image-layout writer.

A layout is a directory holding an ``oci-layout`` marker, an ``index.json``
and a content-addressed ``blobs/<algorithm>/<hex>`` store. Appending an
image or index writes every blob it references, then adds one descriptor to
``index.json``. Appends accumulate: pulling twice into the same directory
yields two entries.

Appends are not safe against concurrent writers on the same directory.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, Optional, Union

from pydantic import ValidationError

from ..digest import split_digest
from ..errors import WriteError
from ..image import Image, ImageIndex
from ..media_types import OCI_INDEX_FILE, OCI_LAYOUT_FILE, OCI_LAYOUT_VERSION
from ..models import Descriptor, IndexManifest
from .atomic import write_bytes_atomically, write_stream_atomically

logger = logging.getLogger(__name__)

__all__ = ["Layout", "LayoutError", "open_or_create"]


class LayoutError(WriteError):
    """
    Directory is not a usable OCI image layout.

    Raised when:
    - The ``oci-layout`` marker is missing or malformed
    - ``index.json`` is missing or cannot be parsed
    """
    pass


class Layout:
    """OCI image layout rooted at a directory."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> Layout:
        """
        Open an existing layout.

        Raises:
            LayoutError: If path is not a valid layout
        """
        layout = cls(path)
        marker = layout.path / OCI_LAYOUT_FILE
        try:
            data = json.loads(marker.read_bytes())
        except (OSError, ValueError) as e:
            raise LayoutError(f"{layout.path} has no readable {OCI_LAYOUT_FILE} marker: {e}") from e
        if not isinstance(data, dict) or "imageLayoutVersion" not in data:
            raise LayoutError(f"{marker} does not declare an imageLayoutVersion")

        # Fails with LayoutError when index.json is unusable
        layout.index()
        return layout

    @classmethod
    def write(cls, path: Union[str, Path], index: Optional[IndexManifest] = None) -> Layout:
        """
        Initialize a layout at path, replacing any marker and index there.

        Raises:
            WriteError: If the directory cannot be written
        """
        layout = cls(path)
        try:
            (layout.path / "blobs").mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WriteError(f"Cannot create layout at {layout.path}: {e}") from e
        write_bytes_atomically(
            layout.path / OCI_LAYOUT_FILE,
            json.dumps({"imageLayoutVersion": OCI_LAYOUT_VERSION}).encode("utf-8"),
        )
        layout._write_index(index or IndexManifest.empty())
        logger.info(f"Initialized OCI layout at {layout.path}")
        return layout

    def index(self) -> IndexManifest:
        """
        Read ``index.json``.

        Raises:
            LayoutError: If the index is missing or malformed
        """
        index_path = self.path / OCI_INDEX_FILE
        try:
            return IndexManifest.model_validate_json(index_path.read_bytes())
        except OSError as e:
            raise LayoutError(f"Cannot read {index_path}: {e}") from e
        except ValidationError as e:
            raise LayoutError(f"Invalid {index_path}: {e}") from e

    def blob_path(self, digest: str) -> Path:
        algorithm, hex_part = split_digest(digest)
        return self.path / "blobs" / algorithm / hex_part

    def has_blob(self, digest: str) -> bool:
        return self.blob_path(digest).is_file()

    def write_blob(self, digest: str, chunks: Iterable[bytes]) -> None:
        """Store a blob unless it is already present."""
        if self.has_blob(digest):
            logger.debug(f"Blob {digest} already present")
            return
        write_stream_atomically(self.blob_path(digest), chunks)

    def append_image(self, image: Image, annotations: Optional[Dict[str, str]] = None) -> Descriptor:
        """
        Write an image's blobs and add it to the index.

        Returns:
            The descriptor appended to ``index.json``
        """
        self._write_image_blobs(image)
        return self._append_descriptor(image.descriptor(annotations))

    def append_index(self, index: ImageIndex, annotations: Optional[Dict[str, str]] = None) -> Descriptor:
        """
        Write an index, and everything it references, and add it to the index.

        Returns:
            The descriptor appended to ``index.json``
        """
        self._write_index_blobs(index)
        return self._append_descriptor(index.descriptor(annotations))

    def _write_image_blobs(self, image: Image) -> None:
        # Manifest last, so its presence implies its blobs are complete
        for layer in image.layers:
            if not self.has_blob(layer.digest):
                self.write_blob(layer.digest, image.iter_layer(layer))
        if not self.has_blob(image.config_name):
            self.write_blob(image.config_name, [image.raw_config])
        self.write_blob(image.digest, [image.raw.content])

    def _write_index_blobs(self, index: ImageIndex) -> None:
        for child_descriptor in index.children:
            if self.has_blob(child_descriptor.digest):
                continue
            child = index.child(child_descriptor)
            if isinstance(child, ImageIndex):
                self._write_index_blobs(child)
            elif isinstance(child, Image):
                self._write_image_blobs(child)
            else:
                self.write_blob(child_descriptor.digest, [child])
        self.write_blob(index.digest, [index.raw.content])

    def _append_descriptor(self, descriptor: Descriptor) -> Descriptor:
        current = self.index()
        updated = current.model_copy(update={"manifests": [*current.manifests, descriptor]})
        self._write_index(updated)
        logger.info(f"Appended {descriptor.digest} to {self.path / OCI_INDEX_FILE}")
        return descriptor

    def _write_index(self, index: IndexManifest) -> None:
        write_bytes_atomically(
            self.path / OCI_INDEX_FILE,
            json.dumps(index.to_json(), indent=2).encode("utf-8"),
        )


def open_or_create(path: Union[str, Path]) -> Layout:
    """
    Open the layout at path, initializing an empty one when there is none.
    """
    try:
        return Layout.from_path(path)
    except LayoutError as e:
        logger.info(f"No usable layout at {path}: {e}")
        return Layout.write(path, IndexManifest.empty())
