"""
Tarball writers for single-platform images.

Two archive schemas are supported:

- v1 (``docker load`` format): the config blob stored as ``sha256:<hex>``,
  layers as served (``<hex>.tar.gz``) and a ``manifest.json`` naming them.
- legacy (``docker save`` format): one directory per layer holding
  ``VERSION``, ``json`` and an uncompressed ``layer.tar``, plus
  ``<config-hex>.json``, ``repositories`` and ``manifest.json``.

Both stream blobs from the registry straight into the archive and use USTAR
headers with zeroed ownership and timestamps.
"""
from __future__ import annotations

import copy
import gzip
import hashlib
import json
import logging
import shutil
import tarfile
import tempfile
import zlib
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, Optional, Union

import zstandard as zstd

from ..digest import split_digest
from ..errors import FetchError
from ..image import Image
from ..media_types import layer_compression
from ..models import Descriptor
from ..resolver import ResolvedTag
from .atomic import atomic_file

logger = logging.getLogger(__name__)

__all__ = ["write_v1_tarball", "write_legacy_tarball", "make_layer_id"]

LEGACY_LAYER_VERSION = b"1.0"

# Layer json for every layer but the last, which carries the image config
_EMPTY_LAYER_JSON = {
    "created": "1970-01-01T00:00:00Z",
    "container_config": {},
}

_DECOMPRESSION_ERRORS = (gzip.BadGzipFile, EOFError, zlib.error, zstd.ZstdError)


def write_v1_tarball(path: Union[str, Path], tag: ResolvedTag, image: Image) -> None:
    """
    Write an image as a v1 tarball at path.

    The archive only appears at path once it is complete.

    Args:
        path: Output file
        tag: Tag recorded in the archive's RepoTags
        image: Single-platform image to write

    Raises:
        FetchError: If a blob cannot be fetched or fails verification
        WriteError: If the archive cannot be written
    """
    config_name = image.config_name
    layers = image.layers

    with atomic_file(path) as out:
        with tarfile.open(fileobj=out, mode="w", format=tarfile.USTAR_FORMAT) as tar:
            _add_bytes(tar, config_name, image.raw_config)

            seen = set()
            layer_names = []
            for layer in layers:
                name = f"{layer.hex}.tar.gz"
                layer_names.append(name)
                if layer.digest in seen:
                    continue
                seen.add(layer.digest)
                _add_stream(tar, name, image.iter_layer(layer), size=layer.size)

            manifest = [{
                "Config": config_name,
                "RepoTags": [tag.name],
                "Layers": layer_names,
            }]
            _add_bytes(tar, "manifest.json", _json_bytes(manifest))

    logger.info(f"Wrote v1 tarball {path} ({len(layers)} layers, tag {tag})")


def write_legacy_tarball(out: BinaryIO, tag: ResolvedTag, image: Image) -> None:
    """
    Write an image as a legacy tarball to an open binary handle.

    The caller owns the handle; nothing here opens or closes it.

    Args:
        out: Writable binary file object
        tag: Tag recorded in ``repositories`` and ``manifest.json``
        image: Single-platform image to write

    Raises:
        FetchError: If a blob cannot be fetched, decompressed or verified
        OSError: If writing to out fails
    """
    config = image.config_file()
    _, config_hex = split_digest(image.config_name)
    config_file_name = f"{config_hex}.json"
    layers = image.layers

    with tarfile.open(fileobj=out, mode="w", format=tarfile.USTAR_FORMAT) as tar:
        _add_bytes(tar, config_file_name, image.raw_config)

        parent_id = ""
        layer_paths = []
        for index, layer in enumerate(layers):
            layer_id = make_layer_id(parent_id, layer.digest)
            _add_directory(tar, layer_id)
            _add_bytes(tar, f"{layer_id}/VERSION", LEGACY_LAYER_VERSION)
            layer_json = _layer_json(config, last=index == len(layers) - 1)
            layer_json["id"] = layer_id
            if parent_id:
                layer_json["parent"] = parent_id
            _add_bytes(tar, f"{layer_id}/json", _json_bytes(layer_json))

            with _uncompressed_layer(image, layer) as (spool, size):
                info = _file_info(f"{layer_id}/layer.tar", size)
                tar.addfile(info, spool)

            layer_paths.append(f"{layer_id}/layer.tar")
            parent_id = layer_id

        if parent_id:
            repositories = {tag.repository_name: {tag.tag: parent_id}}
            _add_bytes(tar, "repositories", _json_bytes(repositories))

        manifest = [{
            "Config": config_file_name,
            "RepoTags": [tag.name],
            "Layers": layer_paths,
        }]
        _add_bytes(tar, "manifest.json", _json_bytes(manifest))

    logger.info(f"Wrote legacy tarball ({len(layers)} layers, tag {tag})")


def make_layer_id(parent_id: str, digest: str) -> str:
    """Legacy layer ID: chained over the parent ID and the layer digest."""
    return hashlib.sha256(f"{parent_id}\n{digest}\n".encode("utf-8")).hexdigest()


def _layer_json(config: dict, last: bool) -> dict:
    # last layer = config minus history and rootfs
    if not last:
        return copy.deepcopy(_EMPTY_LAYER_JSON)
    return {k: v for k, v in config.items() if k not in ("history", "rootfs")}


@contextmanager
def _uncompressed_layer(image: Image, layer: Descriptor) -> Iterator[tuple]:
    """
    Spool a layer's uncompressed tar to a temp file.

    Yields:
        (file object positioned at 0, size in bytes)
    """
    compression = layer_compression(layer.media_type)
    reader = _ChunkReader(image.iter_layer(layer), size=layer.size)

    with tempfile.TemporaryFile() as spool:
        try:
            if compression == "gzip":
                with gzip.GzipFile(fileobj=reader, mode="rb") as stream:
                    shutil.copyfileobj(stream, spool)
            elif compression == "zstd":
                with zstd.ZstdDecompressor().stream_reader(reader, read_across_frames=True) as stream:
                    shutil.copyfileobj(stream, spool)
            else:
                shutil.copyfileobj(reader, spool)
        except _DECOMPRESSION_ERRORS as e:
            raise FetchError(f"Layer {layer.digest} could not be decompressed as {compression}: {e}") from e
        reader.drain()

        size = spool.tell()
        spool.seek(0)
        logger.debug(f"Uncompressed layer {layer.digest}: {layer.size} -> {size} bytes")
        yield spool, size


class _ChunkReader:
    """
    File-like view over an iterator of byte chunks.

    With a size, reading past the end of a shorter stream raises FetchError,
    and drain() rejects a stream that is longer.
    """

    def __init__(self, chunks: Iterable[bytes], size: Optional[int] = None):
        self._chunks = iter(chunks)
        self._buffer = bytearray()
        self._size = size
        self._position = 0
        self._exhausted = False

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        while not self._exhausted and (size < 0 or len(self._buffer) < size):
            chunk = next(self._chunks, None)
            if chunk is None:
                self._exhausted = True
            else:
                self._buffer.extend(chunk)

        if size < 0 or size > len(self._buffer):
            size = len(self._buffer)
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        self._position += len(data)

        if self._exhausted and not self._buffer and self._size is not None and self._position < self._size:
            raise FetchError(f"Blob ended after {self._position} of {self._size} bytes")
        return data

    def drain(self) -> None:
        """Consume whatever is left so the stream's digest check runs."""
        extra = len(self.read())
        if extra or (self._size is not None and self._position > self._size):
            raise FetchError(f"Blob is larger than its declared {self._size} bytes")


def _add_stream(tar: tarfile.TarFile, name: str, chunks: Iterable[bytes], size: int) -> None:
    reader = _ChunkReader(chunks, size=size)
    tar.addfile(_file_info(name, size), reader)
    reader.drain()


def _add_bytes(tar: tarfile.TarFile, name: str, data: bytes) -> None:
    tar.addfile(_file_info(name, len(data)), _ChunkReader([data]))


def _add_directory(tar: tarfile.TarFile, name: str) -> None:
    info = tarfile.TarInfo(name + "/")
    info.type = tarfile.DIRTYPE
    info.mode = 0o755
    _apply_canonical_headers(info)
    tar.addfile(info)


def _file_info(name: str, size: int) -> tarfile.TarInfo:
    info = tarfile.TarInfo(name)
    info.size = size
    info.mode = 0o644
    _apply_canonical_headers(info)
    return info


def _apply_canonical_headers(tarinfo: tarfile.TarInfo) -> None:
    """Zero ownership and timestamps so archives of the same image match."""
    tarinfo.uid = 0
    tarinfo.gid = 0
    tarinfo.uname = ""
    tarinfo.gname = ""
    tarinfo.mtime = 0


def _json_bytes(value) -> bytes:
    return json.dumps(value, separators=(",", ":")).encode("utf-8")
