"""
OCI and Docker media types and constants.

Single source of truth for every media type the puller understands.
"""
from __future__ import annotations

# Image manifests
OCI_IMAGE_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
DOCKER_MANIFEST_V2 = "application/vnd.docker.distribution.manifest.v2+json"

# Indexes
OCI_IMAGE_INDEX = "application/vnd.oci.image.index.v1+json"
DOCKER_MANIFEST_LIST = "application/vnd.docker.distribution.manifest.list.v2+json"

# Schema 1 manifests, recognised only to be rejected
DOCKER_MANIFEST_V1 = "application/vnd.docker.distribution.manifest.v1+json"
DOCKER_MANIFEST_V1_SIGNED = "application/vnd.docker.distribution.manifest.v1+prettyjws"

# Configs
OCI_IMAGE_CONFIG = "application/vnd.oci.image.config.v1+json"

# Layers
OCI_LAYER_TAR = "application/vnd.oci.image.layer.v1.tar"
OCI_LAYER_GZIP = "application/vnd.oci.image.layer.v1.tar+gzip"
OCI_LAYER_ZSTD = "application/vnd.oci.image.layer.v1.tar+zstd"

IMAGE_MANIFEST_TYPES = frozenset({OCI_IMAGE_MANIFEST, DOCKER_MANIFEST_V2})
INDEX_MANIFEST_TYPES = frozenset({OCI_IMAGE_INDEX, DOCKER_MANIFEST_LIST})
SCHEMA1_MANIFEST_TYPES = frozenset({DOCKER_MANIFEST_V1, DOCKER_MANIFEST_V1_SIGNED})

# Accept header order: indexes first so multi-platform references resolve to
# the index rather than a registry-chosen platform.
ACCEPTED_MANIFEST_TYPES = [
    OCI_IMAGE_INDEX,
    DOCKER_MANIFEST_LIST,
    OCI_IMAGE_MANIFEST,
    DOCKER_MANIFEST_V2,
]

# OCI image-layout
OCI_LAYOUT_FILE = "oci-layout"
OCI_LAYOUT_VERSION = "1.0.0"
OCI_INDEX_FILE = "index.json"

# Standard annotation recording the reference a layout entry was pulled from
ANNOTATION_REF_NAME = "org.opencontainers.image.ref.name"


def is_index(media_type: str | None) -> bool:
    return media_type in INDEX_MANIFEST_TYPES


def is_image(media_type: str | None) -> bool:
    return media_type in IMAGE_MANIFEST_TYPES


def layer_compression(media_type: str) -> str:
    """
    Return the compression of a layer blob: "gzip", "zstd" or "none".

    Unknown layer types are treated as gzip, which is what registries serve
    for every historical Docker layer type.
    """
    if media_type.endswith("+zstd") or media_type.endswith(".zstd"):
        return "zstd"
    if media_type == OCI_LAYER_TAR or media_type.endswith(".tar"):
        return "none"
    return "gzip"


__all__ = [
    "OCI_IMAGE_MANIFEST",
    "DOCKER_MANIFEST_V2",
    "OCI_IMAGE_INDEX",
    "DOCKER_MANIFEST_LIST",
    "DOCKER_MANIFEST_V1",
    "DOCKER_MANIFEST_V1_SIGNED",
    "OCI_IMAGE_CONFIG",
    "OCI_LAYER_TAR",
    "OCI_LAYER_GZIP",
    "OCI_LAYER_ZSTD",
    "IMAGE_MANIFEST_TYPES",
    "INDEX_MANIFEST_TYPES",
    "SCHEMA1_MANIFEST_TYPES",
    "ACCEPTED_MANIFEST_TYPES",
    "OCI_LAYOUT_FILE",
    "OCI_LAYOUT_VERSION",
    "OCI_INDEX_FILE",
    "ANNOTATION_REF_NAME",
    "is_index",
    "is_image",
    "layer_compression",
]
