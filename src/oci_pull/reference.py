"""
Image reference parsing.

Turns a user-supplied string such as ``registry.example.com/app:v1`` or
``nginx@sha256:<hex>`` into a structured, immutable reference following the
usual Docker/OCI reference grammar.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from .errors import InvalidReferenceError

__all__ = [
    "Reference",
    "parse_reference",
    "DEFAULT_REGISTRY",
    "DEFAULT_TAG",
]

DEFAULT_REGISTRY = "index.docker.io"
DEFAULT_TAG = "latest"

_REGISTRY_RE = re.compile(r"[a-zA-Z0-9](?:[a-zA-Z0-9.-]*[a-zA-Z0-9])?(?::[0-9]+)?")
_COMPONENT_RE = re.compile(r"[a-z0-9]+(?:(?:[._]|__|[-]*)[a-z0-9]+)*")
_TAG_RE = re.compile(r"[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}")
_DIGEST_RE = re.compile(r"(?:sha256:[a-f0-9]{64}|sha512:[a-f0-9]{128})")

_MAX_REPOSITORY_LENGTH = 255


@dataclass(frozen=True)
class Reference:
    """
    Parsed image reference.

    Attributes:
        registry: Registry host, optionally with port (e.g. "ghcr.io", "localhost:5000")
        repository: Repository path within the registry (e.g. "library/nginx")
        tag: Tag when the reference addresses by tag
        digest: Digest when the reference addresses by content
        original: Original string the reference was parsed from
    """
    registry: str
    repository: str
    tag: Optional[str] = None
    digest: Optional[str] = None
    original: str = ""

    def __post_init__(self):
        if self.tag and self.digest:
            raise InvalidReferenceError(
                f"Reference cannot address by both tag and digest: {self.tag}, {self.digest}",
                reference=self.original or None,
            )

    @property
    def context(self) -> str:
        """Fully qualified repository, ``registry/repository``."""
        return f"{self.registry}/{self.repository}"

    @property
    def identifier(self) -> Optional[str]:
        """Tag or digest, whichever addresses the manifest."""
        return self.digest or self.tag

    @property
    def is_digest(self) -> bool:
        return bool(self.digest)

    @property
    def name(self) -> str:
        if self.digest:
            return f"{self.context}@{self.digest}"
        if self.tag:
            return f"{self.context}:{self.tag}"
        return self.context

    def __str__(self) -> str:
        return self.name


def parse_reference(text: str) -> Reference:
    """
    Parse and validate an image reference.

    Accepts references in the form ``[registry/]repository[:tag][@digest]``.

    Rules:
    - The first component is a registry when it contains "." or ":" or is
      "localhost"; otherwise the registry is Docker Hub
    - Docker Hub repositories without a namespace get "library/"
    - No tag and no digest means the "latest" tag
    - With both tag and digest, the digest wins and the tag is dropped

    Args:
        text: Reference string to parse

    Returns:
        Reference with validated components

    Raises:
        InvalidReferenceError: If the string does not follow the grammar

    Examples:
        >>> parse_reference("registry.example.com/app:v1")
        Reference(registry='registry.example.com', repository='app', tag='v1', ...)

        >>> parse_reference("nginx").name
        'index.docker.io/library/nginx:latest'
    """
    if not text:
        raise InvalidReferenceError("Reference cannot be empty", reference=text)
    if text != text.strip() or any(c.isspace() for c in text):
        raise InvalidReferenceError(f"Reference contains whitespace: {text!r}", reference=text)

    remainder = text
    digest: Optional[str] = None
    if "@" in remainder:
        remainder, digest = remainder.split("@", 1)
        if not _DIGEST_RE.fullmatch(digest):
            raise InvalidReferenceError(f"Invalid digest in reference: {text}", reference=text)

    tag: Optional[str] = None
    if remainder.rfind(":") > remainder.rfind("/"):
        remainder, tag = remainder.rsplit(":", 1)
        if not _TAG_RE.fullmatch(tag):
            raise InvalidReferenceError(f"Invalid tag in reference: {text}", reference=text)

    if not remainder:
        raise InvalidReferenceError(f"Reference has no repository: {text}", reference=text)

    registry, repository = _split_registry(remainder)
    if not _REGISTRY_RE.fullmatch(registry):
        raise InvalidReferenceError(f"Invalid registry in reference: {text}", reference=text)

    if registry == DEFAULT_REGISTRY and "/" not in repository:
        repository = f"library/{repository}"

    if len(repository) > _MAX_REPOSITORY_LENGTH:
        raise InvalidReferenceError(f"Repository name too long: {text}", reference=text)
    for component in repository.split("/"):
        if not _COMPONENT_RE.fullmatch(component):
            raise InvalidReferenceError(
                f"Invalid repository component {component!r} in reference: {text}",
                reference=text,
            )

    if digest:
        tag = None
    elif tag is None:
        tag = DEFAULT_TAG

    return Reference(
        registry=registry,
        repository=repository,
        tag=tag,
        digest=digest,
        original=text,
    )


def _split_registry(name: str) -> tuple[str, str]:
    """Split a name into (registry, repository), defaulting to Docker Hub."""
    if "/" in name:
        first, rest = name.split("/", 1)
        if "." in first or ":" in first or first == "localhost":
            if first == "docker.io":
                return DEFAULT_REGISTRY, rest
            return first, rest
    return DEFAULT_REGISTRY, name
