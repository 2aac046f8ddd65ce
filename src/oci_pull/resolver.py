"""
Tag resolution for formats that need a human-addressable name.

Tarball formats record a ``repository:tag`` pair in their metadata. A
reference that addressed the image by digest has no tag, so a placeholder
tag is synthesized for it.
"""
from __future__ import annotations

from dataclasses import dataclass

from .errors import UnresolvableReferenceError
from .reference import Reference

__all__ = ["ResolvedTag", "resolve_tag", "DEFAULT_DIGEST_TAG"]

DEFAULT_DIGEST_TAG = "i-was-a-digest"


@dataclass(frozen=True)
class ResolvedTag:
    """Concrete (repository, tag) pair; lives only for one pull."""
    registry: str
    repository: str
    tag: str

    @property
    def repository_name(self) -> str:
        return f"{self.registry}/{self.repository}"

    @property
    def name(self) -> str:
        return f"{self.repository_name}:{self.tag}"

    def __str__(self) -> str:
        return self.name


def resolve_tag(reference: Reference, placeholder: str = DEFAULT_DIGEST_TAG) -> ResolvedTag:
    """
    Produce the tag to record for a reference.

    Args:
        reference: Parsed reference
        placeholder: Tag used when the reference addressed by digest

    Returns:
        ResolvedTag for the reference's repository

    Raises:
        UnresolvableReferenceError: If the reference has neither tag nor digest
    """
    if reference.tag:
        return ResolvedTag(reference.registry, reference.repository, reference.tag)
    if reference.digest:
        return ResolvedTag(reference.registry, reference.repository, placeholder)
    raise UnresolvableReferenceError(f"Reference is neither a tag nor a digest: {reference}")
