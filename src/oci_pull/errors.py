"""
Pull error classes.

Provides a clear taxonomy of the errors that can terminate a pull. Registry
failures are mapped from HTTP status codes at the client boundary and
filesystem failures from OSError at the writer boundary, so callers only ever
see this hierarchy.
"""
from __future__ import annotations


class PullError(Exception):
    """
    Base class for all pull errors.

    Every subclass is terminal for the current pull; nothing is retried
    above the registry transport.
    """
    pass


class InvalidReferenceError(PullError, ValueError):
    """
    Reference string cannot be decomposed into registry, repository and
    tag-or-digest.
    """

    def __init__(self, message: str, reference: str | None = None):
        super().__init__(message)
        self.reference = reference


class UnresolvableReferenceError(PullError, ValueError):
    """
    Reference carries neither a tag nor a digest.

    Raised by the tag resolver when a format needs a tag and none can be
    derived.
    """
    pass


class UnknownFormatError(PullError, ValueError):
    """
    Output format token is not one of the supported formats.

    Raised before any network or filesystem I/O.
    """

    def __init__(self, message: str, token: str | None = None):
        super().__init__(message)
        self.token = token


class FetchError(PullError):
    """
    Registry interaction failed.

    Raised when:
    - Network errors or timeouts survive the transport retries
    - Registry returns an unexpected HTTP status
    - Registry returns content that cannot be used
    """
    pass


class RegistryAuthError(FetchError):
    """
    Authentication or authorization error.

    Raised when:
    - HTTP 401 Unauthorized (invalid or missing credentials)
    - HTTP 403 Forbidden (insufficient permissions)
    """
    pass


class ManifestNotFoundError(FetchError):
    """
    Manifest or blob not found in registry.

    Raised when:
    - HTTP 404 Not Found
    """
    pass


class RateLimitedError(FetchError):
    """
    Rate limit exceeded.

    Raised when:
    - HTTP 429 Too Many Requests
    """
    pass


class DigestMismatchError(FetchError):
    """
    Content digest validation failed.

    Raised when:
    - A manifest fetched by digest hashes to a different digest
    - A streamed blob does not match the digest in its descriptor
    """

    def __init__(self, message: str, expected: str | None = None, actual: str | None = None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class ManifestShapeError(PullError):
    """
    Manifest does not have the shape an operation needs.
    """
    pass


class NotAnIndexError(ManifestShapeError):
    """
    Manifest was expected to be an index but is not one.
    """
    pass


class NotASingleImageError(ManifestShapeError):
    """
    Tarball formats were given something that is not a single image.

    Raised when the reference resolves to an index with no child for the
    requested platform, or to a manifest that is not an image at all.
    """
    pass


class NeitherImageNorIndexError(ManifestShapeError):
    """
    Layout format was given data that is neither an index nor an image.
    """
    pass


class WriteError(PullError):
    """
    I/O failure while persisting the pulled content.
    """
    pass


__all__ = [
    "PullError",
    "InvalidReferenceError",
    "UnresolvableReferenceError",
    "UnknownFormatError",
    "FetchError",
    "RegistryAuthError",
    "ManifestNotFoundError",
    "RateLimitedError",
    "DigestMismatchError",
    "ManifestShapeError",
    "NotAnIndexError",
    "NotASingleImageError",
    "NeitherImageNorIndexError",
    "WriteError",
]
