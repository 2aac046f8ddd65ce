"""
Digest calculation and streaming verification.
"""
from __future__ import annotations

import hashlib
from typing import Iterable, Iterator

from .errors import DigestMismatchError

__all__ = ["calculate_digest", "split_digest", "verified_chunks"]


def calculate_digest(data: bytes, algorithm: str = "sha256") -> str:
    """Return ``algorithm:hex`` for data."""
    return f"{algorithm}:{hashlib.new(algorithm, data).hexdigest()}"


def split_digest(digest: str) -> tuple[str, str]:
    """
    Split a digest into (algorithm, hex).

    Raises:
        ValueError: If digest is not in ``algorithm:hex`` form
    """
    algorithm, sep, hex_part = digest.partition(":")
    if not sep or not algorithm or not hex_part:
        raise ValueError(f"Invalid digest format: {digest}")
    return algorithm, hex_part


def verified_chunks(chunks: Iterable[bytes], expected: str) -> Iterator[bytes]:
    """
    Pass chunks through while hashing them.

    The digest check happens once the stream is exhausted, so consumers must
    read to the end for the verification to run. Writers only commit their
    output after that point.

    Raises:
        DigestMismatchError: If the streamed content does not match expected
    """
    algorithm, expected_hex = split_digest(expected)
    hash_obj = hashlib.new(algorithm)
    for chunk in chunks:
        hash_obj.update(chunk)
        yield chunk
    actual_hex = hash_obj.hexdigest()
    if actual_hex != expected_hex:
        raise DigestMismatchError(
            f"Digest mismatch: expected {expected}, got {algorithm}:{actual_hex}",
            expected=expected,
            actual=f"{algorithm}:{actual_hex}",
        )
