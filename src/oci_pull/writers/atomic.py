"""
Atomic file writes.

Output is written to a temp file in the target directory and renamed into
place only once it is complete, so a failed write never leaves a truncated
file at the target path.
"""
from __future__ import annotations

import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, Union

from ..errors import WriteError

logger = logging.getLogger(__name__)

__all__ = ["atomic_file", "write_bytes_atomically", "write_stream_atomically"]


@contextmanager
def atomic_file(target_path: Union[str, Path]) -> Iterator[BinaryIO]:
    """
    Open a binary handle whose content replaces target_path on success.

    The handle is closed on every exit path. On failure the temp file is
    removed and any existing file at target_path is left as it was.

    Raises:
        WriteError: If a filesystem operation fails (exceptions raised by the
            caller inside the block propagate unchanged)
    """
    target_path = Path(target_path)
    try:
        # Ensure parent directory exists
        target_path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(prefix=f".{target_path.name}.", suffix=".tmp",
                                         dir=target_path.parent)
    except OSError as e:
        raise WriteError(f"Cannot write {target_path}: {e}") from e

    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "wb") as out:
            yield out
            # Ensure data is written to disk
            out.flush()
            os.fsync(out.fileno())
        os.replace(temp_path, target_path)
    except OSError as e:
        _discard(temp_path)
        raise WriteError(f"Failed writing {target_path}: {e}") from e
    except BaseException:
        _discard(temp_path)
        raise


def write_bytes_atomically(target_path: Union[str, Path], data: bytes) -> None:
    with atomic_file(target_path) as out:
        out.write(data)


def write_stream_atomically(target_path: Union[str, Path], chunks: Iterable[bytes]) -> None:
    """Stream chunks to target_path; nothing lands there unless the stream completes."""
    with atomic_file(target_path) as out:
        for chunk in chunks:
            out.write(chunk)


def _discard(temp_path: Path) -> None:
    try:
        temp_path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Could not remove temp file {temp_path}: {e}")
