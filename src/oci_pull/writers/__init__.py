"""
Persistence writers: tarballs and OCI image layouts.
"""
from .atomic import atomic_file
from .layout import Layout, LayoutError, open_or_create
from .tarball import make_layer_id, write_legacy_tarball, write_v1_tarball

__all__ = [
    "atomic_file",
    "Layout",
    "LayoutError",
    "open_or_create",
    "make_layer_id",
    "write_legacy_tarball",
    "write_v1_tarball",
]
