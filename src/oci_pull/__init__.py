"""
oci-pull: fetch OCI/Docker images and indexes into tarballs or OCI layouts.
"""
__version__ = "0.1.0"
