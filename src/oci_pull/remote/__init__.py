"""
Registry access: the source protocol and its HTTP implementation.
"""
from .auth import DockerAuth
from .http import RegistryHTTP
from .source import RawManifest, RegistrySource

__all__ = ["DockerAuth", "RawManifest", "RegistryHTTP", "RegistrySource"]
