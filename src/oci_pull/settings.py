"""
Settings and configuration for oci-pull.

Centralizes configuration values and provides validation with fail-fast behavior.
Loads settings from environment variables at client construction time.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .resolver import DEFAULT_DIGEST_TAG

__all__ = ["Settings", "create_settings_from_env", "DEFAULT_PLATFORM"]

DEFAULT_PLATFORM = "linux/amd64"

_TAG_PATTERN = r"[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}"
_PLATFORM_PATTERN = r"[a-z0-9]+/[a-z0-9_]+(?:/[a-z0-9]+)?"


@dataclass(frozen=True)
class Settings:
    """
    Configuration settings for a pull.

    Registry Settings:
        registry_insecure: Allow plain HTTP (and skip TLS verification)
        registry_user: Username for registry authentication
        registry_pass: Password for registry authentication
        docker_config: Docker config.json used for stored credentials
        http_timeout_s: HTTP request timeout in seconds
        http_retry: Number of retries for timed out requests (0=no retry)

    Resolution Settings:
        platform: Platform picked from an index for tarball formats
        digest_tag: Placeholder tag recorded for digest references
    """
    registry_insecure: bool = False
    registry_user: Optional[str] = None
    registry_pass: Optional[str] = None
    docker_config: Optional[Path] = None
    http_timeout_s: float = 30.0
    http_retry: int = 2

    platform: str = DEFAULT_PLATFORM
    digest_tag: str = DEFAULT_DIGEST_TAG

    def __post_init__(self):
        """Validate settings on construction."""
        if self.http_timeout_s <= 0:
            raise ValueError(f"http_timeout_s must be positive, got {self.http_timeout_s}")

        if self.http_retry < 0:
            raise ValueError(f"http_retry must be non-negative, got {self.http_retry}")

        # Placeholder ends up in tarball RepoTags, so it must be a valid tag
        if not re.fullmatch(_TAG_PATTERN, self.digest_tag):
            raise ValueError(f"Invalid digest_tag format: {self.digest_tag!r}")

        if not re.fullmatch(_PLATFORM_PATTERN, self.platform):
            raise ValueError(f"Invalid platform format: {self.platform!r}. Expected os/arch[/variant]")

        if bool(self.registry_user) != bool(self.registry_pass):
            raise ValueError("registry_user and registry_pass must be specified together")


def create_settings_from_env() -> Settings:
    """
    Load settings from environment variables.

    Environment Variables:
        - OCI_PULL_INSECURE (default: false)
        - OCI_PULL_USERNAME (optional)
        - OCI_PULL_PASSWORD (optional)
        - OCI_PULL_HTTP_TIMEOUT (default: 30.0)
        - OCI_PULL_HTTP_RETRY (default: 2)
        - OCI_PULL_PLATFORM (default: linux/amd64)
        - OCI_PULL_DIGEST_TAG (default: i-was-a-digest)
        - DOCKER_CONFIG (optional, directory holding config.json)

    Returns:
        Settings object with validated configuration

    Raises:
        ValueError: If configuration is invalid

    Note:
        Creates a fresh Settings instance every time (no caching).
    """
    def str_to_bool(value: str) -> bool:
        return value.lower() in ('true', '1', 'yes', 'on')

    def get_float(key: str, default: float) -> float:
        value = os.getenv(key)
        return float(value) if value else default

    def get_int(key: str, default: int) -> int:
        value = os.getenv(key)
        return int(value) if value else default

    docker_config_dir = os.getenv("DOCKER_CONFIG")
    docker_config = Path(docker_config_dir) / "config.json" if docker_config_dir else None

    return Settings(
        registry_insecure=str_to_bool(os.getenv("OCI_PULL_INSECURE", "false")),
        registry_user=os.getenv("OCI_PULL_USERNAME") or None,
        registry_pass=os.getenv("OCI_PULL_PASSWORD") or None,
        docker_config=docker_config,
        http_timeout_s=get_float("OCI_PULL_HTTP_TIMEOUT", 30.0),
        http_retry=get_int("OCI_PULL_HTTP_RETRY", 2),
        platform=os.getenv("OCI_PULL_PLATFORM") or DEFAULT_PLATFORM,
        digest_tag=os.getenv("OCI_PULL_DIGEST_TAG") or DEFAULT_DIGEST_TAG,
    )
