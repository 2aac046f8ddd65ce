"""
Registry credentials from Docker config files.
"""
from __future__ import annotations

import base64
import binascii
import json
import logging
from pathlib import Path
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

__all__ = ["DockerAuth", "DOCKER_HUB_AUTH_KEY"]

# Key docker login uses for Docker Hub in config.json
DOCKER_HUB_AUTH_KEY = "https://index.docker.io/v1/"


class DockerAuth:
    """Handle Docker Registry authentication from config files."""

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path or Path.home() / ".docker" / "config.json"
        self._config_cache: Optional[dict] = None
        self._config_mtime: Optional[float] = None

    def get_credentials(self, registry: str) -> Optional[Tuple[str, str]]:
        """
        Get credentials for registry from Docker config.

        Returns: (username, password) or None if not found
        """
        config = self._load_config()
        if not config:
            return None

        auths = config.get("auths")
        if not isinstance(auths, dict):
            return None

        candidates = [registry, f"https://{registry}", f"http://{registry}"]
        if registry in ("index.docker.io", "docker.io", "registry-1.docker.io"):
            candidates.insert(0, DOCKER_HUB_AUTH_KEY)

        auth_entry = None
        for key in candidates:
            if key in auths:
                auth_entry = auths[key]
                break
        if not isinstance(auth_entry, dict) or not auth_entry:
            return None

        # Handle base64 encoded auth field
        if isinstance(auth_entry.get("auth"), str) and auth_entry["auth"]:
            try:
                decoded = base64.b64decode(auth_entry["auth"]).decode()
            except (binascii.Error, UnicodeDecodeError):
                logger.warning(f"Ignoring malformed auth entry for {registry} in {self.config_path}")
                return None
            if ":" in decoded:
                username, password = decoded.split(":", 1)
                return username, password

        # Handle username/password fields
        if "username" in auth_entry and "password" in auth_entry:
            return (auth_entry["username"], auth_entry["password"])

        return None

    def _load_config(self) -> Optional[dict]:
        """Load Docker config with caching and mtime checking."""
        if not self.config_path.exists():
            return None

        try:
            current_mtime = self.config_path.stat().st_mtime
        except OSError as e:
            logger.warning(f"Cannot read Docker config {self.config_path}: {e}")
            return None

        # Use cached version if file hasn't changed
        if (self._config_cache is not None and
                self._config_mtime is not None and
                current_mtime == self._config_mtime):
            return self._config_cache

        try:
            with open(self.config_path, 'r') as f:
                config = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Cannot read Docker config {self.config_path}: {e}")
            return None
        if not isinstance(config, dict):
            logger.warning(f"Ignoring Docker config {self.config_path}: top level is not an object")
            return None

        self._config_cache = config
        self._config_mtime = current_mtime
        return config
