"""
CLI Context for managing application dependencies.

Provides a clean way to manage CLI-level dependencies like settings and registry
instances, avoiding global state and enabling proper dependency injection.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from .remote.http import RegistryHTTP
from .settings import Settings, create_settings_from_env


@dataclass
class CLIContext:
    """
    Shared context for CLI commands.

    Manages application-level dependencies (settings, registry) that are
    initialized once and shared across a CLI command execution.
    """
    settings: Settings
    _registry: Optional[RegistryHTTP] = None

    @classmethod
    def from_env(cls, *, platform: Optional[str] = None, insecure: bool = False) -> CLIContext:
        """
        Create CLI context from environment variables.

        Args:
            platform: Platform override from the command line
            insecure: Force plain HTTP registry access

        Returns:
            CLIContext with settings loaded from environment
        """
        settings = create_settings_from_env()
        overrides = {}
        if platform:
            overrides["platform"] = platform
        if insecure:
            overrides["registry_insecure"] = True
        if overrides:
            # replace() re-runs validation
            settings = replace(settings, **overrides)
        return cls(settings=settings)

    @property
    def registry(self) -> RegistryHTTP:
        """
        Get or create registry instance (lazy initialization).

        Returns:
            RegistryHTTP instance
        """
        if self._registry is None:
            self._registry = RegistryHTTP(self.settings)
        return self._registry

    def close(self) -> None:
        if self._registry is not None:
            self._registry.close()
            self._registry = None
