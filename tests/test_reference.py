"""
Tests for image reference parsing.
"""
from __future__ import annotations

import pytest

from oci_pull.errors import InvalidReferenceError
from oci_pull.reference import DEFAULT_REGISTRY, Reference, parse_reference

DIGEST = "sha256:" + "a" * 64


class TestParseReference:
    """Test parse_reference decomposition."""

    def test_registry_repository_tag(self):
        """Test fully qualified tag reference."""
        ref = parse_reference("registry.example.com/app:v1")
        assert ref.registry == "registry.example.com"
        assert ref.repository == "app"
        assert ref.tag == "v1"
        assert ref.digest is None
        assert ref.original == "registry.example.com/app:v1"
        assert ref.name == "registry.example.com/app:v1"

    def test_docker_hub_short_name(self):
        """Test bare names resolve to Docker Hub library images."""
        ref = parse_reference("nginx")
        assert ref.registry == DEFAULT_REGISTRY
        assert ref.repository == "library/nginx"
        assert ref.tag == "latest"
        assert ref.name == "index.docker.io/library/nginx:latest"

    def test_docker_hub_namespaced(self):
        ref = parse_reference("bitnami/redis:7.2")
        assert ref.registry == DEFAULT_REGISTRY
        assert ref.repository == "bitnami/redis"
        assert ref.tag == "7.2"

    def test_docker_io_alias(self):
        ref = parse_reference("docker.io/library/alpine:3")
        assert ref.registry == DEFAULT_REGISTRY
        assert ref.repository == "library/alpine"

    def test_registry_with_port(self):
        """Test that a port is not mistaken for a tag."""
        ref = parse_reference("localhost:5000/team/app")
        assert ref.registry == "localhost:5000"
        assert ref.repository == "team/app"
        assert ref.tag == "latest"

    def test_localhost_registry(self):
        ref = parse_reference("localhost/app:dev")
        assert ref.registry == "localhost"
        assert ref.repository == "app"
        assert ref.tag == "dev"

    def test_digest_reference(self):
        """Test digest references carry no tag."""
        ref = parse_reference(f"registry.example.com/app@{DIGEST}")
        assert ref.digest == DIGEST
        assert ref.tag is None
        assert ref.is_digest
        assert ref.identifier == DIGEST
        assert ref.name == f"registry.example.com/app@{DIGEST}"

    def test_tag_and_digest_keeps_digest(self):
        """Test that the digest wins when both are present."""
        ref = parse_reference(f"registry.example.com/app:v1@{DIGEST}")
        assert ref.digest == DIGEST
        assert ref.tag is None

    def test_nested_repository(self):
        ref = parse_reference("ghcr.io/org/team/app:1.0.0-rc.1")
        assert ref.registry == "ghcr.io"
        assert ref.repository == "org/team/app"
        assert ref.tag == "1.0.0-rc.1"
        assert ref.context == "ghcr.io/org/team/app"

    @pytest.mark.parametrize("text", [
        "",
        " nginx",
        "nginx latest",
        "UPPER/case",
        "registry.example.com/app:",
        "registry.example.com/app:-bad",
        "registry.example.com/app@sha256:abc",
        "registry.example.com/app@md5:" + "a" * 32,
        "registry.example.com/",
        "registry.example.com//app",
        "registry.example.com/app--/x",
        "ghcr.io/" + "a" * 256,
        "registry.example.com/app:v\u00e9",
        "registry.example.com/app:\u00fc1",
        "registry.example.com/caf\u00e9:v1",
    ])
    def test_invalid_references_raise(self, text):
        """Test malformed references are rejected."""
        with pytest.raises(InvalidReferenceError):
            parse_reference(text)

    def test_invalid_reference_is_value_error(self):
        """Test the error is also a ValueError for generic callers."""
        with pytest.raises(ValueError):
            parse_reference("")

    def test_error_carries_reference(self):
        with pytest.raises(InvalidReferenceError) as exc_info:
            parse_reference("Bad/Name")
        assert exc_info.value.reference == "Bad/Name"


class TestReference:
    """Test Reference construction rules."""

    def test_reference_is_immutable(self):
        ref = parse_reference("nginx")
        with pytest.raises(AttributeError):
            ref.tag = "other"  # type: ignore[misc]

    def test_both_tag_and_digest_rejected(self):
        with pytest.raises(InvalidReferenceError):
            Reference(registry="ghcr.io", repository="app", tag="v1", digest=DIGEST)

    def test_bare_repository_allowed(self):
        """Test a reference with neither tag nor digest can be built directly."""
        ref = Reference(registry="ghcr.io", repository="app")
        assert ref.identifier is None
        assert ref.name == "ghcr.io/app"
        assert str(ref) == "ghcr.io/app"
