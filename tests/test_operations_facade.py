"""
Test Operations facade wiring and integration.

Validates that the Operations facade orders validation before I/O, applies
settings policy, and produces the expected artifacts end to end against an
in-memory registry.
"""
from __future__ import annotations

import json
import tarfile
from unittest.mock import Mock, patch

import pytest

from oci_pull.dispatch import OutputFormat
from oci_pull.errors import InvalidReferenceError, ManifestNotFoundError, UnknownFormatError
from oci_pull.media_types import ANNOTATION_REF_NAME
from oci_pull.operations import Operations, OpsConfig, PullResult
from oci_pull.settings import Settings

from .fakes.fake_registry import seed_image, seed_index


@pytest.fixture
def ops(registry, settings):
    return Operations(config=OpsConfig(), registry=registry, settings=settings)


class TestOperationsFacade:
    """Test facade construction."""

    def test_facade_initialization(self, registry, settings):
        config = OpsConfig(detail=True)
        ops = Operations(config=config, registry=registry, settings=settings)

        assert ops.cfg is config
        assert ops.registry is registry
        assert ops.settings is settings

    def test_settings_loaded_from_env_when_omitted(self, registry, monkeypatch):
        monkeypatch.setenv("OCI_PULL_PLATFORM", "linux/arm64")
        ops = Operations(config=OpsConfig(), registry=registry)
        assert ops.settings.platform == "linux/arm64"

    def test_http_registry_built_when_omitted(self, settings):
        with Operations(config=OpsConfig(), settings=settings) as ops:
            assert type(ops.registry).__name__ == "RegistryHTTP"
            client = ops.registry.client
        assert client.is_closed

    def test_injected_registry_not_closed(self, settings):
        registry = Mock()
        with Operations(config=OpsConfig(), registry=registry, settings=settings):
            pass
        registry.close.assert_not_called()


class TestPullScenarios:
    """End-to-end pulls against the fake registry."""

    def test_tag_to_layout(self, ops, registry, seeded_image, tmp_path):
        """Test a tagged image lands as one annotated layout entry."""
        out = tmp_path / "layout"

        result = ops.pull("registry.example.com/app:v1", "oci-layout", out)

        index = json.loads((out / "index.json").read_text())
        assert len(index["manifests"]) == 1
        entry = index["manifests"][0]
        assert entry["digest"] == seeded_image.digest
        assert entry["annotations"] == {ANNOTATION_REF_NAME: "registry.example.com/app:v1"}
        assert json.loads((out / "oci-layout").read_text()) == {"imageLayoutVersion": "1.0.0"}

        assert isinstance(result, PullResult)
        assert result.output_format is OutputFormat.OCI_LAYOUT
        assert result.target_path == out
        assert result.image_digest == seeded_image.digest
        assert result.image_size == seeded_image.size

    def test_digest_to_v1_tarball(self, ops, seeded_image, tmp_path):
        """Test a digest reference records the placeholder tag."""
        out = tmp_path / "app.tar"

        ops.pull(f"registry.example.com/app@{seeded_image.digest}", "tar-v1", out)

        with tarfile.open(out) as tar:
            manifest = json.loads(tar.extractfile("manifest.json").read())
        assert manifest[0]["RepoTags"][0].endswith("app:i-was-a-digest")

    def test_placeholder_tag_from_settings(self, registry, seeded_image, tmp_path):
        ops = Operations(config=OpsConfig(), registry=registry,
                         settings=Settings(http_retry=0, digest_tag="pinned"))
        out = tmp_path / "app.tar"

        ops.pull(f"registry.example.com/app@{seeded_image.digest}", "tar-v1", out)

        with tarfile.open(out) as tar:
            manifest = json.loads(tar.extractfile("manifest.json").read())
        assert manifest[0]["RepoTags"] == ["registry.example.com/app:pinned"]

    def test_two_pulls_accumulate_in_layout(self, ops, registry, seeded_image, tmp_path):
        seed_image(registry, "other", "v2", layers=[{"other": b"x"}])

        ops.pull("registry.example.com/app:v1", "oci-layout", tmp_path)
        ops.pull("registry.example.com/other:v2", "oci-layout", tmp_path)

        entries = json.loads((tmp_path / "index.json").read_text())["manifests"]
        assert [e["annotations"][ANNOTATION_REF_NAME] for e in entries] == [
            "registry.example.com/app:v1",
            "registry.example.com/other:v2",
        ]

    def test_platform_from_settings(self, registry, tmp_path):
        amd = seed_image(registry, "app", platform={"architecture": "amd64", "os": "linux"})
        arm = seed_image(registry, "app", platform={"architecture": "arm64", "os": "linux"})
        seed_index(registry, [amd, arm], "app", "multi")
        ops = Operations(config=OpsConfig(), registry=registry,
                         settings=Settings(http_retry=0, platform="linux/arm64"))

        result = ops.pull("registry.example.com/app:multi", "tar-legacy", tmp_path / "app.tar")

        assert result.image_digest == arm.digest

    def test_index_to_layout_skips_image_lookup_by_default(self, ops, registry, tmp_path):
        amd = seed_image(registry, "app", platform={"architecture": "amd64", "os": "linux"})
        digest, _ = seed_index(registry, [amd], "app", "multi")

        result = ops.pull("registry.example.com/app:multi", OutputFormat.OCI_LAYOUT, tmp_path)

        assert result.manifest.digest == digest
        assert result.image_digest is None
        assert result.image_size is None

    @pytest.mark.parametrize("config", [OpsConfig(detail=True), OpsConfig(verbose=True)])
    def test_index_to_layout_reports_platform_image(self, registry, settings, tmp_path, config):
        """Test diagnostics resolve the platform image of a stored index."""
        amd = seed_image(registry, "app", platform={"architecture": "amd64", "os": "linux"})
        arm = seed_image(registry, "app", platform={"architecture": "arm64", "os": "linux"})
        digest, _ = seed_index(registry, [arm, amd], "app", "multi")
        ops = Operations(config=config, registry=registry, settings=settings)

        result = ops.pull("registry.example.com/app:multi", "oci-layout", tmp_path)

        assert result.manifest.digest == digest
        assert result.image_digest == amd.digest
        assert result.image_size == amd.size
        entries = json.loads((tmp_path / "index.json").read_text())["manifests"]
        assert [e["digest"] for e in entries] == [digest]

    def test_index_without_platform_image_still_saved(self, registry, settings, tmp_path):
        arm = seed_image(registry, "app", platform={"architecture": "arm64", "os": "linux"})
        digest, _ = seed_index(registry, [arm], "app", "multi")
        ops = Operations(config=OpsConfig(detail=True), registry=registry, settings=settings)

        result = ops.pull("registry.example.com/app:multi", "oci-layout", tmp_path)

        assert result.image_digest is None
        entries = json.loads((tmp_path / "index.json").read_text())["manifests"]
        assert [e["digest"] for e in entries] == [digest]


class TestValidationOrder:
    """Test bad input fails before any I/O."""

    def test_unknown_format_before_fetch(self, ops, registry, seeded_image, tmp_path):
        with pytest.raises(UnknownFormatError):
            ops.pull("registry.example.com/app:v1", "zip", tmp_path / "out")

        assert registry.manifest_requests == []
        assert list(tmp_path.iterdir()) == []

    def test_unknown_format_checked_before_reference(self, ops, tmp_path):
        """Test a bad format wins over a bad reference."""
        with pytest.raises(UnknownFormatError):
            ops.pull("Not A Reference", "zip", tmp_path / "out")

    def test_invalid_reference_before_fetch(self, ops, registry, tmp_path):
        with pytest.raises(InvalidReferenceError):
            ops.pull("registry.example.com/App:v1", "oci-layout", tmp_path / "out")

        assert registry.manifest_requests == []
        assert list(tmp_path.iterdir()) == []

    def test_missing_manifest_writes_nothing(self, ops, tmp_path):
        with pytest.raises(ManifestNotFoundError):
            ops.pull("registry.example.com/app:nope", "oci-layout", tmp_path / "out")

        assert not (tmp_path / "out").exists()

    def test_dispatch_receives_parsed_format(self, ops, seeded_image, tmp_path):
        with patch("oci_pull.operations.facade.FormatDispatcher.dispatch", return_value=None) as mock_dispatch:
            ops.pull("registry.example.com/app:v1", "v1-tarball", tmp_path / "out.tar")

        args = mock_dispatch.call_args[0]
        assert args[1] is OutputFormat.TAR_V1
