"""
Tests for the v1 and legacy tarball writers.
"""
from __future__ import annotations

import io
import json
import tarfile

import pytest

from oci_pull.errors import DigestMismatchError, FetchError
from oci_pull.fetch import fetch_descriptor
from oci_pull.image import Platform
from oci_pull.reference import parse_reference
from oci_pull.resolver import resolve_tag
from oci_pull.writers import atomic_file, make_layer_id, write_legacy_tarball, write_v1_tarball

from .fakes.fake_registry import REGISTRY, seed_image


def _image_and_tag(registry, text="registry.example.com/app:v1"):
    ref = parse_reference(text)
    image = fetch_descriptor(registry, ref).image(Platform.parse("linux/amd64"))
    return image, resolve_tag(ref)


def _members(path):
    with tarfile.open(path) as tar:
        return {m.name: (tar.extractfile(m).read() if m.isfile() else None) for m in tar.getmembers()}


class TestV1Tarball:
    """Test docker-load compatible tarball output."""

    def test_contents(self, registry, seeded_image, tmp_path):
        """Test config, layers and manifest.json entries."""
        image, tag = _image_and_tag(registry)
        out = tmp_path / "out.tar"

        write_v1_tarball(out, tag, image)

        members = _members(out)
        config_hex = seeded_image.config_digest.split(":", 1)[1]
        layer_names = [f"{d.split(':', 1)[1]}.tar.gz" for d in seeded_image.layer_digests]

        manifest = json.loads(members["manifest.json"])
        assert manifest == [{
            "Config": f"sha256:{config_hex}",
            "RepoTags": ["registry.example.com/app:v1"],
            "Layers": layer_names,
        }]
        assert members[f"sha256:{config_hex}"] == seeded_image.config
        for name, blob in zip(layer_names, seeded_image.layer_blobs):
            assert members[name] == blob

    def test_digest_reference_records_placeholder_tag(self, registry, seeded_image, tmp_path):
        image, tag = _image_and_tag(registry, f"registry.example.com/app@{seeded_image.digest}")
        out = tmp_path / "out.tar"

        write_v1_tarball(out, tag, image)

        repo_tags = json.loads(_members(out)["manifest.json"])[0]["RepoTags"]
        assert repo_tags == ["registry.example.com/app:i-was-a-digest"]

    def test_canonical_headers(self, registry, seeded_image, tmp_path):
        image, tag = _image_and_tag(registry)
        out = tmp_path / "out.tar"
        write_v1_tarball(out, tag, image)
        with tarfile.open(out) as tar:
            for member in tar.getmembers():
                assert member.uid == 0 and member.gid == 0
                assert member.mtime == 0

    def test_duplicate_layers_written_once(self, registry, tmp_path):
        same = {"data": b"same"}
        seed_image(registry, "dup", "v1", layers=[same, same])
        image, tag = _image_and_tag(registry, "registry.example.com/dup:v1")
        out = tmp_path / "out.tar"

        write_v1_tarball(out, tag, image)

        with tarfile.open(out) as tar:
            names = tar.getnames()
        manifest = json.loads(_members(out)["manifest.json"])[0]
        assert len(manifest["Layers"]) == 2
        assert names.count(manifest["Layers"][0]) == 1

    def test_corrupt_layer_leaves_no_file(self, registry, seeded_image, tmp_path):
        """Test a failed write never leaves a truncated archive."""
        registry.replace_blob(REGISTRY, "app", seeded_image.layer_digests[1], b"x" * len(seeded_image.layer_blobs[1]))
        image, tag = _image_and_tag(registry)
        out = tmp_path / "out.tar"

        with pytest.raises(DigestMismatchError):
            write_v1_tarball(out, tag, image)

        assert not out.exists()
        assert list(tmp_path.iterdir()) == []

    def test_short_layer_raises_fetch_error(self, registry, seeded_image, tmp_path):
        registry.replace_blob(REGISTRY, "app", seeded_image.layer_digests[0], b"short")
        image, tag = _image_and_tag(registry)
        out = tmp_path / "out.tar"

        with pytest.raises(FetchError):
            write_v1_tarball(out, tag, image)
        assert not out.exists()

    def test_existing_file_replaced_on_success(self, registry, seeded_image, tmp_path):
        out = tmp_path / "out.tar"
        out.write_bytes(b"old")
        image, tag = _image_and_tag(registry)

        write_v1_tarball(out, tag, image)

        assert tarfile.is_tarfile(out)


class TestLegacyTarball:
    """Test docker-save style tarball output."""

    def _write(self, registry, tmp_path, text="registry.example.com/app:v1"):
        image, tag = _image_and_tag(registry, text)
        out = tmp_path / "legacy.tar"
        with atomic_file(out) as fh:
            write_legacy_tarball(fh, tag, image)
        return _members(out)

    def test_layout(self, registry, seeded_image, tmp_path):
        """Test per-layer directories, repositories and manifest.json."""
        members = self._write(registry, tmp_path)

        first = make_layer_id("", seeded_image.layer_digests[0])
        second = make_layer_id(first, seeded_image.layer_digests[1])
        config_hex = seeded_image.config_digest.split(":", 1)[1]

        assert f"{first}/" in members or first in members
        assert members[f"{first}/VERSION"] == b"1.0"
        assert members[f"{second}/VERSION"] == b"1.0"
        assert members[f"{config_hex}.json"] == seeded_image.config

        manifest = json.loads(members["manifest.json"])
        assert manifest == [{
            "Config": f"{config_hex}.json",
            "RepoTags": ["registry.example.com/app:v1"],
            "Layers": [f"{first}/layer.tar", f"{second}/layer.tar"],
        }]
        assert json.loads(members["repositories"]) == {"registry.example.com/app": {"v1": second}}

    def test_layers_are_uncompressed(self, registry, seeded_image, tmp_path):
        members = self._write(registry, tmp_path)
        first = make_layer_id("", seeded_image.layer_digests[0])
        assert members[f"{first}/layer.tar"] == seeded_image.layer_tars[0]

    def test_zstd_layers_are_uncompressed(self, registry, tmp_path):
        seeded = seed_image(registry, "zst", "v1", compression="zstd")
        members = self._write(registry, tmp_path, "registry.example.com/zst:v1")
        first = make_layer_id("", seeded.layer_digests[0])
        assert members[f"{first}/layer.tar"] == seeded.layer_tars[0]

    def test_uncompressed_layers_copied(self, registry, tmp_path):
        seeded = seed_image(registry, "raw", "v1", compression="none")
        members = self._write(registry, tmp_path, "registry.example.com/raw:v1")
        first = make_layer_id("", seeded.layer_digests[0])
        assert members[f"{first}/layer.tar"] == seeded.layer_tars[0]

    def test_layer_json_chain(self, registry, seeded_image, tmp_path):
        """Test only the top layer carries the config, minus history and rootfs."""
        members = self._write(registry, tmp_path)
        first = make_layer_id("", seeded_image.layer_digests[0])
        second = make_layer_id(first, seeded_image.layer_digests[1])

        base = json.loads(members[f"{first}/json"])
        top = json.loads(members[f"{second}/json"])

        assert base["id"] == first
        assert "parent" not in base
        assert top["id"] == second
        assert top["parent"] == first
        assert top["architecture"] == "amd64"
        assert "history" not in top
        assert "rootfs" not in top

    def test_digest_reference_repositories(self, registry, seeded_image, tmp_path):
        members = self._write(registry, tmp_path, f"registry.example.com/app@{seeded_image.digest}")
        repositories = json.loads(members["repositories"])
        assert list(repositories["registry.example.com/app"]) == ["i-was-a-digest"]

    def test_undecompressable_layer_raises_fetch_error(self, registry, tmp_path):
        """Test a gzip layer that is not gzip is reported as a fetch problem."""
        seeded = seed_image(registry, "bad", "v1", layers=[{"a": b"1"}], compression="none")
        # Relabel the plain tar as gzip
        manifest = json.loads(seeded.manifest)
        manifest["layers"][0]["mediaType"] = "application/vnd.oci.image.layer.v1.tar+gzip"
        registry.put_manifest(REGISTRY, "bad", json.dumps(manifest).encode(),
                              "application/vnd.oci.image.manifest.v1+json", tag="v2")
        image, tag = _image_and_tag(registry, "registry.example.com/bad:v2")

        with pytest.raises(FetchError):
            write_legacy_tarball(io.BytesIO(), tag, image)


class TestMakeLayerId:
    """Test legacy layer ID chaining."""

    def test_deterministic_and_chained(self):
        digest = "sha256:" + "c" * 64
        assert make_layer_id("", digest) == make_layer_id("", digest)
        assert make_layer_id("", digest) != make_layer_id("parent", digest)
        assert len(make_layer_id("", digest)) == 64
