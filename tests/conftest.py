"""Root pytest configuration for oci-pull tests."""
import pytest

from oci_pull.dispatch import FormatDispatcher
from oci_pull.image import Platform
from oci_pull.settings import Settings

from .fakes.fake_registry import FakeRegistry, seed_image


# Keep the developer's environment out of settings loaded during tests
@pytest.fixture(autouse=True)
def test_env(monkeypatch, tmp_path):
    """Automatically isolate environment variables."""
    for key in (
        "OCI_PULL_INSECURE",
        "OCI_PULL_USERNAME",
        "OCI_PULL_PASSWORD",
        "OCI_PULL_HTTP_TIMEOUT",
        "OCI_PULL_HTTP_RETRY",
        "OCI_PULL_PLATFORM",
        "OCI_PULL_DIGEST_TAG",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("DOCKER_CONFIG", str(tmp_path / "docker-config"))


@pytest.fixture
def settings():
    """Standard test settings."""
    return Settings(http_retry=0)


@pytest.fixture
def registry():
    """Empty in-memory registry."""
    return FakeRegistry()


@pytest.fixture
def seeded_image(registry):
    """Two-layer linux/amd64 image tagged registry.example.com/app:v1."""
    return seed_image(registry, "app", "v1")


@pytest.fixture
def dispatcher():
    return FormatDispatcher(platform=Platform.parse("linux/amd64"))
