"""
Registry HTTP Client for the OCI Distribution API.

Provides HTTP-based manifest and blob reads with the Docker Registry v2 auth
flow (Bearer token challenges, anonymous or with credentials, and Basic
auth), byte-exact manifest retrieval and streamed blob downloads.
"""
from __future__ import annotations

import base64
import logging
import re
import time
from typing import Dict, Iterator, Optional, Tuple

import httpx
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .. import __version__
from ..digest import calculate_digest, split_digest
from ..errors import (
    DigestMismatchError,
    FetchError,
    ManifestNotFoundError,
    RateLimitedError,
    RegistryAuthError,
)
from ..media_types import ACCEPTED_MANIFEST_TYPES
from ..reference import DEFAULT_REGISTRY
from ..settings import Settings
from .auth import DockerAuth
from .source import RawManifest, detect_media_type

logger = logging.getLogger(__name__)

__all__ = ["RegistryHTTP", "DOCKER_HUB_API_HOST", "CHUNK_SIZE"]

# Docker Hub is addressed as index.docker.io but served from here
DOCKER_HUB_API_HOST = "registry-1.docker.io"

CHUNK_SIZE = 1024 * 1024  # 1 MiB

_LOCAL_HOSTS = ("localhost", "127.0.0.1")


class RegistryHTTP:
    """
    HTTP client for OCI Distribution API reads.

    Implements the RegistrySource protocol. One client serves any number of
    registries; bearer tokens are cached per registry and repository scope.
    """

    def __init__(self, settings: Settings, auth: Optional[DockerAuth] = None,
                 transport: Optional[httpx.BaseTransport] = None):
        """
        Initialize registry HTTP client.

        Args:
            settings: Transport, TLS and credential configuration
            auth: Docker auth handler (defaults to the configured Docker config)
            transport: Optional httpx transport (used by tests)
        """
        self.settings = settings
        self.auth = auth or DockerAuth(settings.docker_config)

        self.client = httpx.Client(
            timeout=httpx.Timeout(settings.http_timeout_s, connect=min(5.0, settings.http_timeout_s)),
            follow_redirects=True,
            verify=not settings.registry_insecure,
            headers={"User-Agent": f"oci-pull/{__version__}"},
            transport=transport,
        )

        self._retrying = Retrying(
            stop=stop_after_attempt(settings.http_retry + 1),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type(httpx.TimeoutException),
            reraise=True,
        )

        # Token cache: {registry|scope: (authorization header, expiry_timestamp)}
        self._token_cache: Dict[str, Tuple[str, float]] = {}

    def base_url(self, registry: str) -> str:
        """Scheme and host used to reach a registry."""
        host = DOCKER_HUB_API_HOST if registry == DEFAULT_REGISTRY else registry
        insecure = self.settings.registry_insecure or host.split(":", 1)[0] in _LOCAL_HOSTS
        return f"{'http' if insecure else 'https'}://{host}"

    def get_manifest(self, registry: str, repository: str, ref: str) -> RawManifest:
        """
        Fetch a manifest by tag or digest.

        Returns:
            RawManifest holding the byte-exact body

        Raises:
            ManifestNotFoundError: If the manifest does not exist
            RegistryAuthError: If authentication fails
            DigestMismatchError: If ref is a digest and the body does not match it
            FetchError: For network or other registry errors
        """
        what = f"manifest {registry}/{repository}:{ref}"
        headers = {"Accept": ", ".join(ACCEPTED_MANIFEST_TYPES)}
        response = self._request("GET", registry, repository, f"/v2/{repository}/manifests/{ref}",
                                 headers=headers, what=what)
        content = response.content
        media_type = detect_media_type(content, response.headers.get("Content-Type"))

        if ref.startswith(("sha256:", "sha512:")):
            algorithm, _ = split_digest(ref)
            actual = calculate_digest(content, algorithm)
            if actual != ref:
                raise DigestMismatchError(
                    f"Manifest for {registry}/{repository} does not match {ref}: got {actual}",
                    expected=ref,
                    actual=actual,
                )
            digest = ref
        else:
            digest = calculate_digest(content)
            served = response.headers.get("Docker-Content-Digest")
            if served and served != digest:
                logger.debug(f"Registry digest {served} differs from computed {digest} for {what}")

        logger.debug(f"Fetched {what}: {media_type} {digest} ({len(content)} bytes)")
        return RawManifest(content=content, media_type=media_type, digest=digest)

    def iter_blob(self, registry: str, repository: str, digest: str) -> Iterator[bytes]:
        """
        Stream a blob by digest.

        The request is issued when iteration starts and the response is
        closed when iteration ends, including on early exit.
        """
        what = f"blob {registry}/{repository}@{digest}"
        response = self._request("GET", registry, repository, f"/v2/{repository}/blobs/{digest}",
                                 stream=True, what=what)
        try:
            yield from response.iter_bytes(CHUNK_SIZE)
        except httpx.HTTPError as e:
            raise FetchError(f"Network error streaming {what}: {e}") from e
        finally:
            response.close()

    def _request(self, method: str, registry: str, repository: str, path: str, *,
                 headers: Optional[dict] = None, stream: bool = False,
                 what: str = "") -> httpx.Response:
        """
        Make HTTP request with transparent registry auth flow.

        Handles 401 responses by:
        1. Parsing WWW-Authenticate for the Bearer realm/service/scope (or Basic)
        2. Looking up credentials in settings, then Docker config
        3. Exchanging credentials (or nothing, for anonymous pulls) for a token
        4. Retrying the original request with the Authorization header
        5. Caching tokens per registry/scope
        """
        url = f"{self.base_url(registry)}{path}"
        request_headers = dict(headers or {})

        cached = self._cached_authorization(registry, repository)
        if cached:
            request_headers["Authorization"] = cached

        response = self._send(method, url, request_headers, stream, what)

        if response.status_code == 401:
            challenge = response.headers.get("WWW-Authenticate", "")
            response.close()
            authorization = self._authorize(registry, repository, challenge)
            if authorization:
                request_headers["Authorization"] = authorization
                response = self._send(method, url, request_headers, stream, what)

        if response.status_code >= 400:
            status = response.status_code
            response.close()
            raise _error_for_status(status, what)
        return response

    def _send(self, method: str, url: str, headers: dict, stream: bool, what: str) -> httpx.Response:
        """Send one request, retrying timeouts."""
        def attempt() -> httpx.Response:
            request = self.client.build_request(method, url, headers=headers)
            return self.client.send(request, stream=stream)

        try:
            return self._retrying(attempt)
        except httpx.TimeoutException as e:
            raise FetchError(f"Timed out fetching {what}: {e}") from e
        except httpx.RequestError as e:
            raise FetchError(f"Network error fetching {what}: {e}") from e

    def _cached_authorization(self, registry: str, repository: str) -> Optional[str]:
        entry = self._token_cache.get(_cache_key(registry, repository))
        if entry is None:
            return None
        authorization, expiry = entry
        if time.time() < expiry - 30:  # 30s buffer before expiry
            return authorization
        return None

    def _authorize(self, registry: str, repository: str, challenge: str) -> Optional[str]:
        """
        Answer an auth challenge.

        Returns:
            Authorization header value, or None when the challenge cannot be
            answered (the original 401 is then reported)
        """
        scheme, _, _ = challenge.partition(" ")
        creds = self._credentials(registry)

        if scheme.lower() == "basic":
            if not creds:
                return None
            encoded = base64.b64encode(f"{creds[0]}:{creds[1]}".encode()).decode()
            authorization = f"Basic {encoded}"
            self._token_cache[_cache_key(registry, repository)] = (authorization, float("inf"))
            return authorization

        if scheme.lower() != "bearer":
            return None

        params = dict(re.findall(r'(\w+)="([^"]*)"', challenge))
        realm = params.get("realm")
        if not realm:
            return None
        query = {"scope": params.get("scope") or f"repository:{repository}:pull"}
        if params.get("service"):
            query["service"] = params["service"]

        try:
            auth_response = self.client.get(realm, params=query, auth=creds)
            auth_response.raise_for_status()
            token_data = auth_response.json()
        except httpx.HTTPStatusError as e:
            raise RegistryAuthError(
                f"Token request to {realm} failed with {e.response.status_code}"
            ) from e
        except (httpx.RequestError, ValueError) as e:
            raise RegistryAuthError(f"Token request to {realm} failed: {e}") from e

        token = token_data.get("token") or token_data.get("access_token")
        if not token:
            raise RegistryAuthError(f"Token response from {realm} carried no token")

        # Tokens without expires_in are valid for 60s
        expires_in = token_data.get("expires_in", 60)
        authorization = f"Bearer {token}"
        self._token_cache[_cache_key(registry, repository)] = (authorization, time.time() + expires_in)
        logger.debug(f"Obtained bearer token for {registry}/{repository}")
        return authorization

    def _credentials(self, registry: str) -> Optional[Tuple[str, str]]:
        if self.settings.registry_user and self.settings.registry_pass:
            return (self.settings.registry_user, self.settings.registry_pass)
        return self.auth.get_credentials(registry)

    def close(self):
        """Close HTTP client."""
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def _cache_key(registry: str, repository: str) -> str:
    return f"{registry}|{repository}"


def _error_for_status(status: int, what: str) -> FetchError:
    """Map an HTTP error status to the fetch error taxonomy."""
    if status in (401, 403):
        return RegistryAuthError(f"Authentication failed for {what} (HTTP {status})")
    if status == 404:
        return ManifestNotFoundError(f"Not found: {what}")
    if status == 429:
        return RateLimitedError(f"Rate limited fetching {what}")
    return FetchError(f"Registry error {status} fetching {what}")
