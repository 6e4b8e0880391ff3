"""Version resolution against the npm registry.

Resolves a package name to its currently published version (the ``latest``
dist-tag). Semver ranges are not supported.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from urllib.parse import quote

import httpx

if TYPE_CHECKING:
    from bundle_cache.config import Settings

logger = logging.getLogger(__name__)

NPM_REGISTRY_URL = "https://registry.npmjs.org"

# Timeout for registry requests (seconds)
RESOLVE_TIMEOUT = 30

# Abbreviated metadata keeps responses small but still carries dist-tags
ABBREVIATED_METADATA_ACCEPT = (
    "application/vnd.npm.install-v1+json; q=1.0, application/json; q=0.8"
)


class VersionResolutionError(Exception):
    """Raised when a package's current version cannot be determined."""

    def __init__(self, message: str, code: str = "resolution_error") -> None:
        """Initialize VersionResolutionError.

        Args:
            message: Error description.
            code: Error code for structured error handling.
        """
        super().__init__(message)
        self.code = code


def registry_package_url(name: str, registry_url: str = NPM_REGISTRY_URL) -> str:
    """Build the registry metadata URL for a package.

    The scope separator is percent-encoded, e.g. ``@scope%2Fname``.
    """
    return f"{registry_url.rstrip('/')}/{quote(name, safe='@')}"


class VersionResolver:
    """Looks up the current published version of packages."""

    def __init__(
        self,
        client: httpx.Client,
        registry_url: str = NPM_REGISTRY_URL,
        timeout: float = RESOLVE_TIMEOUT,
    ) -> None:
        self.client = client
        self.registry_url = registry_url
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings, client: httpx.Client) -> VersionResolver:
        """Create a resolver from application settings."""
        return cls(
            client=client,
            registry_url=settings.registry_url,
            timeout=settings.resolve_timeout,
        )

    def resolve(self, name: str) -> str:
        """Return the current version of a package.

        Args:
            name: Package name, scoped or unscoped.

        Returns:
            Version string of the ``latest`` dist-tag.

        Raises:
            VersionResolutionError: If the registry lookup fails or the
                package has no latest version.
        """
        url = registry_package_url(name, self.registry_url)
        logger.debug("Resolving version of %s from %s", name, url)

        try:
            response = self.client.get(
                url,
                headers={"Accept": ABBREVIATED_METADATA_ACCEPT},
                timeout=self.timeout,
            )
            if response.status_code == 404:
                raise VersionResolutionError(
                    f"Package not found in registry: {name}",
                    code="not_found",
                )
            response.raise_for_status()
            metadata = response.json()

        except httpx.HTTPStatusError as e:
            raise VersionResolutionError(
                f"HTTP error resolving {name}: {e.response.status_code}",
                code="http_error",
            ) from e
        except httpx.TimeoutException as e:
            raise VersionResolutionError(
                f"Timeout resolving {name} after {self.timeout}s",
                code="timeout",
            ) from e
        except httpx.RequestError as e:
            raise VersionResolutionError(
                f"Network error resolving {name}: {e}",
                code="network_error",
            ) from e
        except ValueError as e:
            raise VersionResolutionError(
                f"Invalid registry response for {name}",
                code="invalid_response",
            ) from e

        dist_tags = metadata.get("dist-tags") if isinstance(metadata, dict) else None
        version = dist_tags.get("latest") if isinstance(dist_tags, dict) else None
        if not isinstance(version, str) or not version.strip():
            raise VersionResolutionError(
                f"No latest version published for {name}",
                code="no_version",
            )

        return version.strip()


__all__ = [
    "NPM_REGISTRY_URL",
    "VersionResolutionError",
    "VersionResolver",
    "registry_package_url",
]
