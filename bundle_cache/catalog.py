"""Package catalog module.

This module handles:
- Paging through the React Native Directory API
- Filtering out dev tools and entries without an npm package
- Writing the package name list consumed by build runs
- Reading that list back
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

import httpx

logger = logging.getLogger(__name__)

CATALOG_URL = "https://reactnative.directory/api/libraries"

# Only libraries usable on both platforms inside Expo Go, and maintained
CATALOG_FILTERS = {
    "android": "true",
    "ios": "true",
    "expoGo": "true",
    "isMaintained": "true",
}

PAGE_SIZE = 100

# Delay between page requests (seconds)
PAGE_DELAY = 0.2

# Timeout for catalog requests (seconds)
CATALOG_TIMEOUT = 30


class CatalogError(Exception):
    """Raised when the catalog cannot be fetched or read."""

    def __init__(self, message: str, code: str = "catalog_error") -> None:
        super().__init__(message)
        self.code = code


@dataclass
class CatalogPackage:
    """A package listed in the catalog."""

    name: str
    downloads: int = 0
    size: int = 0
    has_native_code: bool = False
    expo_go: bool = False


def parse_library(library: dict[str, Any]) -> CatalogPackage | None:
    """Convert one directory library record.

    Returns:
        CatalogPackage, or None for dev tools and records without an npm name.
    """
    name = library.get("npmPkg")
    if library.get("dev") or not isinstance(name, str) or not name:
        return None
    npm = library.get("npm") or {}
    github = library.get("github") or {}
    return CatalogPackage(
        name=name,
        downloads=int(npm.get("weekDownloads") or 0),
        size=int(npm.get("size") or 0),
        has_native_code=bool(github.get("hasNativeCode")),
        expo_go=bool(library.get("expoGo")),
    )


def fetch_catalog(
    client: httpx.Client,
    base_url: str = CATALOG_URL,
    page_size: int = PAGE_SIZE,
    page_delay: float = PAGE_DELAY,
    timeout: float = CATALOG_TIMEOUT,
) -> list[CatalogPackage]:
    """Fetch every matching library from the directory.

    Args:
        client: HTTPX client instance.
        base_url: Directory API URL.
        page_size: Libraries per page.
        page_delay: Pause between pages in seconds.
        timeout: Request timeout in seconds.

    Returns:
        Packages sorted by weekly downloads, most downloaded first.

    Raises:
        CatalogError: If a page cannot be fetched.
    """
    libraries: list[dict[str, Any]] = []
    offset = 0
    total: int | None = None

    while True:
        params = {**CATALOG_FILTERS, "offset": str(offset), "limit": str(page_size)}
        logger.info("Fetching catalog page %d (offset=%d)", offset // page_size + 1, offset)

        try:
            response = client.get(base_url, params=params, timeout=timeout)
            response.raise_for_status()
            page = response.json()
        except httpx.HTTPStatusError as e:
            raise CatalogError(
                f"HTTP error fetching catalog: {e.response.status_code}",
                code="http_error",
            ) from e
        except httpx.TimeoutException as e:
            raise CatalogError("Timeout fetching catalog", code="timeout") from e
        except httpx.RequestError as e:
            raise CatalogError(
                f"Network error fetching catalog: {e}",
                code="network_error",
            ) from e
        except ValueError as e:
            raise CatalogError("Invalid catalog response", code="invalid_response") from e

        if total is None:
            total = int(page.get("total") or 0)
            logger.info("Catalog lists %d matching libraries", total)

        batch = page.get("libraries") or []
        if not batch:
            break
        libraries.extend(batch)

        offset += page_size
        if offset >= total:
            break
        time.sleep(page_delay)

    packages = [p for p in (parse_library(lib) for lib in libraries) if p is not None]
    packages.sort(key=lambda p: p.downloads, reverse=True)
    logger.info("Catalog: %d of %d libraries kept", len(packages), len(libraries))
    return packages


def write_catalog(packages: list[CatalogPackage], names_path: Path) -> tuple[Path, Path]:
    """Write the package name list and a detailed companion file.

    The detailed file sits next to the names file with a ``-full`` suffix.

    Returns:
        Tuple of (names path, details path).
    """
    names_path.parent.mkdir(parents=True, exist_ok=True)
    details_path = names_path.with_name(f"{names_path.stem}-full{names_path.suffix}")

    with names_path.open("w", encoding="utf-8") as f:
        json.dump([p.name for p in packages], f, indent=2)
    with details_path.open("w", encoding="utf-8") as f:
        json.dump([asdict(p) for p in packages], f, indent=2)

    logger.info("Wrote %d packages to %s", len(packages), names_path)
    return names_path, details_path


def load_package_list(path: Path) -> list[str]:
    """Read a package name list.

    Raises:
        CatalogError: If the file is missing or not a JSON list of strings.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise CatalogError(f"Package list not found: {path}", code="not_found") from e
    except (OSError, ValueError) as e:
        raise CatalogError(f"Cannot read package list {path}: {e}", code="invalid_list") from e

    if not isinstance(data, list) or not all(isinstance(n, str) for n in data):
        raise CatalogError(
            f"Package list {path} must be a JSON list of names",
            code="invalid_list",
        )
    return data


__all__ = [
    "CATALOG_URL",
    "CatalogError",
    "CatalogPackage",
    "fetch_catalog",
    "load_package_list",
    "parse_library",
    "write_catalog",
]
