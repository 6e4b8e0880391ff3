"""Index key handling.

This module handles:
- Parsing lookup keys (``name``, ``name@version``, ``@scope/name@version``)
- Building artifact keys from a name and version
- Deterministic, URL-safe artifact file names

An artifact key identifies exactly one build: the same (name, version) pair
always maps to the same key and the same file name.
"""

from __future__ import annotations

import re

from bundle_cache.types import PackageSpec

# Characters replaced in artifact file names
UNSAFE_FILENAME_CHARS = re.compile(r"[@/]")

ARTIFACT_EXTENSION = ".js"


def parse_package_spec(spec: str) -> PackageSpec:
    """Split a lookup key into package name and optional version.

    A leading ``@`` starts a scope, so for scoped names the version
    separator is the first ``@`` after the scope's ``/``.

    Args:
        spec: Lookup key such as ``axios``, ``axios@1.6.0`` or
            ``@react-navigation/native@7.1.0``.

    Returns:
        PackageSpec with version None when the key carries no version.
    """
    if spec.startswith("@"):
        slash = spec.find("/")
        if slash == -1:
            return PackageSpec(name=spec)
        separator = spec.find("@", slash + 1)
    else:
        separator = spec.find("@")

    if separator == -1:
        return PackageSpec(name=spec)

    name, version = spec[:separator], spec[separator + 1 :]
    if not version:
        return PackageSpec(name=name)
    return PackageSpec(name=name, version=version)


def artifact_key(name: str, version: str) -> str:
    """Return the versioned index key for a build."""
    return f"{name}@{version}"


def sanitize_package_name(name: str) -> str:
    """Make a package name safe for file names and URLs.

    ``@`` and ``/`` become ``-`` and one leading ``-`` is dropped, so
    ``@scope/name`` becomes ``scope-name``.
    """
    return re.sub(r"^-", "", UNSAFE_FILENAME_CHARS.sub("-", name))


def artifact_file_name(name: str, version: str) -> str:
    """Return the stored file name for a build, e.g. ``scope-name@1.0.0.js``."""
    return f"{sanitize_package_name(name)}@{version}{ARTIFACT_EXTENSION}"


__all__ = [
    "ARTIFACT_EXTENSION",
    "artifact_file_name",
    "artifact_key",
    "parse_package_spec",
    "sanitize_package_name",
]
