"""Shared type definitions for bundle_cache.

This module contains dataclasses and enums shared across subpackages to
avoid circular imports.
"""

from dataclasses import dataclass, field
from enum import Enum


class PackageStatus(str, Enum):
    """Outcome of one package's pass through the build pipeline."""

    BUNDLED = "bundled"
    SKIPPED = "skipped"
    FAILED = "failed"


class SkipReason(str, Enum):
    """Why a package was skipped without building."""

    BUILTIN = "builtin"
    VERSION_EXISTS = "version_exists"


@dataclass
class OperationResult:
    """Result of an operation (index load, upload, etc.)."""

    success: bool
    message: str
    code: str | None = None
    details: dict[str, object] = field(default_factory=dict)


@dataclass(frozen=True)
class PackageSpec:
    """A package name with an optional version, as parsed from a lookup key."""

    name: str
    version: str | None = None

    @property
    def key(self) -> str:
        """Index key for this spec (``name`` or ``name@version``)."""
        if self.version is None:
            return self.name
        return f"{self.name}@{self.version}"


__all__ = [
    "OperationResult",
    "PackageSpec",
    "PackageStatus",
    "SkipReason",
]
