"""Result models for build runs.

These are plain pydantic models so CLI and JSON output can use
``model_dump`` / ``model_dump_json`` directly.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from bundle_cache.types import PackageStatus, SkipReason


class PackageResult(BaseModel):
    """Outcome of one package's pipeline.

    Attributes:
        name: Package name.
        status: bundled, skipped or failed.
        version: Resolved version (None if resolution failed or not attempted).
        reason: Skip reason for skipped packages.
        size_bytes: Artifact size for bundled packages.
        url: Artifact URL for bundled packages.
        error: Truncated error message for failed packages.
        error_code: Stable error code for failed packages.
        elapsed_seconds: Time spent on this package.
    """

    name: str
    status: PackageStatus
    version: str | None = None
    reason: SkipReason | None = None
    size_bytes: int = 0
    url: str | None = None
    error: str | None = None
    error_code: str | None = None
    elapsed_seconds: float = 0.0


class FailedPackage(BaseModel):
    """Diagnostics record for a package that did not reach commit."""

    name: str
    version: str | None = None
    error: str


class BatchBuildResult(BaseModel):
    """Aggregated outcome of a build run.

    Attributes:
        total: Distinct packages processed.
        bundled: Packages built, uploaded and committed.
        skipped_builtin: Packages provided by the host runtime.
        skipped_exists: Packages whose current version was already cached.
        failed: Packages that did not reach commit.
        total_size: Bytes of newly produced artifacts.
        results: Per-package results in input order.
        failures: Diagnostics for failed packages.
        index_entries: Keys in the index after the run.
        index_uploaded: Whether the snapshot was mirrored to storage.
        index_warning: Set when the index could not be loaded cleanly.
        elapsed_seconds: Duration of the run.
    """

    total: int = 0
    bundled: int = 0
    skipped_builtin: int = 0
    skipped_exists: int = 0
    failed: int = 0
    total_size: int = 0
    results: list[PackageResult] = Field(default_factory=list)
    failures: list[FailedPackage] = Field(default_factory=list)
    index_entries: int = 0
    index_uploaded: bool = False
    index_warning: str | None = None
    elapsed_seconds: float = 0.0

    def add(self, result: PackageResult) -> None:
        """Count one package result."""
        self.total += 1
        self.results.append(result)
        if result.status == PackageStatus.BUNDLED:
            self.bundled += 1
            self.total_size += result.size_bytes
        elif result.status == PackageStatus.SKIPPED:
            if result.reason == SkipReason.BUILTIN:
                self.skipped_builtin += 1
            else:
                self.skipped_exists += 1
        else:
            self.failed += 1
            self.failures.append(
                FailedPackage(
                    name=result.name,
                    version=result.version,
                    error=result.error or "unknown error",
                )
            )


__all__ = ["BatchBuildResult", "FailedPackage", "PackageResult"]
