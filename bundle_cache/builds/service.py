"""Build service module.

This module provides the high-level build API:
- BuildOrchestrator.process_package(): one package through the pipeline
- BuildOrchestrator.run(): a batch of packages with aggregated statistics
- run_build_batch(): wire everything from settings and run a batch

Pipeline per package: host-provided check, version resolution,
skip-if-cached, bundle, upload, commit, cleanup. Failures are recorded per
package and never stop the batch.
"""

from __future__ import annotations

import json
import logging
import shutil
import tempfile
import threading
import time
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

import httpx

from bundle_cache.builds.externals import bundle_externals, is_host_provided
from bundle_cache.builds.models import BatchBuildResult, PackageResult
from bundle_cache.builds.resolver import VersionResolutionError, VersionResolver
from bundle_cache.builds.runner import BuildExecutionError, BundleResult, run_bundle
from bundle_cache.config import get_settings, validate_build_settings
from bundle_cache.index.keys import (
    artifact_file_name,
    artifact_key,
    sanitize_package_name,
)
from bundle_cache.index.manager import IndexManager
from bundle_cache.index.models import IndexEntry
from bundle_cache.storage.client import ArtifactStoreClient, StorageError
from bundle_cache.types import PackageStatus, SkipReason

if TYPE_CHECKING:
    from bundle_cache.config import Settings

logger = logging.getLogger(__name__)

# Maximum length of error messages kept in results and diagnostics
ERROR_MESSAGE_LIMIT = 500

INDEX_FILE_NAME = "index.json"

Bundler = Callable[..., BundleResult]


def truncate_error(message: str, limit: int = ERROR_MESSAGE_LIMIT) -> str:
    """Shorten an error message for recording."""
    message = message.strip()
    if len(message) <= limit:
        return message
    return message[: limit - 3] + "..."


def write_failures(result: BatchBuildResult, path: Path) -> Path:
    """Write failed-package diagnostics as a JSON list.

    Args:
        result: Batch result holding the failures.
        path: Output file path.

    Returns:
        Path to the written file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump([failure.model_dump() for failure in result.failures], f, indent=2)
        f.write("\n")
    logger.info("Wrote %d failed package(s) to %s", len(result.failures), path)
    return path


def preserve_corrupt_snapshot(path: Path) -> Path | None:
    """Copy an unreadable snapshot aside before it is overwritten.

    Returns:
        Path of the copy, or None if there was nothing to copy.
    """
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    backup = path.with_name(f"{path.name}.corrupt-{stamp}")
    try:
        shutil.copy2(path, backup)
    except OSError as e:
        logger.error("Could not preserve corrupt index %s: %s", path, e)
        return None
    logger.warning("Corrupt index preserved as %s", backup)
    return backup


class BuildOrchestrator:
    """Drives packages through resolve, bundle, upload and commit.

    The orchestrator owns the skip decision: a key is claimed under a lock
    before building, so concurrent workers never build the same
    (name, version). Commits are serialized by the index.
    """

    def __init__(
        self,
        index: IndexManager,
        resolver: VersionResolver,
        store: ArtifactStoreClient,
        settings: Settings | None = None,
        bundler: Bundler = run_bundle,
    ) -> None:
        self.index = index
        self.resolver = resolver
        self.store = store
        self.settings = settings if settings is not None else get_settings()
        self.bundler = bundler
        self._lock = threading.Lock()
        self._in_flight: set[str] = set()
        self._processed = 0

    def _claim(self, name: str, version: str) -> bool:
        """Reserve (name, version) for building.

        Returns:
            False if it is already built or being built.
        """
        key = artifact_key(name, version)
        with self._lock:
            if self.index.is_built(name, version) or key in self._in_flight:
                return False
            self._in_flight.add(key)
            return True

    def _release(self, name: str, version: str) -> None:
        with self._lock:
            self._in_flight.discard(artifact_key(name, version))

    def _make_work_dir(self, name: str, version: str) -> Path:
        self.settings.work_dir.mkdir(parents=True, exist_ok=True)
        prefix = f"{sanitize_package_name(name)}@{version}_"
        return Path(tempfile.mkdtemp(prefix=prefix, dir=self.settings.work_dir))

    @staticmethod
    def _cleanup(work_dir: Path) -> None:
        try:
            shutil.rmtree(work_dir)
        except OSError as e:
            logger.warning("Could not remove work directory %s: %s", work_dir, e)

    @staticmethod
    def _failed(
        name: str,
        version: str | None,
        error: Exception,
        code: str,
        started: float,
    ) -> PackageResult:
        message = truncate_error(str(error) or type(error).__name__)
        logger.error("%s@%s failed (%s): %s", name, version or "?", code, message)
        return PackageResult(
            name=name,
            status=PackageStatus.FAILED,
            version=version,
            error=message,
            error_code=code,
            elapsed_seconds=time.monotonic() - started,
        )

    def process_package(self, name: str) -> PackageResult:
        """Run one package through the pipeline.

        Never raises for package-level failures; they are returned as
        failed results.

        Args:
            name: Package name.

        Returns:
            PackageResult for the package.
        """
        started = time.monotonic()

        if is_host_provided(name):
            logger.info("Skip %s: provided by host runtime", name)
            return PackageResult(
                name=name,
                status=PackageStatus.SKIPPED,
                reason=SkipReason.BUILTIN,
            )

        try:
            version = self.resolver.resolve(name)
        except VersionResolutionError as e:
            return self._failed(name, None, e, e.code, started)
        except Exception as e:
            logger.exception("Unexpected error resolving %s", name)
            return self._failed(name, None, e, "internal_error", started)

        if not self._claim(name, version):
            logger.info("Skip %s: %s already bundled", name, version)
            return PackageResult(
                name=name,
                status=PackageStatus.SKIPPED,
                version=version,
                reason=SkipReason.VERSION_EXISTS,
            )

        try:
            return self._build_and_commit(name, version, started)
        finally:
            self._release(name, version)

    def _build_and_commit(self, name: str, version: str, started: float) -> PackageResult:
        try:
            work_dir = self._make_work_dir(name, version)
        except OSError as e:
            return self._failed(name, version, e, "workspace_error", started)

        try:
            try:
                bundle = self.bundler(
                    name=name,
                    version=version,
                    work_dir=work_dir,
                    externals=bundle_externals(),
                    timeout=self.settings.build_timeout,
                )
            except BuildExecutionError as e:
                return self._failed(name, version, e, e.code, started)

            file_name = artifact_file_name(name, version)
            try:
                stored = self.store.upload_file(bundle.bundle_path, file_name)
            except StorageError as e:
                return self._failed(name, version, e, e.code, started)

            entry = IndexEntry(
                name=name,
                version=version,
                storage_id=stored.storage_id,
                file_name=stored.file_name,
                url=stored.url,
                size_bytes=bundle.size_bytes,
                uploaded_at=datetime.now(timezone.utc).isoformat(),
            )
            self.index.commit(entry)

            elapsed = time.monotonic() - started
            logger.info(
                "Bundled %s@%s: %.1f KB in %.1fs",
                name,
                version,
                bundle.size_bytes / 1024,
                elapsed,
            )
            return PackageResult(
                name=name,
                status=PackageStatus.BUNDLED,
                version=version,
                size_bytes=bundle.size_bytes,
                url=stored.url,
                elapsed_seconds=elapsed,
            )

        except Exception as e:
            logger.exception("Unexpected error building %s@%s", name, version)
            return self._failed(name, version, e, "internal_error", started)

        finally:
            self._cleanup(work_dir)

    def _record_progress(self, result: PackageResult, total: int) -> None:
        """Count a finished package and checkpoint the index periodically."""
        with self._lock:
            self._processed += 1
            processed = self._processed
            logger.info(
                "[%d/%d] %s: %s", processed, total, result.name, result.status.value
            )
            if processed % self.settings.persist_every == 0:
                try:
                    self.index.persist()
                except OSError as e:
                    logger.error("Checkpoint of index failed: %s", e)
                else:
                    logger.info("Index checkpoint at %d/%d", processed, total)

    def mirror_index(self, snapshot_path: Path) -> bool:
        """Upload the index snapshot under its well-known storage ID.

        Returns:
            True if the upload succeeded.
        """
        storage_id = self.settings.index_storage_id
        try:
            self.store.replace_file(storage_id, snapshot_path, INDEX_FILE_NAME)
        except StorageError as e:
            logger.warning("Could not upload index snapshot: %s", e)
            return False
        logger.info("Uploaded index snapshot as %s", storage_id)
        return True

    def run(
        self,
        names: Iterable[str],
        max_workers: int | None = None,
        mirror: bool = True,
    ) -> BatchBuildResult:
        """Process a batch of packages.

        Args:
            names: Package names; duplicates are processed once.
            max_workers: Concurrent packages (defaults to settings).
            mirror: Upload the final snapshot to storage.

        Returns:
            BatchBuildResult with counts, per-package results and failures.
        """
        started = time.monotonic()
        unique = list(dict.fromkeys(names))
        workers = max_workers or self.settings.max_concurrent_builds
        self._processed = 0

        logger.info("Processing %d package(s) with %d worker(s)", len(unique), workers)

        by_name: dict[str, PackageResult] = {}
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {pool.submit(self.process_package, name): name for name in unique}
            for future in as_completed(futures):
                package_result = future.result()
                by_name[futures[future]] = package_result
                self._record_progress(package_result, len(unique))

        result = BatchBuildResult()
        for name in unique:
            result.add(by_name[name])

        snapshot_path = self.index.persist()
        write_failures(result, self.settings.failed_path)
        if mirror:
            result.index_uploaded = self.mirror_index(snapshot_path)

        result.index_entries = len(self.index)
        result.elapsed_seconds = time.monotonic() - started

        logger.info(
            "Run complete: %d bundled, %d builtin, %d cached, %d failed, %d new bytes",
            result.bundled,
            result.skipped_builtin,
            result.skipped_exists,
            result.failed,
            result.total_size,
        )
        return result


def run_build_batch(
    names: Iterable[str],
    settings: Settings | None = None,
    max_workers: int | None = None,
) -> BatchBuildResult:
    """Build a batch of packages with collaborators created from settings.

    Args:
        names: Package names.
        settings: Application settings.
        max_workers: Concurrent packages (defaults to settings).

    Returns:
        BatchBuildResult for the run.

    Raises:
        ConfigurationError: If storage settings are missing.
    """
    if settings is None:
        settings = get_settings()

    validate_build_settings(settings)

    index = IndexManager(settings.index_path)
    load_result = index.load()

    # A corrupt local snapshot must not replace the mirrored one
    mirror = load_result.code != "index_corrupt"
    if not mirror:
        preserve_corrupt_snapshot(settings.index_path)

    with httpx.Client() as client:
        resolver = VersionResolver.from_settings(settings, client)
        store = ArtifactStoreClient.from_settings(settings, client)
        orchestrator = BuildOrchestrator(index, resolver, store, settings=settings)
        result = orchestrator.run(names, max_workers=max_workers, mirror=mirror)

    if not load_result.success:
        result.index_warning = load_result.message
    return result


__all__ = [
    "ERROR_MESSAGE_LIMIT",
    "BuildOrchestrator",
    "preserve_corrupt_snapshot",
    "run_build_batch",
    "truncate_error",
    "write_failures",
]
