"""Bundle runner for producing package artifacts.

This module handles:
- Installing one exact package version into a scratch workspace
- Discovering the package entry point
- Composing and executing the esbuild command
- Capturing stdout/stderr to a log file
- Enforcing one timeout budget across install and bundle
"""

from __future__ import annotations

import json
import logging
import os
import shlex
import subprocess
import time
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from bundle_cache.builds.externals import bundle_externals

logger = logging.getLogger(__name__)

# Name of the IIFE global the bundle assigns its exports to
BUNDLE_GLOBAL_NAME = "__snack_exports"
BUNDLE_TARGET = "es2020"
BUNDLE_FILENAME = "bundle.js"
LOG_FILENAME = "build.log"

# Lines of build output kept in error messages
LOG_TAIL_LINES = 20


class BuildExecutionError(Exception):
    """Raised when installing or bundling a package fails."""

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        code: str = "build_error",
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.code = code


@dataclass
class BundleResult:
    """Result of bundling one package version.

    Attributes:
        bundle_path: Path to the minified artifact.
        size_bytes: Artifact size.
        entry_point: Module the bundle was built from.
        log_path: Path to the build log file.
        started_at: Start time.
        finished_at: Finish time.
    """

    bundle_path: Path
    size_bytes: int
    entry_point: Path
    log_path: Path
    started_at: datetime
    finished_at: datetime

    @property
    def duration_seconds(self) -> float:
        """Wall-clock duration of the build."""
        return (self.finished_at - self.started_at).total_seconds()


def compose_install_command(name: str, version: str) -> list[str]:
    """Compose the npm command installing one exact package version."""
    return [
        "npm",
        "install",
        "--no-audit",
        "--no-fund",
        "--no-package-lock",
        f"{name}@{version}",
    ]


def compose_bundle_command(
    entry_point: Path,
    outfile: Path,
    externals: Sequence[str] | None = None,
) -> list[str]:
    """Compose the esbuild command producing a minified browser bundle.

    Args:
        entry_point: Module to bundle.
        outfile: Output file path.
        externals: Module names or patterns to leave out of the bundle.

    Returns:
        Command as list of strings suitable for subprocess.
    """
    cmd = [
        "npx",
        "--yes",
        "esbuild",
        str(entry_point),
        "--bundle",
        "--minify",
        f"--outfile={outfile}",
        "--format=iife",
        f"--global-name={BUNDLE_GLOBAL_NAME}",
        "--platform=browser",
        f"--target={BUNDLE_TARGET}",
        "--log-level=warning",
    ]
    if externals is None:
        externals = bundle_externals()
    cmd.extend(f"--external:{name}" for name in externals)
    return cmd


def find_entry_point(package_dir: Path) -> Path:
    """Find the module a package exposes.

    Prefers ``module`` over ``main`` in package.json, then ``index.js``.
    Falls back to the package directory itself, leaving resolution to the
    bundler.

    Args:
        package_dir: Installed package directory under node_modules.

    Returns:
        Path to the entry module or the package directory.

    Raises:
        BuildExecutionError: If the package is not installed.
    """
    if not package_dir.is_dir():
        raise BuildExecutionError(
            f"Package not installed: {package_dir}",
            code="entry_not_found",
        )

    try:
        manifest = json.loads((package_dir / "package.json").read_text(encoding="utf-8"))
    except (OSError, ValueError):
        logger.debug("No readable package.json in %s", package_dir)
        manifest = {}

    candidates: list[str] = []
    if isinstance(manifest, dict):
        for field_name in ("module", "main"):
            value = manifest.get(field_name)
            if isinstance(value, str) and value:
                candidates.append(value)
    candidates.append("index.js")

    for candidate in candidates:
        path = package_dir / candidate
        if path.is_file():
            return path

    return package_dir


def _log_tail(log_path: Path, lines: int = LOG_TAIL_LINES) -> str:
    """Return the last lines of a log file, or an empty string."""
    try:
        content = log_path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return ""
    return "\n".join(content.strip().splitlines()[-lines:])


def _run_step(
    step: str,
    cmd: list[str],
    cwd: Path,
    log_path: Path,
    timeout: float | None,
    env: dict[str, str] | None,
    failure_code: str,
) -> None:
    """Run one build step with output appended to the log.

    Raises:
        BuildExecutionError: On non-zero exit, timeout or spawn failure.
    """
    cmd_str = shlex.join(cmd)
    logger.debug("Executing %s: %s", step, cmd_str)

    try:
        with log_path.open("a", encoding="utf-8") as log_file:
            log_file.write(f"# {step}: {cmd_str}\n")
            log_file.flush()

            result = subprocess.run(
                cmd,
                cwd=cwd,
                stdout=log_file,
                stderr=subprocess.STDOUT,
                timeout=timeout,
                env=env,
                check=False,
            )

    except subprocess.TimeoutExpired as e:
        with log_path.open("a", encoding="utf-8") as log_file:
            log_file.write(f"\n# TIMEOUT after {timeout:g} seconds\n")
        raise BuildExecutionError(
            f"{step} timed out after {timeout:g} seconds",
            exit_code=-1,
            code="build_timeout",
        ) from e

    except OSError as e:
        raise BuildExecutionError(
            f"Failed to execute {step}: {e}",
            code="execution_error",
        ) from e

    if result.returncode != 0:
        tail = _log_tail(log_path)
        message = f"{step} failed with exit code {result.returncode}"
        if tail:
            message = f"{message}: {tail}"
        raise BuildExecutionError(
            message,
            exit_code=result.returncode,
            code=failure_code,
        )


def _remaining_budget(
    deadline: float | None,
    timeout: float | None,
    log_path: Path,
) -> float | None:
    """Seconds left before ``deadline``, or None without a timeout.

    Raises:
        BuildExecutionError: If the budget is already spent.
    """
    if deadline is None:
        return None
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        with log_path.open("a", encoding="utf-8") as log_file:
            log_file.write(f"\n# TIMEOUT after {timeout:g} seconds\n")
        raise BuildExecutionError(
            f"bundle not started: build timed out after {timeout:g} seconds",
            exit_code=-1,
            code="build_timeout",
        )
    return remaining


def run_bundle(
    name: str,
    version: str,
    work_dir: Path,
    externals: Sequence[str] | None = None,
    timeout: float | None = None,
    env_override: dict[str, str] | None = None,
) -> BundleResult:
    """Install a package version and bundle it into one minified file.

    The workspace is left in place; the caller owns its cleanup.

    Args:
        name: Package name.
        version: Exact version to install.
        work_dir: Scratch directory for this build.
        externals: Modules to leave out of the bundle.
        timeout: Timeout in seconds for install and bundle together.
        env_override: Optional environment variable overrides.

    Returns:
        BundleResult describing the artifact.

    Raises:
        BuildExecutionError: If any step fails.
    """
    work_dir.mkdir(parents=True, exist_ok=True)
    log_path = work_dir / LOG_FILENAME
    bundle_path = work_dir / BUNDLE_FILENAME

    env: dict[str, str] | None = None
    if env_override:
        env = dict(os.environ)
        env.update(env_override)

    deadline = time.monotonic() + timeout if timeout is not None else None
    started_at = datetime.now(timezone.utc)
    logger.info("Bundling %s@%s in %s", name, version, work_dir)

    with (work_dir / "package.json").open("w", encoding="utf-8") as f:
        json.dump({"name": "bundle-workspace", "version": "0.0.0", "private": True}, f)

    _run_step(
        "install",
        compose_install_command(name, version),
        cwd=work_dir,
        log_path=log_path,
        timeout=timeout,
        env=env,
        failure_code="install_failed",
    )

    entry_point = find_entry_point(work_dir / "node_modules" / name)

    _run_step(
        "bundle",
        compose_bundle_command(entry_point, bundle_path, externals),
        cwd=work_dir,
        log_path=log_path,
        timeout=_remaining_budget(deadline, timeout, log_path),
        env=env,
        failure_code="bundle_failed",
    )

    if not bundle_path.is_file():
        raise BuildExecutionError(
            f"Bundle not created for {name}@{version}",
            code="bundle_missing",
        )

    finished_at = datetime.now(timezone.utc)
    size_bytes = bundle_path.stat().st_size

    return BundleResult(
        bundle_path=bundle_path,
        size_bytes=size_bytes,
        entry_point=entry_point,
        log_path=log_path,
        started_at=started_at,
        finished_at=finished_at,
    )


__all__ = [
    "BUNDLE_GLOBAL_NAME",
    "BuildExecutionError",
    "BundleResult",
    "compose_bundle_command",
    "compose_install_command",
    "find_entry_point",
    "run_bundle",
]
