"""Tests for CLI module."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from bundle_cache import __version__
from bundle_cache.builds.models import BatchBuildResult, PackageResult
from bundle_cache.catalog import CatalogError, CatalogPackage
from bundle_cache.cli import app
from bundle_cache.index.manager import IndexManager
from bundle_cache.index.models import IndexEntry
from bundle_cache.types import PackageStatus

runner = CliRunner()


@pytest.fixture
def data_dir(tmp_path: Path, monkeypatch) -> Path:
    """Point settings at a temp data directory."""
    monkeypatch.setenv("BUNDLE_CACHE_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("BUNDLE_CACHE_LOG_LEVEL", "WARNING")
    return tmp_path


@pytest.fixture
def populated_index(data_dir: Path) -> IndexManager:
    """Persisted index with two lodash versions."""
    index = IndexManager(data_dir / "index.json")
    releases = (("4.17.20", "2024-01-01T00:00:00Z"), ("4.17.21", "2024-06-01T00:00:00Z"))
    for version, uploaded in releases:
        index.commit(
            IndexEntry(
                name="lodash",
                version=version,
                storage_id=f"id-{version}",
                file_name=f"lodash@{version}.js",
                url=f"https://storage.example/{version}",
                size_bytes=2048,
                uploaded_at=uploaded,
            )
        )
    index.persist()
    return index


class TestCliBasics:
    """Test basic CLI functionality."""

    def test_help(self) -> None:
        """CLI should show help."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "bundle" in result.stdout.lower()

    def test_version(self) -> None:
        """CLI should show version."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout


class TestConfigCommand:
    """Test config command."""

    def test_config_show(self, data_dir: Path) -> None:
        """Config command should show settings."""
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "Effective Configuration" in result.stdout
        assert "Index storage ID" in result.stdout

    def test_config_json_masks_key(self, data_dir: Path, monkeypatch) -> None:
        """Config --json should never print the API key."""
        monkeypatch.setenv("BUNDLE_CACHE_STORAGE_API_KEY", "secret-key")
        result = runner.invoke(app, ["config", "--json"])
        assert result.exit_code == 0
        assert "secret-key" not in result.stdout
        assert '"storage_api_key": "***"' in result.stdout


class TestIndexCommands:
    """Test index inspection commands."""

    def test_stats_json(self, populated_index: IndexManager) -> None:
        """index stats --json should report aggregate counts."""
        result = runner.invoke(app, ["index", "stats", "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout) == {
            "uniquePackages": 1,
            "totalVersions": 2,
            "totalSize": 4096,
        }

    def test_stats_empty(self, data_dir: Path) -> None:
        """index stats should work without a snapshot."""
        result = runner.invoke(app, ["index", "stats"])
        assert result.exit_code == 0
        assert "Packages: 0" in result.stdout

    def test_stats_corrupt(self, data_dir: Path) -> None:
        """A corrupt snapshot should warn and report an empty index."""
        (data_dir / "index.json").write_text("{broken")
        result = runner.invoke(app, ["index", "stats"])
        assert result.exit_code == 0
        assert "Warning" in result.stdout
        assert "Versions: 0" in result.stdout

    def test_show(self, populated_index: IndexManager) -> None:
        """index show should print the stored record."""
        result = runner.invoke(app, ["index", "show", "lodash"])
        assert result.exit_code == 0
        record = json.loads(result.stdout)
        assert record["version"] == "4.17.21"
        assert record["latestVersion"] == "4.17.21"

    def test_show_missing(self, data_dir: Path) -> None:
        """index show should fail for uncached packages."""
        result = runner.invoke(app, ["index", "show", "left-pad@1.0.0"])
        assert result.exit_code == 1
        assert "Not cached" in result.stdout

    def test_versions(self, populated_index: IndexManager) -> None:
        """index versions should list newest first."""
        result = runner.invoke(app, ["index", "versions", "lodash"])
        assert result.exit_code == 0
        assert result.stdout.index("4.17.21") < result.stdout.index("4.17.20")


class TestBuildCommands:
    """Test build run command."""

    def test_missing_credentials(self, data_dir: Path) -> None:
        """Missing storage settings should exit with an error."""
        result = runner.invoke(app, ["build", "run", "axios"])
        assert result.exit_code == 1
        assert "Configuration error" in result.stdout

    def test_missing_package_list(self, data_dir: Path) -> None:
        """Without names or a list file the run should fail."""
        result = runner.invoke(app, ["build", "run"])
        assert result.exit_code == 1
        assert "catalog fetch" in result.stdout

    def test_run_success(self, data_dir: Path) -> None:
        """A clean run should print a summary and exit 0."""
        batch = BatchBuildResult(index_uploaded=True)
        batch.add(
            PackageResult(
                name="axios",
                status=PackageStatus.BUNDLED,
                version="1.6.0",
                size_bytes=14000,
            )
        )

        with patch("bundle_cache.builds.service.run_build_batch", return_value=batch) as mock_run:
            result = runner.invoke(app, ["build", "run", "axios", "--workers", "2"])

        assert result.exit_code == 0
        assert "New bundles: 1" in result.stdout
        assert mock_run.call_args.args[0] == ["axios"]
        assert mock_run.call_args.kwargs["max_workers"] == 2

    def test_run_with_failures(self, data_dir: Path) -> None:
        """Failures should be listed and exit 1."""
        batch = BatchBuildResult(index_uploaded=True)
        batch.add(
            PackageResult(
                name="ghost-pkg",
                status=PackageStatus.FAILED,
                error="Package not found in registry: ghost-pkg",
                error_code="not_found",
            )
        )

        with patch("bundle_cache.builds.service.run_build_batch", return_value=batch):
            result = runner.invoke(app, ["build", "run", "ghost-pkg"])

        assert result.exit_code == 1
        assert "Failed: 1" in result.stdout
        assert "ghost-pkg" in result.stdout

    def test_run_from_package_file(self, data_dir: Path) -> None:
        """Names should be read from the package list file."""
        packages_file = data_dir / "list.json"
        packages_file.write_text(json.dumps(["axios", "lodash"]))

        with patch(
            "bundle_cache.builds.service.run_build_batch",
            return_value=BatchBuildResult(index_uploaded=True),
        ) as mock_run:
            result = runner.invoke(app, ["build", "run", "--packages-file", str(packages_file)])

        assert result.exit_code == 0
        assert mock_run.call_args.args[0] == ["axios", "lodash"]


class TestCatalogCommands:
    """Test catalog fetch command."""

    def test_fetch(self, data_dir: Path) -> None:
        """catalog fetch should write the package list."""
        packages = [
            CatalogPackage(name="axios", downloads=100),
            CatalogPackage(name="react-native-svg", downloads=50, has_native_code=True),
        ]
        output = data_dir / "packages.json"

        with patch("bundle_cache.catalog.fetch_catalog", return_value=packages):
            result = runner.invoke(app, ["catalog", "fetch", "--output", str(output)])

        assert result.exit_code == 0
        assert "Saved 2 packages" in result.stdout
        assert json.loads(output.read_text()) == ["axios", "react-native-svg"]

    def test_fetch_error(self, data_dir: Path) -> None:
        """Catalog errors should exit with an error."""
        with patch(
            "bundle_cache.catalog.fetch_catalog",
            side_effect=CatalogError("HTTP error fetching catalog: 502", code="http_error"),
        ):
            result = runner.invoke(app, ["catalog", "fetch"])

        assert result.exit_code == 1
        assert "Catalog fetch failed" in result.stdout
