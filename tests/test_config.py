"""Tests for configuration module."""

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from bundle_cache.config import (
    ConfigurationError,
    Settings,
    get_settings,
    print_settings_json,
    validate_build_settings,
)


class TestSettings:
    """Test Settings class."""

    def test_default_settings(self) -> None:
        """Settings should have sensible defaults."""
        settings = Settings()

        assert settings.data_dir == Path.home() / ".local" / "share" / "bundle-cache"
        assert settings.index_path == settings.data_dir / "index.json"
        assert settings.failed_path == settings.data_dir / "failed.json"
        assert settings.index_storage_id == "index"
        assert settings.persist_every == 25
        assert settings.build_timeout == 120
        assert settings.port == 3012
        assert settings.max_concurrent_builds >= 1

    def test_settings_from_env(self) -> None:
        """Settings should be loadable from environment variables."""
        with patch.dict(
            os.environ,
            {
                "BUNDLE_CACHE_LOG_LEVEL": "DEBUG",
                "BUNDLE_CACHE_PERSIST_EVERY": "5",
                "BUNDLE_CACHE_MAX_CONCURRENT_BUILDS": "4",
                "BUNDLE_CACHE_STORAGE_BUCKET_ID": "bundles",
            },
        ):
            settings = Settings()
            assert settings.log_level == "DEBUG"
            assert settings.persist_every == 5
            assert settings.max_concurrent_builds == 4
            assert settings.storage_bucket_id == "bundles"

    def test_relative_files_resolve_under_data_dir(self, tmp_path) -> None:
        """Relative file settings should live under data_dir."""
        settings = Settings(data_dir=tmp_path, index_file=Path("snap/index.json"))
        assert settings.index_path == tmp_path / "snap" / "index.json"

    def test_absolute_files_kept(self, tmp_path) -> None:
        """Absolute file settings should be used as given."""
        index_file = tmp_path / "elsewhere.json"
        settings = Settings(data_dir=tmp_path / "data", index_file=index_file)
        assert settings.index_path == index_file


class TestValidateBuildSettings:
    """Test startup validation of build settings."""

    def test_missing_credentials(self) -> None:
        """Should list every missing storage setting."""
        settings = Settings(
            storage_project=None,
            storage_api_key=None,
            storage_bucket_id=None,
        )
        with pytest.raises(ConfigurationError) as exc_info:
            validate_build_settings(settings)

        assert exc_info.value.code == "configuration_error"
        assert exc_info.value.missing == [
            "storage_project",
            "storage_api_key",
            "storage_bucket_id",
        ]
        assert "BUNDLE_CACHE_STORAGE_API_KEY" in str(exc_info.value)

    def test_partial_credentials(self) -> None:
        """Should report only the settings that are missing."""
        settings = Settings(
            storage_project="proj",
            storage_api_key=None,
            storage_bucket_id="bucket",
        )
        with pytest.raises(ConfigurationError) as exc_info:
            validate_build_settings(settings)
        assert exc_info.value.missing == ["storage_api_key"]

    def test_complete_credentials(self) -> None:
        """Should pass when storage is configured."""
        settings = Settings(
            storage_project="proj",
            storage_api_key="key",
            storage_bucket_id="bucket",
        )
        validate_build_settings(settings)


class TestGetSettings:
    """Test get_settings function."""

    def test_get_settings_returns_settings(self) -> None:
        """get_settings should return a Settings instance."""
        settings = get_settings()
        assert isinstance(settings, Settings)


class TestPrintSettingsJson:
    """Test print_settings_json function."""

    def test_print_settings_json(self) -> None:
        """print_settings_json should return valid JSON."""
        settings = Settings()
        parsed = json.loads(print_settings_json(settings))

        assert "data_dir" in parsed
        assert "index_file" in parsed
        assert "registry_url" in parsed
        assert "storage_endpoint" in parsed

    def test_api_key_masked(self) -> None:
        """The storage API key should never be printed."""
        settings = Settings(storage_api_key="secret-key")
        output = print_settings_json(settings)

        assert "secret-key" not in output
        assert json.loads(output)["storage_api_key"] == "***"
