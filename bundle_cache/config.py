"""Configuration settings for bundle_cache.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_data_dir() -> Path:
    """Return the default data directory."""
    return Path.home() / ".local" / "share" / "bundle-cache"


def _default_work_dir() -> Path:
    """Return the default directory for per-package build workspaces."""
    return Path.home() / ".cache" / "bundle-cache" / "work"


class ConfigurationError(Exception):
    """Raised when settings required for an operation are missing."""

    def __init__(
        self,
        message: str,
        missing: list[str] | None = None,
        code: str = "configuration_error",
    ) -> None:
        super().__init__(message)
        self.missing = missing or []
        self.code = code


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the BUNDLE_CACHE_
    prefix. CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="BUNDLE_CACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    data_dir: Path = Field(
        default_factory=_default_data_dir,
        description="Root directory for the index snapshot and run outputs",
    )
    index_file: Path = Field(
        default=Path("index.json"),
        description="Index snapshot file (relative paths resolve under data_dir)",
    )
    failed_file: Path = Field(
        default=Path("failed.json"),
        description="Failed-package diagnostics file",
    )
    packages_file: Path = Field(
        default=Path("packages.json"),
        description="Package name list consumed by build runs",
    )
    work_dir: Path = Field(
        default_factory=_default_work_dir,
        description="Scratch directory for package installs and bundles",
    )

    # Registry
    registry_url: str = Field(
        default="https://registry.npmjs.org",
        description="npm registry used to resolve current versions",
    )
    catalog_url: str = Field(
        default="https://reactnative.directory/api/libraries",
        description="Package catalog API",
    )

    # Blob storage
    storage_endpoint: str = Field(
        default="https://cloud.appwrite.io/v1",
        description="Storage API endpoint",
    )
    storage_project: str | None = Field(default=None, description="Storage project ID")
    storage_api_key: str | None = Field(default=None, description="Storage API key")
    storage_bucket_id: str | None = Field(default=None, description="Storage bucket ID")
    index_storage_id: str = Field(
        default="index",
        description="Well-known storage ID for the mirrored index snapshot",
    )

    # Build run behaviour
    persist_every: int = Field(
        default=25,
        ge=1,
        description="Persist the index after this many processed packages",
    )
    max_concurrent_builds: int = Field(
        default=1,
        ge=1,
        le=16,
        description="Maximum packages processed concurrently",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Timeouts (in seconds)
    resolve_timeout: int = Field(
        default=30,
        ge=1,
        description="Timeout for version resolution",
    )
    build_timeout: int = Field(
        default=120,
        ge=1,
        description="Timeout for each install/bundle step",
    )
    upload_timeout: int = Field(
        default=300,
        ge=1,
        description="Timeout for artifact uploads",
    )

    # Query service
    host: str = Field(default="0.0.0.0", description="Query service bind address")
    port: int = Field(default=3012, ge=1, le=65535, description="Query service port")

    def resolve_data_path(self, path: Path) -> Path:
        """Resolve a file setting against data_dir when it is relative."""
        if path.is_absolute():
            return path
        return self.data_dir / path

    @property
    def index_path(self) -> Path:
        """Absolute path of the index snapshot."""
        return self.resolve_data_path(self.index_file)

    @property
    def failed_path(self) -> Path:
        """Absolute path of the failed-package diagnostics file."""
        return self.resolve_data_path(self.failed_file)

    @property
    def packages_path(self) -> Path:
        """Absolute path of the package name list."""
        return self.resolve_data_path(self.packages_file)


def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def validate_build_settings(settings: Settings) -> None:
    """Check that everything a build run needs is configured.

    Args:
        settings: Settings to validate.

    Raises:
        ConfigurationError: Listing every missing storage setting.
    """
    required = {
        "storage_project": settings.storage_project,
        "storage_api_key": settings.storage_api_key,
        "storage_bucket_id": settings.storage_bucket_id,
    }
    missing = [name for name, value in required.items() if not value]
    if missing:
        env_names = ", ".join(f"BUNDLE_CACHE_{name.upper()}" for name in missing)
        raise ConfigurationError(
            f"Missing storage credentials: {env_names}",
            missing=missing,
        )


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    The storage API key is masked.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    masked = settings.model_copy(
        update={"storage_api_key": "***" if settings.storage_api_key else None}
    )
    return masked.model_dump_json(indent=2)


__all__ = [
    "ConfigurationError",
    "Settings",
    "get_settings",
    "print_settings_json",
    "validate_build_settings",
]
