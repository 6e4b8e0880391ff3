"""Router modules for FastAPI web API."""

from web.routers import admin, bundles, health, stats, versions

__all__ = ["admin", "bundles", "health", "stats", "versions"]
