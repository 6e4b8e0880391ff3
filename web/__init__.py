"""FastAPI web application for Bundle Cache.

This module provides the read-only HTTP API over the artifact index.

All lookups are delegated to bundle_cache.index; nothing here builds.
"""

from web.app import app, create_app

__all__ = ["app", "create_app"]
