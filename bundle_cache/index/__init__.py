"""Artifact index module.

This module handles:
- Index key parsing and artifact file naming
- Index entry models
- The index/cache manager and its snapshot persistence
"""

from bundle_cache.index.manager import IndexManager, load_index
from bundle_cache.index.models import IndexEntry, IndexStats

__all__ = ["IndexEntry", "IndexManager", "IndexStats", "load_index"]
