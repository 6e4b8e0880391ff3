"""Build orchestration module.

This module handles:
- Version resolution against the registry
- Host-provided module exclusion
- Running the installer and bundler
- The per-package pipeline and batch runs
"""

from bundle_cache.builds.models import BatchBuildResult, FailedPackage, PackageResult

__all__ = ["BatchBuildResult", "FailedPackage", "PackageResult"]

# Lazy imports for submodules to avoid circular imports
# Access via bundle_cache.builds.service, etc.
