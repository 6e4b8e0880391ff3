"""Bundle Cache - versioned build-artifact cache for npm packages.

This package resolves the current version of third-party packages, bundles
each exact version once into a minified browser artifact, stores it in blob
storage, and keeps a queryable index of what has been built.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
