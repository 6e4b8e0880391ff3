"""Blob storage module.

Uploads artifacts and the index snapshot to durable storage and returns
their public URLs.
"""

from bundle_cache.storage.client import ArtifactStoreClient, StorageError, StoredFile

__all__ = ["ArtifactStoreClient", "StorageError", "StoredFile"]
