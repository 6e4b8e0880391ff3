"""Artifact store client.

This module handles:
- Uploading artifact bytes to blob storage under a unique ID
- Chunked uploads for large files
- Deleting and replacing files with a known ID
- Building the public URL for a stored file

The storage service speaks the Appwrite storage REST API.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from bundle_cache.config import Settings

logger = logging.getLogger(__name__)

# Files above this size are sent in Content-Range chunks
UPLOAD_CHUNK_SIZE = 5 * 1024 * 1024  # 5 MiB

# Timeout for uploads (seconds)
UPLOAD_TIMEOUT = 300

JAVASCRIPT_CONTENT_TYPE = "application/javascript"
JSON_CONTENT_TYPE = "application/json"


class StorageError(Exception):
    """Raised when a storage operation fails."""

    def __init__(self, message: str, code: str = "storage_error") -> None:
        """Initialize StorageError.

        Args:
            message: Error description.
            code: Error code for structured error handling.
        """
        super().__init__(message)
        self.code = code


@dataclass
class StoredFile:
    """A file held in blob storage."""

    storage_id: str
    file_name: str
    url: str
    size_bytes: int


def new_storage_id() -> str:
    """Return a fresh unique storage ID."""
    return uuid.uuid4().hex[:20]


class ArtifactStoreClient:
    """Client for one storage bucket."""

    def __init__(
        self,
        endpoint: str,
        project: str,
        api_key: str,
        bucket_id: str,
        client: httpx.Client | None = None,
        timeout: float = UPLOAD_TIMEOUT,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        self.project = project
        self.bucket_id = bucket_id
        self.timeout = timeout
        self._headers = {
            "X-Appwrite-Project": project,
            "X-Appwrite-Key": api_key,
        }
        self._owns_client = client is None
        self._client = client if client is not None else httpx.Client()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        client: httpx.Client | None = None,
    ) -> ArtifactStoreClient:
        """Create a client from application settings.

        Call ``validate_build_settings`` first; missing credentials are
        passed through as empty strings.
        """
        return cls(
            endpoint=settings.storage_endpoint,
            project=settings.storage_project or "",
            api_key=settings.storage_api_key or "",
            bucket_id=settings.storage_bucket_id or "",
            client=client,
            timeout=settings.upload_timeout,
        )

    def __enter__(self) -> ArtifactStoreClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            self._client.close()

    @property
    def files_url(self) -> str:
        """Base URL of the bucket's files collection."""
        return f"{self.endpoint}/storage/buckets/{self.bucket_id}/files"

    def file_url(self, storage_id: str) -> str:
        """Public view URL for a stored file."""
        return f"{self.files_url}/{storage_id}/view?project={self.project}"

    def upload_bytes(
        self,
        data: bytes,
        file_name: str,
        storage_id: str | None = None,
        content_type: str = JAVASCRIPT_CONTENT_TYPE,
    ) -> StoredFile:
        """Upload bytes as a new file.

        Args:
            data: File content.
            file_name: Name recorded with the file.
            storage_id: ID to store under; a fresh unique ID if not given.
            content_type: MIME type of the content.

        Returns:
            StoredFile with ID and public URL.

        Raises:
            StorageError: If the upload fails.
        """
        if storage_id is None:
            storage_id = new_storage_id()
        total = len(data)

        logger.info("Uploading %s (%d bytes) as %s", file_name, total, storage_id)

        try:
            if total <= UPLOAD_CHUNK_SIZE:
                self._post_chunk(storage_id, file_name, data, content_type)
            else:
                for start in range(0, total, UPLOAD_CHUNK_SIZE):
                    chunk = data[start : start + UPLOAD_CHUNK_SIZE]
                    end = start + len(chunk) - 1
                    headers = {"Content-Range": f"bytes {start}-{end}/{total}"}
                    if start:
                        headers["x-appwrite-id"] = storage_id
                    self._post_chunk(storage_id, file_name, chunk, content_type, headers)

        except httpx.HTTPStatusError as e:
            raise StorageError(
                f"HTTP error uploading {file_name}: "
                f"{e.response.status_code} {e.response.reason_phrase}",
                code="http_error",
            ) from e
        except httpx.TimeoutException as e:
            raise StorageError(
                f"Timeout uploading {file_name}",
                code="timeout",
            ) from e
        except httpx.RequestError as e:
            raise StorageError(
                f"Network error uploading {file_name}: {e}",
                code="network_error",
            ) from e

        return StoredFile(
            storage_id=storage_id,
            file_name=file_name,
            url=self.file_url(storage_id),
            size_bytes=total,
        )

    def _post_chunk(
        self,
        storage_id: str,
        file_name: str,
        data: bytes,
        content_type: str,
        extra_headers: dict[str, str] | None = None,
    ) -> None:
        headers = dict(self._headers)
        if extra_headers:
            headers.update(extra_headers)
        response = self._client.post(
            self.files_url,
            data={"fileId": storage_id},
            files={"file": (file_name, data, content_type)},
            headers=headers,
            timeout=self.timeout,
        )
        response.raise_for_status()

    def upload_file(
        self,
        path: Path,
        file_name: str | None = None,
        storage_id: str | None = None,
        content_type: str = JAVASCRIPT_CONTENT_TYPE,
    ) -> StoredFile:
        """Upload a local file as a new stored file.

        Raises:
            StorageError: If the file cannot be read or uploaded.
        """
        try:
            data = path.read_bytes()
        except OSError as e:
            raise StorageError(f"Cannot read {path}: {e}", code="read_error") from e
        return self.upload_bytes(
            data,
            file_name or path.name,
            storage_id=storage_id,
            content_type=content_type,
        )

    def delete_file(self, storage_id: str, missing_ok: bool = True) -> bool:
        """Delete a stored file.

        Args:
            storage_id: ID of the file.
            missing_ok: Treat a missing file as success.

        Returns:
            True if a file was deleted, False if it did not exist.

        Raises:
            StorageError: If the delete fails.
        """
        try:
            response = self._client.delete(
                f"{self.files_url}/{storage_id}",
                headers=self._headers,
                timeout=self.timeout,
            )
            if response.status_code == 404 and missing_ok:
                logger.debug("Stored file %s did not exist", storage_id)
                return False
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise StorageError(
                f"HTTP error deleting {storage_id}: {e.response.status_code}",
                code="http_error",
            ) from e
        except httpx.TimeoutException as e:
            raise StorageError(
                f"Timeout deleting {storage_id}",
                code="timeout",
            ) from e
        except httpx.RequestError as e:
            raise StorageError(
                f"Network error deleting {storage_id}: {e}",
                code="network_error",
            ) from e

        logger.debug("Deleted stored file %s", storage_id)
        return True

    def replace_file(
        self,
        storage_id: str,
        path: Path,
        file_name: str | None = None,
        content_type: str = JSON_CONTENT_TYPE,
    ) -> StoredFile:
        """Replace the file stored under a well-known ID.

        Raises:
            StorageError: If the delete or the upload fails.
        """
        self.delete_file(storage_id, missing_ok=True)
        return self.upload_file(
            path,
            file_name=file_name,
            storage_id=storage_id,
            content_type=content_type,
        )


__all__ = [
    "UPLOAD_CHUNK_SIZE",
    "ArtifactStoreClient",
    "StorageError",
    "StoredFile",
    "new_storage_id",
]
