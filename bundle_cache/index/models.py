"""Pydantic models for index entries.

Entries are persisted with the snapshot field names ``fileId``, ``fileName``,
``size``, ``uploadedAt`` and ``latestVersion``. The Python attribute names
are used everywhere else.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from bundle_cache.index.keys import artifact_key


class IndexEntry(BaseModel):
    """Metadata for one stored artifact.

    Attributes:
        name: Package name.
        version: Exact version that was built.
        storage_id: Opaque handle of the artifact in blob storage.
        file_name: Stored file name.
        url: Public URL of the artifact.
        size_bytes: Artifact size in bytes.
        uploaded_at: ISO-8601 upload timestamp.
        latest_version: Set only on bare-name latest pointers.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(min_length=1)
    version: str = Field(min_length=1)
    storage_id: str = Field(
        validation_alias=AliasChoices("fileId", "storageId", "storage_id"),
        serialization_alias="fileId",
    )
    file_name: str = Field(alias="fileName")
    url: str
    size_bytes: int = Field(
        ge=0,
        validation_alias=AliasChoices("size", "sizeBytes", "size_bytes"),
        serialization_alias="size",
    )
    uploaded_at: str | None = Field(default=None, alias="uploadedAt")
    latest_version: str | None = Field(default=None, alias="latestVersion")

    @property
    def key(self) -> str:
        """Versioned index key of this entry."""
        return artifact_key(self.name, self.version)

    @property
    def uploaded_datetime(self) -> datetime | None:
        """Parsed upload time, or None when missing or unparseable."""
        if not self.uploaded_at:
            return None
        try:
            parsed = datetime.fromisoformat(self.uploaded_at.replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    def versioned(self) -> IndexEntry:
        """Return this entry without a latest-pointer tag."""
        if self.latest_version is None:
            return self
        return self.model_copy(update={"latest_version": None})

    def as_latest_pointer(self) -> IndexEntry:
        """Return a copy tagged as the latest pointer for its name."""
        return self.model_copy(update={"latest_version": self.version})

    def to_record(self) -> dict[str, Any]:
        """Convert to the persisted snapshot representation."""
        return self.model_dump(by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class IndexStats:
    """Aggregates over versioned entries."""

    unique_packages: int
    total_versions: int
    total_size: int


__all__ = ["IndexEntry", "IndexStats"]
