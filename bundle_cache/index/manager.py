"""Index/cache manager.

This module handles:
- Loading the persisted index snapshot (recovering from corruption)
- The skip-if-cached check
- Committing new builds and maintaining the latest pointers
- Read-only queries (lookup, batch lookup, version listing, stats)
- Atomic persistence of the snapshot

The in-memory index is two maps, versioned entries by ``name@version`` and
latest pointers by bare name. Both live in one immutable state object that
is replaced wholesale on every commit or load, so readers never need a lock
and always see a consistent view.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from bundle_cache.index.keys import artifact_key, parse_package_spec
from bundle_cache.index.models import IndexEntry, IndexStats
from bundle_cache.types import OperationResult

logger = logging.getLogger(__name__)

# Sort key for entries without a usable upload time (oldest)
_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class IndexState:
    """Point-in-time contents of the index. Never mutated once published."""

    by_key: Mapping[str, IndexEntry] = field(default_factory=dict)
    latest_by_name: Mapping[str, IndexEntry] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.by_key) + len(self.latest_by_name)


class IndexManager:
    """Owns the artifact index and its snapshot file.

    Commits and loads are serialized by an internal lock. Reads work on
    whatever state reference is current when they start.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._state = IndexState()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._state)

    @property
    def state(self) -> IndexState:
        """Current index state."""
        return self._state

    def load(self) -> OperationResult:
        """Replace the in-memory index with the persisted snapshot.

        A missing snapshot yields an empty index. An unreadable or
        unparseable snapshot also yields an empty index, logged and reported
        with ``code="index_corrupt"``; it never raises. Entries that fail
        validation are dropped individually and listed in the result.

        Returns:
            OperationResult describing what was loaded.
        """
        if not self.path.exists():
            with self._lock:
                self._state = IndexState()
            logger.info("No index snapshot at %s, starting empty", self.path)
            return OperationResult(
                success=True,
                message=f"No index snapshot at {self.path}",
                code="index_missing",
                details={"entries": 0},
            )

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            return self._recover_empty(f"Could not read index snapshot: {e}")

        if not isinstance(raw, dict):
            return self._recover_empty(
                f"Index snapshot is not a JSON object (got {type(raw).__name__})"
            )

        by_key: dict[str, IndexEntry] = {}
        latest_by_name: dict[str, IndexEntry] = {}
        dropped: list[str] = []

        for key, record in raw.items():
            try:
                entry = IndexEntry.model_validate(record)
            except ValidationError as e:
                logger.warning(
                    "Dropping invalid index entry %s: %d validation error(s)",
                    key,
                    e.error_count(),
                )
                dropped.append(key)
                continue

            spec = parse_package_spec(key)
            if spec.name != entry.name or (
                spec.version is not None and spec.version != entry.version
            ):
                logger.warning(
                    "Dropping index entry %s: key does not match %s",
                    key,
                    entry.key,
                )
                dropped.append(key)
                continue

            if spec.version is None:
                latest_by_name[key] = entry.as_latest_pointer()
            else:
                by_key[key] = entry.versioned()

        state = IndexState(by_key=by_key, latest_by_name=latest_by_name)
        with self._lock:
            self._state = state
        logger.info(
            "Loaded %d entries from %s (%d versions, %d packages)",
            len(state),
            self.path,
            len(by_key),
            len(latest_by_name),
        )

        if dropped:
            return OperationResult(
                success=False,
                message=f"Dropped {len(dropped)} invalid index entries",
                code="index_entries_dropped",
                details={"entries": len(state), "dropped_keys": dropped},
            )
        return OperationResult(
            success=True,
            message=f"Loaded {len(state)} entries",
            details={"entries": len(state)},
        )

    def _recover_empty(self, reason: str) -> OperationResult:
        """Fall back to an empty index after a corrupt snapshot."""
        with self._lock:
            self._state = IndexState()
        logger.warning(
            "Index snapshot %s is corrupt, starting from an empty index: %s",
            self.path,
            reason,
        )
        return OperationResult(
            success=False,
            message=reason,
            code="index_corrupt",
            details={"entries": 0, "path": str(self.path)},
        )

    def is_built(self, name: str, version: str) -> bool:
        """Return True if exactly this (name, version) has a versioned entry."""
        return artifact_key(name, version) in self._state.by_key

    def commit(self, entry: IndexEntry) -> None:
        """Record a completed build.

        Writes the versioned entry and points the bare name at it. The new
        state is published with a single reference swap.

        Args:
            entry: Entry for the uploaded artifact.
        """
        with self._lock:
            current = self._state
            if entry.key in current.by_key:
                logger.warning("Overwriting existing index entry %s", entry.key)

            by_key = dict(current.by_key)
            by_key[entry.key] = entry.versioned()
            latest_by_name = dict(current.latest_by_name)
            latest_by_name[entry.name] = entry.as_latest_pointer()

            self._state = IndexState(by_key=by_key, latest_by_name=latest_by_name)

        logger.debug("Committed %s", entry.key)

    def get(self, key: str) -> IndexEntry | None:
        """Look up ``name`` (latest pointer) or ``name@version``."""
        spec = parse_package_spec(key)
        state = self._state
        if spec.version is None:
            return state.latest_by_name.get(spec.name)
        return state.by_key.get(spec.key)

    def batch_get(self, keys: Iterable[str]) -> dict[str, IndexEntry | None]:
        """Look up several keys.

        Returns:
            Mapping with every input key exactly once, in first-seen order.
        """
        return {key: self.get(key) for key in keys}

    def list_versions(self, name: str) -> list[IndexEntry]:
        """Return every versioned entry for ``name``, most recent upload first.

        Entries without a parseable upload time sort last; ties keep index
        order.
        """
        entries = [e for e in self._state.by_key.values() if e.name == name]
        return sorted(
            entries,
            key=lambda e: e.uploaded_datetime or _OLDEST,
            reverse=True,
        )

    def stats(self) -> IndexStats:
        """Aggregate counts over versioned entries only."""
        entries = list(self._state.by_key.values())
        return IndexStats(
            unique_packages=len({e.name for e in entries}),
            total_versions=len(entries),
            total_size=sum(e.size_bytes for e in entries),
        )

    def to_snapshot(self) -> dict[str, dict[str, Any]]:
        """Return the flat snapshot mapping of every key to its record."""
        state = self._state
        snapshot = {key: e.to_record() for key, e in state.by_key.items()}
        snapshot.update({key: e.to_record() for key, e in state.latest_by_name.items()})
        return snapshot

    def persist(self) -> Path:
        """Write the snapshot to disk atomically.

        The snapshot is written to a temporary file in the same directory and
        moved into place, so readers see either the old or the new file.

        Returns:
            Path of the snapshot file.
        """
        snapshot = self.to_snapshot()
        self.path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent,
            prefix=f".{self.path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(snapshot, f, indent=2, sort_keys=True)
                f.write("\n")
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.info("Persisted %d index entries to %s", len(snapshot), self.path)
        return self.path


def load_index(path: Path) -> tuple[IndexManager, OperationResult]:
    """Create a manager for ``path`` and load its snapshot.

    Returns:
        Tuple of (IndexManager, load result).
    """
    manager = IndexManager(path)
    result = manager.load()
    return manager, result


__all__ = ["IndexManager", "IndexState", "load_index"]
