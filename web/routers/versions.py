"""Version listing endpoints."""

from typing import Any

from fastapi import APIRouter, Depends

from bundle_cache.index.manager import IndexManager
from web.deps import get_index

router = APIRouter()


@router.get("/{name:path}")
def list_versions_endpoint(
    name: str,
    index: IndexManager = Depends(get_index),
) -> dict[str, Any]:
    """List every cached version of a package, most recent first.

    Args:
        name: Package name without version.
        index: Index being served.

    Returns:
        Package name, versions and count.
    """
    entries = index.list_versions(name)
    return {
        "name": name,
        "versions": [
            {
                "version": e.version,
                "url": e.url,
                "size": e.size_bytes,
                "uploadedAt": e.uploaded_at,
            }
            for e in entries
        ],
        "count": len(entries),
    }
