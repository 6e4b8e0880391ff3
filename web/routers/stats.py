"""Cache statistics endpoint."""

from fastapi import APIRouter, Depends

from bundle_cache.index.manager import IndexManager
from web.deps import get_index

router = APIRouter()


@router.get("/stats")
def stats_endpoint(index: IndexManager = Depends(get_index)) -> dict[str, int]:
    """Aggregate statistics over cached versions.

    Latest pointers are not counted.
    """
    stats = index.stats()
    return {
        "uniquePackages": stats.unique_packages,
        "totalVersions": stats.total_versions,
        "totalSize": stats.total_size,
    }
