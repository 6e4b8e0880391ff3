"""Liveness and service info endpoints."""

from typing import Any

from fastapi import APIRouter, Depends

from bundle_cache import __version__
from bundle_cache.index.manager import IndexManager
from web.deps import get_index

router = APIRouter()


@router.get("/health")
def health() -> dict[str, str]:
    """Liveness probe. Never touches the index."""
    return {"status": "ok", "version": __version__}


@router.get("/")
def service_info(index: IndexManager = Depends(get_index)) -> dict[str, Any]:
    """Describe the service and the snapshot it serves."""
    return {
        "name": "Bundle Cache API",
        "version": __version__,
        "indexEntries": len(index),
        "endpoints": ["/bundle/{name}", "/bundle/batch", "/versions/{name}", "/stats"],
    }
