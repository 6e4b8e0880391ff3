"""Index administration endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, Depends

from bundle_cache.index.manager import IndexManager
from web.deps import get_index

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/reload")
def reload_endpoint(index: IndexManager = Depends(get_index)) -> dict[str, Any]:
    """Reload the index from its snapshot file.

    The loaded state replaces the served state in one swap. A corrupt
    snapshot leaves an empty index and is reported in ``warning``.

    Returns:
        Reload status and number of index keys.
    """
    result = index.load()
    response: dict[str, Any] = {"success": True, "entries": len(index)}
    if not result.success:
        logger.warning("Reload recovered from a bad snapshot: %s", result.message)
        response["warning"] = result.message
        response["code"] = result.code
    return response
