"""Bundle lookup endpoints.

- GET /bundle/{name} - Latest cached version of a package
- GET /bundle/{name}@{version} - One exact cached version
- POST /bundle/batch - Look up several keys at once

Lookups never trigger builds; a missing entry is a normal 404.
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi import status as http_status
from fastapi.responses import JSONResponse

from bundle_cache.index.keys import parse_package_spec
from bundle_cache.index.manager import IndexManager
from bundle_cache.index.models import IndexEntry
from web.deps import get_index

router = APIRouter()


def _entry_to_dict(entry: IndexEntry) -> dict[str, Any]:
    """Convert an index entry to a lookup response."""
    return {
        "name": entry.name,
        "version": entry.version,
        "url": entry.url,
        "storageId": entry.storage_id,
        "fileName": entry.file_name,
        "size": entry.size_bytes,
        "cached": True,
    }


def _invalid_request(message: str) -> HTTPException:
    return HTTPException(
        status_code=http_status.HTTP_400_BAD_REQUEST,
        detail={"code": "invalid_request", "message": message},
    )


@router.post("/batch")
async def batch_lookup_endpoint(
    request: Request,
    index: IndexManager = Depends(get_index),
) -> dict[str, Any]:
    """Look up several packages.

    Args:
        request: Request with body ``{"packages": ["axios", "lodash@4.17.21"]}``.
        index: Index being served.

    Returns:
        Mapping of every input key to its lookup result.

    Raises:
        HTTPException: If the body is not JSON or ``packages`` is not a
            list of strings.
    """
    try:
        payload = await request.json()
    except ValueError as e:
        raise _invalid_request("request body must be JSON") from e

    packages = payload.get("packages") if isinstance(payload, dict) else None
    if not isinstance(packages, list) or not all(isinstance(p, str) for p in packages):
        raise _invalid_request("packages must be a list of strings")

    found = index.batch_get(packages)
    return {
        "packages": {
            key: _entry_to_dict(entry) if entry is not None else {"cached": False}
            for key, entry in found.items()
        }
    }


@router.get("/{spec:path}", response_model=None)
def get_bundle_endpoint(
    spec: str,
    index: IndexManager = Depends(get_index),
) -> dict[str, Any] | JSONResponse:
    """Get cached bundle metadata.

    Args:
        spec: ``name``, ``name@version`` or ``@scope/name@version``.
        index: Index being served.

    Returns:
        Bundle metadata, or a 404 response when not cached.
    """
    entry = index.get(spec)
    if entry is None:
        parsed = parse_package_spec(spec)
        return JSONResponse(
            status_code=http_status.HTTP_404_NOT_FOUND,
            content={
                "name": parsed.name,
                "version": parsed.version,
                "cached": False,
                "error": "Package not found",
            },
        )
    return _entry_to_dict(entry)
