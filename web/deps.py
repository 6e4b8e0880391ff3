"""Index dependency for FastAPI.

Provides the process-local index to route handlers via FastAPI dependency
injection. Handlers read ``app.state.index`` on every request, so a reload
that swaps the index state is picked up by the next request.
"""

from __future__ import annotations

from typing import Any

from fastapi import Request

from bundle_cache.index.manager import IndexManager


def get_index(request: Request) -> IndexManager:
    """Get the index manager from app state.

    Args:
        request: FastAPI request object.

    Returns:
        IndexManager serving this app.
    """
    index: Any = request.app.state.index
    return index  # type: ignore[no-any-return]
