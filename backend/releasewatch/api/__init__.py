"""API routers for releasewatch.

Clients in the field call these paths directly, so there is no prefix.
"""

from fastapi import APIRouter

from releasewatch.api import updates, usage

api_router = APIRouter()

api_router.include_router(updates.router, tags=["updates"])
api_router.include_router(usage.router, tags=["usage"])

__all__ = ["api_router"]
