"""API route modules."""

from fastapi import APIRouter

from aurora.entrypoints.api.routes.auth import router as auth_router
from aurora.entrypoints.api.routes.organizations import router as organizations_router

# Create main API router
api_router = APIRouter()

api_router.include_router(auth_router)
api_router.include_router(organizations_router)

__all__ = ["api_router"]
