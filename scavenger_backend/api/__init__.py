"""
REST API routes for Scavenger Backend.
"""

from fastapi import APIRouter

from scavenger_backend.api.player import router as player_router
from scavenger_backend.api.admin import router as admin_router

api_router = APIRouter()

api_router.include_router(player_router, tags=["player"])
api_router.include_router(admin_router, prefix="/admin", tags=["admin"])

__all__ = ["api_router"]
