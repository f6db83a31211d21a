"""API routes."""

from fastapi import APIRouter

from . import ai, health, lessons

api_router = APIRouter()
api_router.include_router(lessons.router)
api_router.include_router(ai.router)

__all__ = ["api_router", "health"]
