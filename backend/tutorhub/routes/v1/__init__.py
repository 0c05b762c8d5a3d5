"""Versioned API v1 routers."""

from fastapi import APIRouter

from . import sessions, tutors

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(sessions.router)
api_router.include_router(tutors.router)

__all__ = ["api_router"]
