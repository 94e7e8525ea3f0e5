"""API routers for the escrow backend."""
from fastapi import APIRouter

from . import admin, disputes, escrow, health, reviews, users


def get_api_router() -> APIRouter:
    """Return the root API router."""

    api_router = APIRouter()
    api_router.include_router(health.router)
    api_router.include_router(users.router)
    api_router.include_router(escrow.router)
    api_router.include_router(disputes.router)
    api_router.include_router(reviews.router)
    api_router.include_router(admin.router)
    return api_router
