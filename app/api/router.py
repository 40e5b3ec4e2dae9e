"""Centralized API router registration.

Groups:
- Notifications: history, settings, device tokens and staff dispatch.
"""

from fastapi import APIRouter

from app.routers import notifications

api_router = APIRouter()

api_router.include_router(notifications.router)

__all__ = ["api_router"]
