"""API routers package."""

from .health import router as health_router
from .credits import router as credits_router
from .allocations import router as allocations_router
from .admin import router as admin_router

__all__ = [
    "health_router",
    "credits_router",
    "allocations_router",
    "admin_router",
]
