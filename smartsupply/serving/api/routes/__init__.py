"""
API Routes Module
"""
from .health import router as health_router
from .replenishment import router as replenishment_router

__all__ = [
    "health_router",
    "replenishment_router",
]
