"""
FastAPI Routers

Export all routers for registration in main.py.
"""

from migration_manager.routers.migration import router as migration_router

__all__ = [
    "migration_router",
]
