"""
Wingmann Engine - API Routers
"""

from .download import router as download_router
from .health import router as health_router
from .submissions import router as submissions_router

__all__ = [
    "download_router",
    "health_router",
    "submissions_router",
]
