"""
API Routers Module

FastAPI route definitions.
"""

from .preview_router import preview_router

__all__ = [
    "preview_router",
]
