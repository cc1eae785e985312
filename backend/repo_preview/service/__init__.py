"""
Services Module

Business logic service layer.
"""

from .preview_service import (
    PreviewService,
    build_orchestrator,
    get_preview_service,
)

__all__ = [
    "PreviewService",
    "build_orchestrator",
    "get_preview_service",
]
