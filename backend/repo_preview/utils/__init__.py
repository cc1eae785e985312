"""
Utilities Module

Common utilities, exceptions, and response models.
"""

from .model import (
    ResponseCode,
    BaseResponse,
    ListResponse,
)
from .ttl_store import TTLStore

__all__ = [
    # Response models
    "ResponseCode",
    "BaseResponse",
    "ListResponse",
    "TTLStore",
]
