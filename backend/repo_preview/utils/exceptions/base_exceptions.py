"""
Business Exception Classes - Base Exception Definitions

Contains the exception types raised by the service and API layers.
"""

from typing import Any


class BusinessException(Exception):
    """
    Business Logic Exception

    Used to handle exceptions in business logic.
    """

    def __init__(self, message: str, code: int = 400, data: Any = None):
        self.message = message
        self.code = code
        self.data = data
        super().__init__(self.message)
