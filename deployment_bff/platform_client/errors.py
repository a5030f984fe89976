"""Errors raised by platform API calls."""

from typing import Optional


class PlatformAPIError(Exception):
    """A platform API call failed (transport error, non-2xx, or success=false)."""

    def __init__(self, operation: str, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.operation = operation
        self.message = message
        self.status_code = status_code
