"""
Common schemas shared across endpoints.
"""

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
