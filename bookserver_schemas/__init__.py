"""
Shared API schemas for the bookserver proxy.
Provides type-safe contracts for HTTP APIs.
"""

__version__ = "1.0.0"

# Export commonly used schemas
from bookserver_schemas.common import *  # noqa: F403, F401
from bookserver_schemas.file_service import *  # noqa: F403, F401
