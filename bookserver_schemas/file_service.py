"""
Bookserver Proxy API schemas.
Type-safe contracts for upload, download metadata and health endpoints.
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Upload Endpoints
# ============================================================================

class UploadBookResponse(BaseModel):
    """Response from a book upload. Serialized with camelCase keys."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    book_url: Optional[str] = Field(default=None, alias="bookUrl")
    file_id: Optional[str] = Field(default=None, alias="fileId")
    download_url: Optional[str] = Field(default=None, alias="downloadUrl")
    name: str
    size: int


# ============================================================================
# Download Endpoints
# ============================================================================

class FileInfoResponse(BaseModel):
    """Metadata for a stored file."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    file_id: str = Field(alias="fileId")
    name: str
    size: int
    content_type: str = Field(alias="contentType")
    download_url: str = Field(alias="downloadUrl")
    cached: bool


# ============================================================================
# Health Check
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: str


class StorageHealthResponse(BaseModel):
    """Remote storage connectivity response."""
    status: str
    provider: str
    error: Optional[str] = None
