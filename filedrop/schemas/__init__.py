"""
Pydantic schemas for API request/response validation.
"""
from filedrop.schemas.upload import (
    UploadItem,
    UploadTicket,
    TrackResponse,
    UsageResponse,
    LinkResponse,
)

__all__ = [
    "UploadItem",
    "UploadTicket",
    "TrackResponse",
    "UsageResponse",
    "LinkResponse",
]
