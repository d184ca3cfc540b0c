"""
Pydantic schemas for upload, download and delivery endpoints.

Upload tickets keep the upper-case keys (ID, CD, URL) the browser uploader
reads; incoming items accept both the lower- and upper-case spellings.
"""
from pydantic import BaseModel, Field, AliasChoices
from typing import Optional
from datetime import datetime


class UploadItem(BaseModel):
    """One file the client wants to upload."""
    name: str = Field("", validation_alias=AliasChoices("name", "Name"), description="Original filename")
    type: str = Field("", validation_alias=AliasChoices("type", "Type"), description="Declared MIME type")
    size: int = Field(0, validation_alias=AliasChoices("size", "Size"), description="Declared size in bytes")
    lastmod: int = Field(
        0,
        validation_alias=AliasChoices("lastmod", "LocalMod"),
        description="Client-side modification time, ms since epoch"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "name": "01 Intro.flac",
                "type": "audio/flac",
                "size": 31457280,
                "lastmod": 1700000000000
            }
        }


class UploadTicket(BaseModel):
    """Everything the client needs to PUT one file to storage."""
    id: str = Field(..., serialization_alias="ID", description="File ID for the finish call")
    cd: str = Field(..., serialization_alias="CD", description="Content-Disposition to send with the PUT")
    url: str = Field(..., serialization_alias="URL", description="Presigned PUT URL")


class TrackResponse(BaseModel):
    """Schema for the track produced by a finished upload."""
    id: str
    file_id: str
    batch_id: Optional[str] = None
    title: str
    size: int
    type: str
    b2_path: str
    created_at: datetime

    class Config:
        from_attributes = True


class UsageResponse(BaseModel):
    """Response schema for the usage endpoint."""
    user_id: str
    usage: int
    quota: int


class LinkResponse(BaseModel):
    """Signed CDN link for a track."""
    url: str
