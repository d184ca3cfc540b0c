"""
Upload endpoints for the presigned transfer flow.

1. POST /upload/start2 - Presigned PUTs for a batch of files (JSON)
2. POST /upload/start - Presigned PUT for one file (form fields)
3. POST /upload/{id}/finish?bid=BATCH - Confirm an upload, get the track

Start responses carry Tube-Upload-Usage / Tube-Upload-Quota so the client
can preflight its next batch. Errors are raised as filedrop.errors
exceptions and rendered by the global handlers.
"""
from typing import List

from fastapi import APIRouter, Depends, Form, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from filedrop.auth.dependencies import get_current_user
from filedrop.database import get_db
from filedrop.dependencies import get_transfer_service
from filedrop.errors import InvalidInput
from filedrop.models.user import User
from filedrop.schemas.upload import TrackResponse, UploadItem, UploadTicket
from filedrop.services.transfer_service import (
    QUOTA_HEADER,
    UPLOAD_ID_HEADER,
    USAGE_HEADER,
    TransferService,
    UploadBatch,
    usage_headers,
)

router = APIRouter()


def _set_usage_headers(response: Response, batch: UploadBatch) -> None:
    response.headers[USAGE_HEADER] = str(batch.usage)
    response.headers[QUOTA_HEADER] = str(batch.quota)


@router.post("/start2", response_model=List[UploadTicket])
async def start_upload_batch(
    items: List[UploadItem],
    response: Response,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    transfers: TransferService = Depends(get_transfer_service),
):
    """
    Start uploads for a batch of files.

    The batch is checked as a whole: if any file is too big, or the total
    would exceed the quota, nothing is created.
    """
    batch = await transfers.start_uploads(db, current_user, items)
    _set_usage_headers(response, batch)
    return batch.tickets


@router.post("/start", response_model=UploadTicket)
async def start_upload(
    response: Response,
    name: str = Form(""),
    file_type: str = Form("", alias="type"),
    size: str = Form(""),
    lastmod: str = Form(""),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    transfers: TransferService = Depends(get_transfer_service),
):
    """
    Start the upload of a single file.

    Same as /start2 with one item; also returns the file ID in
    Tube-Upload-ID.
    """
    try:
        declared_size = int(size)
    except ValueError:
        raise InvalidInput("missing file size", headers=usage_headers(current_user))
    try:
        local_mod = int(lastmod)
    except ValueError:
        local_mod = 0  # Optional; unparseable means unknown

    item = UploadItem(name=name, type=file_type, size=declared_size, lastmod=local_mod)
    batch = await transfers.start_upload(db, current_user, item)

    ticket = batch.tickets[0]
    _set_usage_headers(response, batch)
    response.headers[UPLOAD_ID_HEADER] = ticket.id
    return ticket


@router.post("/{file_id}/finish", response_model=TrackResponse)
async def finish_upload(
    file_id: str,
    bid: str = Query("", description="Upload batch ID"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    transfers: TransferService = Depends(get_transfer_service),
):
    """
    Confirm an upload after the client has PUT it to storage.

    Size and type come from storage, not from the start request.
    """
    track = await transfers.finish_upload(db, current_user, file_id, bid)
    return TrackResponse.model_validate(track)
