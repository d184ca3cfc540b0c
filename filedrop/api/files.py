"""
File management endpoints.
"""
from fastapi import APIRouter, Depends, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from filedrop.auth.dependencies import get_current_user
from filedrop.config import settings
from filedrop.database import get_db
from filedrop.dependencies import get_transfer_service
from filedrop.models.user import User
from filedrop.services.transfer_service import TransferService

router = APIRouter()


@router.api_route("/{file_id}", methods=["DELETE", "POST"])
async def delete_file(
    file_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    transfers: TransferService = Depends(get_transfer_service),
):
    """
    Delete one of the caller's files and send the browser back to the
    file listing. POST is accepted for plain HTML forms.
    """
    await transfers.delete_file(db, current_user, file_id)
    return RedirectResponse(settings.files_listing_url, status_code=status.HTTP_303_SEE_OTHER)
