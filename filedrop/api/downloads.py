"""
Download and CDN delivery endpoints.

- GET /dl/{id}[.ext] - 307 to a presigned GET in the files bucket
- GET /tracks/{id}/link[?direct=true] - Signed CDN URL for a track
- POST /delivery/cookies - Signed cookies covering all of the caller's files
"""
from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from filedrop.auth.dependencies import get_current_user
from filedrop.database import get_db
from filedrop.dependencies import get_cookie_service, get_delivery_service, get_transfer_service
from filedrop.models.user import User
from filedrop.schemas.upload import LinkResponse
from filedrop.services.delivery_service import DeliveryService
from filedrop.services.transfer_service import TransferService

router = APIRouter()


@router.get("/dl/{ident}")
async def download_track(
    ident: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    transfers: TransferService = Depends(get_transfer_service),
):
    """
    Redirect to a presigned storage URL for the track.

    Temporary redirect, never cached: the target URL expires.
    """
    url = await transfers.resolve_download(db, current_user, ident)
    return RedirectResponse(
        url,
        status_code=status.HTTP_307_TEMPORARY_REDIRECT,
        headers={"Cache-Control": "private, no-store"},
    )


@router.get("/tracks/{track_id}/link", response_model=LinkResponse)
async def track_link(
    track_id: str,
    direct: bool = Query(False, description="Link straight to the file instead of the CDN auth endpoint"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    delivery: DeliveryService = Depends(get_delivery_service),
):
    """Signed CDN URL for one of the caller's tracks."""
    url = await delivery.track_link(db, current_user, track_id, direct=direct)
    return LinkResponse(url=url)


@router.post("/delivery/cookies", status_code=status.HTTP_204_NO_CONTENT)
async def delivery_cookies(
    current_user: User = Depends(get_current_user),
    delivery: DeliveryService = Depends(get_cookie_service),
):
    """Set signed CDN cookies so the browser can stream any of its files."""
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    for cookie in delivery.cookies_for(current_user):
        response.set_cookie(
            key=cookie.name,
            value=cookie.value,
            domain=cookie.domain,
            path=cookie.path,
            secure=cookie.secure,
            httponly=cookie.httponly,
            samesite=cookie.samesite,
        )
    return response
