"""
User profile endpoints.
Returns information about the authenticated user.
"""
from fastapi import APIRouter, Depends

from filedrop.auth.dependencies import get_current_user
from filedrop.models.user import User
from filedrop.schemas.upload import UsageResponse

router = APIRouter()


@router.get("/usage", response_model=UsageResponse)
async def get_usage(current_user: User = Depends(get_current_user)):
    """
    Storage usage and quota for the authenticated user.
    A quota of 0 means unlimited.
    """
    return UsageResponse(
        user_id=current_user.id,
        usage=current_user.usage,
        quota=current_user.calc_quota(),
    )
