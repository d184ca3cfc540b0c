"""
Health check endpoint.
Verifies database connectivity and reports whether the signing key is loaded.
"""
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text

from filedrop.database import get_db

router = APIRouter()


@router.get("")
async def health_check(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Only the database decides healthy/unhealthy. The signing key and token
    issuer are informational: a missing issuer disables track links, not
    the whole API.
    """
    state = request.app.state
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "signing_key": "loaded" if getattr(state, "signer", None) else "missing",
        "token_issuer": "configured" if getattr(state, "token_issuer", None) else "disabled",
    }

    try:
        await db.execute(text("SELECT 1"))
        health_status["database"] = "connected"
    except Exception as e:
        health_status["database"] = f"error: {str(e)}"
        health_status["status"] = "unhealthy"

    if health_status["status"] == "unhealthy":
        raise HTTPException(status_code=503, detail=health_status)

    return health_status
