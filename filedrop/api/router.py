"""
API router aggregator.
Includes all route modules.
"""
from fastapi import APIRouter
from filedrop.api import health, me, uploads, files, downloads

api_router = APIRouter()

# Include route modules
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(me.router, prefix="/me", tags=["me"])
api_router.include_router(uploads.router, prefix="/upload", tags=["uploads"])
api_router.include_router(files.router, prefix="/files", tags=["files"])
api_router.include_router(downloads.router, tags=["downloads"])
