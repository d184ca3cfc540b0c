"""
FastAPI application entry point.
Sets up the API with lifespan events for database, storage and signing setup.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from filedrop.config import settings
from filedrop.database import init_db
from filedrop.api.router import api_router
from filedrop.auth.firebase import initialize_firebase
from filedrop.errors import TokenIssueError
from filedrop.middleware.error_handler import register_exception_handlers
from filedrop.middleware.metrics_middleware import MetricsMiddleware
from filedrop.signing import create_signing_service
from filedrop.storage import B2TokenIssuer, create_storage
from filedrop.utils.logging import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup/shutdown events.
    - Startup: database, buckets, signing key, token issuer, Firebase
    - Shutdown: nothing to release
    """
    configure_logging("filedrop-api", settings.log_level)

    await init_db()

    app.state.storage = create_storage(settings)

    # No key, no downloads: a failure here aborts startup
    app.state.signer = create_signing_service(settings, app.state.storage)

    try:
        app.state.token_issuer = B2TokenIssuer(settings)
    except TokenIssueError as e:
        logger.warning(f"Storage token issuer disabled: {e.message}")
        app.state.token_issuer = None

    if settings.firebase_project_id:
        try:
            initialize_firebase(settings)
        except Exception as e:
            if settings.environment == "production":
                raise
            logger.warning(f"Firebase initialization failed: {e}")

    yield


# Create FastAPI app
app = FastAPI(
    title="Filedrop API",
    description="Presigned uploads and signed CDN delivery",
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Tube-Upload-Usage", "Tube-Upload-Quota", "Tube-Upload-ID"],
)

app.add_middleware(MetricsMiddleware)

register_exception_handlers(app)

app.include_router(api_router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Filedrop API",
        "version": "0.1.0",
        "environment": settings.environment
    }


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )
