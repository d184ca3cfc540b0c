"""
FastAPI dependencies for the long-lived components built at startup.

Storage, the signing service and the token issuer are created once in
main.lifespan and kept on app.state; per-request services are assembled
from them here. Tests swap any of them via app.dependency_overrides.
"""
from datetime import timedelta

from fastapi import Depends, Request

from filedrop.config import settings
from filedrop.errors import UpstreamFailure
from filedrop.services.delivery_service import DeliveryService
from filedrop.services.processing import TrackProcessor, UploadProcessor
from filedrop.services.token_service import TokenRefresher
from filedrop.services.transfer_service import TransferService
from filedrop.signing import SigningService
from filedrop.storage.b2_tokens import TokenIssuer
from filedrop.storage.bucket import Storage


def get_storage(request: Request) -> Storage:
    """Bucket set created at startup."""
    return request.app.state.storage


def get_signer(request: Request) -> SigningService:
    """Process-wide signing service created at startup."""
    return request.app.state.signer


def get_token_issuer(request: Request) -> TokenIssuer:
    """Storage-token issuer, if this deployment has one."""
    issuer = getattr(request.app.state, "token_issuer", None)
    if issuer is None:
        raise UpstreamFailure("Storage token issuer not configured")
    return issuer


def get_processor(storage: Storage = Depends(get_storage)) -> UploadProcessor:
    return TrackProcessor(storage)


def get_transfer_service(
    storage: Storage = Depends(get_storage),
    processor: UploadProcessor = Depends(get_processor),
) -> TransferService:
    return TransferService(
        storage=storage,
        processor=processor,
        max_file_size=settings.max_file_size,
        conceal_forbidden=settings.download_conceal_forbidden,
    )


def get_token_refresher(issuer: TokenIssuer = Depends(get_token_issuer)) -> TokenRefresher:
    return TokenRefresher(issuer)


def get_delivery_service(
    signer: SigningService = Depends(get_signer),
    tokens: TokenRefresher = Depends(get_token_refresher),
    transfers: TransferService = Depends(get_transfer_service),
) -> DeliveryService:
    return DeliveryService(
        signer=signer,
        cdn_base_url=settings.cdn_base_url,
        tokens=tokens,
        transfers=transfers,
        token_margin=timedelta(seconds=settings.b2_token_margin_seconds),
    )


def get_cookie_service(signer: SigningService = Depends(get_signer)) -> DeliveryService:
    """Delivery service for cookies only; works without a token issuer."""
    return DeliveryService(signer=signer, cdn_base_url=settings.cdn_base_url)
