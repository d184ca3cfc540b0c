"""
Business logic services.
"""
from filedrop.services.transfer_service import TransferService, UploadBatch
from filedrop.services.token_service import TokenRefresher
from filedrop.services.delivery_service import DeliveryService
from filedrop.services.processing import UploadProcessor, TrackProcessor

__all__ = [
    "TransferService",
    "UploadBatch",
    "TokenRefresher",
    "DeliveryService",
    "UploadProcessor",
    "TrackProcessor",
]
