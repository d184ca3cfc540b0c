"""
Storage module for S3-compatible object storage.

Clients upload and download with presigned URLs.
The backend NEVER receives file bytes - files go directly to storage.
"""
from filedrop.storage.bucket import Bucket, ObjectHead, Storage, create_storage
from filedrop.storage.b2_tokens import TokenIssuer, B2TokenIssuer

__all__ = [
    "Bucket",
    "ObjectHead",
    "Storage",
    "create_storage",
    "TokenIssuer",
    "B2TokenIssuer",
]
