"""
S3-compatible bucket client (Backblaze B2, Cloudflare R2, AWS S3).

Uses boto3 with the S3 API. One Bucket instance per bucket name; all of
them share a single boto3 client.

Why presigned URLs?
- Clients upload and download directly against storage (no backend proxy)
- Backend load does not grow with file size
- Buckets stay private - only presigned URLs can access
"""
import logging
from dataclasses import dataclass

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from filedrop.config import Settings
from filedrop.errors import NotFound, StorageError

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound")


@dataclass(frozen=True)
class ObjectHead:
    """Metadata of a stored object, as reported by storage."""
    type: str
    size: int


def create_s3_client(settings: Settings):
    """
    Build a boto3 S3 client for the configured endpoint.

    Raises:
        StorageError: If credentials are missing
    """
    if not all([
        settings.storage_endpoint,
        settings.storage_access_key,
        settings.storage_secret_key,
    ]):
        raise StorageError(
            "Object storage not configured. "
            "Set STORAGE_ENDPOINT, STORAGE_ACCESS_KEY, and STORAGE_SECRET_KEY."
        )

    # signature_version='s3v4' is required by B2 and R2
    return boto3.client(
        "s3",
        endpoint_url=settings.storage_endpoint,
        aws_access_key_id=settings.storage_access_key,
        aws_secret_access_key=settings.storage_secret_key,
        region_name=settings.storage_region,
        config=Config(
            signature_version="s3v4",
            s3={"addressing_style": "path"},
        ),
    )


class Bucket:
    """
    A single bucket with the primitives the transfer workflow needs.

    Every method raises StorageError on backend failure; nothing is
    swallowed, since callers cannot make progress without storage.
    """

    def __init__(self, client, name: str, presign_expiration: int = 3600):
        self._client = client
        self.name = name
        self.presign_expiration = presign_expiration

    def presign_put(self, path: str, size: int, content_disposition: str) -> str:
        """
        Generate a presigned PUT URL for direct upload.

        Size and Content-Disposition are part of the signature, so the
        client must send exactly these headers.
        """
        try:
            url = self._client.generate_presigned_url(
                ClientMethod="put_object",
                Params={
                    "Bucket": self.name,
                    "Key": path,
                    "ContentLength": size,
                    "ContentDisposition": content_disposition,
                },
                ExpiresIn=self.presign_expiration,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to presign PUT for {self.name}/{path}: {e}")
            raise StorageError(f"Failed to generate upload URL: {e}") from e

        logger.debug(f"Generated presigned PUT for {self.name}/{path}")
        return url

    def presign_get(self, path: str) -> str:
        """Generate a presigned GET URL for reading an object."""
        try:
            url = self._client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": self.name, "Key": path},
                ExpiresIn=self.presign_expiration,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to presign GET for {self.name}/{path}: {e}")
            raise StorageError(f"Failed to generate download URL: {e}") from e

        logger.debug(f"Generated presigned GET for {self.name}/{path}")
        return url

    def head(self, path: str) -> ObjectHead:
        """
        Fetch size and content type of a stored object.

        This is the only trustworthy source for both: anything the client
        declared before uploading is advisory.

        Raises:
            NotFound: No object at path
            StorageError: Any other backend failure
        """
        try:
            response = self._client.head_object(Bucket=self.name, Key=path)
        except ClientError as e:
            if e.response["Error"]["Code"] in _NOT_FOUND_CODES:
                raise NotFound("Object", path) from e
            logger.error(f"HEAD failed for {self.name}/{path}: {e}")
            raise StorageError(f"Failed to read object metadata: {e}") from e
        except BotoCoreError as e:
            logger.error(f"HEAD failed for {self.name}/{path}: {e}")
            raise StorageError(f"Failed to read object metadata: {e}") from e

        return ObjectHead(
            type=response.get("ContentType") or "",
            size=int(response.get("ContentLength") or 0),
        )

    def exists(self, path: str) -> bool:
        """Check if an object exists in the bucket."""
        try:
            self._client.head_object(Bucket=self.name, Key=path)
            return True
        except ClientError as e:
            if e.response["Error"]["Code"] in _NOT_FOUND_CODES:
                return False
            logger.error(f"Error checking object existence: {e}")
            raise StorageError(f"Failed to check object existence: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to check object existence: {e}") from e

    def delete(self, path: str) -> None:
        """Delete an object. Deleting a missing object is not an error."""
        try:
            self._client.delete_object(Bucket=self.name, Key=path)
        except ClientError as e:
            if e.response["Error"]["Code"] in _NOT_FOUND_CODES:
                logger.debug(f"Object {self.name}/{path} already gone")
                return
            logger.error(f"Failed to delete {self.name}/{path}: {e}")
            raise StorageError(f"Failed to delete object: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to delete object: {e}") from e

        logger.debug(f"Deleted object {self.name}/{path}")

    def get(self, path: str) -> bytes:
        """Read a whole (small) object into memory."""
        try:
            response = self._client.get_object(Bucket=self.name, Key=path)
            return response["Body"].read()
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to read {self.name}/{path}: {e}")
            raise StorageError(f"Failed to read object: {e}") from e

    def copy_from(self, source: "Bucket", source_path: str, path: str) -> None:
        """Server-side copy of an object from another bucket."""
        try:
            self._client.copy_object(
                Bucket=self.name,
                Key=path,
                CopySource={"Bucket": source.name, "Key": source_path},
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(
                f"Failed to copy {source.name}/{source_path} to {self.name}/{path}: {e}"
            )
            raise StorageError(f"Failed to copy object: {e}") from e


@dataclass
class Storage:
    """The three buckets a deployment uses."""
    uploads: Bucket
    files: Bucket
    config: Bucket


def create_storage(settings: Settings, client=None) -> Storage:
    """Create the bucket set from settings, sharing one boto3 client."""
    if client is None:
        client = create_s3_client(settings)
    expiration = settings.presign_expiration
    storage = Storage(
        uploads=Bucket(client, settings.uploads_bucket, expiration),
        files=Bucket(client, settings.files_bucket, expiration),
        config=Bucket(client, settings.config_bucket, expiration),
    )
    logger.info(
        f"Storage initialized: uploads={settings.uploads_bucket}, "
        f"files={settings.files_bucket}"
    )
    return storage
