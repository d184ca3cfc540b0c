"""
Post-upload processing.

Runs once an upload has been confirmed against storage and turns the raw
File into a Track that can be delivered through the CDN.
"""
import asyncio
import logging
from abc import ABC, abstractmethod

from sqlalchemy.ext.asyncio import AsyncSession

from filedrop.models.base import generate_uuid
from filedrop.models.file import File
from filedrop.models.track import Track
from filedrop.models.user import User
from filedrop.services.content_disposition import file_extension
from filedrop.storage.bucket import Storage

logger = logging.getLogger(__name__)


class UploadProcessor(ABC):
    """
    Interface for post-upload processing.

    Implementations must not commit: the caller commits the finished File,
    the result and the usage update together.
    """

    @abstractmethod
    async def process(
        self,
        db: AsyncSession,
        user: User,
        file: File,
        batch_id: str,
    ) -> Track:
        """
        Produce the deliverable for a finished upload.

        Args:
            db: Database session (flush only)
            user: Owner
            file: Finished file, size/type already taken from storage
            batch_id: Client-supplied batch the upload belongs to

        Returns:
            The new Track
        """
        pass


class TrackProcessor(UploadProcessor):
    """
    Copies the upload into the files bucket under its own key and records
    a Track for it. Metadata extraction happens elsewhere.
    """

    def __init__(self, storage: Storage):
        self._storage = storage

    async def process(self, db, user, file, batch_id):
        track_id = generate_uuid()
        ext = file_extension(file.name).lower()
        b2_path = f"{user.id}/{track_id}{ext}"

        await asyncio.to_thread(
            self._storage.files.copy_from, self._storage.uploads, file.path, b2_path
        )

        title = file.name[:-len(ext)] if ext else file.name
        track = Track(
            id=track_id,
            user_id=user.id,
            file_id=file.id,
            batch_id=batch_id,
            title=title,
            size=file.size,
            type=file.type,
            b2_path=b2_path,
        )
        db.add(track)
        await db.flush()

        logger.debug(f"Created track {track_id} from file {file.id}")
        return track
