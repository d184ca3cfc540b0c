"""
Presigned transfer workflow.

Drives the upload lifecycle and the download redirect. The backend never
touches file bytes; it only decides who may move which bytes where.

Upload flow:
1. Client calls start with name/type/size for one or more files
2. Sizes and quota are checked for the whole batch before anything is created
3. A pending File and a presigned PUT are created per file
4. Client uploads directly to storage using the presigned URL
5. Client calls finish; size/type are re-read from storage (HEAD), the File
   becomes finished, a Track is produced and usage is charged

State machine per File: none -> pending -> finished | abandoned.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from filedrop.errors import (
    Forbidden,
    InternalInvariantViolation,
    InvalidInput,
    InvalidState,
    NotFound,
    QuotaExceeded,
    SizeLimitExceeded,
)
from filedrop.models.base import generate_uuid, utcnow
from filedrop.models.file import File, FileStatus
from filedrop.models.track import Track
from filedrop.models.user import User
from filedrop.schemas.upload import UploadItem, UploadTicket
from filedrop.services.content_disposition import encode_content_disposition, file_extension
from filedrop.services.processing import UploadProcessor
from filedrop.storage.bucket import Storage
from filedrop.utils.logging import (
    log_file_deleted,
    log_upload_finished,
    log_upload_rejected,
    log_upload_started,
)
from filedrop.utils.metrics import (
    upload_bytes_total,
    uploads_finished_total,
    uploads_rejected_total,
    uploads_started_total,
)

logger = logging.getLogger(__name__)

USAGE_HEADER = "Tube-Upload-Usage"
QUOTA_HEADER = "Tube-Upload-Quota"
UPLOAD_ID_HEADER = "Tube-Upload-ID"


def usage_headers(user: User) -> Dict[str, str]:
    """Usage/quota headers clients use to preflight their next upload."""
    return {
        USAGE_HEADER: str(user.usage),
        QUOTA_HEADER: str(user.calc_quota()),
    }


@dataclass
class UploadBatch:
    """Result of starting uploads: one ticket per file plus quota info."""
    tickets: List[UploadTicket] = field(default_factory=list)
    usage: int = 0
    quota: int = 0


class TransferService:
    """
    Orchestrates uploads, deletes and download redirects.

    Errors are raised as filedrop.errors exceptions and mapped to HTTP
    responses at the API boundary.
    """

    def __init__(
        self,
        storage: Storage,
        processor: UploadProcessor,
        max_file_size: int,
        conceal_forbidden: bool = True,
    ):
        self.storage = storage
        self.processor = processor
        self.max_file_size = max_file_size
        self.conceal_forbidden = conceal_forbidden

    def _reject(self, user: User, reason: str, exc, file_id: str = None):
        uploads_rejected_total.labels(reason=reason).inc()
        log_upload_rejected(logger, user_id=user.id, reason=reason, file_id=file_id, details=exc.details)
        return exc

    def validate_batch(self, user: User, items: Sequence[UploadItem]) -> int:
        """
        Check declared sizes and quota for a whole batch.

        Nothing is created here; any violation rejects every item.

        Returns:
            Total declared size in bytes

        Raises:
            InvalidInput: An item has no size
            SizeLimitExceeded: An item is over the hard cap
            QuotaExceeded: The batch would push usage over quota
        """
        headers = usage_headers(user)
        total = 0
        for item in items:
            if not item.size or item.size <= 0:
                raise self._reject(user, "missing_size", InvalidInput(
                    "missing file size",
                    details={"name": item.name},
                    headers=headers,
                ))
            if item.size > self.max_file_size:
                max_mb = self.max_file_size // 1000 // 1000
                raise self._reject(user, "too_big", SizeLimitExceeded(
                    f"file too big. max size is {max_mb}MB",
                    details={"name": item.name, "size": item.size, "max_size": self.max_file_size},
                    headers=headers,
                ))
            total += item.size

        # Snapshot taken before anything is approved
        usage = user.usage
        quota = user.calc_quota()
        if quota != 0 and usage + total > quota:
            raise self._reject(user, "quota", QuotaExceeded(
                "upload quota exceeded",
                details={"usage": usage, "quota": quota, "requested": total},
                headers=headers,
            ))
        return total

    async def start_uploads(
        self,
        db: AsyncSession,
        user: User,
        items: Sequence[UploadItem],
    ) -> UploadBatch:
        """
        Validate a batch, then create pending Files and presigned PUTs.

        All records are committed together; if anything fails midway the
        transaction is rolled back and no File from this batch survives.
        """
        start_time = time.time()
        total = self.validate_batch(user, items)

        tickets = []
        try:
            for item in items:
                file = File(
                    id=generate_uuid(),
                    user_id=user.id,
                    name=item.name,
                    size=item.size,
                    type=item.type,
                    local_mod=item.lastmod,
                    status=FileStatus.PENDING,
                )
                db.add(file)
                await db.flush()

                # A fresh UUID path must be free; a hit means key derivation is broken
                if await asyncio.to_thread(self.storage.uploads.exists, file.path):
                    logger.error(
                        f"Upload path already occupied: {file.path}",
                        extra={"event": "upload_path_collision", "user_id": user.id, "file_id": file.id},
                    )
                    raise InternalInvariantViolation(
                        "upload path already exists",
                        details={"file_id": file.id},
                    )

                disposition = encode_content_disposition(item.name)
                url = await asyncio.to_thread(
                    self.storage.uploads.presign_put, file.path, item.size, disposition
                )
                tickets.append(UploadTicket(id=file.id, cd=disposition, url=url))

            await db.commit()
        except Exception:
            await db.rollback()
            raise

        uploads_started_total.inc(len(tickets))
        log_upload_started(
            logger,
            user_id=user.id,
            file_ids=[t.id for t in tickets],
            total_size=total,
            duration_ms=(time.time() - start_time) * 1000,
        )
        return UploadBatch(tickets=tickets, usage=user.usage, quota=user.calc_quota())

    async def start_upload(self, db: AsyncSession, user: User, item: UploadItem) -> UploadBatch:
        """Single-file form of start_uploads."""
        return await self.start_uploads(db, user, [item])

    async def _get_file(self, db: AsyncSession, file_id: str) -> File:
        result = await db.execute(select(File).where(File.id == file_id))
        file = result.scalar_one_or_none()
        if file is None:
            raise NotFound("File", file_id)
        return file

    async def finish_upload(
        self,
        db: AsyncSession,
        user: User,
        file_id: str,
        batch_id: str,
    ) -> Track:
        """
        Confirm an upload against storage and hand it to processing.

        Size and type are taken from storage, never from the client. An
        object over the hard cap is deleted and the File abandoned; usage is
        only charged once the File is finished.

        Raises:
            InvalidInput: No batch id
            NotFound: No such file
            Forbidden: Deleted, or owned by someone else
            InvalidState: Already finished, or nothing uploaded yet
            SizeLimitExceeded: Stored object over the hard cap
        """
        start_time = time.time()
        if not batch_id:
            raise InvalidInput("missing batch id")

        file = await self._get_file(db, file_id)
        if file.deleted or file.user_id != user.id:
            raise Forbidden()
        if file.status == FileStatus.FINISHED:
            raise InvalidState("upload already finished", details={"file_id": file.id})

        try:
            head = await asyncio.to_thread(self.storage.uploads.head, file.path)
        except NotFound:
            raise InvalidState("upload not received yet", details={"file_id": file.id})

        if head.size > self.max_file_size:
            await asyncio.to_thread(self.storage.uploads.delete, file.path)
            file.deleted = True
            await db.commit()
            raise self._reject(user, "too_big_after_upload", SizeLimitExceeded(
                "file too big",
                details={"size": head.size, "max_size": self.max_file_size},
            ), file_id=file.id)

        try:
            # Compare-and-set: only one finish can move a File out of pending
            result = await db.execute(
                update(File)
                .where(
                    File.id == file.id,
                    File.status == FileStatus.PENDING,
                    File.deleted.is_(False),
                )
                .values(
                    status=FileStatus.FINISHED,
                    size=head.size,
                    type=head.type,
                    batch_id=batch_id,
                    finished_at=utcnow(),
                )
            )
            if result.rowcount == 0:
                raise InvalidState("upload already finished", details={"file_id": file.id})
            await db.refresh(file)

            track = await self.processor.process(db, user, file, batch_id)

            await db.execute(
                update(User)
                .where(User.id == user.id)
                .values(usage=User.usage + head.size, last_mod=utcnow())
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        await db.refresh(user)

        uploads_finished_total.inc()
        upload_bytes_total.inc(head.size)
        log_upload_finished(
            logger,
            user_id=user.id,
            file_id=file.id,
            batch_id=batch_id,
            size=head.size,
            track_id=track.id,
            duration_ms=(time.time() - start_time) * 1000,
        )
        return track

    async def delete_file(self, db: AsyncSession, user: User, file_id: str) -> File:
        """
        Delete a file: storage object first, then the record.

        If the storage delete fails the record is left untouched. If the
        record update fails afterwards, the File points at nothing and is
        left for reconciliation.

        Raises:
            NotFound: No such file, or already deleted
            Forbidden: Owned by someone else; nothing is changed
        """
        file = await self._get_file(db, file_id)
        if file.user_id != user.id:
            raise Forbidden()
        if file.deleted:
            raise NotFound("File", file_id)

        await asyncio.to_thread(self.storage.uploads.delete, file.path)

        result = await db.execute(select(Track).where(Track.file_id == file.id))
        track = result.scalar_one_or_none()
        if track is not None:
            await asyncio.to_thread(self.storage.files.delete, track.b2_path)
            await db.delete(track)

        released = file.size if file.status == FileStatus.FINISHED else 0
        file.deleted = True
        await db.execute(
            update(User)
            .where(User.id == user.id)
            .values(usage=User.usage - released, last_mod=utcnow())
        )
        await db.commit()
        await db.refresh(user)

        log_file_deleted(logger, user_id=user.id, file_id=file.id, size=released)
        return file

    async def get_owned_track(self, db: AsyncSession, user: User, track_id: str) -> Track:
        """
        Look up a track the caller owns.

        Raises:
            NotFound: Missing, or owned by someone else while concealing
            Forbidden: Owned by someone else while not concealing
        """
        result = await db.execute(select(Track).where(Track.id == track_id))
        track = result.scalar_one_or_none()
        if track is None:
            raise NotFound("Track", track_id)
        if track.user_id != user.id:
            if self.conceal_forbidden:
                raise NotFound("Track", track_id)
            raise Forbidden()
        return track

    async def resolve_download(self, db: AsyncSession, user: User, ident: str) -> str:
        """
        Resolve /dl/{id}[.ext] to a presigned GET URL for the track.
        """
        ext = file_extension(ident)
        track_id = ident[:-len(ext)] if ext else ident

        track = await self.get_owned_track(db, user, track_id)
        return await asyncio.to_thread(self.storage.files.presign_get, track.b2_path)
