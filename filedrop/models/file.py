"""
File model for tracking uploads.

Stores metadata about files uploaded to object storage.
The actual file bytes are stored in the uploads bucket, not the database.

Lifecycle:
1. Client starts an upload -> status="pending" (declared size/type, untrusted)
2. Client uploads to storage directly with the presigned PUT
3. Client finishes the upload -> status="finished" (size/type read from storage)
4. Pending records that never finish are abandoned and swept elsewhere
"""
import enum
from sqlalchemy import Column, String, Enum, BigInteger, Boolean, DateTime, Index

from filedrop.models.base import Base, generate_uuid, utcnow


class FileStatus(str, enum.Enum):
    """Upload status of a file."""
    PENDING = "pending"      # Presigned URL issued, awaiting upload
    FINISHED = "finished"    # Upload confirmed against storage


class File(Base):
    """
    Uploaded file metadata model.

    Attributes:
        id: Unique identifier (UUID)
        user_id: Owner
        name: Display name as supplied by the client
        size: Byte size (declared on start, observed on finish)
        type: MIME type (declared on start, observed on finish)
        local_mod: Client-reported modification time, ms since epoch
        status: pending or finished
        deleted: Soft-delete flag, set once the storage object is gone
        batch_id: Upload batch this file finished in
    """
    __tablename__ = "files"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), nullable=False, index=True)

    name = Column(String(1024), nullable=False, default="")
    size = Column(BigInteger, nullable=False, default=0)
    type = Column(String(255), nullable=False, default="")
    local_mod = Column(BigInteger, nullable=False, default=0)

    status = Column(Enum(FileStatus), nullable=False, default=FileStatus.PENDING)
    deleted = Column(Boolean, nullable=False, default=False)
    batch_id = Column(String(128), nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    finished_at = Column(DateTime, nullable=True)

    __table_args__ = (
        # Finding pending uploads (cleanup)
        Index("ix_files_status", "status"),
    )

    @property
    def path(self) -> str:
        """Object key in the uploads bucket."""
        return f"{self.user_id}/{self.id}"

    def __repr__(self):
        return (
            f"<File(id={self.id}, user={self.user_id}, "
            f"size={self.size}, status={self.status.value})>"
        )
