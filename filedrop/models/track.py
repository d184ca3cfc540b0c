"""
Track model: the deliverable produced from a finished upload.
Lives under its own key in the files bucket, separate from the raw upload.
"""
from sqlalchemy import Column, String, BigInteger, DateTime, Index

from filedrop.models.base import Base, generate_uuid, utcnow


class Track(Base):
    """Processed file served to clients through signed URLs."""

    __tablename__ = "tracks"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    file_id = Column(String(36), nullable=False, unique=True)
    batch_id = Column(String(128), nullable=True)

    title = Column(String(1024), nullable=False, default="")
    size = Column(BigInteger, nullable=False, default=0)
    type = Column(String(255), nullable=False, default="")

    # Key in the files bucket, e.g. {user_id}/{track_id}.flac
    b2_path = Column(String(1024), nullable=False, unique=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_tracks_user_batch", "user_id", "batch_id"),
    )

    def __repr__(self):
        return f"<Track(id={self.id}, user={self.user_id}, b2_path={self.b2_path})>"
