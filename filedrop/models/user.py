"""
User model with storage accounting.
Authenticated via Firebase (firebase_uid).
Usage counts bytes of finished, non-deleted files only.
"""
from sqlalchemy import Column, String, BigInteger, Index, DateTime

from filedrop.config import settings
from filedrop.models.base import Base, generate_uuid, utcnow


class User(Base):
    """User model with upload quota and storage download token."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    firebase_uid = Column(String(128), nullable=False, unique=True)  # Firebase user ID
    email = Column(String(255), nullable=True)  # Email from Firebase token

    usage = Column(BigInteger, nullable=False, default=0)  # Bytes stored in finished files
    quota = Column(BigInteger, nullable=True)  # Byte ceiling, NULL = deployment default, 0 = unlimited

    # Storage-backend download token, refreshed lazily
    b2_token = Column(String(512), nullable=True)
    b2_expire = Column(DateTime, nullable=True)

    last_mod = Column(DateTime, nullable=True)  # Bumped whenever the file library changes
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_user_firebase_uid", "firebase_uid"),
    )

    def calc_quota(self) -> int:
        """Effective quota in bytes. 0 means unlimited."""
        if self.quota is not None:
            return self.quota
        return settings.default_quota_bytes

    def __repr__(self):
        return f"<User(id={self.id}, usage={self.usage}, quota={self.quota})>"
