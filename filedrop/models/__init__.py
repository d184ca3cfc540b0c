"""
Database models package.
"""
from filedrop.models.base import Base
from filedrop.models.user import User
from filedrop.models.file import File, FileStatus
from filedrop.models.track import Track

__all__ = [
    "Base",
    "User",
    "File",
    "FileStatus",
    "Track",
]
