"""
Test configuration and fixtures.
Uses a throwaway SQLite database and in-memory fakes for storage and tokens.
"""
import os
import uuid as uuid_module

# Set test environment before any imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["MAX_FILE_SIZE"] = str(10 * 1000 * 1000)
os.environ["DEFAULT_QUOTA_BYTES"] = "0"

import pytest
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Dict, List, Tuple

from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from filedrop.errors import NotFound, StorageError, TokenIssueError
from filedrop.models.base import Base, utcnow
from filedrop.models.file import File, FileStatus
from filedrop.models.track import Track
from filedrop.models.user import User
from filedrop.signing import SigningService
from filedrop.storage.bucket import ObjectHead, Storage
from filedrop.storage.b2_tokens import TokenIssuer


SIGNING_KEY_ID = "APKATESTKEYID"
CDN_BASE_URL = "https://cdn.test/"
FIXED_NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeBucket:
    """In-memory stand-in for filedrop.storage.bucket.Bucket."""

    def __init__(self, name: str):
        self.name = name
        self.objects: Dict[str, Tuple[str, int]] = {}
        self.presigned_puts: List[Tuple[str, int, str]] = []
        self.deleted: List[str] = []
        self.fail_on_exists = False

    def put(self, path: str, size: int, content_type: str = "audio/mpeg"):
        """Simulate the client completing its presigned PUT."""
        self.objects[path] = (content_type, size)

    def presign_put(self, path, size, content_disposition):
        self.presigned_puts.append((path, size, content_disposition))
        return f"https://storage.test/{self.name}/{path}?X-Amz-Signature=put"

    def presign_get(self, path):
        return f"https://storage.test/{self.name}/{path}?X-Amz-Signature=get"

    def head(self, path):
        if path not in self.objects:
            raise NotFound("Object", path)
        content_type, size = self.objects[path]
        return ObjectHead(type=content_type, size=size)

    def exists(self, path):
        if self.fail_on_exists:
            raise StorageError("Failed to check object existence")
        return path in self.objects

    def delete(self, path):
        self.deleted.append(path)
        self.objects.pop(path, None)

    def get(self, path):
        raise StorageError(f"Failed to read object: {path}")

    def copy_from(self, source, source_path, path):
        if source_path not in source.objects:
            raise StorageError(f"Failed to copy object: {source_path}")
        self.objects[path] = source.objects[source_path]


class FakeTokenIssuer(TokenIssuer):
    """Mints predictable tokens and counts calls."""

    def __init__(self, lifetime: timedelta = timedelta(hours=24)):
        self.lifetime = lifetime
        self.calls = 0
        self.fail = False

    async def create_token(self, user_id):
        if self.fail:
            raise TokenIssueError("Failed to create storage token: backend down")
        self.calls += 1
        return f"token-{user_id}-{self.calls}", utcnow() + self.lifetime


@pytest.fixture(scope="session")
def private_key() -> rsa.RSAPrivateKey:
    """RSA key pair shared by all signing tests (generation is slow)."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def signer(private_key) -> SigningService:
    """Signing service with a frozen clock."""
    return SigningService(
        key_id=SIGNING_KEY_ID,
        private_key=private_key,
        ttl=timedelta(hours=24),
        cookie_domain="filedrop.test",
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def storage() -> Storage:
    """Fresh set of fake buckets."""
    return Storage(
        uploads=FakeBucket("uploads"),
        files=FakeBucket("files"),
        config=FakeBucket("config"),
    )


@pytest.fixture
def token_issuer() -> FakeTokenIssuer:
    return FakeTokenIssuer()


@pytest.fixture(scope="function")
async def db_session(tmp_path) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for testing."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    async with session_maker() as session:
        yield session

    await engine.dispose()


async def _create_user(db_session: AsyncSession, **kwargs) -> User:
    user = User(
        id=str(uuid_module.uuid4()),
        firebase_uid=f"firebase-test-uid-{uuid_module.uuid4().hex[:8]}",
        email="test@example.com",
        **kwargs,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture(scope="function")
async def test_user(db_session: AsyncSession) -> User:
    """Create a test user with no usage and an unlimited quota."""
    return await _create_user(db_session, usage=0)


@pytest.fixture(scope="function")
async def other_user(db_session: AsyncSession) -> User:
    """A second user, for ownership checks."""
    return await _create_user(db_session, usage=0)


@pytest.fixture(scope="function")
async def pending_file(db_session: AsyncSession, test_user: User, storage: Storage) -> File:
    """A started upload whose bytes are already in the uploads bucket."""
    file = File(
        id=str(uuid_module.uuid4()),
        user_id=test_user.id,
        name="01 Intro.mp3",
        size=1000,
        type="audio/mpeg",
        status=FileStatus.PENDING,
    )
    db_session.add(file)
    await db_session.commit()
    await db_session.refresh(file)
    storage.uploads.put(file.path, 1000)
    return file


@pytest.fixture(scope="function")
async def test_track(db_session: AsyncSession, test_user: User, storage: Storage) -> Track:
    """A finished track owned by test_user."""
    file = File(
        id=str(uuid_module.uuid4()),
        user_id=test_user.id,
        name="song.flac",
        size=2000,
        type="audio/flac",
        status=FileStatus.FINISHED,
        batch_id="batch-1",
    )
    track_id = str(uuid_module.uuid4())
    track = Track(
        id=track_id,
        user_id=test_user.id,
        file_id=file.id,
        batch_id="batch-1",
        title="song",
        size=2000,
        type="audio/flac",
        b2_path=f"{test_user.id}/{track_id}.flac",
    )
    test_user.usage = 2000
    db_session.add_all([file, track])
    await db_session.commit()
    await db_session.refresh(track)
    storage.uploads.put(file.path, 2000, "audio/flac")
    storage.files.put(track.b2_path, 2000, "audio/flac")
    return track


def get_test_app(
    db_session: AsyncSession,
    user: User,
    storage: Storage,
    signer: SigningService,
    token_issuer: TokenIssuer,
) -> FastAPI:
    """Create a test FastAPI app with overridden dependencies."""
    from filedrop.main import app
    from filedrop.database import get_db
    from filedrop.auth.dependencies import get_current_user
    from filedrop.dependencies import get_signer, get_storage, get_token_issuer

    async def override_get_db():
        yield db_session

    async def override_get_current_user():
        return user

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_signer] = lambda: signer
    app.dependency_overrides[get_token_issuer] = lambda: token_issuer

    return app


@pytest.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    test_user: User,
    storage: Storage,
    signer: SigningService,
    token_issuer: FakeTokenIssuer,
) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API testing."""
    app = get_test_app(db_session, test_user, storage, signer, token_issuer)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    # Clean up overrides
    app.dependency_overrides.clear()
