"""
Tests for storage-token refresh and the B2 token issuer.
"""
import json
from datetime import timedelta

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from filedrop.config import Settings
from filedrop.errors import TokenIssueError
from filedrop.models.base import utcnow
from filedrop.models.user import User
from filedrop.services.token_service import TokenRefresher
from filedrop.storage.b2_tokens import B2TokenIssuer

MARGIN = timedelta(minutes=10)


class TestTokenRefresher:
    """Tests for TokenRefresher."""

    @pytest.mark.asyncio
    async def test_mints_when_missing(self, db_session: AsyncSession, test_user: User, token_issuer):
        """A user without a token gets one, persisted on the row."""
        refresher = TokenRefresher(token_issuer)

        token = await refresher.ensure_token(db_session, test_user, MARGIN)

        assert token == f"token-{test_user.id}-1"
        assert test_user.b2_token == token
        assert test_user.b2_expire > utcnow() + MARGIN
        assert token_issuer.calls == 1

    @pytest.mark.asyncio
    async def test_reuses_fresh_token(self, db_session: AsyncSession, test_user: User, token_issuer):
        """A token well inside its lifetime is returned untouched."""
        test_user.b2_token = "existing"
        test_user.b2_expire = utcnow() + timedelta(hours=5)
        await db_session.commit()

        token = await TokenRefresher(token_issuer).ensure_token(db_session, test_user, MARGIN)

        assert token == "existing"
        assert token_issuer.calls == 0

    @pytest.mark.asyncio
    async def test_refreshes_inside_margin(self, db_session: AsyncSession, test_user: User, token_issuer):
        """A token expiring within the margin is replaced early."""
        test_user.b2_token = "nearly-expired"
        test_user.b2_expire = utcnow() + timedelta(minutes=5)
        await db_session.commit()

        token = await TokenRefresher(token_issuer).ensure_token(db_session, test_user, MARGIN)

        assert token != "nearly-expired"
        assert token_issuer.calls == 1

    @pytest.mark.asyncio
    async def test_refreshes_expired(self, db_session: AsyncSession, test_user: User, token_issuer):
        test_user.b2_token = "expired"
        test_user.b2_expire = utcnow() - timedelta(hours=1)
        await db_session.commit()

        token = await TokenRefresher(token_issuer).ensure_token(db_session, test_user, MARGIN)

        assert token == f"token-{test_user.id}-1"

    @pytest.mark.asyncio
    async def test_issuer_failure_keeps_old_token(self, db_session: AsyncSession, test_user: User, token_issuer):
        """If minting fails the stale token is left as it was."""
        stale_expiry = utcnow() - timedelta(hours=1)
        test_user.b2_token = "stale"
        test_user.b2_expire = stale_expiry
        await db_session.commit()
        token_issuer.fail = True

        with pytest.raises(TokenIssueError):
            await TokenRefresher(token_issuer).ensure_token(db_session, test_user, MARGIN)

        assert test_user.b2_token == "stale"
        assert test_user.b2_expire == stale_expiry

    @pytest.mark.asyncio
    async def test_is_usable_without_expiry(self, test_user: User):
        test_user.b2_token = "orphan"
        test_user.b2_expire = None
        assert not TokenRefresher.is_usable(test_user, MARGIN)


def _b2_settings(**overrides) -> Settings:
    values = dict(
        b2_api_url="https://api.b2.test",
        b2_key_id="key-id",
        b2_application_key="app-key",
        b2_bucket_id="bucket-1",
        b2_token_duration_seconds=3600,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def b2_backend(monkeypatch):
    """Route B2TokenIssuer's httpx client through a MockTransport."""
    requests = []
    state = {"fail_authorization": False}

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path == "/b2api/v2/b2_authorize_account":
            return httpx.Response(200, json={
                "apiUrl": "https://api002.b2.test",
                "authorizationToken": "account-token",
            })
        if request.url.path == "/b2api/v2/b2_get_download_authorization":
            if state["fail_authorization"]:
                return httpx.Response(401, json={"code": "unauthorized"})
            return httpx.Response(200, json={"authorizationToken": "download-token"})
        return httpx.Response(404)

    real_client = httpx.AsyncClient

    def client_factory(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(handler)
        return real_client(*args, **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", client_factory)
    return requests, state


class TestB2TokenIssuer:
    """Tests for B2TokenIssuer."""

    def test_requires_configuration(self):
        with pytest.raises(TokenIssueError, match="not configured"):
            B2TokenIssuer(_b2_settings(b2_key_id=None))

    @pytest.mark.asyncio
    async def test_creates_prefix_scoped_token(self, b2_backend):
        """The download authorization is limited to the user's prefix."""
        requests, _ = b2_backend
        before = utcnow()

        token, expire = await B2TokenIssuer(_b2_settings()).create_token("user-1")

        assert token == "download-token"
        assert before + timedelta(seconds=3600) <= expire <= utcnow() + timedelta(seconds=3600)

        authorize, download = requests
        assert authorize.headers["Authorization"].startswith("Basic ")
        assert download.url.host == "api002.b2.test"
        assert download.headers["Authorization"] == "account-token"
        assert json.loads(download.content) == {
            "bucketId": "bucket-1",
            "fileNamePrefix": "user-1/",
            "validDurationInSeconds": 3600,
        }

    @pytest.mark.asyncio
    async def test_backend_refusal(self, b2_backend):
        _, state = b2_backend
        state["fail_authorization"] = True

        with pytest.raises(TokenIssueError):
            await B2TokenIssuer(_b2_settings()).create_token("user-1")
