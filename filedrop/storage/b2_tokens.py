"""
Per-user storage download tokens.

The CDN forwards a user's token to the storage backend, which only honours
it for object names under that user's prefix. Tokens are minted here and
cached on the User row by the token service.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Tuple

import httpx

from filedrop.config import Settings
from filedrop.errors import TokenIssueError
from filedrop.models.base import utcnow

logger = logging.getLogger(__name__)


class TokenIssuer(ABC):
    """
    Interface for anything that can mint storage tokens.
    """

    @abstractmethod
    async def create_token(self, user_id: str) -> Tuple[str, datetime]:
        """
        Mint a fresh token scoped to a user's files.

        Args:
            user_id: Owner whose object prefix the token unlocks

        Returns:
            Tuple of (token, expiry as naive UTC datetime)

        Raises:
            TokenIssueError: If the backend refuses or is unreachable
        """
        pass


class B2TokenIssuer(TokenIssuer):
    """
    Backblaze B2 download authorizations via the native API.

    Flow:
    1. b2_authorize_account with the application key -> api url + account token
    2. b2_get_download_authorization for prefix "{user_id}/" -> download token
    """

    def __init__(self, settings: Settings, timeout: float = 10.0):
        if not all([settings.b2_key_id, settings.b2_application_key, settings.b2_bucket_id]):
            raise TokenIssueError(
                "B2 token issuer not configured. "
                "Set B2_KEY_ID, B2_APPLICATION_KEY, and B2_BUCKET_ID."
            )
        self._api_url = settings.b2_api_url.rstrip("/")
        self._key_id = settings.b2_key_id
        self._application_key = settings.b2_application_key
        self._bucket_id = settings.b2_bucket_id
        self._duration = settings.b2_token_duration_seconds
        self._timeout = timeout

    async def create_token(self, user_id: str) -> Tuple[str, datetime]:
        # Expiry counted from before the request so it never overshoots
        issued_at = utcnow()
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                auth = await client.get(
                    f"{self._api_url}/b2api/v2/b2_authorize_account",
                    auth=(self._key_id, self._application_key),
                )
                auth.raise_for_status()
                account = auth.json()

                response = await client.post(
                    f"{account['apiUrl']}/b2api/v2/b2_get_download_authorization",
                    headers={"Authorization": account["authorizationToken"]},
                    json={
                        "bucketId": self._bucket_id,
                        "fileNamePrefix": f"{user_id}/",
                        "validDurationInSeconds": self._duration,
                    },
                )
                response.raise_for_status()
                token = response.json()["authorizationToken"]
        except (httpx.HTTPError, KeyError, ValueError) as e:
            logger.error(f"Failed to create B2 token for user {user_id}: {e}")
            raise TokenIssueError(f"Failed to create storage token: {e}") from e

        expire = issued_at + timedelta(seconds=self._duration)
        return token, expire
