"""
Storage-token refresh.

Each user carries a storage download token and its expiry on their row.
Tokens are refreshed lazily, just before use, with a safety margin so a
token cannot run out between being handed to the CDN and being checked by
storage.
"""
import logging
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from filedrop.models.base import utcnow
from filedrop.models.user import User
from filedrop.storage.b2_tokens import TokenIssuer
from filedrop.utils.logging import log_token_refreshed
from filedrop.utils.metrics import storage_token_refreshes_total

logger = logging.getLogger(__name__)


class TokenRefresher:
    """
    Keeps per-user storage tokens fresh.

    Concurrent refreshes for the same user are not serialized. Both tokens
    are valid until their own expiry, so the last write simply wins.
    """

    def __init__(self, issuer: TokenIssuer):
        self._issuer = issuer

    @staticmethod
    def is_usable(user: User, safety_margin: timedelta) -> bool:
        """True if the user's token outlives now + safety_margin."""
        if not user.b2_token or user.b2_expire is None:
            return False
        return utcnow() + safety_margin < user.b2_expire

    async def ensure_token(
        self,
        db: AsyncSession,
        user: User,
        safety_margin: timedelta,
    ) -> str:
        """
        Return a usable storage token for the user, minting one if needed.

        Args:
            db: Database session
            user: Token owner; its token fields are updated in place
            safety_margin: Minimum remaining lifetime required

        Returns:
            Storage token string

        Raises:
            TokenIssueError: If the issuer fails; the old token is left as is
        """
        if self.is_usable(user, safety_margin):
            return user.b2_token

        token, expire = await self._issuer.create_token(user.id)

        user.b2_token = token
        user.b2_expire = expire
        await db.commit()

        storage_token_refreshes_total.inc()
        log_token_refreshed(logger, user_id=user.id, expires_at=expire.isoformat())
        return token
