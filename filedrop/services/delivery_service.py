"""
CDN delivery: signed links and cookies for a user's tracks.

The CDN's /auth endpoint receives the user's storage token and the target
path, so the signed URL must embed a token that is still good when the
browser follows it. Cookies carry no storage token and need only the signer.
"""
from datetime import timedelta
from typing import List, Optional
from urllib.parse import quote, urlencode

from sqlalchemy.ext.asyncio import AsyncSession

from filedrop.errors import UpstreamFailure
from filedrop.models.user import User
from filedrop.services.token_service import TokenRefresher
from filedrop.services.transfer_service import TransferService
from filedrop.signing import SignedCookie, SigningService


class DeliveryService:
    """Builds CDN credentials on top of SigningService and TokenRefresher."""

    def __init__(
        self,
        signer: SigningService,
        cdn_base_url: str,
        tokens: Optional[TokenRefresher] = None,
        transfers: Optional[TransferService] = None,
        token_margin: timedelta = timedelta(0),
    ):
        self.signer = signer
        self.tokens = tokens
        self.transfers = transfers
        self.cdn_base_url = cdn_base_url if cdn_base_url.endswith("/") else cdn_base_url + "/"
        self.token_margin = token_margin

    def auth_url(self, token: str, path: str) -> str:
        """Unsigned CDN auth URL: {cdn}auth?token=...&dl=..."""
        return f"{self.cdn_base_url}auth?{urlencode({'token': token, 'dl': path})}"

    def file_url(self, token: str, path: str) -> str:
        """Unsigned direct CDN URL: {cdn}dl/{path}?token=..."""
        return f"{self.cdn_base_url}dl/{quote(path)}?{urlencode({'token': token})}"

    async def track_link(self, db: AsyncSession, user: User, track_id: str, direct: bool = False) -> str:
        """
        Signed CDN URL for one of the user's tracks.

        By default the link goes through the CDN's /auth endpoint; with
        direct=True it points straight at the file under dl/.
        """
        if self.tokens is None or self.transfers is None:
            raise UpstreamFailure("Storage token issuer not configured")

        track = await self.transfers.get_owned_track(db, user, track_id)
        token = await self.tokens.ensure_token(db, user, self.token_margin)
        build = self.file_url if direct else self.auth_url
        return self.signer.sign_url(build(token, track.b2_path))

    def cookies_for(self, user: User) -> List[SignedCookie]:
        """Signed cookies covering every file under the user's prefix."""
        return self.signer.sign_cookies(f"{self.cdn_base_url}dl/{user.id}/*")
