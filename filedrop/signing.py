"""
CDN signing: CloudFront-style signed URLs and signed cookies.

The CDN edge checks these signatures itself, so downloads never call back
into the API. One RSA key pair is active per deployment; the private key is
loaded once at startup and a single SigningService instance is shared by
every request (see main.lifespan).

URLs use a canned policy (exact resource, Expires parameter). Cookies use a
custom policy whose resource may contain wildcards, so one set of cookies
authorizes a whole path prefix.
"""
import base64
import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Mapping, Optional

from botocore.signers import CloudFrontSigner
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from filedrop.config import Settings
from filedrop.errors import SigningError
from filedrop.storage.bucket import Storage
from filedrop.utils.metrics import signatures_issued_total

logger = logging.getLogger(__name__)

COOKIE_POLICY = "CloudFront-Policy"
COOKIE_SIGNATURE = "CloudFront-Signature"
COOKIE_KEY_PAIR_ID = "CloudFront-Key-Pair-Id"

# CloudFront's URL-safe base64 variant
_B64_ENCODE = str.maketrans("+=/", "-_~")
_B64_DECODE = str.maketrans("-_~", "+=/")


def _b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii").translate(_B64_ENCODE)


def _b64decode(data: str) -> bytes:
    return base64.b64decode(data.translate(_B64_DECODE), validate=True)


def _resource_matches(pattern: str, url: str) -> bool:
    """Match a policy resource, where * is any run of characters and ? is one."""
    regex = "".join(
        ".*" if c == "*" else "." if c == "?" else re.escape(c)
        for c in pattern
    )
    return re.fullmatch(regex, url) is not None


def load_private_key(pem: bytes) -> rsa.RSAPrivateKey:
    """
    Parse a PEM-encoded RSA private key (PKCS#1 or PKCS#8).

    Raises:
        SigningError: If the key cannot be parsed or is not RSA
    """
    try:
        key = serialization.load_pem_private_key(pem, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise SigningError(f"Signing key unusable: {e}") from e
    if not isinstance(key, rsa.RSAPrivateKey):
        raise SigningError("Signing key must be an RSA private key")
    return key


@dataclass(frozen=True)
class SignedCookie:
    """A cookie to set on the client, carrying part of a signed policy."""
    name: str
    value: str
    domain: str
    path: str = "/"
    secure: bool = False
    httponly: bool = True
    samesite: str = "lax"


class SigningService:
    """
    Produces time-limited signed URLs and cookies for CDN delivery.

    Expiry is absolute: clock() + ttl at the moment of signing. Every call
    signs independently, so re-signing yields new credentials while the old
    ones stay valid until their own expiry.
    """

    def __init__(
        self,
        key_id: str,
        private_key: rsa.RSAPrivateKey,
        ttl: timedelta,
        cookie_domain: str,
        cookie_path: str = "/",
        cookie_secure: bool = False,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.key_id = key_id
        self.ttl = ttl
        self.cookie_domain = cookie_domain
        self.cookie_path = cookie_path
        self.cookie_secure = cookie_secure
        self._private_key = private_key
        self._public_key = private_key.public_key()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._signer = CloudFrontSigner(key_id, self._rsa_sign)

    def _rsa_sign(self, message: bytes) -> bytes:
        # CloudFront only accepts RSA-SHA1
        try:
            return self._private_key.sign(message, padding.PKCS1v15(), hashes.SHA1())
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise SigningError(f"Failed to sign policy: {e}") from e

    def _signature_valid(self, message: bytes, signature: bytes) -> bool:
        try:
            self._public_key.verify(signature, message, padding.PKCS1v15(), hashes.SHA1())
        except InvalidSignature:
            return False
        return True

    def _now(self, now: Optional[datetime]) -> float:
        return (now or self._clock()).timestamp()

    def expiry(self) -> datetime:
        """Expiry for a credential signed right now."""
        return self._clock() + self.ttl

    def sign_url(self, resource: str) -> str:
        """
        Sign a URL with a canned policy.

        Args:
            resource: Full URL, query string included

        Returns:
            The URL with Expires, Signature and Key-Pair-Id appended
        """
        try:
            url = self._signer.generate_presigned_url(resource, date_less_than=self.expiry())
        except ValueError as e:
            raise SigningError(f"Malformed policy for {resource}: {e}") from e
        signatures_issued_total.labels(kind="url").inc()
        return url

    def sign_cookies(self, resource: str) -> List[SignedCookie]:
        """
        Sign a custom policy and package it as cookies.

        Args:
            resource: URL pattern; * matches any run of characters

        Returns:
            Policy, signature and key-pair-id cookies
        """
        try:
            policy = self._signer.build_policy(resource, self.expiry()).encode("utf-8")
        except (ValueError, TypeError) as e:
            raise SigningError(f"Malformed policy for {resource}: {e}") from e
        signature = self._rsa_sign(policy)

        values = {
            COOKIE_POLICY: _b64encode(policy),
            COOKIE_SIGNATURE: _b64encode(signature),
            COOKIE_KEY_PAIR_ID: self.key_id,
        }
        signatures_issued_total.labels(kind="cookie").inc()
        return [
            SignedCookie(
                name=name,
                value=value,
                domain="." + self.cookie_domain,
                path=self.cookie_path,
                secure=self.cookie_secure,
            )
            for name, value in values.items()
        ]

    def verify_url(self, signed_url: str, now: Optional[datetime] = None) -> bool:
        """
        Check a signed URL the way the CDN edge does.

        Valid only if the signature matches this key pair and now is
        strictly before the embedded expiry.
        """
        base, marker, tail = signed_url.rpartition("Expires=")
        if not marker or base[-1:] not in ("?", "&"):
            return False
        resource = base[:-1]

        parts = tail.split("&")
        try:
            expires = int(parts[0])
            fields = dict(part.split("=", 1) for part in parts[1:])
            signature = _b64decode(fields["Signature"])
        except (ValueError, KeyError):
            return False
        if fields.get("Key-Pair-Id") != self.key_id:
            return False

        policy = self._signer.build_policy(
            resource, datetime.fromtimestamp(expires, timezone.utc)
        ).encode("utf-8")
        if not self._signature_valid(policy, signature):
            return False
        return self._now(now) < expires

    def verify_cookies(
        self,
        cookies: Mapping[str, str],
        url: str,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Check signed cookies against a requested URL, as the CDN edge does.
        """
        try:
            policy = _b64decode(cookies[COOKIE_POLICY])
            signature = _b64decode(cookies[COOKIE_SIGNATURE])
        except (KeyError, ValueError):
            return False
        if cookies.get(COOKIE_KEY_PAIR_ID) != self.key_id:
            return False
        if not self._signature_valid(policy, signature):
            return False

        try:
            statement = json.loads(policy)["Statement"][0]
            pattern = statement["Resource"]
            expires = int(statement["Condition"]["DateLessThan"]["AWS:EpochTime"])
        except (ValueError, KeyError, IndexError, TypeError):
            return False
        if not _resource_matches(pattern, url):
            return False
        return self._now(now) < expires


def read_signing_key(settings: Settings, storage: Storage) -> bytes:
    """Read the PEM from disk if configured, otherwise from the config bucket."""
    if settings.signing_key_path:
        with open(settings.signing_key_path, "rb") as f:
            return f.read()
    return storage.config.get(f"{settings.signing_key_id}.pem")


def create_signing_service(settings: Settings, storage: Storage) -> SigningService:
    """
    Load the signing key and build the process-wide SigningService.

    Called once at startup. Any failure propagates and aborts startup:
    without the key no download can be authorized.
    """
    key = load_private_key(read_signing_key(settings, storage))
    logger.info(f"Loaded signing key {settings.signing_key_id}")
    return SigningService(
        key_id=settings.signing_key_id,
        private_key=key,
        ttl=timedelta(seconds=settings.signing_ttl_seconds),
        cookie_domain=settings.cookie_domain,
        cookie_secure=settings.cookie_secure,
    )
