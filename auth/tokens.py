"""
auth/tokens.py -- JWT issuance and verification for access and refresh tokens.

Security design decisions:
  JWT: python-jose with HS256. Two token classes, each signed with its own
       secret [S1]:
         access  -- 15 minutes, never stored server-side.
         refresh -- 7 days, also cross-checked against the user's stored
                    refresh_token by the auth service (revocation).
       A "typ" claim names the class, so even a misconfigured deployment that
       reused one secret could not swap one class for the other.

  Verification returns None on any failure -- bad signature, malformed token,
       expired, wrong class, missing claims. Callers get a single "invalid"
       outcome and cannot tell expired from forged. The route layer turns None
       into a 401.

  jti: every token carries a random ID, so two tokens issued for the same
       user in the same second still differ. Without it, a re-login right
       after logout could re-create a value identical to the revoked one.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.models import Role, TokenClaims, TokenPair
from core.config import Settings

logger = logging.getLogger("accounts.auth")

_ALGORITHM = "HS256"
_ACCESS = "access"
_REFRESH = "refresh"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenIssuer:
    """Issues and verifies signed, time-limited access and refresh tokens.

    Usage:
        issuer = TokenIssuer.from_settings(get_settings())
        pair = issuer.issue_pair(TokenClaims(user_id=1, email="a@x.com", role=Role.USER))
        claims = issuer.verify_refresh(pair.refresh_token)   # TokenClaims or None

    clock is injectable so tests can mint tokens "in the past" and observe
    expiry without sleeping.
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not access_secret or not refresh_secret:
            raise ValueError("TokenIssuer requires non-empty access and refresh secrets")
        if access_secret == refresh_secret:
            raise ValueError("Access and refresh secrets must differ")
        self._secrets = {_ACCESS: access_secret, _REFRESH: refresh_secret}
        self._ttls = {_ACCESS: access_ttl, _REFRESH: refresh_ttl}
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenIssuer:
        return cls(
            access_secret=settings.access_secret_key,
            refresh_secret=settings.refresh_secret_key,
            access_ttl=timedelta(seconds=settings.access_token_expire_seconds),
            refresh_ttl=timedelta(seconds=settings.refresh_token_expire_seconds),
        )

    @property
    def access_ttl(self) -> timedelta:
        return self._ttls[_ACCESS]

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def issue_access(self, claims: TokenClaims) -> str:
        return self._encode(_ACCESS, claims)

    def issue_refresh(self, claims: TokenClaims) -> str:
        return self._encode(_REFRESH, claims)

    def issue_pair(self, claims: TokenClaims) -> TokenPair:
        return TokenPair(access_token=self.issue_access(claims), refresh_token=self.issue_refresh(claims))

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def verify_access(self, token: str) -> TokenClaims | None:
        return self._decode(_ACCESS, token)

    def verify_refresh(self, token: str) -> TokenClaims | None:
        return self._decode(_REFRESH, token)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _encode(self, kind: str, claims: TokenClaims) -> str:
        issued_at = self._clock()
        payload = {
            "user_id": claims.user_id,
            "email": claims.email,
            "role": claims.role.value,
            "typ": kind,
            "jti": uuid.uuid4().hex,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + self._ttls[kind]).timestamp()),
        }
        return jwt.encode(payload, self._secrets[kind], algorithm=_ALGORITHM)

    def _decode(self, kind: str, token: str) -> TokenClaims | None:
        """Decode and verify a JWT of the given class. Returns None on any failure."""
        if not token:
            return None
        try:
            payload = jwt.decode(token, self._secrets[kind], algorithms=[_ALGORITHM])
        except JWTError:
            return None
        if payload.get("typ") != kind:
            return None
        try:
            return TokenClaims(
                user_id=int(payload["user_id"]),
                email=str(payload["email"]),
                role=Role(payload["role"]),
            )
        except (KeyError, TypeError, ValueError):
            logger.debug("Signed %s token with malformed claims rejected", kind)
            return None
