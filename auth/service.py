"""
auth/service.py -- Session lifecycle: register, login, refresh, logout.

State owned here: the user's single live refresh token. Every successful
register/login issues a fresh pair and overwrites the stored refresh token,
which implicitly ends any previous session. Logout clears it. Refresh checks
a presented token twice -- signature/expiry first (cheap, stateless), then
against the stored value (authoritative, enables revocation) -- and only
hands out a new access token.

Background session write:
  The refresh-token UPDATE after register/login is submitted to an executor
  and not awaited. The caller gets its tokens immediately; a failed write is
  logged by a done-callback and otherwise swallowed. Until the write lands
  (or if it never does) refresh() rejects the new token because the store
  does not know it yet. This is the one accepted inconsistency window in the
  service; everything else surfaces its failure to the caller.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from datetime import date

from sqlalchemy.exc import IntegrityError

from auth.errors import BadCredentials, Conflict, Forbidden, Unauthorized
from auth.models import AuthResult, Role, TokenClaims, TokenPair, User, UserProfile, UserStatus
from auth.passwords import DUMMY_HASH, hash_password, verify_password
from auth.store import UserStore
from auth.tokens import TokenIssuer

logger = logging.getLogger("accounts.auth")


def _log_session_write_failure(future: Future) -> None:
    exc = future.exception()
    if exc is not None:
        logger.error("Failed to save refresh token", exc_info=exc)


class AuthService:
    """Registration, credential checks, and session-token issuance/revocation.

    Usage:
        service = AuthService(store, TokenIssuer.from_settings(settings))
        result = service.login("a@x.com", "secret1")
        access = service.refresh(result.tokens.refresh_token)
        service.logout(result.tokens.refresh_token)

    executor runs the background refresh-token write. If omitted, the service
    owns a small ThreadPoolExecutor and shuts it down in close().
    """

    def __init__(
        self,
        store: UserStore,
        issuer: TokenIssuer,
        executor: Executor | None = None,
        writer_threads: int = 4,
    ) -> None:
        self.store = store
        self.issuer = issuer
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=writer_threads, thread_name_prefix="session-writer")

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def register(self, full_name: str, birth_date: date, email: str, password: str) -> AuthResult:
        """Create an ACTIVE USER account and open its first session.

        Raises Conflict if the email is already registered.
        """
        if self.store.find_by_email(email) is not None:
            raise Conflict(f"A user with email {email} already exists.")

        user = User(
            full_name=full_name,
            birth_date=birth_date,
            email=email,
            hashed_password=hash_password(password),
            role=Role.USER,
            status=UserStatus.ACTIVE,
        )
        try:
            user_id = self.store.create(user)
        except IntegrityError as exc:
            raise Conflict(f"A user with email {email} already exists.") from exc

        created = self.store.find_by_id(user_id)
        tokens = self._open_session(created)
        logger.info("Registered user %d", created.id)
        return AuthResult(user=UserProfile.from_user(created), tokens=tokens)

    def login(self, email: str, password: str) -> AuthResult:
        """Verify credentials and open a new session, superseding any old one.

        Unknown email and wrong password raise the same BadCredentials. bcrypt
        runs in both cases (against DUMMY_HASH when the email is unknown) so
        response time does not reveal which one happened.

        Raises Forbidden if the credentials are right but the account is BLOCKED.
        """
        user = self.store.find_by_email(email)
        if user is None:
            verify_password(password, DUMMY_HASH)
            logger.info("Login rejected: bad credentials")
            raise BadCredentials()
        if not verify_password(password, user.hashed_password):
            logger.info("Login rejected: bad credentials")
            raise BadCredentials()
        if user.status == UserStatus.BLOCKED:
            logger.info("Login rejected: user %d is blocked", user.id)
            raise Forbidden("Your account is blocked.")

        tokens = self._open_session(user)
        logger.info("User %d logged in", user.id)
        return AuthResult(user=UserProfile.from_user(user), tokens=tokens)

    def refresh(self, refresh_token: str | None) -> str:
        """Exchange a live refresh token for a new access token.

        The refresh token itself is not rotated. Any failure is Unauthorized
        with no further detail.
        """
        if not refresh_token:
            raise Unauthorized()
        claims = self.issuer.verify_refresh(refresh_token)
        if claims is None:
            logger.debug("Refresh rejected: invalid token")
            raise Unauthorized()
        user = self.store.find_by_refresh_token(refresh_token)
        if user is None or user.id != claims.user_id:
            logger.debug("Refresh rejected: token not live for user %d", claims.user_id)
            raise Unauthorized()
        return self.issuer.issue_access(TokenClaims.for_user(user))

    def logout(self, refresh_token: str | None) -> None:
        """Close the session that owns refresh_token. Unknown or empty tokens are a no-op."""
        user = self.store.find_by_refresh_token(refresh_token or "")
        if user is None:
            return
        self.store.update(user.id, refresh_token=None)
        logger.info("User %d logged out", user.id)

    def close(self) -> None:
        """Wait for pending session writes, then release the owned executor."""
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _open_session(self, user: User) -> TokenPair:
        """Issue a token pair and record its refresh token in the background."""
        tokens = self.issuer.issue_pair(TokenClaims.for_user(user))
        future = self._executor.submit(self.store.update, user.id, refresh_token=tokens.refresh_token)
        future.add_done_callback(_log_session_write_failure)
        return tokens
