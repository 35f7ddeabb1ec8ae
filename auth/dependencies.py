"""
auth/dependencies.py -- FastAPI Depends() helpers: the per-request access gate.

get_current_identity() resolves the caller:
  1. Authorization: Bearer <token> header -- the only credential slot.
     Missing or not a Bearer value -> 401.
  2. The token must verify as an ACCESS token (refresh tokens are signed with
     a different secret and are rejected here) -> otherwise 401.
  3. The user is re-fetched by user_id so a token for a user that no longer
     exists fails -> 401.

  Status is deliberately not checked: a BLOCKED user whose access token has
  not expired still passes. Blocking takes effect at the next login/refresh.

require_role() wraps the gate and compares the role exactly (no hierarchy).

Services are read from app.state, where the lifespan (or a test) put them.

Layer rule: no imports from core/. auth/dependencies.py may import from
fastapi because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Request

from auth.errors import Forbidden, Unauthorized
from auth.models import Identity, Role
from auth.store import UserStore
from auth.tokens import TokenIssuer

_BEARER_PREFIX = "bearer "


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("Authorization", "")
    if not header.lower().startswith(_BEARER_PREFIX):
        return None
    return header[len(_BEARER_PREFIX) :].strip() or None


def get_current_identity(request: Request) -> Identity:
    """Require a valid access token. Raises Unauthorized otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(identity: Identity = Depends(get_current_identity)): ...
    """
    token = _bearer_token(request)
    if token is None:
        raise Unauthorized()

    issuer: TokenIssuer = request.app.state.token_issuer
    claims = issuer.verify_access(token)
    if claims is None:
        raise Unauthorized()

    user_store: UserStore = request.app.state.user_store
    user = user_store.find_by_id(claims.user_id)
    if user is None:
        raise Unauthorized()

    identity = Identity(user_id=user.id, email=user.email, role=user.role)
    request.state.identity = identity
    return identity


def require_role(role: Role) -> Callable[[Request], Identity]:
    """Build a dependency that requires the caller's role to equal role exactly.

    Raises Unauthorized if the request is not authenticated, Forbidden if the
    role differs.

        @router.get("/admin-only")
        async def route(identity: Identity = Depends(require_role(Role.ADMIN))): ...
    """

    def _dependency(request: Request) -> Identity:
        identity = get_current_identity(request)
        if identity.role != role:
            raise Forbidden()
        return identity

    return _dependency


require_admin = require_role(Role.ADMIN)
