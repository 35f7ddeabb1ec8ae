"""
auth/models.py -- Domain dataclasses for account entities.

Pattern: Data class (pure data container, near-zero logic). Dataclasses own
domain shape; stores and services do the work.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum


class Role(str, Enum):
    ADMIN = "ADMIN"
    USER = "USER"


class UserStatus(str, Enum):
    ACTIVE = "ACTIVE"
    BLOCKED = "BLOCKED"


@dataclass
class User:
    """A registered account.

    role is fixed at creation. status only ever moves ACTIVE -> BLOCKED.

    refresh_token holds the single live refresh token for the account, or
    None when no session is open. Issuing a new one overwrites the previous
    value, which is what makes older refresh tokens unusable.
    """

    full_name: str
    birth_date: date
    email: str
    hashed_password: str
    role: Role = Role.USER
    status: UserStatus = UserStatus.ACTIVE
    id: int | None = None
    refresh_token: str | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class UserProfile:
    """Public projection of a User -- safe to return to clients.

    Deliberately has no hashed_password or refresh_token field, so a profile
    can never leak them no matter how it is serialized.
    """

    id: int
    full_name: str
    birth_date: date
    email: str
    role: Role
    status: UserStatus
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> UserProfile:
        return cls(
            id=user.id,
            full_name=user.full_name,
            birth_date=user.birth_date,
            email=user.email,
            role=user.role,
            status=user.status,
            created_at=user.created_at or "",
        )


@dataclass(frozen=True)
class TokenClaims:
    """Identity claims carried by both access and refresh tokens."""

    user_id: int
    email: str
    role: Role

    @classmethod
    def for_user(cls, user: User) -> TokenClaims:
        return cls(user_id=user.id, email=user.email, role=user.role)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class Identity:
    """The caller resolved by the access gate, attached to request.state."""

    user_id: int
    email: str
    role: Role


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a successful register or login."""

    user: UserProfile
    tokens: TokenPair
