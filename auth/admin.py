"""
auth/admin.py -- Role-gated user administration: lookup, listing, blocking.

Role enforcement for list_users() and block_user() lives in the access gate
(require_role(Role.ADMIN)); this module only applies the rules that depend
on the data:

  can_view       -- admins see everyone, users see themselves.
  self-block     -- an admin cannot block their own account.
  last admin     -- the only ACTIVE admin cannot be blocked, so the system
                    never ends up with nobody able to administer it. The
                    count is read from the store on every call.

Blocking does not touch refresh_token or outstanding access tokens. A blocked
user is stopped at the next login (Forbidden); an access token already in
hand stays valid until it expires.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging

from auth.errors import Forbidden, NotFound
from auth.models import Identity, Role, UserProfile, UserStatus
from auth.store import UserStore

logger = logging.getLogger("accounts.admin")


def can_view(requester: Identity, target_id: int) -> bool:
    """Return True if requester may read the profile of user target_id."""
    return requester.role == Role.ADMIN or requester.user_id == target_id


class UserAdminService:
    def __init__(self, store: UserStore) -> None:
        self.store = store

    def get_user_by_id(self, user_id: int, requester: Identity) -> UserProfile:
        if not can_view(requester, user_id):
            raise Forbidden("Insufficient permissions to view this user.")
        user = self.store.find_by_id(user_id)
        if user is None:
            raise NotFound("User not found.")
        return UserProfile.from_user(user)

    def list_users(self) -> list[UserProfile]:
        return [UserProfile.from_user(u) for u in self.store.list_users()]

    def block_user(self, target_id: int, requester_id: int) -> UserProfile:
        """Set target_id to BLOCKED.

        Raises Forbidden for self-block or for the last ACTIVE admin, and
        NotFound if target_id does not exist.
        """
        if target_id == requester_id:
            raise Forbidden("Administrators cannot block themselves.")
        target = self.store.find_by_id(target_id)
        if target is None:
            raise NotFound("User to block not found.")
        if target.role == Role.ADMIN:
            active_admins = self.store.list_by_role_and_status(Role.ADMIN, UserStatus.ACTIVE)
            if len(active_admins) == 1 and active_admins[0].id == target_id:
                raise Forbidden("Cannot block the only active administrator.")

        self.store.update(target_id, status=UserStatus.BLOCKED)
        logger.info("User %d blocked by admin %d", target_id, requester_id)
        return UserProfile.from_user(self.store.find_by_id(target_id))
