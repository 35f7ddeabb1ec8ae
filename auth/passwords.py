"""
auth/passwords.py -- One-way password hashing with bcrypt.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error.

Work factor comes from Settings.bcrypt_rounds. Each call to hash_password()
draws a fresh salt, so hashing the same password twice gives two different
digests; verify_password() reads the salt and cost back out of the digest.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import bcrypt

from core.config import get_settings

_settings = get_settings()


def hash_password(plain: str, rounds: int | None = None) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Passwords longer than 72 bytes are truncated by bcrypt. The API layer caps
    password length well below that (Pydantic max_length).
    """
    salt = bcrypt.gensalt(rounds=rounds or _settings.bcrypt_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str | None) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A missing, empty, or malformed digest is just a non-match. bcrypt raises
    ValueError for digests it cannot parse; that never reaches the caller.
    """
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Timing equalization dummy hash.
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones. Login verifies against this when the email is
# unknown, so unknown-email and wrong-password take the same bcrypt time.
DUMMY_HASH: str = hash_password("accounts_timing_dummy")
