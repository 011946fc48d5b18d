"""Bearer-token identity.

Only the SHA-256 hex digest of a token is stored. A valid token resolves to
a repository scoped to its user; anything else is rejected before any data
access.
"""

from __future__ import annotations

import hashlib
import secrets
import sqlite3

from mindstack.db.repository import Repository
from mindstack.errors import AuthorizationError

_BEARER_PREFIX = "bearer "
_INVALID_HEADER = "Missing or invalid Authorization header"


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_token() -> str:
    """Return a fresh URL-safe bearer token (shown to the user once)."""
    return secrets.token_urlsafe(32)


class Authenticator:
    """Resolve ``Authorization`` headers to caller-scoped repositories."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._privileged = Repository(conn)

    def authenticate(self, header: str | None) -> Repository:
        """Return a Repository scoped to the token's user.

        Raises:
            AuthorizationError: Header missing, not a bearer token, or unknown token.
        """
        if not header or not header.lower().startswith(_BEARER_PREFIX):
            raise AuthorizationError(_INVALID_HEADER)
        token = header[len(_BEARER_PREFIX):].strip()
        if not token:
            raise AuthorizationError(_INVALID_HEADER)
        user = self._privileged.get_user_by_token_hash(hash_token(token))
        if user is None:
            raise AuthorizationError(_INVALID_HEADER)
        return self._privileged.scoped(user.id)

    def register_user(self, name: str) -> tuple[str, str]:
        """Create a user and return ``(user_id, token)``."""
        token = generate_token()
        user = self._privileged.add_user(name, hash_token(token))
        return user.id, token
