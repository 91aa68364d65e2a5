# identity/_local.py
from __future__ import annotations
import hashlib
import os
import secrets
from dataclasses import dataclass
from typing import Dict, Optional

from ..errors import InvalidCredentials, UserAlreadyExists
from ..helpers import ct_equal, now_ts
from ..model.entities import AuthSession, Identity
from .base import IdentityProvider, display_name

PBKDF2_ROUNDS = 100_000


@dataclass
class _LocalUser:
    id: str
    email: str
    salt: str
    password_hash: str


def _hash(password: str, salt: str) -> str:
    return hashlib.pbkdf2_hmac(
        "sha256", password.encode(), bytes.fromhex(salt), PBKDF2_ROUNDS
    ).hex()


class LocalIdentityProvider(IdentityProvider):
    """In-process accounts; nothing survives a restart."""

    name = "local"

    def __init__(self) -> None:
        self.users: Dict[str, _LocalUser] = {}
        self.sessions: Dict[str, Identity] = {}

    def _issue(self, user: _LocalUser) -> AuthSession:
        token = secrets.token_urlsafe(32)
        identity = Identity(
            id=user.id, email=user.email, name=display_name(user.email)
        )
        self.sessions[token] = identity
        return AuthSession(
            access_token=token, identity=identity, backend=self.name
        )

    async def sign_up(self, email: str, password: str) -> AuthSession:
        email = email.strip().lower()
        if email in self.users:
            raise UserAlreadyExists()
        salt = os.urandom(16).hex()
        user = _LocalUser(
            id=str(int(now_ts() * 1000)),
            email=email,
            salt=salt,
            password_hash=_hash(password, salt),
        )
        self.users[email] = user
        return self._issue(user)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        user = self.users.get(email.strip().lower())
        if user is None or not ct_equal(
            _hash(password, user.salt), user.password_hash
        ):
            raise InvalidCredentials()
        return self._issue(user)

    async def sign_out(self, access_token: str,
                       backend: Optional[str] = None) -> None:
        self.sessions.pop(access_token, None)

    async def current_session(
        self, access_token: str, backend: Optional[str] = None
    ) -> Optional[Identity]:
        return self.sessions.get(access_token)
