"""In-process identity provider for STORE_BACKEND=memory and tests."""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass

from ..errors import AuthError, AuthErrorCode
from .provider import AuthSession, Credentials, IdentityProvider, IdentityRef, validate_credentials

logger = logging.getLogger(__name__)

# Hashing runs in a worker thread so it never stalls the event loop
_HASH_ITERATIONS = 100_000


@dataclass
class _LocalUser:
    identity: IdentityRef
    salt: bytes
    password_hash: bytes


def _hash_password(password: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode(), salt, _HASH_ITERATIONS)


class InMemoryIdentityProvider(IdentityProvider):
    """Keeps users and issued tokens in memory; nothing survives a restart."""

    def __init__(self) -> None:
        super().__init__()
        self._users: dict[str, _LocalUser] = {}  # keyed by lowercased email
        self._tokens: dict[str, IdentityRef] = {}

    def _issue(self, identity: IdentityRef) -> AuthSession:
        token = secrets.token_urlsafe(32)
        self._tokens[token] = identity
        return AuthSession(identity=identity, token=token)

    async def sign_up(self, credentials: Credentials) -> AuthSession:
        credentials = validate_credentials(credentials, creating=True)
        key = credentials.email.lower()
        if key in self._users:
            raise AuthError(AuthErrorCode.EMAIL_IN_USE)
        salt = secrets.token_bytes(16)
        password_hash = await asyncio.to_thread(_hash_password, credentials.password, salt)
        # A concurrent sign-up may have taken the email while hashing
        if key in self._users:
            raise AuthError(AuthErrorCode.EMAIL_IN_USE)
        identity = IdentityRef(uid=secrets.token_hex(8), email=credentials.email)
        self._users[key] = _LocalUser(identity, salt, password_hash)
        logger.info(f"User {identity.uid} signed up")
        session = self._issue(identity)
        self._notify(identity.uid, identity)
        return session

    async def sign_in(self, credentials: Credentials) -> AuthSession:
        credentials = validate_credentials(credentials)
        user = self._users.get(credentials.email.lower())
        if user is None:
            raise AuthError(AuthErrorCode.INVALID_CREDENTIAL)
        attempt = await asyncio.to_thread(_hash_password, credentials.password, user.salt)
        if not hmac.compare_digest(user.password_hash, attempt):
            raise AuthError(AuthErrorCode.INVALID_CREDENTIAL)
        logger.info(f"User {user.identity.uid} signed in")
        session = self._issue(user.identity)
        self._notify(user.identity.uid, user.identity)
        return session

    async def verify_token(self, token: str) -> IdentityRef:
        identity = self._tokens.get(token)
        if identity is None:
            raise AuthError(AuthErrorCode.INVALID_CREDENTIAL)
        return identity

    async def sign_out(self, token: str) -> None:
        identity = self._tokens.pop(token, None)
        if identity is not None:
            logger.info(f"User {identity.uid} signed out")
            self._notify(identity.uid, None)
