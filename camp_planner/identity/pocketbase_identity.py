"""
PocketBase identity provider.

Uses the built-in ``users`` auth collection, for password and OAuth2 (e.g.
Google) sign-in alike. Each call gets a fresh client so
one principal's auth store never leaks into another request.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import time
from collections.abc import Callable
from typing import Any

from pocketbase import PocketBase
from pocketbase.client import ClientResponseError  # type: ignore[attr-defined]

from ..errors import AuthError, AuthErrorCode
from .provider import (
    AuthSession,
    Credentials,
    IdentityProvider,
    IdentityRef,
    OAuth2Credentials,
    validate_credentials,
    validate_oauth2,
)

logger = logging.getLogger(__name__)

AUTH_COLLECTION = "users"


def auth_error_from_response(error: ClientResponseError, *, creating: bool = False) -> AuthError:
    """Translate a PocketBase error payload into an AuthError.

    PocketBase reports field problems as ``{"data": {"email": {"code": ...}}}``.
    """
    payload = getattr(error, "data", None) or {}
    fields = payload.get("data", {}) if isinstance(payload, dict) else {}
    if not isinstance(fields, dict):
        fields = {}

    email_code = (fields.get("email") or {}).get("code", "")
    if email_code == "validation_not_unique":
        return AuthError(AuthErrorCode.EMAIL_IN_USE, detail=email_code)
    if email_code:
        return AuthError(AuthErrorCode.INVALID_EMAIL, detail=email_code)
    password_code = (fields.get("password") or {}).get("code", "")
    if password_code:
        return AuthError(AuthErrorCode.WEAK_PASSWORD, detail=password_code)

    status = getattr(error, "status", 0)
    if not creating and status in (400, 401, 403, 404):
        return AuthError(AuthErrorCode.INVALID_CREDENTIAL, detail=str(status))
    return AuthError(AuthErrorCode.UNKNOWN, detail=str(error))


def _identity_from_record(record: Any) -> IdentityRef:
    return IdentityRef(uid=str(record.id), email=str(getattr(record, "email", "") or ""))


class PocketBaseIdentityProvider(IdentityProvider):
    """IdentityProvider backed by a PocketBase auth collection."""

    def __init__(self, client_factory: Callable[[], PocketBase], cache_ttl: float = 60.0):
        super().__init__()
        self._client_factory = client_factory
        self._cache_ttl = cache_ttl
        # token hash -> (identity, expiry)
        self._verified: dict[str, tuple[IdentityRef, float]] = {}

    @classmethod
    def for_url(cls, pocketbase_url: str) -> PocketBaseIdentityProvider:
        return cls(lambda: PocketBase(pocketbase_url))

    @staticmethod
    def _cache_key(token: str) -> str:
        return hashlib.sha256(token.encode()).hexdigest()[:32]

    async def _authenticate(self, credentials: Credentials) -> AuthSession:
        client = self._client_factory()
        try:
            result = await asyncio.to_thread(
                client.collection(AUTH_COLLECTION).auth_with_password,
                credentials.email,
                credentials.password,
            )
        except ClientResponseError as e:
            logger.info(f"Sign-in rejected for {credentials.email}: status {getattr(e, 'status', '?')}")
            raise auth_error_from_response(e) from e
        return self._remember(AuthSession(identity=_identity_from_record(result.record), token=result.token))

    def _remember(self, session: AuthSession) -> AuthSession:
        self._verified[self._cache_key(session.token)] = (session.identity, time.time() + self._cache_ttl)
        return session

    async def sign_in(self, credentials: Credentials) -> AuthSession:
        credentials = validate_credentials(credentials)
        session = await self._authenticate(credentials)
        logger.info(f"User {session.identity.uid} signed in")
        self._notify(session.identity.uid, session.identity)
        return session

    async def sign_up(self, credentials: Credentials) -> AuthSession:
        credentials = validate_credentials(credentials, creating=True)
        client = self._client_factory()
        try:
            await asyncio.to_thread(
                client.collection(AUTH_COLLECTION).create,
                {
                    "email": credentials.email,
                    "password": credentials.password,
                    "passwordConfirm": credentials.password,
                },
            )
        except ClientResponseError as e:
            error = auth_error_from_response(e, creating=True)
            logger.info(f"Sign-up rejected for {credentials.email}: {error.code.value}")
            raise error from e
        session = await self._authenticate(credentials)
        logger.info(f"User {session.identity.uid} signed up")
        self._notify(session.identity.uid, session.identity)
        return session

    async def verify_token(self, token: str) -> IdentityRef:
        if not token:
            raise AuthError(AuthErrorCode.INVALID_CREDENTIAL)

        cache_key = self._cache_key(token)
        cached = self._verified.get(cache_key)
        if cached is not None:
            identity, expiry = cached
            if time.time() < expiry:
                return identity
            del self._verified[cache_key]

        client = self._client_factory()
        client.auth_store.save(token, None)
        try:
            result = await asyncio.to_thread(client.collection(AUTH_COLLECTION).auth_refresh)
        except ClientResponseError as e:
            logger.debug(f"Token refresh rejected: status {getattr(e, 'status', '?')}")
            raise AuthError(AuthErrorCode.INVALID_CREDENTIAL) from e

        identity = _identity_from_record(result.record)
        self._verified[cache_key] = (identity, time.time() + self._cache_ttl)
        return identity

    async def sign_in_with_oauth2(self, credentials: OAuth2Credentials) -> AuthSession:
        """Exchange the code from an OAuth2 sign-in window for a PocketBase session.

        PocketBase creates the user on first sign-in with a provider.

        Raises:
            AuthError: POPUP_CLOSED when the window was closed or declined;
                INVALID_CREDENTIAL when PocketBase rejects the code
        """
        credentials = validate_oauth2(credentials)
        client = self._client_factory()
        try:
            result = await asyncio.to_thread(
                client.collection(AUTH_COLLECTION).auth_with_oauth2,
                credentials.provider,
                credentials.code,
                credentials.code_verifier,
                credentials.redirect_url,
            )
        except ClientResponseError as e:
            logger.info(f"{credentials.provider} sign-in rejected: status {getattr(e, 'status', '?')}")
            raise auth_error_from_response(e) from e
        session = self._remember(AuthSession(identity=_identity_from_record(result.record), token=result.token))
        logger.info(f"User {session.identity.uid} signed in with {credentials.provider}")
        self._notify(session.identity.uid, session.identity)
        return session

    async def sign_out(self, token: str) -> None:
        # PocketBase tokens are stateless; forgetting the cached verification is all there is
        cached = self._verified.pop(self._cache_key(token), None)
        if cached is not None:
            identity = cached[0]
        else:
            try:
                identity = await self.verify_token(token)
            except AuthError:
                logger.debug("Sign-out with an unknown or expired token")
                return
            self._verified.pop(self._cache_key(token), None)
        logger.info(f"User {identity.uid} signed out")
        self._notify(identity.uid, None)
