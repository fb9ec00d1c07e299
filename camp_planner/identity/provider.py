"""
Identity provider contract.

The planner never stores passwords itself; it asks a provider to sign a
principal in or up, and later to turn a bearer token back into an identity.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, replace

from ..errors import AuthError, AuthErrorCode

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True)
class IdentityRef:
    """Opaque identity of a signed-in principal."""

    uid: str
    email: str = ""


@dataclass(frozen=True)
class Credentials:
    email: str
    password: str


@dataclass(frozen=True)
class AuthSession:
    identity: IdentityRef
    token: str


@dataclass(frozen=True)
class OAuth2Credentials:
    """What the browser brings back from an OAuth2 provider's sign-in window.

    ``error`` is the provider's redirect error (``access_denied`` when the user
    closes or declines the window).
    """

    provider: str
    code: str
    code_verifier: str
    redirect_url: str
    error: str = ""


AuthListener = Callable[[IdentityRef | None], None]


def validate_credentials(credentials: Credentials, *, creating: bool = False) -> Credentials:
    """Check credentials before they reach the backend.

    Args:
        credentials: Submitted email and password
        creating: Also apply the sign-up password-strength rule

    Returns:
        Credentials with the email trimmed

    Raises:
        AuthError: MISSING_FIELDS, INVALID_EMAIL or WEAK_PASSWORD
    """
    email = credentials.email.strip()
    if not email or not credentials.password:
        raise AuthError(AuthErrorCode.MISSING_FIELDS)
    if not _EMAIL_RE.match(email):
        raise AuthError(AuthErrorCode.INVALID_EMAIL)
    if creating and len(credentials.password) < MIN_PASSWORD_LENGTH:
        raise AuthError(AuthErrorCode.WEAK_PASSWORD)
    return Credentials(email=email, password=credentials.password)


def validate_oauth2(credentials: OAuth2Credentials) -> OAuth2Credentials:
    """Check an OAuth2 redirect before exchanging its code.

    A redirect carrying an error, or no code at all, means the sign-in window
    was closed before the user finished.

    Raises:
        AuthError: POPUP_CLOSED or MISSING_FIELDS
    """
    if credentials.error or not credentials.code.strip():
        raise AuthError(AuthErrorCode.POPUP_CLOSED, detail=credentials.error or None)
    if not credentials.provider.strip() or not credentials.code_verifier or not credentials.redirect_url:
        raise AuthError(AuthErrorCode.MISSING_FIELDS)
    return replace(credentials, provider=credentials.provider.strip().lower(), code=credentials.code.strip())


class IdentityProvider(ABC):
    """Sign-in, sign-up and token verification against an identity backend."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[AuthListener]] = {}

    @abstractmethod
    async def sign_in(self, credentials: Credentials) -> AuthSession:
        pass

    @abstractmethod
    async def sign_up(self, credentials: Credentials) -> AuthSession:
        pass

    @abstractmethod
    async def verify_token(self, token: str) -> IdentityRef:
        """Resolve a bearer token, raising AuthError(INVALID_CREDENTIAL) if it is not valid."""
        pass

    @abstractmethod
    async def sign_out(self, token: str) -> None:
        """End the session behind ``token`` and tell that principal's listeners."""
        pass

    async def sign_in_with_oauth2(self, credentials: OAuth2Credentials) -> AuthSession:
        """Exchange an OAuth2 authorization code for a session.

        Raises:
            AuthError: POPUP_CLOSED for an abandoned sign-in window; UNKNOWN when
                the backend has no OAuth2 support
        """
        credentials = validate_oauth2(credentials)
        logger.warning(f"{type(self).__name__} cannot sign in with {credentials.provider}")
        raise AuthError(AuthErrorCode.UNKNOWN, detail=f"{credentials.provider} sign-in is not available")

    # ------------------------------------------------------------------
    # Auth state observers
    # ------------------------------------------------------------------

    def subscribe(self, uid: str, on_change: AuthListener) -> Callable[[], None]:
        """Watch one principal's auth state; returns a function that stops watching.

        ``on_change`` receives the IdentityRef when ``uid`` signs in and None
        when it signs out.
        """
        self._listeners.setdefault(uid, []).append(on_change)

        def unsubscribe() -> None:
            listeners = self._listeners.get(uid, [])
            if on_change in listeners:
                listeners.remove(on_change)
            if not listeners:
                self._listeners.pop(uid, None)

        return unsubscribe

    def _notify(self, uid: str, identity: IdentityRef | None) -> None:
        for listener in list(self._listeners.get(uid, [])):
            try:
                listener(identity)
            except Exception as e:
                logger.warning(f"Auth state listener for {uid} failed: {e}")
