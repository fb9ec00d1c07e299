"""Identity providers."""

from .memory_identity import InMemoryIdentityProvider
from .provider import (
    AuthSession,
    Credentials,
    IdentityProvider,
    IdentityRef,
    OAuth2Credentials,
    validate_credentials,
    validate_oauth2,
)

__all__ = [
    "AuthSession",
    "Credentials",
    "IdentityProvider",
    "IdentityRef",
    "InMemoryIdentityProvider",
    "OAuth2Credentials",
    "validate_credentials",
    "validate_oauth2",
]
