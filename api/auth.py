"""
Request authentication - resolves the caller's identity.

Supports two modes:
- bypass: trust the X-Debug-User header, falling back to DEV_USER_ID (development only)
- production: validate the bearer token with the identity provider
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request

from camp_planner.identity import IdentityProvider, IdentityRef

from .dependencies import get_identity_provider
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

DEBUG_USER_HEADER = "X-Debug-User"


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token of an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_current_identity(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
    provider: Annotated[IdentityProvider, Depends(get_identity_provider)],
) -> IdentityRef:
    """
    Dependency to get the current authenticated identity.

    Usage:
        @router.get("/protected")
        async def protected_route(identity: CurrentIdentity):
            return {"uid": identity.uid}
    """
    if settings.get_effective_auth_mode() == "bypass":
        uid = request.headers.get(DEBUG_USER_HEADER) or settings.dev_user_id
        email = settings.dev_user_email if uid == settings.dev_user_id else ""
        identity = IdentityRef(uid=uid, email=email)
    else:
        token = extract_bearer_token(request.headers.get("Authorization"))
        if not token:
            logger.debug(f"No bearer token on request to {request.url.path}")
            raise HTTPException(status_code=401, detail="Authentication required")
        # AuthError propagates to the 401 handler
        identity = await provider.verify_token(token)

    request.state.identity = identity
    logger.debug(f"Authenticated request from {identity.uid} to {request.url.path}")
    return identity


CurrentIdentity = Annotated[IdentityRef, Depends(get_current_identity)]
