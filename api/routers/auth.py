"""
Auth Router - Sign-in (password or OAuth2), sign-up and sign-out against the
identity provider.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header

from camp_planner.identity import Credentials, IdentityProvider, OAuth2Credentials

from ..auth import extract_bearer_token
from ..dependencies import get_identity_provider
from ..schemas import CredentialsRequest, OAuth2Request, SessionResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

Provider = Annotated[IdentityProvider, Depends(get_identity_provider)]


@router.post("/sign-in")
async def sign_in(request: CredentialsRequest, provider: Provider) -> SessionResponse:
    """Sign in with email and password."""
    session = await provider.sign_in(Credentials(email=request.email, password=request.password))
    return SessionResponse(uid=session.identity.uid, email=session.identity.email, token=session.token)


@router.post("/sign-up", status_code=201)
async def sign_up(request: CredentialsRequest, provider: Provider) -> SessionResponse:
    """Create an identity and sign it in. The account itself is created by onboarding."""
    session = await provider.sign_up(Credentials(email=request.email, password=request.password))
    return SessionResponse(uid=session.identity.uid, email=session.identity.email, token=session.token)


@router.post("/oauth2")
async def sign_in_with_oauth2(request: OAuth2Request, provider: Provider) -> SessionResponse:
    """Finish a provider sign-in (e.g. Google) by exchanging its authorization code."""
    session = await provider.sign_in_with_oauth2(
        OAuth2Credentials(
            provider=request.provider,
            code=request.code,
            code_verifier=request.code_verifier,
            redirect_url=request.redirect_url,
            error=request.error,
        )
    )
    return SessionResponse(uid=session.identity.uid, email=session.identity.email, token=session.token)


@router.post("/sign-out", status_code=204)
async def sign_out(provider: Provider, authorization: Annotated[str | None, Header()] = None) -> None:
    """End the session; the caller's open live streams are closed with it."""
    token = extract_bearer_token(authorization)
    if token:
        await provider.sign_out(token)
