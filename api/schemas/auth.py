"""
Pydantic schemas for sign-in endpoints.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class CredentialsRequest(BaseModel):
    """Email and password as typed into the sign-in form."""

    email: str = Field(default="", max_length=320)
    password: str = Field(default="", max_length=1024)


class SessionResponse(BaseModel):
    uid: str
    email: str
    token: str


class OAuth2Request(BaseModel):
    """The OAuth2 provider's redirect, forwarded by the browser.

    ``error`` is set instead of ``code`` when the user closed or declined the
    provider's sign-in window.
    """

    model_config = ConfigDict(populate_by_name=True)

    provider: str = Field(default="google", max_length=64)
    code: str = Field(default="", max_length=2048)
    code_verifier: str = Field(default="", alias="codeVerifier", max_length=256)
    redirect_url: str = Field(default="", alias="redirectUrl", max_length=2048)
    error: str = Field(default="", max_length=256)
