"""
Accounts Router - Onboarding and the signed-in user's kid roster.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path

from camp_planner.services import AccountService

from ..auth import CurrentIdentity
from ..dependencies import get_account_service
from ..schemas import AccountResponse, KidRequest, OnboardRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/account", tags=["account"])

Accounts = Annotated[AccountService, Depends(get_account_service)]


@router.get("")
async def get_account(identity: CurrentIdentity, accounts: Accounts) -> AccountResponse:
    """Current user's account. 404 with ``needs_onboarding`` until onboarding is done."""
    account = await accounts.get_account(identity.uid)
    if account is None:
        raise HTTPException(status_code=404, detail="needs_onboarding")
    return AccountResponse.from_account(account)


@router.post("/onboard", status_code=201)
async def onboard(request: OnboardRequest, identity: CurrentIdentity, accounts: Accounts) -> AccountResponse:
    account = await accounts.onboard(identity, request.kids)
    return AccountResponse.from_account(account)


@router.post("/kids")
async def add_kid(request: KidRequest, identity: CurrentIdentity, accounts: Accounts) -> AccountResponse:
    return AccountResponse.from_account(await accounts.add_kid(identity.uid, request.name))


@router.delete("/kids/{name}")
async def remove_kid(
    name: Annotated[str, Path(description="Kid name as listed on the account")],
    identity: CurrentIdentity,
    accounts: Accounts,
) -> AccountResponse:
    return AccountResponse.from_account(await accounts.remove_kid(identity.uid, name))
