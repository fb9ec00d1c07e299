"""
Account Service - onboarding and the account's kid roster.

An identity without a ``users`` document has not finished onboarding; the
HTTP layer turns that into a "needs onboarding" response.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from ..errors import AccountExistsError, AccountNotFoundError, DocumentExistsError, StoreError
from ..identity import IdentityRef
from ..models import USERS_COLLECTION, UserAccount
from ..roster import KidRoster
from ..store import DocumentStore, StoredDocument

logger = logging.getLogger(__name__)


def _account_or_none(stored: StoredDocument | None) -> UserAccount | None:
    return UserAccount.from_stored(stored) if stored is not None else None


class AccountService:
    """Reads and edits UserAccount documents."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def get_account(self, uid: str) -> UserAccount | None:
        """The account for ``uid``, or None if onboarding is still needed."""
        return _account_or_none(await self.store.get(USERS_COLLECTION, uid))

    async def require_account(self, uid: str) -> UserAccount:
        account = await self.get_account(uid)
        if account is None:
            raise AccountNotFoundError(uid)
        return account

    async def onboard(self, identity: IdentityRef, kids: Iterable[str]) -> UserAccount:
        """Create the account with its initial kid roster.

        Raises:
            AccountExistsError: If the identity already has an account
        """
        account = UserAccount(id=identity.uid, email=identity.email, kids=KidRoster(kids).names)
        try:
            stored = await self.store.create(USERS_COLLECTION, identity.uid, account.to_store())
        except DocumentExistsError as e:
            raise AccountExistsError(f"User {identity.uid} is already onboarded") from e
        logger.info(f"Onboarded user {identity.uid} with {len(account.kids)} kids")
        return UserAccount.from_stored(stored)

    async def add_kid(self, uid: str, name: str) -> UserAccount:
        account = await self.require_account(uid)
        roster = account.roster()
        if not roster.add(name):
            return account
        return await self._write_kids(account, roster)

    async def remove_kid(self, uid: str, name: str) -> UserAccount:
        """Remove a kid from the roster.

        Schedules already created for the kid are left in place.
        """
        account = await self.require_account(uid)
        roster = account.roster()
        if not roster.remove(name):
            return account
        return await self._write_kids(account, roster)

    async def _write_kids(self, account: UserAccount, roster: KidRoster) -> UserAccount:
        try:
            stored = await self.store.patch(
                USERS_COLLECTION,
                account.id,
                {"kids": roster.names},
                expected_version=account.version,
            )
        except StoreError as e:
            logger.error(f"Failed to update kids for user {account.id}: {e}")
            raise
        logger.debug(f"User {account.id} kids -> {roster.names}")
        return UserAccount.from_stored(stored)

    # ------------------------------------------------------------------
    # Schedule membership
    # ------------------------------------------------------------------

    async def link_schedule(self, uid: str, schedule_id: str) -> UserAccount | None:
        """Add ``schedule_id`` to the account's schedules.

        Returns:
            The updated account, or None if ``uid`` has no account
        """
        account = await self.get_account(uid)
        if account is None:
            return None
        if schedule_id in account.schedules:
            return account
        stored = await self.store.patch(
            USERS_COLLECTION,
            uid,
            {"schedules": [*account.schedules, schedule_id]},
            expected_version=account.version,
        )
        return UserAccount.from_stored(stored)

    async def unlink_schedule(self, uid: str, schedule_id: str) -> UserAccount | None:
        account = await self.get_account(uid)
        if account is None or schedule_id not in account.schedules:
            return account
        stored = await self.store.patch(
            USERS_COLLECTION,
            uid,
            {"schedules": [sid for sid in account.schedules if sid != schedule_id]},
            expected_version=account.version,
        )
        return UserAccount.from_stored(stored)
