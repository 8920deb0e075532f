"""AccountApplicationService — account reads and guest-tab administration.

Write operations commit on success and rollback on any exception.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.tab_account.application.schemas import (
    AccountListResponse,
    AccountResponse,
    DeleteAccountResponse,
)
from src.tab_account.domain.models import Account
from src.tab_account.domain.repository import AccountRepositoryProtocol
from src.tab_account.infrastructure.persistence import AccountRepository
from src.tab_common.enums import AccountRole
from src.tab_common.errors import (
    AccountNotFoundError,
    GuestHasHistoryError,
    NotAGuestAccountError,
)
from src.tab_ledger.domain.cache import BalanceCache

logger = logging.getLogger(__name__)


class AccountApplicationService:
    def __init__(
        self,
        repo: AccountRepositoryProtocol | None = None,
        cache: BalanceCache | None = None,
    ) -> None:
        self._repo: AccountRepositoryProtocol = repo or AccountRepository()
        self._cache = cache or BalanceCache()

    async def get_account(self, db: AsyncSession, account_id: str) -> AccountResponse:
        return AccountResponse.from_domain(await self._require(db, account_id))

    async def list_accounts(
        self, db: AsyncSession, guests_only: bool = False, include_inactive: bool = False
    ) -> AccountListResponse:
        accounts = await self._repo.list_accounts(db, guests_only, include_inactive)
        return AccountListResponse(items=[AccountResponse.from_domain(a) for a in accounts])

    async def create_guest(self, db: AsyncSession, name: str) -> AccountResponse:
        """Guests are ordinary accounts that may run a tab below zero."""
        try:
            account = await self._repo.create_account(
                db,
                name=name.strip(),
                email=None,
                role=AccountRole.ORDINARY.value,
                is_guest=True,
                allow_negative_balance=True,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Guest account created: %s (%s)", account.name, account.id)
        return AccountResponse.from_domain(account)

    async def set_active(
        self, db: AsyncSession, account_id: str, active: bool
    ) -> AccountResponse:
        try:
            account = await self._repo.set_active(db, account_id, active)
            if account is None:
                raise AccountNotFoundError(account_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Account %s %s", account_id, "reactivated" if active else "deactivated")
        return AccountResponse.from_domain(account)

    async def delete_guest(self, db: AsyncSession, account_id: str) -> DeleteAccountResponse:
        """Only guests without any consumption can be removed."""
        try:
            account = await self._require(db, account_id, for_update=True)
            if not account.is_guest:
                raise NotAGuestAccountError(account_id)
            consumptions = await self._repo.count_consumptions(db, account_id)
            if consumptions > 0:
                raise GuestHasHistoryError(account_id, consumptions)
            deleted = await self._repo.delete_account(db, account_id)
            if not deleted:
                raise AccountNotFoundError(account_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        await self._cache.invalidate(account_id)
        logger.info("Guest account deleted: %s", account_id)
        return DeleteAccountResponse(id=account_id, deleted=True)

    async def _require(
        self, db: AsyncSession, account_id: str, for_update: bool = False
    ) -> Account:
        account = await self._repo.get_account(db, account_id, for_update=for_update)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account
