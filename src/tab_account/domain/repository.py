"""Repository Protocol — dependency inversion for testability.

Unit tests inject a mock that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.tab_account.domain.models import Account


class AccountRepositoryProtocol(Protocol):
    async def get_account(
        self, db: AsyncSession, account_id: str, for_update: bool = False
    ) -> Account | None: ...

    async def list_accounts(
        self, db: AsyncSession, guests_only: bool, include_inactive: bool
    ) -> list[Account]: ...

    async def create_account(
        self,
        db: AsyncSession,
        name: str,
        email: str | None,
        role: str,
        is_guest: bool,
        allow_negative_balance: bool,
    ) -> Account: ...

    async def set_active(
        self, db: AsyncSession, account_id: str, active: bool
    ) -> Account | None: ...

    async def count_consumptions(self, db: AsyncSession, account_id: str) -> int: ...

    async def delete_account(self, db: AsyncSession, account_id: str) -> bool: ...
