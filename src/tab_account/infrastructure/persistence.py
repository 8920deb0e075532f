"""AccountRepository — concrete implementation of AccountRepositoryProtocol.

Transaction ownership: the CALLER (application service) commits or rolls back.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.tab_account.domain.models import Account
from src.tab_common.errors import InternalError

_ACCOUNT_COLUMNS = (
    "id, name, email, role, is_guest, allow_negative_balance, active, created_at, updated_at"
)

_GET_ACCOUNT_SQL = text(f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE id = CAST(:id AS UUID)")

# Row lock serialises concurrent balance-checked writes for one account.
_GET_ACCOUNT_FOR_UPDATE_SQL = text(
    f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE id = CAST(:id AS UUID) FOR UPDATE"
)

_LIST_ACCOUNTS_SQL = text(f"""
    SELECT {_ACCOUNT_COLUMNS}
    FROM accounts
    WHERE (:guests_only = FALSE OR is_guest = TRUE)
      AND (:include_inactive = TRUE OR active = TRUE)
    ORDER BY name
""")

_INSERT_ACCOUNT_SQL = text(f"""
    INSERT INTO accounts (name, email, role, is_guest, allow_negative_balance)
    VALUES (:name, :email, :role, :is_guest, :allow_negative_balance)
    RETURNING {_ACCOUNT_COLUMNS}
""")

_SET_ACTIVE_SQL = text(f"""
    UPDATE accounts SET active = :active
    WHERE id = CAST(:id AS UUID)
    RETURNING {_ACCOUNT_COLUMNS}
""")

_COUNT_CONSUMPTIONS_SQL = text(
    "SELECT COUNT(*) FROM consumptions WHERE account_id = CAST(:id AS UUID)"
)

_DELETE_ACCOUNT_SQL = text("DELETE FROM accounts WHERE id = CAST(:id AS UUID) RETURNING id")


def _row_to_account(row: object) -> Account:
    return Account(
        id=str(row.id),  # type: ignore[attr-defined]
        name=row.name,  # type: ignore[attr-defined]
        email=row.email,  # type: ignore[attr-defined]
        role=row.role,  # type: ignore[attr-defined]
        is_guest=row.is_guest,  # type: ignore[attr-defined]
        allow_negative_balance=row.allow_negative_balance,  # type: ignore[attr-defined]
        active=row.active,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


class AccountRepository:
    async def get_account(
        self, db: AsyncSession, account_id: str, for_update: bool = False
    ) -> Account | None:
        sql = _GET_ACCOUNT_FOR_UPDATE_SQL if for_update else _GET_ACCOUNT_SQL
        row = (await db.execute(sql, {"id": account_id})).fetchone()
        return _row_to_account(row) if row else None

    async def list_accounts(
        self, db: AsyncSession, guests_only: bool, include_inactive: bool
    ) -> list[Account]:
        result = await db.execute(
            _LIST_ACCOUNTS_SQL,
            {"guests_only": guests_only, "include_inactive": include_inactive},
        )
        return [_row_to_account(row) for row in result.fetchall()]

    async def create_account(
        self,
        db: AsyncSession,
        name: str,
        email: str | None,
        role: str,
        is_guest: bool,
        allow_negative_balance: bool,
    ) -> Account:
        row = (
            await db.execute(
                _INSERT_ACCOUNT_SQL,
                {
                    "name": name,
                    "email": email,
                    "role": role,
                    "is_guest": is_guest,
                    "allow_negative_balance": allow_negative_balance,
                },
            )
        ).fetchone()
        if row is None:
            raise InternalError("Account insert returned no rows — this should never happen")
        return _row_to_account(row)

    async def set_active(
        self, db: AsyncSession, account_id: str, active: bool
    ) -> Account | None:
        row = (
            await db.execute(_SET_ACTIVE_SQL, {"id": account_id, "active": active})
        ).fetchone()
        return _row_to_account(row) if row else None

    async def count_consumptions(self, db: AsyncSession, account_id: str) -> int:
        result = await db.execute(_COUNT_CONSUMPTIONS_SQL, {"id": account_id})
        return int(result.scalar_one())

    async def delete_account(self, db: AsyncSession, account_id: str) -> bool:
        row = (await db.execute(_DELETE_ACCOUNT_SQL, {"id": account_id})).fetchone()
        return row is not None
