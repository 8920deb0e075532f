"""Helpers shared by the integration tests."""

import uuid

from sqlalchemy import text

from src.tab_common.database import async_session_factory
from src.tab_gateway.auth.jwt_handler import create_access_token

_INSERT_ACCOUNT_SQL = text("""
    INSERT INTO accounts (name, email, role, is_guest, allow_negative_balance)
    VALUES (:name, :email, :role, FALSE, FALSE)
    RETURNING id
""")


async def create_account(role: str = "ordinary") -> str:
    """Insert a member account directly; identity is provisioned outside this API."""
    uid = uuid.uuid4().hex[:8]
    async with async_session_factory() as session:
        result = await session.execute(
            _INSERT_ACCOUNT_SQL,
            {"name": f"it_{uid}", "email": f"it_{uid}@example.com", "role": role},
        )
        account_id = str(result.scalar_one())
        await session.commit()
    return account_id


def auth(account_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(account_id)}"}
