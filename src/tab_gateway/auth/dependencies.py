"""FastAPI dependencies: get_current_account, require_staff, require_admin.

Usage in any protected router:
    from src.tab_gateway.auth.dependencies import get_current_account

    @router.get("/protected")
    async def protected(account: Account = Depends(get_current_account)):
        ...
"""

import uuid

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.tab_account.domain.models import Account
from src.tab_account.infrastructure.db_models import AccountORM
from src.tab_common.database import get_db_session
from src.tab_common.errors import (
    AccountDisabledError,
    InvalidCredentialsError,
    PermissionDeniedError,
)
from src.tab_gateway.auth.jwt_handler import decode_token

# tokenUrl is served by the external identity provider
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")

# Reusable 401 exception with WWW-Authenticate header (OAuth2 standard)
_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired token",
    headers={"WWW-Authenticate": "Bearer"},
)


def _orm_to_account(orm: AccountORM) -> Account:
    return Account(
        id=str(orm.id),
        name=orm.name,
        email=orm.email,
        role=orm.role,
        is_guest=orm.is_guest,
        allow_negative_balance=orm.allow_negative_balance,
        active=orm.active,
        created_at=orm.created_at,
        updated_at=orm.updated_at,
    )


async def get_current_account(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> Account:
    """Extract and validate the Bearer token, return the acting Account.

    Raises HTTP 401 if the token is missing, invalid, expired or names no account.
    Raises AccountDisabledError (403) if the account has been deactivated.
    """
    try:
        payload = decode_token(token)
    except InvalidCredentialsError:
        raise _CREDENTIALS_EXCEPTION from None

    sub: str | None = payload.get("sub")
    if not sub:
        raise _CREDENTIALS_EXCEPTION
    try:
        account_uuid = uuid.UUID(sub)
    except ValueError:
        raise _CREDENTIALS_EXCEPTION from None

    result = await db.execute(select(AccountORM).where(AccountORM.id == account_uuid))
    orm = result.scalar_one_or_none()
    if orm is None:
        raise _CREDENTIALS_EXCEPTION
    if not orm.active:
        raise AccountDisabledError()
    return _orm_to_account(orm)


async def require_staff(
    current_account: Account = Depends(get_current_account),
) -> Account:
    """Treasurers and admins only."""
    if not current_account.is_staff:
        raise PermissionDeniedError("Treasurer or admin role required")
    return current_account


async def require_admin(
    current_account: Account = Depends(get_current_account),
) -> Account:
    if not current_account.is_admin:
        raise PermissionDeniedError("Admin role required")
    return current_account
