"""tab_account REST API — own account for everyone, administration for staff."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.tab_account.application.schemas import AccountResponse, CreateGuestRequest
from src.tab_account.application.service import AccountApplicationService
from src.tab_account.domain.models import Account
from src.tab_common.database import get_db_session
from src.tab_common.response import ApiResponse, success_response
from src.tab_gateway.auth.dependencies import get_current_account, require_admin, require_staff
from src.tab_ledger.application.schemas import SettleGuestRequest
from src.tab_ledger.application.service import LedgerApplicationService

router = APIRouter(prefix="/accounts", tags=["accounts"])

_service = AccountApplicationService()
_ledger = LedgerApplicationService()


@router.get("/me")
async def get_me(
    current_account: Annotated[Account, Depends(get_current_account)],
    request: Request,
) -> ApiResponse:
    return success_response(AccountResponse.from_domain(current_account).model_dump(), request)


@router.get("")
async def list_accounts(
    _: Annotated[Account, Depends(require_staff)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    guests_only: bool = Query(False),
    include_inactive: bool = Query(False),
) -> ApiResponse:
    data = await _service.list_accounts(db, guests_only, include_inactive)
    return success_response(data.model_dump(), request)


@router.get("/{account_id}")
async def get_account(
    account_id: UUID,
    _: Annotated[Account, Depends(require_staff)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_account(db, str(account_id))
    return success_response(data.model_dump(), request)


@router.post("/guests", status_code=201)
async def create_guest(
    body: CreateGuestRequest,
    _: Annotated[Account, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.create_guest(db, body.name)
    return success_response(data.model_dump(), request)


@router.post("/{account_id}/deactivate")
async def deactivate(
    account_id: UUID,
    _: Annotated[Account, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.set_active(db, str(account_id), active=False)
    return success_response(data.model_dump(), request)


@router.post("/{account_id}/reactivate")
async def reactivate(
    account_id: UUID,
    _: Annotated[Account, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.set_active(db, str(account_id), active=True)
    return success_response(data.model_dump(), request)


@router.delete("/guests/{account_id}")
async def delete_guest(
    account_id: UUID,
    _: Annotated[Account, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.delete_guest(db, str(account_id))
    return success_response(data.model_dump(), request)


@router.post("/guests/{account_id}/settle")
async def settle_guest(
    account_id: UUID,
    body: SettleGuestRequest,
    admin: Annotated[Account, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _ledger.settle_guest(db, admin, str(account_id), body.method.value)
    return success_response(data.model_dump(), request)
