"""tab_ledger REST API — balances, consumptions, adjustments, reversals, top-ups."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.tab_account.domain.models import Account
from src.tab_common.database import get_db_session
from src.tab_common.response import ApiResponse, success_response
from src.tab_gateway.auth.dependencies import get_current_account, require_staff
from src.tab_ledger.application.schemas import (
    ConfirmTopUpRequest,
    CreateAdjustmentRequest,
    CreateTopUpRequest,
    FailTopUpRequest,
    RecordConsumptionRequest,
    RecordLateFeeRequest,
    ReverseTransactionRequest,
)
from src.tab_ledger.application.service import LedgerApplicationService

router = APIRouter(prefix="/ledger", tags=["ledger"])
top_up_router = APIRouter(prefix="/top-ups", tags=["top-ups"])

_service = LedgerApplicationService()

_HISTORY_ACCOUNT = Query(None, description="Staff only: another account's history")
_CURSOR = Query(None, description="Pagination cursor (opaque Base64)")
_LIMIT = Query(20, ge=1, le=100, description="Items per page")


def _target(current: Account, account_id: UUID | None) -> str:
    return str(account_id) if account_id else current.id


# ---------------------------------------------------------------------------
# Balance
# ---------------------------------------------------------------------------


@router.get("/balance")
async def get_own_balance(
    current_account: Annotated[Account, Depends(get_current_account)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_balance(db, current_account.id)
    return success_response(data.model_dump(), request)


@router.get("/accounts/{account_id}/balance")
async def get_account_balance(
    account_id: UUID,
    _: Annotated[Account, Depends(require_staff)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_balance_breakdown(db, str(account_id))
    return success_response(data.model_dump(), request)


@router.get("/accounts/{account_id}/balance/verify")
async def verify_balance_cache(
    account_id: UUID,
    _: Annotated[Account, Depends(require_staff)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.verify_balance_cache(db, str(account_id))
    return success_response(data.model_dump(), request)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@router.post("/consumptions", status_code=201)
async def record_consumption(
    body: RecordConsumptionRequest,
    current_account: Annotated[Account, Depends(get_current_account)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.record_consumption(
        db,
        current_account,
        _target(current_account, body.account_id),
        str(body.item_id),
        source=body.source.value,
        client_id=body.client_id,
        note=body.note,
    )
    return success_response(data.model_dump(), request)


@router.post("/late-fees", status_code=201)
async def record_late_fee(
    body: RecordLateFeeRequest,
    current_account: Annotated[Account, Depends(get_current_account)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.record_late_fee(
        db, current_account, _target(current_account, body.account_id), body.minutes_late
    )
    return success_response(data.model_dump(), request)


@router.post("/adjustments", status_code=201)
async def create_adjustment(
    body: CreateAdjustmentRequest,
    staff: Annotated[Account, Depends(require_staff)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.create_adjustment(
        db, staff, str(body.account_id), body.delta_cents, body.reason
    )
    return success_response(data.model_dump(), request)


@router.post("/reversals", status_code=201)
async def reverse_transaction(
    body: ReverseTransactionRequest,
    current_account: Annotated[Account, Depends(get_current_account)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.reverse_transaction(
        db,
        current_account,
        str(body.original_event_id),
        body.original_event_type.value,
        body.reason,
    )
    return success_response(data.model_dump(), request)


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


@router.get("/consumptions")
async def list_consumptions(
    current_account: Annotated[Account, Depends(get_current_account)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    account_id: UUID | None = _HISTORY_ACCOUNT,
    cursor: str | None = _CURSOR,
    limit: int = _LIMIT,
) -> ApiResponse:
    data = await _service.list_consumptions(
        db, current_account, _target(current_account, account_id), cursor, limit
    )
    return success_response(data.model_dump(), request)


@router.get("/top-ups")
async def list_top_ups(
    current_account: Annotated[Account, Depends(get_current_account)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    account_id: UUID | None = _HISTORY_ACCOUNT,
    cursor: str | None = _CURSOR,
    limit: int = _LIMIT,
) -> ApiResponse:
    data = await _service.list_top_ups(
        db, current_account, _target(current_account, account_id), cursor, limit
    )
    return success_response(data.model_dump(), request)


@router.get("/adjustments")
async def list_adjustments(
    current_account: Annotated[Account, Depends(get_current_account)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    account_id: UUID | None = _HISTORY_ACCOUNT,
    cursor: str | None = _CURSOR,
    limit: int = _LIMIT,
) -> ApiResponse:
    data = await _service.list_adjustments(
        db, current_account, _target(current_account, account_id), cursor, limit
    )
    return success_response(data.model_dump(), request)


# ---------------------------------------------------------------------------
# Top-ups
# ---------------------------------------------------------------------------


@top_up_router.post("", status_code=201)
async def create_top_up(
    body: CreateTopUpRequest,
    current_account: Annotated[Account, Depends(get_current_account)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.create_top_up(
        db,
        current_account,
        _target(current_account, body.account_id),
        body.amount_cents,
        body.provider.value,
        body.provider_ref,
    )
    return success_response(data.model_dump(), request)


@top_up_router.post("/confirm")
async def confirm_top_up(
    body: ConfirmTopUpRequest,
    _: Annotated[Account, Depends(require_staff)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.confirm_top_up(db, body.provider_ref, body.confirmed_amount_cents)
    return success_response(data.model_dump(), request)


@top_up_router.post("/fail")
async def fail_top_up(
    body: FailTopUpRequest,
    _: Annotated[Account, Depends(require_staff)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.fail_top_up(db, body.provider_ref, body.status)
    return success_response(data.model_dump(), request)
