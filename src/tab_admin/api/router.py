"""Admin REST API — sales summary and ledger health checks."""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.tab_account.domain.models import Account
from src.tab_admin.application.service import AdminService
from src.tab_common.database import get_db_session
from src.tab_common.response import ApiResponse, success_response
from src.tab_gateway.auth.dependencies import require_admin, require_staff

router = APIRouter(prefix="/admin", tags=["admin"])
_service = AdminService()


@router.get("/sales")
async def sales_summary(
    _: Annotated[Account, Depends(require_staff)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    since: datetime | None = Query(None, description="Inclusive lower bound (ISO-8601)"),
    until: datetime | None = Query(None, description="Exclusive upper bound (ISO-8601)"),
) -> ApiResponse:
    result = await _service.sales_summary(db, since, until)
    return success_response(result, request)


@router.get("/invariants")
async def invariants(
    _: Annotated[Account, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    account_id: UUID | None = Query(None, description="Also cross-check this balance cache"),
) -> ApiResponse:
    result = await _service.invariants_report(db, str(account_id) if account_id else None)
    return success_response(result, request)
