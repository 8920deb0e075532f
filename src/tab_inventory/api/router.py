"""tab_inventory REST API — catalog reads for everyone, stock writes for staff."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.tab_account.domain.models import Account
from src.tab_common.database import get_db_session
from src.tab_common.response import ApiResponse, success_response
from src.tab_gateway.auth.dependencies import get_current_account, require_admin, require_staff
from src.tab_inventory.application.schemas import (
    AdjustStockRequest,
    CreateItemRequest,
    SetComponentsRequest,
    StockCountRequest,
    UpdateItemRequest,
)
from src.tab_inventory.application.service import InventoryApplicationService
from src.tab_inventory.domain.models import StockCount

router = APIRouter(prefix="/inventory", tags=["inventory"])

_service = InventoryApplicationService()


def _counts(body: StockCountRequest) -> list[StockCount]:
    return [
        StockCount(
            item_id=str(line.item_id),
            counted_quantity=line.counted_quantity,
            notes=line.notes,
        )
        for line in body.lines
    ]


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@router.get("/items")
async def list_items(
    current_account: Annotated[Account, Depends(get_current_account)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    include_inactive: bool = Query(False, description="Staff only: include archived items"),
) -> ApiResponse:
    data = await _service.list_items(db, include_inactive and current_account.is_staff)
    return success_response(data.model_dump(), request)


@router.get("/items/low-stock")
async def low_stock(
    _: Annotated[Account, Depends(require_staff)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.low_stock_report(db)
    return success_response(data.model_dump(), request)


@router.get("/value")
async def inventory_value(
    _: Annotated[Account, Depends(require_staff)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_inventory_value(db)
    return success_response(data.model_dump(), request)


@router.get("/items/{item_id}")
async def get_item(
    item_id: UUID,
    _: Annotated[Account, Depends(get_current_account)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_item(db, str(item_id))
    return success_response(data.model_dump(), request)


@router.post("/items", status_code=201)
async def create_item(
    body: CreateItemRequest,
    _: Annotated[Account, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.create_item(
        db,
        body.name,
        body.price_cents,
        body.purchase_price_cents,
        body.stock_quantity,
        body.low_stock_threshold,
        body.is_mixed_drink,
    )
    return success_response(data.model_dump(), request)


@router.patch("/items/{item_id}")
async def update_item(
    item_id: UUID,
    body: UpdateItemRequest,
    _: Annotated[Account, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.update_item(
        db,
        str(item_id),
        name=body.name,
        price_cents=body.price_cents,
        purchase_price_cents=body.purchase_price_cents,
        low_stock_threshold=body.low_stock_threshold,
    )
    return success_response(data.model_dump(), request)


@router.post("/items/{item_id}/archive")
async def archive_item(
    item_id: UUID,
    _: Annotated[Account, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.set_item_active(db, str(item_id), active=False)
    return success_response(data.model_dump(), request)


@router.post("/items/{item_id}/reactivate")
async def reactivate_item(
    item_id: UUID,
    _: Annotated[Account, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.set_item_active(db, str(item_id), active=True)
    return success_response(data.model_dump(), request)


@router.put("/items/{item_id}/components")
async def set_components(
    item_id: UUID,
    body: SetComponentsRequest,
    _: Annotated[Account, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.set_components(
        db, str(item_id), [(str(c.component_item_id), c.quantity) for c in body.components]
    )
    return success_response(data.model_dump(), request)


# ---------------------------------------------------------------------------
# Stock ledger
# ---------------------------------------------------------------------------


@router.post("/items/{item_id}/stock-adjustments", status_code=201)
async def adjust_stock(
    item_id: UUID,
    body: AdjustStockRequest,
    staff: Annotated[Account, Depends(require_staff)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.adjust_stock(
        db,
        str(item_id),
        body.quantity_change,
        body.transaction_type.value,
        body.notes,
        staff.id,
        expected_quantity=body.expected_quantity,
    )
    return success_response(data.model_dump(), request)


@router.get("/items/{item_id}/stock-transactions")
async def list_stock_transactions(
    item_id: UUID,
    _: Annotated[Account, Depends(require_staff)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(50, ge=1, le=200, description="Most recent entries"),
) -> ApiResponse:
    data = await _service.list_stock_transactions(db, str(item_id), limit)
    return success_response(data.model_dump(), request)


@router.post("/restock-sessions", status_code=201)
async def restock(
    body: StockCountRequest,
    staff: Annotated[Account, Depends(require_staff)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.restock(db, _counts(body), body.notes, staff.id)
    return success_response(data.model_dump(), request)


@router.post("/stock-audits", status_code=201)
async def stock_audit(
    body: StockCountRequest,
    staff: Annotated[Account, Depends(require_staff)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.audit(db, _counts(body), body.notes, staff.id)
    return success_response(data.model_dump(), request)


@router.get("/consistency")
async def stock_consistency(
    _: Annotated[Account, Depends(require_staff)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    item_id: UUID | None = Query(None, description="Check a single item"),
) -> ApiResponse:
    data = await _service.verify_stock_consistency(db, str(item_id) if item_id else None)
    return success_response(data.model_dump(), request)
