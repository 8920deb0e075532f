"""Pydantic schemas for tab_inventory API requests and responses."""

from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from src.tab_common.cents import cents_to_display
from src.tab_common.enums import StockTransactionType
from src.tab_inventory.domain.models import (
    CatalogItem,
    MixedDrinkComponent,
    StockDrift,
    StockLedgerEntry,
    StockLine,
)

MANUAL_STOCK_TYPES = frozenset(
    {StockTransactionType.PURCHASE, StockTransactionType.ADJUSTMENT}
)

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CreateItemRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    price_cents: int = Field(..., gt=0)
    purchase_price_cents: int = Field(0, ge=0)
    stock_quantity: int | None = Field(None, ge=0, description="Initial stock; omit for untracked")
    low_stock_threshold: int | None = Field(None, ge=0)
    is_mixed_drink: bool = False


class UpdateItemRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=128)
    price_cents: int | None = Field(None, gt=0)
    purchase_price_cents: int | None = Field(None, ge=0)
    low_stock_threshold: int | None = Field(None, ge=0)


class ComponentIn(BaseModel):
    component_item_id: UUID
    quantity: int = Field(..., gt=0)


class SetComponentsRequest(BaseModel):
    components: list[ComponentIn]


class AdjustStockRequest(BaseModel):
    quantity_change: int
    transaction_type: StockTransactionType = StockTransactionType.ADJUSTMENT
    notes: str | None = Field(None, max_length=500)
    expected_quantity: int | None = Field(
        None, description="Compare-and-swap guard; omit for a plain atomic increment"
    )

    @model_validator(mode="after")
    def _check_change(self) -> "AdjustStockRequest":
        if self.quantity_change == 0:
            raise ValueError("quantity_change must be non-zero")
        if self.transaction_type not in MANUAL_STOCK_TYPES:
            raise ValueError("sale and reversal entries are written by the ledger only")
        return self


class StockCountIn(BaseModel):
    item_id: UUID
    counted_quantity: int = Field(..., ge=0)
    notes: str | None = Field(None, max_length=500)


class StockCountRequest(BaseModel):
    """Body of both a restock session and a stock audit."""

    lines: list[StockCountIn] = Field(..., min_length=1)
    notes: str | None = Field(None, max_length=500)

    @model_validator(mode="after")
    def _one_line_per_item(self) -> "StockCountRequest":
        ids = [line.item_id for line in self.lines]
        if len(set(ids)) != len(ids):
            raise ValueError("each item may be counted only once")
        return self


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ComponentOut(BaseModel):
    component_item_id: str
    component_name: str | None
    quantity: int
    component_stock: int | None

    @classmethod
    def from_domain(cls, c: MixedDrinkComponent) -> "ComponentOut":
        return cls(
            component_item_id=c.component_item_id,
            component_name=c.component_name,
            quantity=c.quantity,
            component_stock=c.component_stock,
        )


class ItemResponse(BaseModel):
    id: str
    name: str
    price_cents: int
    price_display: str
    purchase_price_cents: int
    stock_quantity: int | None
    initial_stock_quantity: int | None
    available_quantity: int | None   # derived for mixed drinks; None = unlimited
    low_stock_threshold: int | None
    is_low_stock: bool
    active: bool
    is_mixed_drink: bool
    components: list[ComponentOut] = []

    @classmethod
    def from_domain(
        cls,
        item: CatalogItem,
        available_quantity: int | None,
        is_low_stock: bool,
        components: list[MixedDrinkComponent] | None = None,
    ) -> "ItemResponse":
        return cls(
            id=item.id,
            name=item.name,
            price_cents=item.price_cents,
            price_display=cents_to_display(item.price_cents),
            purchase_price_cents=item.purchase_price_cents,
            stock_quantity=item.stock_quantity,
            initial_stock_quantity=item.initial_stock_quantity,
            available_quantity=available_quantity,
            low_stock_threshold=item.low_stock_threshold,
            is_low_stock=is_low_stock,
            active=item.active,
            is_mixed_drink=item.is_mixed_drink,
            components=[ComponentOut.from_domain(c) for c in components or []],
        )


class ItemListResponse(BaseModel):
    items: list[ItemResponse]


class StockEntryResponse(BaseModel):
    id: str
    item_id: str
    quantity_change: int
    transaction_type: str
    notes: str | None
    created_by: str | None
    restock_session_id: str | None
    stock_audit_id: str | None
    created_at: str  # ISO8601 string

    @classmethod
    def from_domain(cls, e: StockLedgerEntry) -> "StockEntryResponse":
        return cls(
            id=e.id,
            item_id=e.item_id,
            quantity_change=e.quantity_change,
            transaction_type=e.transaction_type,
            notes=e.notes,
            created_by=e.created_by,
            restock_session_id=e.restock_session_id,
            stock_audit_id=e.stock_audit_id,
            created_at=e.created_at.isoformat(),
        )


class StockEntryListResponse(BaseModel):
    items: list[StockEntryResponse]


class StockLineOut(BaseModel):
    item_id: str
    previous_quantity: int
    new_quantity: int
    quantity_change: int
    notes: str | None

    @classmethod
    def from_domain(cls, line: StockLine) -> "StockLineOut":
        return cls(
            item_id=line.item_id,
            previous_quantity=line.previous_quantity,
            new_quantity=line.new_quantity,
            quantity_change=line.delta,
            notes=line.notes,
        )


class StockCountResponse(BaseModel):
    """Result of a restock session or stock audit."""

    id: str
    kind: str                       # "restock" | "audit"
    notes: str | None
    created_at: str
    lines: list[StockLineOut]
    entries: list[StockEntryResponse]


class InventoryValueResponse(BaseModel):
    total_value_cents: int
    total_value_display: str
    tracked_items: int


class StockDriftOut(BaseModel):
    item_id: str
    name: str
    initial_stock_quantity: int
    ledger_sum: int
    expected_quantity: int
    stock_quantity: int
    drift: int

    @classmethod
    def from_domain(cls, d: StockDrift) -> "StockDriftOut":
        return cls(
            item_id=d.item_id,
            name=d.name,
            initial_stock_quantity=d.initial_stock_quantity,
            ledger_sum=d.ledger_sum,
            expected_quantity=d.expected_quantity,
            stock_quantity=d.stock_quantity,
            drift=d.drift,
        )


class StockConsistencyResponse(BaseModel):
    consistent: bool
    violations: list[StockDriftOut]
