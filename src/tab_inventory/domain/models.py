"""Domain models for tab_inventory — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class CatalogItem:
    id: str
    name: str
    price_cents: int
    purchase_price_cents: int
    stock_quantity: int | None          # None = untracked (always for mixed drinks)
    initial_stock_quantity: int | None
    low_stock_threshold: int | None
    active: bool
    is_mixed_drink: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_tracked(self) -> bool:
        return self.stock_quantity is not None and not self.is_mixed_drink


@dataclass
class MixedDrinkComponent:
    mixed_drink_id: str
    component_item_id: str
    quantity: int                       # units of the component per serving
    component_name: str | None = None
    component_stock: int | None = None  # live counter of the component


@dataclass
class StockLedgerEntry:
    id: str
    item_id: str
    quantity_change: int                # signed, never 0
    transaction_type: str               # StockTransactionType value
    created_at: datetime
    notes: str | None = None
    created_by: str | None = None
    restock_session_id: str | None = None
    stock_audit_id: str | None = None


@dataclass
class StockCount:
    """One counted line of a restock session or stock audit."""

    item_id: str
    counted_quantity: int
    notes: str | None = None


@dataclass
class StockLine:
    """A counted line resolved against the live counter."""

    item_id: str
    previous_quantity: int
    new_quantity: int
    notes: str | None = None

    @property
    def delta(self) -> int:
        return self.new_quantity - self.previous_quantity


@dataclass
class RestockSession:
    id: str
    created_at: datetime
    notes: str | None = None
    created_by: str | None = None
    lines: list[StockLine] = field(default_factory=list)
    entries: list[StockLedgerEntry] = field(default_factory=list)


@dataclass
class StockAudit:
    id: str
    created_at: datetime
    status: str = "completed"
    notes: str | None = None
    created_by: str | None = None
    completed_at: datetime | None = None
    lines: list[StockLine] = field(default_factory=list)
    entries: list[StockLedgerEntry] = field(default_factory=list)


@dataclass
class StockDrift:
    """A tracked item whose counter disagrees with its ledger."""

    item_id: str
    name: str
    initial_stock_quantity: int
    ledger_sum: int
    stock_quantity: int

    @property
    def expected_quantity(self) -> int:
        return self.initial_stock_quantity + self.ledger_sum

    @property
    def drift(self) -> int:
        return self.stock_quantity - self.expected_quantity
