"""Repository Protocol — dependency inversion for testability.

Unit tests inject a mock that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.tab_inventory.domain.models import (
    CatalogItem,
    MixedDrinkComponent,
    RestockSession,
    StockAudit,
    StockDrift,
    StockLedgerEntry,
    StockLine,
)


class InventoryRepositoryProtocol(Protocol):
    # --- catalog ---
    async def get_item(self, db: AsyncSession, item_id: str) -> CatalogItem | None: ...

    async def get_item_by_name(self, db: AsyncSession, name: str) -> CatalogItem | None: ...

    async def get_items(
        self, db: AsyncSession, item_ids: list[str]
    ) -> dict[str, CatalogItem]: ...

    async def list_items(
        self, db: AsyncSession, include_inactive: bool
    ) -> list[CatalogItem]: ...

    async def create_item(
        self,
        db: AsyncSession,
        name: str,
        price_cents: int,
        purchase_price_cents: int,
        stock_quantity: int | None,
        low_stock_threshold: int | None,
        is_mixed_drink: bool,
    ) -> CatalogItem: ...

    async def update_item(
        self,
        db: AsyncSession,
        item_id: str,
        name: str | None,
        price_cents: int | None,
        purchase_price_cents: int | None,
        low_stock_threshold: int | None,
    ) -> CatalogItem | None: ...

    async def set_item_active(
        self, db: AsyncSession, item_id: str, active: bool
    ) -> CatalogItem | None: ...

    # --- mixed drinks ---
    async def list_components(
        self, db: AsyncSession, mixed_drink_id: str | None = None
    ) -> list[MixedDrinkComponent]: ...

    async def replace_components(
        self, db: AsyncSession, mixed_drink_id: str, components: list[tuple[str, int]]
    ) -> None: ...

    # --- stock counter + ledger ---
    async def increment_stock(
        self, db: AsyncSession, item_id: str, change: int, enforce_floor: bool
    ) -> int | None: ...

    async def compare_and_set_stock(
        self,
        db: AsyncSession,
        item_id: str,
        expected: int,
        change: int,
        enforce_floor: bool,
    ) -> int | None: ...

    async def insert_stock_transaction(
        self,
        db: AsyncSession,
        item_id: str,
        quantity_change: int,
        transaction_type: str,
        notes: str | None,
        created_by: str | None,
        restock_session_id: str | None = None,
        stock_audit_id: str | None = None,
    ) -> StockLedgerEntry: ...

    async def list_stock_transactions(
        self, db: AsyncSession, item_id: str, limit: int
    ) -> list[StockLedgerEntry]: ...

    # --- bulk operations ---
    async def create_restock_session(
        self, db: AsyncSession, notes: str | None, created_by: str | None
    ) -> RestockSession: ...

    async def insert_restock_item(
        self, db: AsyncSession, session_id: str, line: StockLine
    ) -> None: ...

    async def create_stock_audit(
        self, db: AsyncSession, notes: str | None, created_by: str | None
    ) -> StockAudit: ...

    async def insert_stock_audit_item(
        self, db: AsyncSession, audit_id: str, line: StockLine
    ) -> None: ...

    # --- consistency ---
    async def find_stock_drift(
        self, db: AsyncSession, item_id: str | None = None
    ) -> list[StockDrift]: ...
