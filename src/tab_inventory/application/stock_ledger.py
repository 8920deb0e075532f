"""StockLedger — the only writer of stock counters.

Every counter change goes through here so that the counter and the
append-only stock_transactions log move together:

    initial_stock_quantity + Σ quantity_change == stock_quantity

Runs inside the caller's transaction and never commits. Used by the
inventory service (manual adjustments, restock sessions, audits) and by the
ledger service (sales on consumption, restoration on reversal).
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.tab_common.enums import StockTransactionType
from src.tab_common.errors import (
    InvalidStockChangeError,
    ItemNotFoundError,
    NegativeStockError,
    StockConflictError,
    StockNotTrackedError,
)
from src.tab_inventory.domain.models import CatalogItem, StockLedgerEntry
from src.tab_inventory.domain.repository import InventoryRepositoryProtocol
from src.tab_inventory.infrastructure.persistence import InventoryRepository

logger = logging.getLogger(__name__)


class StockLedger:
    def __init__(
        self,
        repo: InventoryRepositoryProtocol | None = None,
        enforce_floor: bool | None = None,
    ) -> None:
        self._repo: InventoryRepositoryProtocol = repo or InventoryRepository()
        self._enforce_floor = (
            settings.STOCK_FLOOR_ENABLED if enforce_floor is None else enforce_floor
        )

    async def apply(
        self,
        db: AsyncSession,
        item_id: str,
        quantity_change: int,
        transaction_type: str,
        notes: str | None,
        actor_id: str | None,
        expected_quantity: int | None = None,
        restock_session_id: str | None = None,
        stock_audit_id: str | None = None,
    ) -> StockLedgerEntry:
        """Move the counter by *quantity_change* and append the matching entry.

        With *expected_quantity* the update is a compare-and-swap and a
        concurrent change surfaces as StockConflictError.
        """
        if quantity_change == 0:
            raise InvalidStockChangeError(item_id)

        if expected_quantity is None:
            new_quantity = await self._repo.increment_stock(
                db, item_id, quantity_change, self._enforce_floor
            )
        else:
            new_quantity = await self._repo.compare_and_set_stock(
                db, item_id, expected_quantity, quantity_change, self._enforce_floor
            )
        if new_quantity is None:
            await self._raise_rejected(db, item_id, quantity_change, expected_quantity)

        return await self._repo.insert_stock_transaction(
            db,
            item_id,
            quantity_change,
            transaction_type,
            notes,
            actor_id,
            restock_session_id=restock_session_id,
            stock_audit_id=stock_audit_id,
        )

    async def record_sale(
        self, db: AsyncSession, item: CatalogItem, actor_id: str | None, notes: str | None
    ) -> StockLedgerEntry | None:
        """One unit out for a consumption; untracked items and mixed drinks are skipped."""
        if not item.is_tracked:
            return None
        return await self.apply(
            db, item.id, -1, StockTransactionType.SALE, notes, actor_id
        )

    async def restore_after_reversal(
        self,
        db: AsyncSession,
        item_id: str | None,
        actor_id: str | None,
        notes: str | None,
    ) -> StockLedgerEntry | None:
        """One unit back for a reversed consumption, best effort.

        A deleted, untracked or mixed-drink item is skipped silently; the
        monetary reversal completes either way.
        """
        if item_id is None:
            return None
        new_quantity = await self._repo.increment_stock(db, item_id, 1, enforce_floor=False)
        if new_quantity is None:
            logger.info("Stock restoration skipped for item %s (missing or untracked)", item_id)
            return None
        return await self._repo.insert_stock_transaction(
            db, item_id, 1, StockTransactionType.REVERSAL, notes, actor_id
        )

    async def _raise_rejected(
        self,
        db: AsyncSession,
        item_id: str,
        quantity_change: int,
        expected_quantity: int | None,
    ) -> None:
        """Work out why the guarded UPDATE matched no row and raise accordingly."""
        item = await self._repo.get_item(db, item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        if not item.is_tracked:
            raise StockNotTrackedError(item_id)
        current = item.stock_quantity
        if expected_quantity is not None and current != expected_quantity:
            raise StockConflictError(item_id, expected_quantity)
        if self._enforce_floor and current + quantity_change < 0:  # type: ignore[operator]
            raise NegativeStockError(item_id, quantity_change)
        # The counter moved between the UPDATE and this read.
        raise StockConflictError(
            item_id, expected_quantity if expected_quantity is not None else current  # type: ignore[arg-type]
        )
