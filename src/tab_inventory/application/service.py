"""InventoryApplicationService — catalog, stock counters and the stock ledger.

Write operations own the transaction: commit on success, rollback and
re-raise on any exception. Restock sessions and stock audits are a single
transaction each; a StockConflictError rolls the whole operation back and
it is replayed once against freshly read quantities.
"""

import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.tab_common.cents import cents_to_display
from src.tab_common.enums import StockTransactionType
from src.tab_common.errors import (
    InvalidMixedDrinkError,
    ItemNotFoundError,
    StockConflictError,
    StockNotTrackedError,
)
from src.tab_inventory.application.schemas import (
    InventoryValueResponse,
    ItemListResponse,
    ItemResponse,
    StockConsistencyResponse,
    StockCountResponse,
    StockDriftOut,
    StockEntryListResponse,
    StockEntryResponse,
    StockLineOut,
)
from src.tab_inventory.application.stock_ledger import StockLedger
from src.tab_inventory.domain.models import (
    CatalogItem,
    MixedDrinkComponent,
    StockCount,
    StockLedgerEntry,
    StockLine,
)
from src.tab_inventory.domain.repository import InventoryRepositoryProtocol
from src.tab_inventory.domain.stock import (
    changed_lines,
    derived_stock,
    inventory_value,
    is_low_stock,
    restock_transaction_type,
)
from src.tab_inventory.infrastructure.persistence import InventoryRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InventoryApplicationService:
    def __init__(
        self,
        repo: InventoryRepositoryProtocol | None = None,
        stock_ledger: StockLedger | None = None,
        low_stock_threshold: int | None = None,
    ) -> None:
        self._repo: InventoryRepositoryProtocol = repo or InventoryRepository()
        self._ledger = stock_ledger or StockLedger(self._repo)
        self._threshold = (
            settings.DEFAULT_LOW_STOCK_THRESHOLD
            if low_stock_threshold is None
            else low_stock_threshold
        )

    # ------------------------------------------------------------------
    # Catalog reads
    # ------------------------------------------------------------------

    async def list_items(
        self, db: AsyncSession, include_inactive: bool = False
    ) -> ItemListResponse:
        items = await self._repo.list_items(db, include_inactive)
        by_drink: dict[str, list[MixedDrinkComponent]] = defaultdict(list)
        if any(item.is_mixed_drink for item in items):
            for c in await self._repo.list_components(db):
                by_drink[c.mixed_drink_id].append(c)
        return ItemListResponse(
            items=[self._to_response(item, by_drink.get(item.id, [])) for item in items]
        )

    async def get_item(self, db: AsyncSession, item_id: str) -> ItemResponse:
        item = await self._require_item(db, item_id)
        components = (
            await self._repo.list_components(db, item_id) if item.is_mixed_drink else []
        )
        return self._to_response(item, components)

    async def low_stock_report(self, db: AsyncSession) -> ItemListResponse:
        items = await self._repo.list_items(db, include_inactive=False)
        return ItemListResponse(
            items=[
                self._to_response(item, [])
                for item in items
                if is_low_stock(item, self._threshold)
            ]
        )

    async def get_inventory_value(self, db: AsyncSession) -> InventoryValueResponse:
        items = await self._repo.list_items(db, include_inactive=True)
        total = inventory_value(items)
        return InventoryValueResponse(
            total_value_cents=total,
            total_value_display=cents_to_display(total),
            tracked_items=sum(1 for item in items if item.is_tracked),
        )

    async def list_stock_transactions(
        self, db: AsyncSession, item_id: str, limit: int
    ) -> StockEntryListResponse:
        await self._require_item(db, item_id)
        entries = await self._repo.list_stock_transactions(db, item_id, limit)
        return StockEntryListResponse(
            items=[StockEntryResponse.from_domain(e) for e in entries]
        )

    # ------------------------------------------------------------------
    # Catalog writes
    # ------------------------------------------------------------------

    async def create_item(
        self,
        db: AsyncSession,
        name: str,
        price_cents: int,
        purchase_price_cents: int,
        stock_quantity: int | None,
        low_stock_threshold: int | None,
        is_mixed_drink: bool,
    ) -> ItemResponse:
        if is_mixed_drink and stock_quantity is not None:
            raise InvalidMixedDrinkError("a mixed drink cannot hold its own stock counter")
        try:
            item = await self._repo.create_item(
                db,
                name,
                price_cents,
                purchase_price_cents,
                stock_quantity,
                low_stock_threshold,
                is_mixed_drink,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Item created: %s (%s), stock=%s", item.name, item.id, item.stock_quantity)
        return self._to_response(item, [])

    async def update_item(
        self,
        db: AsyncSession,
        item_id: str,
        name: str | None = None,
        price_cents: int | None = None,
        purchase_price_cents: int | None = None,
        low_stock_threshold: int | None = None,
    ) -> ItemResponse:
        try:
            item = await self._repo.update_item(
                db, item_id, name, price_cents, purchase_price_cents, low_stock_threshold
            )
            if item is None:
                raise ItemNotFoundError(item_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return self._to_response(item, [])

    async def set_item_active(
        self, db: AsyncSession, item_id: str, active: bool
    ) -> ItemResponse:
        try:
            item = await self._repo.set_item_active(db, item_id, active)
            if item is None:
                raise ItemNotFoundError(item_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Item %s %s", item_id, "reactivated" if active else "archived")
        return self._to_response(item, [])

    async def set_components(
        self, db: AsyncSession, mixed_drink_id: str, components: list[tuple[str, int]]
    ) -> ItemResponse:
        """Replace the bill of materials of a mixed drink."""
        try:
            drink = await self._require_item(db, mixed_drink_id)
            if not drink.is_mixed_drink:
                raise InvalidMixedDrinkError(f"{drink.name} is not a mixed drink")
            ids = [component_id for component_id, _ in components]
            if len(set(ids)) != len(ids):
                raise InvalidMixedDrinkError("a component is listed more than once")
            if mixed_drink_id in ids:
                raise InvalidMixedDrinkError("a mixed drink cannot contain itself")
            found = await self._repo.get_items(db, ids)
            for component_id in ids:
                component = found.get(component_id)
                if component is None:
                    raise ItemNotFoundError(component_id)
                if component.is_mixed_drink:
                    raise InvalidMixedDrinkError(f"{component.name} is itself a mixed drink")
                if component.stock_quantity is None:
                    raise InvalidMixedDrinkError(f"{component.name} has no stock counter")
            await self._repo.replace_components(db, mixed_drink_id, components)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return await self.get_item(db, mixed_drink_id)

    # ------------------------------------------------------------------
    # Stock ledger
    # ------------------------------------------------------------------

    async def adjust_stock(
        self,
        db: AsyncSession,
        item_id: str,
        quantity_change: int,
        transaction_type: str,
        notes: str | None,
        actor_id: str | None,
        expected_quantity: int | None = None,
    ) -> StockEntryResponse:
        """Single counter change plus ledger row; a CAS conflict is not retried here."""
        try:
            entry = await self._ledger.apply(
                db,
                item_id,
                quantity_change,
                transaction_type,
                notes,
                actor_id,
                expected_quantity=expected_quantity,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Stock adjusted: item=%s change=%+d type=%s by=%s",
            item_id, quantity_change, transaction_type, actor_id,
        )
        return StockEntryResponse.from_domain(entry)

    async def restock(
        self,
        db: AsyncSession,
        counts: list[StockCount],
        notes: str | None,
        actor_id: str | None,
    ) -> StockCountResponse:
        """Record delivered stock as counted totals per item."""

        async def _once() -> StockCountResponse:
            lines = await self._resolve_lines(db, counts)
            session = await self._repo.create_restock_session(db, notes, actor_id)
            entries: list[StockLedgerEntry] = []
            for line in changed_lines(lines):
                await self._repo.insert_restock_item(db, session.id, line)
                entries.append(
                    await self._ledger.apply(
                        db,
                        line.item_id,
                        line.delta,
                        restock_transaction_type(line.delta),
                        line.notes or notes,
                        actor_id,
                        expected_quantity=line.previous_quantity,
                        restock_session_id=session.id,
                    )
                )
            return _count_response("restock", session.id, notes, session.created_at, lines, entries)

        result = await self._run_bulk(db, "restock", _once)
        logger.info("Restock session %s: %d ledger entries", result.id, len(result.entries))
        return result

    async def audit(
        self,
        db: AsyncSession,
        counts: list[StockCount],
        notes: str | None,
        actor_id: str | None,
    ) -> StockCountResponse:
        """Reconcile counters with a physical count; every counted line is kept."""

        async def _once() -> StockCountResponse:
            lines = await self._resolve_lines(db, counts)
            audit = await self._repo.create_stock_audit(db, notes, actor_id)
            entries: list[StockLedgerEntry] = []
            for line in lines:
                await self._repo.insert_stock_audit_item(db, audit.id, line)
            for line in changed_lines(lines):
                entries.append(
                    await self._ledger.apply(
                        db,
                        line.item_id,
                        line.delta,
                        StockTransactionType.ADJUSTMENT,
                        line.notes or notes,
                        actor_id,
                        expected_quantity=line.previous_quantity,
                        stock_audit_id=audit.id,
                    )
                )
            return _count_response("audit", audit.id, notes, audit.created_at, lines, entries)

        result = await self._run_bulk(db, "audit", _once)
        logger.info("Stock audit %s: %d ledger entries", result.id, len(result.entries))
        return result

    async def verify_stock_consistency(
        self, db: AsyncSession, item_id: str | None = None
    ) -> StockConsistencyResponse:
        drifts = await self._repo.find_stock_drift(db, item_id)
        for d in drifts:
            logger.error(
                "Stock ledger drift: item=%s initial=%d ledger=%d counter=%d",
                d.item_id, d.initial_stock_quantity, d.ledger_sum, d.stock_quantity,
            )
        return StockConsistencyResponse(
            consistent=not drifts, violations=[StockDriftOut.from_domain(d) for d in drifts]
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _require_item(self, db: AsyncSession, item_id: str) -> CatalogItem:
        item = await self._repo.get_item(db, item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        return item

    async def _resolve_lines(
        self, db: AsyncSession, counts: list[StockCount]
    ) -> list[StockLine]:
        """Pair each count with the counter as it stands right now."""
        items = await self._repo.get_items(db, [c.item_id for c in counts])
        lines: list[StockLine] = []
        for count in counts:
            item = items.get(count.item_id)
            if item is None:
                raise ItemNotFoundError(count.item_id)
            if not item.is_tracked:
                raise StockNotTrackedError(count.item_id)
            lines.append(
                StockLine(
                    item_id=item.id,
                    previous_quantity=item.stock_quantity,  # type: ignore[arg-type]
                    new_quantity=count.counted_quantity,
                    notes=count.notes,
                )
            )
        return lines

    async def _run_bulk(
        self, db: AsyncSession, label: str, op: Callable[[], Awaitable[T]]
    ) -> T:
        try:
            return await _commit(db, op)
        except StockConflictError:
            logger.warning("Stock conflict during %s, retrying with fresh counts", label)
        return await _commit(db, op)

    def _to_response(
        self, item: CatalogItem, components: list[MixedDrinkComponent]
    ) -> ItemResponse:
        available = derived_stock(components) if item.is_mixed_drink else item.stock_quantity
        return ItemResponse.from_domain(
            item,
            available_quantity=available,
            is_low_stock=is_low_stock(item, self._threshold),
            components=components,
        )


async def _commit(db: AsyncSession, op: Callable[[], Awaitable[T]]) -> T:
    try:
        result = await op()
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return result


def _count_response(
    kind: str,
    parent_id: str,
    notes: str | None,
    created_at: datetime,
    lines: list[StockLine],
    entries: list[StockLedgerEntry],
) -> StockCountResponse:
    return StockCountResponse(
        id=parent_id,
        kind=kind,
        notes=notes,
        created_at=created_at.isoformat(),
        lines=[StockLineOut.from_domain(line) for line in lines],
        entries=[StockEntryResponse.from_domain(e) for e in entries],
    )
