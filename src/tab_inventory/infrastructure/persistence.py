"""InventoryRepository — concrete implementation of InventoryRepositoryProtocol.

Stock counters are never read-then-written: every change is one
UPDATE ... RETURNING, either a plain atomic increment or a compare-and-swap on
the expected quantity. 0 rows returned means the guard did not hold.

asyncpg NULL parameter pattern: CAST(:param AS TYPE) IS NULL required for None values.
Transaction ownership: the CALLER (application service) commits or rolls back.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.tab_common.errors import InternalError
from src.tab_inventory.domain.models import (
    CatalogItem,
    MixedDrinkComponent,
    RestockSession,
    StockAudit,
    StockDrift,
    StockLedgerEntry,
    StockLine,
)

# ---------------------------------------------------------------------------
# SQL: catalog
# ---------------------------------------------------------------------------

_ITEM_COLUMNS = (
    "id, name, price_cents, purchase_price_cents, stock_quantity, initial_stock_quantity, "
    "low_stock_threshold, active, is_mixed_drink, created_at, updated_at"
)

_GET_ITEM_SQL = text(f"SELECT {_ITEM_COLUMNS} FROM items WHERE id = CAST(:item_id AS UUID)")

_GET_ITEM_BY_NAME_SQL = text(f"""
    SELECT {_ITEM_COLUMNS}
    FROM items
    WHERE name = :name
    ORDER BY created_at, id
    LIMIT 1
""")

_GET_ITEMS_SQL = text(
    f"SELECT {_ITEM_COLUMNS} FROM items WHERE id = ANY(CAST(:item_ids AS UUID[]))"
)

_LIST_ITEMS_SQL = text(f"""
    SELECT {_ITEM_COLUMNS}
    FROM items
    WHERE (:include_inactive = TRUE OR active = TRUE)
    ORDER BY name, id
""")

_INSERT_ITEM_SQL = text(f"""
    INSERT INTO items
        (name, price_cents, purchase_price_cents, stock_quantity, initial_stock_quantity,
         low_stock_threshold, is_mixed_drink)
    VALUES
        (:name, :price_cents, :purchase_price_cents, CAST(:stock_quantity AS INTEGER),
         CAST(:stock_quantity AS INTEGER), CAST(:low_stock_threshold AS INTEGER),
         :is_mixed_drink)
    RETURNING {_ITEM_COLUMNS}
""")

# Stock is deliberately absent: the counter only moves through the stock ledger.
_UPDATE_ITEM_SQL = text(f"""
    UPDATE items
    SET name                 = COALESCE(CAST(:name AS VARCHAR), name),
        price_cents          = COALESCE(CAST(:price_cents AS INTEGER), price_cents),
        purchase_price_cents = COALESCE(CAST(:purchase_price_cents AS INTEGER), purchase_price_cents),
        low_stock_threshold  = COALESCE(CAST(:low_stock_threshold AS INTEGER), low_stock_threshold)
    WHERE id = CAST(:item_id AS UUID)
    RETURNING {_ITEM_COLUMNS}
""")

_SET_ITEM_ACTIVE_SQL = text(f"""
    UPDATE items SET active = :active
    WHERE id = CAST(:item_id AS UUID)
    RETURNING {_ITEM_COLUMNS}
""")

# ---------------------------------------------------------------------------
# SQL: mixed drinks
# ---------------------------------------------------------------------------

_LIST_COMPONENTS_SQL = text("""
    SELECT m.mixed_drink_id, m.component_item_id, m.quantity,
           ci.name AS component_name, ci.stock_quantity AS component_stock
    FROM mixed_drink_components m
    JOIN items ci ON ci.id = m.component_item_id
    WHERE CAST(:mixed_drink_id AS UUID) IS NULL
       OR m.mixed_drink_id = CAST(:mixed_drink_id AS UUID)
    ORDER BY m.mixed_drink_id, ci.name
""")

_DELETE_COMPONENTS_SQL = text(
    "DELETE FROM mixed_drink_components WHERE mixed_drink_id = CAST(:mixed_drink_id AS UUID)"
)

_INSERT_COMPONENT_SQL = text("""
    INSERT INTO mixed_drink_components (mixed_drink_id, component_item_id, quantity)
    VALUES (CAST(:mixed_drink_id AS UUID), CAST(:component_item_id AS UUID), :quantity)
""")

# ---------------------------------------------------------------------------
# SQL: stock counter + ledger
# ---------------------------------------------------------------------------

_INCREMENT_STOCK_SQL = text("""
    UPDATE items
    SET stock_quantity = stock_quantity + :change
    WHERE id = CAST(:item_id AS UUID)
      AND stock_quantity IS NOT NULL
      AND is_mixed_drink = FALSE
      AND (:enforce_floor = FALSE OR stock_quantity + :change >= 0)
    RETURNING stock_quantity
""")

_CAS_STOCK_SQL = text("""
    UPDATE items
    SET stock_quantity = stock_quantity + :change
    WHERE id = CAST(:item_id AS UUID)
      AND stock_quantity = :expected
      AND is_mixed_drink = FALSE
      AND (:enforce_floor = FALSE OR stock_quantity + :change >= 0)
    RETURNING stock_quantity
""")

_STOCK_TX_COLUMNS = (
    "id, item_id, quantity_change, transaction_type, notes, created_by, "
    "restock_session_id, stock_audit_id, created_at"
)

_INSERT_STOCK_TX_SQL = text(f"""
    INSERT INTO stock_transactions
        (item_id, quantity_change, transaction_type, notes, created_by,
         restock_session_id, stock_audit_id)
    VALUES
        (CAST(:item_id AS UUID), :quantity_change, :transaction_type, :notes,
         CAST(:created_by AS UUID), CAST(:restock_session_id AS UUID),
         CAST(:stock_audit_id AS UUID))
    RETURNING {_STOCK_TX_COLUMNS}
""")

_LIST_STOCK_TX_SQL = text(f"""
    SELECT {_STOCK_TX_COLUMNS}
    FROM stock_transactions
    WHERE item_id = CAST(:item_id AS UUID)
    ORDER BY created_at DESC, id DESC
    LIMIT :limit
""")

# ---------------------------------------------------------------------------
# SQL: restock sessions / stock audits
# ---------------------------------------------------------------------------

_INSERT_RESTOCK_SESSION_SQL = text("""
    INSERT INTO restock_sessions (notes, created_by)
    VALUES (:notes, CAST(:created_by AS UUID))
    RETURNING id, notes, created_by, created_at
""")

_INSERT_RESTOCK_ITEM_SQL = text("""
    INSERT INTO restock_items
        (restock_session_id, item_id, previous_quantity, new_quantity, quantity_change, notes)
    VALUES
        (CAST(:parent_id AS UUID), CAST(:item_id AS UUID), :previous_quantity,
         :new_quantity, :quantity_change, :notes)
""")

_INSERT_STOCK_AUDIT_SQL = text("""
    INSERT INTO stock_audits (notes, created_by, status, completed_at)
    VALUES (:notes, CAST(:created_by AS UUID), 'completed', NOW())
    RETURNING id, notes, status, created_by, created_at, completed_at
""")

_INSERT_STOCK_AUDIT_ITEM_SQL = text("""
    INSERT INTO stock_audit_items
        (audit_id, item_id, expected_quantity, actual_quantity, difference, notes)
    VALUES
        (CAST(:parent_id AS UUID), CAST(:item_id AS UUID), :previous_quantity,
         :new_quantity, :quantity_change, :notes)
""")

# ---------------------------------------------------------------------------
# SQL: consistency
# ---------------------------------------------------------------------------

_STOCK_DRIFT_SQL = text("""
    SELECT i.id, i.name, i.initial_stock_quantity, i.stock_quantity,
           COALESCE(SUM(st.quantity_change), 0) AS ledger_sum
    FROM items i
    LEFT JOIN stock_transactions st ON st.item_id = i.id
    WHERE i.stock_quantity IS NOT NULL
      AND (CAST(:item_id AS UUID) IS NULL OR i.id = CAST(:item_id AS UUID))
    GROUP BY i.id, i.name, i.initial_stock_quantity, i.stock_quantity
    HAVING i.initial_stock_quantity + COALESCE(SUM(st.quantity_change), 0) <> i.stock_quantity
    ORDER BY i.name
""")

# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _opt_str(value: object) -> str | None:
    return str(value) if value is not None else None


def _row_to_item(row: object) -> CatalogItem:
    return CatalogItem(
        id=str(row.id),  # type: ignore[attr-defined]
        name=row.name,  # type: ignore[attr-defined]
        price_cents=row.price_cents,  # type: ignore[attr-defined]
        purchase_price_cents=row.purchase_price_cents,  # type: ignore[attr-defined]
        stock_quantity=row.stock_quantity,  # type: ignore[attr-defined]
        initial_stock_quantity=row.initial_stock_quantity,  # type: ignore[attr-defined]
        low_stock_threshold=row.low_stock_threshold,  # type: ignore[attr-defined]
        active=row.active,  # type: ignore[attr-defined]
        is_mixed_drink=row.is_mixed_drink,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_component(row: object) -> MixedDrinkComponent:
    return MixedDrinkComponent(
        mixed_drink_id=str(row.mixed_drink_id),  # type: ignore[attr-defined]
        component_item_id=str(row.component_item_id),  # type: ignore[attr-defined]
        quantity=row.quantity,  # type: ignore[attr-defined]
        component_name=row.component_name,  # type: ignore[attr-defined]
        component_stock=row.component_stock,  # type: ignore[attr-defined]
    )


def _row_to_entry(row: object) -> StockLedgerEntry:
    return StockLedgerEntry(
        id=str(row.id),  # type: ignore[attr-defined]
        item_id=str(row.item_id),  # type: ignore[attr-defined]
        quantity_change=row.quantity_change,  # type: ignore[attr-defined]
        transaction_type=row.transaction_type,  # type: ignore[attr-defined]
        notes=row.notes,  # type: ignore[attr-defined]
        created_by=_opt_str(row.created_by),  # type: ignore[attr-defined]
        restock_session_id=_opt_str(row.restock_session_id),  # type: ignore[attr-defined]
        stock_audit_id=_opt_str(row.stock_audit_id),  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


def _line_params(parent_id: str, line: StockLine) -> dict[str, object]:
    return {
        "parent_id": parent_id,
        "item_id": line.item_id,
        "previous_quantity": line.previous_quantity,
        "new_quantity": line.new_quantity,
        "quantity_change": line.delta,
        "notes": line.notes,
    }


class InventoryRepository:
    # --- catalog ---------------------------------------------------------

    async def get_item(self, db: AsyncSession, item_id: str) -> CatalogItem | None:
        row = (await db.execute(_GET_ITEM_SQL, {"item_id": item_id})).fetchone()
        return _row_to_item(row) if row else None

    async def get_item_by_name(self, db: AsyncSession, name: str) -> CatalogItem | None:
        row = (await db.execute(_GET_ITEM_BY_NAME_SQL, {"name": name})).fetchone()
        return _row_to_item(row) if row else None

    async def get_items(
        self, db: AsyncSession, item_ids: list[str]
    ) -> dict[str, CatalogItem]:
        if not item_ids:
            return {}
        result = await db.execute(_GET_ITEMS_SQL, {"item_ids": list(item_ids)})
        items = (_row_to_item(row) for row in result.fetchall())
        return {item.id: item for item in items}

    async def list_items(
        self, db: AsyncSession, include_inactive: bool
    ) -> list[CatalogItem]:
        result = await db.execute(_LIST_ITEMS_SQL, {"include_inactive": include_inactive})
        return [_row_to_item(row) for row in result.fetchall()]

    async def create_item(
        self,
        db: AsyncSession,
        name: str,
        price_cents: int,
        purchase_price_cents: int,
        stock_quantity: int | None,
        low_stock_threshold: int | None,
        is_mixed_drink: bool,
    ) -> CatalogItem:
        row = (
            await db.execute(
                _INSERT_ITEM_SQL,
                {
                    "name": name,
                    "price_cents": price_cents,
                    "purchase_price_cents": purchase_price_cents,
                    "stock_quantity": stock_quantity,
                    "low_stock_threshold": low_stock_threshold,
                    "is_mixed_drink": is_mixed_drink,
                },
            )
        ).fetchone()
        if row is None:
            raise InternalError("Item insert returned no rows — this should never happen")
        return _row_to_item(row)

    async def update_item(
        self,
        db: AsyncSession,
        item_id: str,
        name: str | None,
        price_cents: int | None,
        purchase_price_cents: int | None,
        low_stock_threshold: int | None,
    ) -> CatalogItem | None:
        row = (
            await db.execute(
                _UPDATE_ITEM_SQL,
                {
                    "item_id": item_id,
                    "name": name,
                    "price_cents": price_cents,
                    "purchase_price_cents": purchase_price_cents,
                    "low_stock_threshold": low_stock_threshold,
                },
            )
        ).fetchone()
        return _row_to_item(row) if row else None

    async def set_item_active(
        self, db: AsyncSession, item_id: str, active: bool
    ) -> CatalogItem | None:
        row = (
            await db.execute(_SET_ITEM_ACTIVE_SQL, {"item_id": item_id, "active": active})
        ).fetchone()
        return _row_to_item(row) if row else None

    # --- mixed drinks ----------------------------------------------------

    async def list_components(
        self, db: AsyncSession, mixed_drink_id: str | None = None
    ) -> list[MixedDrinkComponent]:
        result = await db.execute(_LIST_COMPONENTS_SQL, {"mixed_drink_id": mixed_drink_id})
        return [_row_to_component(row) for row in result.fetchall()]

    async def replace_components(
        self, db: AsyncSession, mixed_drink_id: str, components: list[tuple[str, int]]
    ) -> None:
        await db.execute(_DELETE_COMPONENTS_SQL, {"mixed_drink_id": mixed_drink_id})
        for component_item_id, quantity in components:
            await db.execute(
                _INSERT_COMPONENT_SQL,
                {
                    "mixed_drink_id": mixed_drink_id,
                    "component_item_id": component_item_id,
                    "quantity": quantity,
                },
            )

    # --- stock counter + ledger ------------------------------------------

    async def increment_stock(
        self, db: AsyncSession, item_id: str, change: int, enforce_floor: bool
    ) -> int | None:
        """Atomic += change. None: item missing, untracked, or floor would be crossed."""
        row = (
            await db.execute(
                _INCREMENT_STOCK_SQL,
                {"item_id": item_id, "change": change, "enforce_floor": enforce_floor},
            )
        ).fetchone()
        return row.stock_quantity if row else None

    async def compare_and_set_stock(
        self,
        db: AsyncSession,
        item_id: str,
        expected: int,
        change: int,
        enforce_floor: bool,
    ) -> int | None:
        """+= change only while the counter still equals *expected*."""
        row = (
            await db.execute(
                _CAS_STOCK_SQL,
                {
                    "item_id": item_id,
                    "expected": expected,
                    "change": change,
                    "enforce_floor": enforce_floor,
                },
            )
        ).fetchone()
        return row.stock_quantity if row else None

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
    ) -> StockLedgerEntry:
        row = (
            await db.execute(
                _INSERT_STOCK_TX_SQL,
                {
                    "item_id": item_id,
                    "quantity_change": quantity_change,
                    "transaction_type": transaction_type,
                    "notes": notes,
                    "created_by": created_by,
                    "restock_session_id": restock_session_id,
                    "stock_audit_id": stock_audit_id,
                },
            )
        ).fetchone()
        if row is None:
            raise InternalError("Stock ledger insert returned no rows — this should never happen")
        return _row_to_entry(row)

    async def list_stock_transactions(
        self, db: AsyncSession, item_id: str, limit: int
    ) -> list[StockLedgerEntry]:
        result = await db.execute(_LIST_STOCK_TX_SQL, {"item_id": item_id, "limit": limit})
        return [_row_to_entry(row) for row in result.fetchall()]

    # --- bulk operations -------------------------------------------------

    async def create_restock_session(
        self, db: AsyncSession, notes: str | None, created_by: str | None
    ) -> RestockSession:
        row = (
            await db.execute(
                _INSERT_RESTOCK_SESSION_SQL, {"notes": notes, "created_by": created_by}
            )
        ).fetchone()
        if row is None:
            raise InternalError("Restock session insert returned no rows — this should never happen")
        return RestockSession(
            id=str(row.id),
            notes=row.notes,
            created_by=_opt_str(row.created_by),
            created_at=row.created_at,
        )

    async def insert_restock_item(
        self, db: AsyncSession, session_id: str, line: StockLine
    ) -> None:
        await db.execute(_INSERT_RESTOCK_ITEM_SQL, _line_params(session_id, line))

    async def create_stock_audit(
        self, db: AsyncSession, notes: str | None, created_by: str | None
    ) -> StockAudit:
        row = (
            await db.execute(
                _INSERT_STOCK_AUDIT_SQL, {"notes": notes, "created_by": created_by}
            )
        ).fetchone()
        if row is None:
            raise InternalError("Stock audit insert returned no rows — this should never happen")
        return StockAudit(
            id=str(row.id),
            notes=row.notes,
            status=row.status,
            created_by=_opt_str(row.created_by),
            created_at=row.created_at,
            completed_at=row.completed_at,
        )

    async def insert_stock_audit_item(
        self, db: AsyncSession, audit_id: str, line: StockLine
    ) -> None:
        await db.execute(_INSERT_STOCK_AUDIT_ITEM_SQL, _line_params(audit_id, line))

    # --- consistency -----------------------------------------------------

    async def find_stock_drift(
        self, db: AsyncSession, item_id: str | None = None
    ) -> list[StockDrift]:
        result = await db.execute(_STOCK_DRIFT_SQL, {"item_id": item_id})
        return [
            StockDrift(
                item_id=str(row.id),
                name=row.name,
                initial_stock_quantity=row.initial_stock_quantity,
                ledger_sum=int(row.ledger_sum),
                stock_quantity=row.stock_quantity,
            )
            for row in result.fetchall()
        ]
