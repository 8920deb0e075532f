# src/tab_admin/domain/ledger_invariants.py
"""Store-wide ledger invariants.

  - every reversal is paired with its compensating adjustment
  - every stock-tracked item satisfies initial + Σ ledger == stock_quantity
"""
import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.tab_inventory.domain.repository import InventoryRepositoryProtocol
from src.tab_inventory.infrastructure.persistence import InventoryRepository

logger = logging.getLogger(__name__)

_UNPAIRED_REVERSALS_SQL = text("""
    SELECT r.id, r.original_event_type, r.original_event_id
    FROM transaction_reversals r
    LEFT JOIN adjustments a ON a.id = r.adjustment_id
    WHERE a.id IS NULL
    ORDER BY r.created_at
""")


async def verify_ledger_invariants(
    db: AsyncSession, inventory: InventoryRepositoryProtocol | None = None
) -> list[str]:
    """Returns list of violation strings; empty means the ledger is consistent."""
    inventory = inventory or InventoryRepository()
    violations: list[str] = []

    for row in (await db.execute(_UNPAIRED_REVERSALS_SQL)).fetchall():
        violations.append(
            f"Reversal {row.id} of {row.original_event_type} {row.original_event_id} "
            "has no compensating adjustment"
        )

    for drift in await inventory.find_stock_drift(db):
        violations.append(
            f"Item {drift.name} ({drift.item_id}): initial({drift.initial_stock_quantity}) + "
            f"ledger({drift.ledger_sum}) = {drift.expected_quantity} "
            f"!= stock_quantity={drift.stock_quantity}"
        )

    for msg in violations:
        logger.error(msg)
    return violations
