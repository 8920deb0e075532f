# src/tab_admin/application/service.py
"""Admin reporting service: sales figures and consistency checks."""
from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.tab_admin.domain.ledger_invariants import verify_ledger_invariants
from src.tab_common.cents import cents_to_display
from src.tab_ledger.application.service import LedgerApplicationService

# Reversed consumptions are refunded and must not count as sales.
_REVERSED = """
    EXISTS (
        SELECT 1 FROM transaction_reversals r
        WHERE r.original_event_id = c.id AND r.original_event_type = 'consumption'
    )
"""
_NOT_REVERSED = f"NOT {_REVERSED}"
_IN_RANGE = """
    (CAST(:since AS TIMESTAMPTZ) IS NULL OR c.created_at >= CAST(:since AS TIMESTAMPTZ))
    AND (CAST(:until AS TIMESTAMPTZ) IS NULL OR c.created_at < CAST(:until AS TIMESTAMPTZ))
"""

_SALES_TOTALS_SQL = text(f"""
    SELECT COUNT(*) AS sales, COALESCE(SUM(c.price_cents), 0) AS revenue
    FROM consumptions c
    WHERE {_NOT_REVERSED} AND {_IN_RANGE}
""")

_SALES_BY_ITEM_SQL = text(f"""
    SELECT c.item_id, COALESCE(i.name, '(deleted item)') AS name,
           COUNT(*) AS quantity, SUM(c.price_cents) AS revenue
    FROM consumptions c
    LEFT JOIN items i ON i.id = c.item_id
    WHERE {_NOT_REVERSED} AND {_IN_RANGE}
    GROUP BY c.item_id, i.name
    ORDER BY revenue DESC, name
""")

_REVERSED_COUNT_SQL = text(f"""
    SELECT COUNT(*)
    FROM consumptions c
    WHERE {_REVERSED} AND {_IN_RANGE}
""")


class AdminService:
    def __init__(self, ledger: LedgerApplicationService | None = None) -> None:
        self._ledger = ledger or LedgerApplicationService()

    async def sales_summary(
        self, db: AsyncSession, since: datetime | None, until: datetime | None
    ) -> dict[str, Any]:
        params = {"since": since, "until": until}
        totals = (await db.execute(_SALES_TOTALS_SQL, params)).fetchone()
        by_item = (await db.execute(_SALES_BY_ITEM_SQL, params)).fetchall()
        reversed_count = (await db.execute(_REVERSED_COUNT_SQL, params)).scalar_one()
        revenue = int(totals.revenue) if totals else 0
        return {
            "since": since.isoformat() if since else None,
            "until": until.isoformat() if until else None,
            "sales": int(totals.sales) if totals else 0,
            "revenue_cents": revenue,
            "revenue_display": cents_to_display(revenue),
            "reversed_consumptions": int(reversed_count),
            "items": [
                {
                    "item_id": str(row.item_id) if row.item_id else None,
                    "name": row.name,
                    "quantity": int(row.quantity),
                    "revenue_cents": int(row.revenue),
                }
                for row in by_item
            ],
        }

    async def invariants_report(
        self, db: AsyncSession, account_id: str | None = None
    ) -> dict[str, Any]:
        violations = await verify_ledger_invariants(db)
        report: dict[str, Any] = {"violations": violations}
        if account_id is not None:
            check = await self._ledger.verify_balance_cache(db, account_id)
            report["balance_cache"] = check.model_dump()
            if not check.consistent:
                violations.append(
                    f"Balance cache for {account_id}: cached={check.cached_cents} "
                    f"!= computed={check.computed_cents}"
                )
        report["ok"] = not violations
        return report
