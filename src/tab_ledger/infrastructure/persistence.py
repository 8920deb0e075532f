"""LedgerRepository — concrete implementation of LedgerRepositoryProtocol.

The event tables are append-only: every method here is an INSERT or a SELECT,
except the pending -> paid/failed/cancelled transition of a top-up, which is a
guarded single-row UPDATE ... RETURNING (0 rows = someone else moved it first).

Idempotency gates are UNIQUE constraints used through ON CONFLICT DO NOTHING;
a None return means the row already existed.

Transaction ownership: The CALLER (application service) is responsible for
committing or rolling back.
"""

from datetime import datetime

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.tab_common.enums import ReversibleEventType
from src.tab_common.errors import InternalError
from src.tab_ledger.domain.models import (
    Adjustment,
    BalanceBreakdown,
    Consumption,
    ConsumptionHistoryItem,
    Reversal,
    ReversibleEvent,
    TopUp,
)

# ---------------------------------------------------------------------------
# SQL: balance
# ---------------------------------------------------------------------------

# One statement, one snapshot: the three sums can never straddle a concurrent write.
_BALANCE_SQL = text("""
    SELECT
        (SELECT COALESCE(SUM(amount_cents), 0) FROM top_ups
          WHERE account_id = CAST(:account_id AS UUID) AND status = 'paid') AS topped_up,
        (SELECT COALESCE(SUM(price_cents), 0) FROM consumptions
          WHERE account_id = CAST(:account_id AS UUID))                     AS consumed,
        (SELECT COALESCE(SUM(delta_cents), 0) FROM adjustments
          WHERE account_id = CAST(:account_id AS UUID))                     AS adjusted
""")

# ---------------------------------------------------------------------------
# SQL: reversal
# ---------------------------------------------------------------------------

_GET_CONSUMPTION_EVENT_SQL = text("""
    SELECT c.id, c.account_id, c.price_cents AS amount_cents, c.created_at,
           c.item_id, i.name AS item_name, NULL AS status
    FROM consumptions c
    LEFT JOIN items i ON i.id = c.item_id
    WHERE c.id = CAST(:event_id AS UUID)
""")

_GET_TOPUP_EVENT_SQL = text("""
    SELECT id, account_id, amount_cents, created_at,
           NULL AS item_id, NULL AS item_name, status
    FROM top_ups
    WHERE id = CAST(:event_id AS UUID)
""")

_REVERSAL_COLUMNS = (
    "id, account_id, original_event_id, original_event_type, reason, "
    "reversed_by, adjustment_id, created_at"
)

_GET_REVERSAL_SQL = text(f"""
    SELECT {_REVERSAL_COLUMNS}
    FROM transaction_reversals
    WHERE original_event_id = CAST(:event_id AS UUID)
      AND original_event_type = :event_type
""")

_INSERT_REVERSAL_SQL = text(f"""
    INSERT INTO transaction_reversals
        (account_id, original_event_id, original_event_type, reason, reversed_by, adjustment_id)
    VALUES
        (CAST(:account_id AS UUID), CAST(:event_id AS UUID), :event_type, :reason,
         CAST(:reversed_by AS UUID), CAST(:adjustment_id AS UUID))
    ON CONFLICT ON CONSTRAINT uq_reversals_original_event DO NOTHING
    RETURNING {_REVERSAL_COLUMNS}
""")

# ---------------------------------------------------------------------------
# SQL: event inserts
# ---------------------------------------------------------------------------

_ADJUSTMENT_COLUMNS = "id, account_id, delta_cents, reason, created_by, created_at"

_INSERT_ADJUSTMENT_SQL = text(f"""
    INSERT INTO adjustments (id, account_id, delta_cents, reason, created_by)
    VALUES
        (COALESCE(CAST(:id AS UUID), gen_random_uuid()), CAST(:account_id AS UUID),
         :delta_cents, :reason, CAST(:created_by AS UUID))
    RETURNING {_ADJUSTMENT_COLUMNS}
""")

_CONSUMPTION_COLUMNS = "id, account_id, item_id, price_cents, source, client_id, note, created_at"

_INSERT_CONSUMPTION_SQL = text(f"""
    INSERT INTO consumptions (account_id, item_id, price_cents, source, client_id, note)
    VALUES
        (CAST(:account_id AS UUID), CAST(:item_id AS UUID), :price_cents, :source,
         :client_id, :note)
    ON CONFLICT ON CONSTRAINT uq_consumptions_client_id DO NOTHING
    RETURNING {_CONSUMPTION_COLUMNS}
""")

_GET_CONSUMPTION_BY_CLIENT_ID_SQL = text(
    f"SELECT {_CONSUMPTION_COLUMNS} FROM consumptions WHERE client_id = :client_id"
)

_TOPUP_COLUMNS = (
    "id, account_id, amount_cents, provider, provider_ref, status, created_at, updated_at"
)

_INSERT_TOPUP_SQL = text(f"""
    INSERT INTO top_ups (account_id, amount_cents, provider, provider_ref, status)
    VALUES (CAST(:account_id AS UUID), :amount_cents, :provider, :provider_ref, :status)
    ON CONFLICT ON CONSTRAINT uq_top_ups_provider_ref DO NOTHING
    RETURNING {_TOPUP_COLUMNS}
""")

_GET_TOPUP_BY_REF_SQL = text(
    f"SELECT {_TOPUP_COLUMNS} FROM top_ups WHERE provider_ref = :provider_ref"
)

_TRANSITION_TOPUP_SQL = text(f"""
    UPDATE top_ups
    SET status = :to_status
    WHERE provider_ref = :provider_ref AND status = :from_status
    RETURNING {_TOPUP_COLUMNS}
""")

# ---------------------------------------------------------------------------
# SQL: history (cursor on created_at DESC, id DESC)
# ---------------------------------------------------------------------------

_CURSOR_CLAUSE = """
      AND (
        CAST(:cursor_ts AS TIMESTAMPTZ) IS NULL
        OR {alias}created_at < CAST(:cursor_ts AS TIMESTAMPTZ)
        OR (
            {alias}created_at = CAST(:cursor_ts AS TIMESTAMPTZ)
            AND {alias}id < CAST(:cursor_id AS UUID)
        )
      )
"""

_LIST_CONSUMPTIONS_SQL = text(f"""
    SELECT c.id, c.account_id, c.item_id, c.price_cents, c.source, c.client_id, c.note,
           c.created_at, i.name AS item_name, (r.id IS NOT NULL) AS is_reversed
    FROM consumptions c
    LEFT JOIN items i ON i.id = c.item_id
    LEFT JOIN transaction_reversals r
           ON r.original_event_id = c.id AND r.original_event_type = 'consumption'
    WHERE c.account_id = CAST(:account_id AS UUID)
    {_CURSOR_CLAUSE.format(alias="c.")}
    ORDER BY c.created_at DESC, c.id DESC
    LIMIT :limit
""")

_LIST_TOPUPS_SQL = text(f"""
    SELECT {_TOPUP_COLUMNS}
    FROM top_ups
    WHERE account_id = CAST(:account_id AS UUID)
    {_CURSOR_CLAUSE.format(alias="")}
    ORDER BY created_at DESC, id DESC
    LIMIT :limit
""")

_LIST_ADJUSTMENTS_SQL = text(f"""
    SELECT {_ADJUSTMENT_COLUMNS}
    FROM adjustments
    WHERE account_id = CAST(:account_id AS UUID)
    {_CURSOR_CLAUSE.format(alias="")}
    ORDER BY created_at DESC, id DESC
    LIMIT :limit
""")


def _opt_str(value: object) -> str | None:
    return str(value) if value is not None else None


def _row_to_consumption(row: object) -> Consumption:
    return Consumption(
        id=str(row.id),  # type: ignore[attr-defined]
        account_id=str(row.account_id),  # type: ignore[attr-defined]
        item_id=_opt_str(row.item_id),  # type: ignore[attr-defined]
        price_cents=row.price_cents,  # type: ignore[attr-defined]
        source=row.source,  # type: ignore[attr-defined]
        client_id=row.client_id,  # type: ignore[attr-defined]
        note=row.note,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        item_name=getattr(row, "item_name", None),
    )


def _row_to_top_up(row: object) -> TopUp:
    return TopUp(
        id=str(row.id),  # type: ignore[attr-defined]
        account_id=str(row.account_id),  # type: ignore[attr-defined]
        amount_cents=row.amount_cents,  # type: ignore[attr-defined]
        provider=row.provider,  # type: ignore[attr-defined]
        provider_ref=row.provider_ref,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_adjustment(row: object) -> Adjustment:
    return Adjustment(
        id=str(row.id),  # type: ignore[attr-defined]
        account_id=str(row.account_id),  # type: ignore[attr-defined]
        delta_cents=row.delta_cents,  # type: ignore[attr-defined]
        reason=row.reason,  # type: ignore[attr-defined]
        created_by=_opt_str(row.created_by),  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


def _row_to_reversal(row: object) -> Reversal:
    return Reversal(
        id=str(row.id),  # type: ignore[attr-defined]
        account_id=str(row.account_id),  # type: ignore[attr-defined]
        original_event_id=str(row.original_event_id),  # type: ignore[attr-defined]
        original_event_type=row.original_event_type,  # type: ignore[attr-defined]
        reason=row.reason,  # type: ignore[attr-defined]
        reversed_by=_opt_str(row.reversed_by),  # type: ignore[attr-defined]
        adjustment_id=_opt_str(row.adjustment_id),  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


def _row_to_event(row: object, event_type: str) -> ReversibleEvent:
    return ReversibleEvent(
        id=str(row.id),  # type: ignore[attr-defined]
        event_type=event_type,
        account_id=str(row.account_id),  # type: ignore[attr-defined]
        amount_cents=row.amount_cents,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        item_id=_opt_str(row.item_id),  # type: ignore[attr-defined]
        item_name=row.item_name,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
    )


def _cursor_params(
    account_id: str, cursor_ts: datetime | None, cursor_id: str | None, limit: int
) -> dict[str, object]:
    return {
        "account_id": account_id,
        "cursor_ts": cursor_ts,
        "cursor_id": cursor_id,
        "limit": limit,
    }


class LedgerRepository:
    async def get_balance_breakdown(
        self, db: AsyncSession, account_id: str
    ) -> BalanceBreakdown:
        row = (await db.execute(_BALANCE_SQL, {"account_id": account_id})).fetchone()
        if row is None:
            raise InternalError("Balance query returned no rows — this should never happen")
        return BalanceBreakdown(
            account_id=account_id,
            topped_up=int(row.topped_up),
            consumed=int(row.consumed),
            adjusted=int(row.adjusted),
        )

    async def get_reversible_event(
        self, db: AsyncSession, event_id: str, event_type: str
    ) -> ReversibleEvent | None:
        sql = (
            _GET_CONSUMPTION_EVENT_SQL
            if event_type == ReversibleEventType.CONSUMPTION
            else _GET_TOPUP_EVENT_SQL
        )
        row = (await db.execute(sql, {"event_id": event_id})).fetchone()
        return _row_to_event(row, event_type) if row else None

    async def get_reversal(
        self, db: AsyncSession, event_id: str, event_type: str
    ) -> Reversal | None:
        row = (
            await db.execute(
                _GET_REVERSAL_SQL, {"event_id": event_id, "event_type": event_type}
            )
        ).fetchone()
        return _row_to_reversal(row) if row else None

    async def insert_reversal(
        self,
        db: AsyncSession,
        account_id: str,
        event_id: str,
        event_type: str,
        reason: str,
        reversed_by: str | None,
        adjustment_id: str,
    ) -> Reversal | None:
        row = (
            await db.execute(
                _INSERT_REVERSAL_SQL,
                {
                    "account_id": account_id,
                    "event_id": event_id,
                    "event_type": event_type,
                    "reason": reason,
                    "reversed_by": reversed_by,
                    "adjustment_id": adjustment_id,
                },
            )
        ).fetchone()
        return _row_to_reversal(row) if row else None

    async def insert_adjustment(
        self,
        db: AsyncSession,
        account_id: str,
        delta_cents: int,
        reason: str,
        created_by: str | None,
        adjustment_id: str | None = None,
    ) -> Adjustment:
        row = (
            await db.execute(
                _INSERT_ADJUSTMENT_SQL,
                {
                    "id": adjustment_id,
                    "account_id": account_id,
                    "delta_cents": delta_cents,
                    "reason": reason,
                    "created_by": created_by,
                },
            )
        ).fetchone()
        if row is None:
            raise InternalError("Adjustment insert returned no rows — this should never happen")
        return _row_to_adjustment(row)

    async def insert_consumption(
        self,
        db: AsyncSession,
        account_id: str,
        item_id: str,
        price_cents: int,
        source: str,
        client_id: str | None,
        note: str | None,
    ) -> Consumption | None:
        row = (
            await db.execute(
                _INSERT_CONSUMPTION_SQL,
                {
                    "account_id": account_id,
                    "item_id": item_id,
                    "price_cents": price_cents,
                    "source": source,
                    "client_id": client_id,
                    "note": note,
                },
            )
        ).fetchone()
        return _row_to_consumption(row) if row else None

    async def get_consumption_by_client_id(
        self, db: AsyncSession, client_id: str
    ) -> Consumption | None:
        row = (
            await db.execute(_GET_CONSUMPTION_BY_CLIENT_ID_SQL, {"client_id": client_id})
        ).fetchone()
        return _row_to_consumption(row) if row else None

    async def insert_top_up(
        self,
        db: AsyncSession,
        account_id: str,
        amount_cents: int,
        provider: str,
        provider_ref: str,
        status: str,
    ) -> TopUp | None:
        row = (
            await db.execute(
                _INSERT_TOPUP_SQL,
                {
                    "account_id": account_id,
                    "amount_cents": amount_cents,
                    "provider": provider,
                    "provider_ref": provider_ref,
                    "status": status,
                },
            )
        ).fetchone()
        return _row_to_top_up(row) if row else None

    async def get_top_up_by_ref(
        self, db: AsyncSession, provider_ref: str
    ) -> TopUp | None:
        row = (
            await db.execute(_GET_TOPUP_BY_REF_SQL, {"provider_ref": provider_ref})
        ).fetchone()
        return _row_to_top_up(row) if row else None

    async def transition_top_up(
        self, db: AsyncSession, provider_ref: str, from_status: str, to_status: str
    ) -> TopUp | None:
        row = (
            await db.execute(
                _TRANSITION_TOPUP_SQL,
                {
                    "provider_ref": provider_ref,
                    "from_status": from_status,
                    "to_status": to_status,
                },
            )
        ).fetchone()
        return _row_to_top_up(row) if row else None

    async def list_consumptions(
        self,
        db: AsyncSession,
        account_id: str,
        cursor_ts: datetime | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[ConsumptionHistoryItem]:
        result = await db.execute(
            _LIST_CONSUMPTIONS_SQL, _cursor_params(account_id, cursor_ts, cursor_id, limit)
        )
        return [
            ConsumptionHistoryItem(
                consumption=_row_to_consumption(row), is_reversed=bool(row.is_reversed)
            )
            for row in result.fetchall()
        ]

    async def list_top_ups(
        self,
        db: AsyncSession,
        account_id: str,
        cursor_ts: datetime | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[TopUp]:
        result = await db.execute(
            _LIST_TOPUPS_SQL, _cursor_params(account_id, cursor_ts, cursor_id, limit)
        )
        return [_row_to_top_up(row) for row in result.fetchall()]

    async def list_adjustments(
        self,
        db: AsyncSession,
        account_id: str,
        cursor_ts: datetime | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Adjustment]:
        result = await db.execute(
            _LIST_ADJUSTMENTS_SQL, _cursor_params(account_id, cursor_ts, cursor_id, limit)
        )
        return [_row_to_adjustment(row) for row in result.fetchall()]
