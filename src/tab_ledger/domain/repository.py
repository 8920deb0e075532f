"""Repository Protocol — dependency inversion for testability.

Unit tests inject a mock (or the in-memory fake in tests/unit/fakes.py)
that conforms to this Protocol. Infrastructure provides the real implementation.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.tab_ledger.domain.models import (
    Adjustment,
    BalanceBreakdown,
    Consumption,
    ConsumptionHistoryItem,
    Reversal,
    ReversibleEvent,
    TopUp,
)


class LedgerRepositoryProtocol(Protocol):
    async def get_balance_breakdown(
        self, db: AsyncSession, account_id: str
    ) -> BalanceBreakdown: ...

    async def get_reversible_event(
        self, db: AsyncSession, event_id: str, event_type: str
    ) -> ReversibleEvent | None: ...

    async def get_reversal(
        self, db: AsyncSession, event_id: str, event_type: str
    ) -> Reversal | None: ...

    async def insert_reversal(
        self,
        db: AsyncSession,
        account_id: str,
        event_id: str,
        event_type: str,
        reason: str,
        reversed_by: str | None,
        adjustment_id: str,
    ) -> Reversal | None: ...

    async def insert_adjustment(
        self,
        db: AsyncSession,
        account_id: str,
        delta_cents: int,
        reason: str,
        created_by: str | None,
        adjustment_id: str | None = None,
    ) -> Adjustment: ...

    async def insert_consumption(
        self,
        db: AsyncSession,
        account_id: str,
        item_id: str,
        price_cents: int,
        source: str,
        client_id: str | None,
        note: str | None,
    ) -> Consumption | None: ...

    async def get_consumption_by_client_id(
        self, db: AsyncSession, client_id: str
    ) -> Consumption | None: ...

    async def insert_top_up(
        self,
        db: AsyncSession,
        account_id: str,
        amount_cents: int,
        provider: str,
        provider_ref: str,
        status: str,
    ) -> TopUp | None: ...

    async def get_top_up_by_ref(
        self, db: AsyncSession, provider_ref: str
    ) -> TopUp | None: ...

    async def transition_top_up(
        self, db: AsyncSession, provider_ref: str, from_status: str, to_status: str
    ) -> TopUp | None: ...

    async def list_consumptions(
        self,
        db: AsyncSession,
        account_id: str,
        cursor_ts: datetime | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[ConsumptionHistoryItem]: ...

    async def list_top_ups(
        self,
        db: AsyncSession,
        account_id: str,
        cursor_ts: datetime | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[TopUp]: ...

    async def list_adjustments(
        self,
        db: AsyncSession,
        account_id: str,
        cursor_ts: datetime | None,
        cursor_id: str | None,
        limit: int,
    ) -> list[Adjustment]: ...
