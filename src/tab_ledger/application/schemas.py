"""Pydantic schemas for tab_ledger API requests and responses.

Money is always an integer number of cents plus a display string.
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from src.tab_common.cents import cents_to_display
from src.tab_common.enums import (
    ConsumptionSource,
    GuestSettlementMethod,
    ReversibleEventType,
    TopUpProvider,
)
from src.tab_ledger.domain.models import (
    Adjustment,
    BalanceBreakdown,
    Consumption,
    Reversal,
    TopUp,
)


def _iso(value: datetime | None) -> str:
    return value.isoformat() if value else ""


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class RecordConsumptionRequest(BaseModel):
    item_id: UUID
    account_id: UUID | None = Field(None, description="Defaults to the acting account")
    source: ConsumptionSource = ConsumptionSource.TAP
    client_id: str | None = Field(
        None, max_length=64, description="Idempotency key against double taps"
    )
    note: str | None = Field(None, max_length=500)


class RecordLateFeeRequest(BaseModel):
    minutes_late: int = Field(..., gt=0)
    account_id: UUID | None = Field(None, description="Defaults to the acting account")


class CreateTopUpRequest(BaseModel):
    amount_cents: int = Field(..., gt=0, description="Amount to credit in cents")
    provider: TopUpProvider
    account_id: UUID | None = Field(None, description="Defaults to the acting account")
    provider_ref: str | None = Field(None, max_length=255)


class ConfirmTopUpRequest(BaseModel):
    provider_ref: str = Field(..., min_length=1, max_length=255)
    confirmed_amount_cents: int = Field(..., gt=0)


class FailTopUpRequest(BaseModel):
    provider_ref: str = Field(..., min_length=1, max_length=255)
    status: Literal["failed", "cancelled"] = "failed"


class CreateAdjustmentRequest(BaseModel):
    account_id: UUID
    delta_cents: int = Field(..., description="Signed correction in cents, non-zero")
    reason: str = Field(..., min_length=1, max_length=500)


class ReverseTransactionRequest(BaseModel):
    original_event_id: UUID
    original_event_type: ReversibleEventType
    reason: str = Field("Undone", min_length=1, max_length=500)


class SettleGuestRequest(BaseModel):
    method: GuestSettlementMethod


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    account_id: str
    balance_cents: int
    balance_display: str

    @classmethod
    def from_cents(cls, account_id: str, balance: int) -> "BalanceResponse":
        return cls(
            account_id=account_id,
            balance_cents=balance,
            balance_display=cents_to_display(balance),
        )


class BalanceBreakdownResponse(BaseModel):
    account_id: str
    topped_up_cents: int
    consumed_cents: int
    adjusted_cents: int
    balance_cents: int
    balance_display: str

    @classmethod
    def from_domain(cls, b: BalanceBreakdown) -> "BalanceBreakdownResponse":
        return cls(
            account_id=b.account_id,
            topped_up_cents=b.topped_up,
            consumed_cents=b.consumed,
            adjusted_cents=b.adjusted,
            balance_cents=b.balance,
            balance_display=cents_to_display(b.balance),
        )


class BalanceCacheCheckResponse(BaseModel):
    account_id: str
    cached_cents: int | None
    computed_cents: int
    consistent: bool


class ConsumptionResponse(BaseModel):
    id: str
    account_id: str
    item_id: str | None
    item_name: str | None
    price_cents: int
    price_display: str
    source: str
    client_id: str | None
    note: str | None
    created_at: str
    replayed: bool = False           # True when client_id matched an earlier tap

    @classmethod
    def from_domain(cls, c: Consumption, replayed: bool = False) -> "ConsumptionResponse":
        return cls(
            id=c.id,
            account_id=c.account_id,
            item_id=c.item_id,
            item_name=c.item_name,
            price_cents=c.price_cents,
            price_display=cents_to_display(c.price_cents),
            source=c.source,
            client_id=c.client_id,
            note=c.note,
            created_at=_iso(c.created_at),
            replayed=replayed,
        )


class ConsumptionHistoryEntry(ConsumptionResponse):
    is_reversed: bool
    can_self_reverse: bool


class ConsumptionHistoryResponse(BaseModel):
    items: list[ConsumptionHistoryEntry]
    next_cursor: str | None
    has_more: bool


class TopUpResponse(BaseModel):
    id: str
    account_id: str
    amount_cents: int
    amount_display: str
    provider: str
    provider_ref: str
    status: str
    created_at: str
    updated_at: str

    @classmethod
    def from_domain(cls, t: TopUp) -> "TopUpResponse":
        return cls(
            id=t.id,
            account_id=t.account_id,
            amount_cents=t.amount_cents,
            amount_display=cents_to_display(t.amount_cents),
            provider=t.provider,
            provider_ref=t.provider_ref,
            status=t.status,
            created_at=_iso(t.created_at),
            updated_at=_iso(t.updated_at),
        )


class TopUpHistoryResponse(BaseModel):
    items: list[TopUpResponse]
    next_cursor: str | None
    has_more: bool


class AdjustmentResponse(BaseModel):
    id: str
    account_id: str
    delta_cents: int
    delta_display: str
    reason: str
    created_by: str | None
    created_at: str

    @classmethod
    def from_domain(cls, a: Adjustment) -> "AdjustmentResponse":
        return cls(
            id=a.id,
            account_id=a.account_id,
            delta_cents=a.delta_cents,
            delta_display=cents_to_display(a.delta_cents),
            reason=a.reason,
            created_by=a.created_by,
            created_at=_iso(a.created_at),
        )


class AdjustmentHistoryResponse(BaseModel):
    items: list[AdjustmentResponse]
    next_cursor: str | None
    has_more: bool


class ReversalResponse(BaseModel):
    id: str
    account_id: str
    original_event_id: str
    original_event_type: str
    reason: str
    reversed_by: str | None
    adjustment: AdjustmentResponse
    stock_restored: bool
    created_at: str

    @classmethod
    def from_domain(
        cls, r: Reversal, adjustment: Adjustment, stock_restored: bool
    ) -> "ReversalResponse":
        return cls(
            id=r.id,
            account_id=r.account_id,
            original_event_id=r.original_event_id,
            original_event_type=r.original_event_type,
            reason=r.reason,
            reversed_by=r.reversed_by,
            adjustment=AdjustmentResponse.from_domain(adjustment),
            stock_restored=stock_restored,
            created_at=_iso(r.created_at),
        )


class SettlementResponse(BaseModel):
    account_id: str
    method: str
    settled_cents: int
    settled_display: str
    previous_balance_cents: int
    balance_cents: int
    top_up: TopUpResponse | None = None
    adjustment: AdjustmentResponse | None = None
