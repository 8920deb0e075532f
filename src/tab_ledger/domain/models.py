"""Domain models for tab_ledger — pure dataclasses, no SQLAlchemy dependency.

Monetary events are append-only. A reversal never touches the original event;
it is recorded next to it together with a compensating Adjustment.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Consumption:
    id: str
    account_id: str
    item_id: str | None          # NULL once the catalog item is deleted
    price_cents: int             # price at purchase time
    source: str                  # ConsumptionSource value
    created_at: datetime
    client_id: str | None = None
    note: str | None = None
    item_name: str | None = None


@dataclass
class TopUp:
    id: str
    account_id: str
    amount_cents: int            # > 0
    provider: str                # TopUpProvider value
    provider_ref: str
    status: str                  # TopUpStatus value; only "paid" counts
    created_at: datetime
    updated_at: datetime | None = None


@dataclass
class Adjustment:
    id: str
    account_id: str
    delta_cents: int             # signed, never 0
    reason: str
    created_by: str | None
    created_at: datetime


@dataclass
class Reversal:
    id: str
    account_id: str
    original_event_id: str
    original_event_type: str     # ReversibleEventType value
    reason: str
    reversed_by: str | None
    created_at: datetime
    adjustment_id: str | None = None


@dataclass
class ReversibleEvent:
    """The parts of a Consumption or TopUp the reversal engine needs."""

    id: str
    event_type: str              # ReversibleEventType value
    account_id: str
    amount_cents: int            # price for consumptions, amount for top-ups
    created_at: datetime
    item_id: str | None = None
    item_name: str | None = None
    status: str | None = None    # top-ups only


@dataclass
class BalanceBreakdown:
    account_id: str
    topped_up: int               # Σ paid top-ups
    consumed: int                # Σ consumption prices
    adjusted: int                # Σ adjustment deltas (signed)

    @property
    def balance(self) -> int:
        return self.topped_up - self.consumed + self.adjusted


@dataclass
class ConsumptionHistoryItem:
    consumption: Consumption
    is_reversed: bool
