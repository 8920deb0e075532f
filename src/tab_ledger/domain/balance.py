"""Balance calculator — the balance is derived from the event log, never stored.

    balance = Σ paid TopUp.amount − Σ Consumption.price + Σ Adjustment.delta

Reversal records are deliberately not consulted: every reversal is paired with
a compensating Adjustment, so the three sums already reflect it.
"""

from collections.abc import Iterable

from src.tab_common.enums import TopUpStatus
from src.tab_ledger.domain.models import Adjustment, BalanceBreakdown, Consumption, TopUp


def compute_breakdown(
    account_id: str,
    top_ups: Iterable[TopUp],
    consumptions: Iterable[Consumption],
    adjustments: Iterable[Adjustment],
) -> BalanceBreakdown:
    """Aggregate an account's events; events for other accounts are ignored."""
    topped_up = sum(
        t.amount_cents
        for t in top_ups
        if t.account_id == account_id and t.status == TopUpStatus.PAID
    )
    consumed = sum(c.price_cents for c in consumptions if c.account_id == account_id)
    adjusted = sum(a.delta_cents for a in adjustments if a.account_id == account_id)
    return BalanceBreakdown(
        account_id=account_id, topped_up=topped_up, consumed=consumed, adjusted=adjusted
    )


def compute_balance(
    account_id: str,
    top_ups: Iterable[TopUp],
    consumptions: Iterable[Consumption],
    adjustments: Iterable[Adjustment],
) -> int:
    return compute_breakdown(account_id, top_ups, consumptions, adjustments).balance


def would_overdraw(balance: int, price: int, allow_negative_balance: bool) -> bool:
    """True when charging *price* must be refused for a non-credit account."""
    return not allow_negative_balance and balance - price < 0
