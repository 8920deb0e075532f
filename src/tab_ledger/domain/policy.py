"""Reversal authorization policy.

One function decides who may undo which event, used by every entry point:

* the event's owner may undo it while it is younger than the self-service
  window (strictly less than; an event exactly at the limit is too old);
* treasurers and admins may undo other accounts' events at any age;
* anybody else is refused.
"""

from datetime import timedelta
from enum import Enum

from src.tab_account.domain.models import Account


class ReversalDecision(str, Enum):
    ALLOWED = "ALLOWED"
    WINDOW_EXPIRED = "WINDOW_EXPIRED"
    NOT_PERMITTED = "NOT_PERMITTED"


def evaluate_reversal(
    acting_account: Account,
    event_owner_id: str,
    event_age: timedelta,
    window: timedelta,
) -> ReversalDecision:
    if acting_account.id == event_owner_id:
        if event_age < window:
            return ReversalDecision.ALLOWED
        return ReversalDecision.WINDOW_EXPIRED
    if acting_account.is_staff:
        return ReversalDecision.ALLOWED
    return ReversalDecision.NOT_PERMITTED


def can_reverse(
    acting_account: Account,
    event_owner_id: str,
    event_age: timedelta,
    window: timedelta,
) -> bool:
    return (
        evaluate_reversal(acting_account, event_owner_id, event_age, window)
        is ReversalDecision.ALLOWED
    )
