"""Tests for tab_ledger.domain.balance — the balance is derived, never stored."""

from src.tab_common.enums import TopUpStatus
from src.tab_ledger.domain.balance import compute_balance, compute_breakdown, would_overdraw
from src.tab_ledger.domain.models import Adjustment, Consumption, TopUp
from tests.unit.fakes import T0


def _top_up(amount: int, status: str = TopUpStatus.PAID, account_id: str = "acc-1") -> TopUp:
    return TopUp(
        id=f"t-{amount}-{status}",
        account_id=account_id,
        amount_cents=amount,
        provider="stripe",
        provider_ref=f"ref-{amount}-{status}",
        status=status,
        created_at=T0,
    )


def _consumption(price: int, account_id: str = "acc-1") -> Consumption:
    return Consumption(
        id=f"c-{price}",
        account_id=account_id,
        item_id="item-1",
        price_cents=price,
        source="tap",
        created_at=T0,
    )


def _adjustment(delta: int, account_id: str = "acc-1") -> Adjustment:
    return Adjustment(
        id=f"a-{delta}",
        account_id=account_id,
        delta_cents=delta,
        reason="test",
        created_by=None,
        created_at=T0,
    )


class TestComputeBalance:
    def test_empty_account_is_zero(self) -> None:
        assert compute_balance("acc-1", [], [], []) == 0

    def test_top_up_then_consumption(self) -> None:
        # 25.00 topped up, one 3.50 beer -> 21.50
        assert compute_balance("acc-1", [_top_up(2500)], [_consumption(350)], []) == 2150

    def test_reversal_adjustment_restores_balance(self) -> None:
        balance = compute_balance(
            "acc-1", [_top_up(2500)], [_consumption(350)], [_adjustment(350)]
        )
        assert balance == 2500

    def test_only_paid_top_ups_count(self) -> None:
        top_ups = [
            _top_up(2500),
            _top_up(1000, TopUpStatus.PENDING),
            _top_up(700, TopUpStatus.FAILED),
            _top_up(300, TopUpStatus.CANCELLED),
        ]
        assert compute_balance("acc-1", top_ups, [], []) == 2500

    def test_other_accounts_ignored(self) -> None:
        balance = compute_balance(
            "acc-1",
            [_top_up(2500), _top_up(9900, account_id="acc-2")],
            [_consumption(100, account_id="acc-2")],
            [_adjustment(-50, account_id="acc-2")],
        )
        assert balance == 2500

    def test_negative_adjustment(self) -> None:
        assert compute_balance("acc-1", [], [], [_adjustment(-500)]) == -500

    def test_breakdown_parts(self) -> None:
        b = compute_breakdown(
            "acc-1", [_top_up(2500)], [_consumption(350)], [_adjustment(-100)]
        )
        assert (b.topped_up, b.consumed, b.adjusted) == (2500, 350, -100)
        assert b.balance == 2050


class TestWouldOverdraw:
    def test_exact_balance_allowed(self) -> None:
        assert would_overdraw(350, 350, allow_negative_balance=False) is False

    def test_one_cent_short(self) -> None:
        assert would_overdraw(349, 350, allow_negative_balance=False) is True

    def test_credit_account_never_overdraws(self) -> None:
        assert would_overdraw(-10_000, 350, allow_negative_balance=True) is False
