"""Tests for tab_common.enums — values must match DB CHECK constraints."""

from src.tab_common.enums import (
    STAFF_ROLES,
    AccountRole,
    ConsumptionSource,
    ReversibleEventType,
    StockTransactionType,
    TopUpProvider,
    TopUpStatus,
)


class TestEnums:
    def test_roles(self) -> None:
        assert {r.value for r in AccountRole} == {"ordinary", "treasurer", "admin"}

    def test_staff_roles(self) -> None:
        assert AccountRole.ORDINARY not in STAFF_ROLES
        assert AccountRole.TREASURER in STAFF_ROLES
        assert AccountRole.ADMIN in STAFF_ROLES

    def test_consumption_sources(self) -> None:
        assert {s.value for s in ConsumptionSource} == {"tap", "qr", "admin"}

    def test_top_up(self) -> None:
        assert {p.value for p in TopUpProvider} == {"stripe", "cash", "banktransfer"}
        assert {s.value for s in TopUpStatus} == {"pending", "paid", "failed", "cancelled"}

    def test_reversible_event_types(self) -> None:
        assert ReversibleEventType("topup") is ReversibleEventType.TOPUP

    def test_stock_transaction_types(self) -> None:
        assert {t.value for t in StockTransactionType} == {
            "purchase", "sale", "adjustment", "reversal",
        }

    def test_str_comparison(self) -> None:
        assert TopUpStatus.PAID == "paid"
