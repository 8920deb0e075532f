"""Tests for request schema validation (ledger and inventory)."""

import uuid

import pytest
from pydantic import ValidationError

from src.tab_inventory.application.schemas import (
    AdjustStockRequest,
    CreateItemRequest,
    StockCountRequest,
)
from src.tab_ledger.application.schemas import (
    CreateTopUpRequest,
    FailTopUpRequest,
    RecordConsumptionRequest,
    RecordLateFeeRequest,
    ReverseTransactionRequest,
)


class TestLedgerRequests:
    def test_consumption_defaults(self) -> None:
        req = RecordConsumptionRequest(item_id=uuid.uuid4())
        assert req.source == "tap"
        assert req.account_id is None

    def test_top_up_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            CreateTopUpRequest(amount_cents=0, provider="stripe")

    def test_top_up_unknown_provider(self) -> None:
        with pytest.raises(ValidationError):
            CreateTopUpRequest(amount_cents=100, provider="paypal")

    def test_fail_only_terminal_states(self) -> None:
        with pytest.raises(ValidationError):
            FailTopUpRequest(provider_ref="pi_1", status="paid")

    def test_reversal_default_reason(self) -> None:
        req = ReverseTransactionRequest(
            original_event_id=uuid.uuid4(), original_event_type="topup"
        )
        assert req.reason == "Undone"

    def test_late_fee_needs_positive_minutes(self) -> None:
        with pytest.raises(ValidationError):
            RecordLateFeeRequest(minutes_late=0)
        assert RecordLateFeeRequest(minutes_late=7).account_id is None


class TestInventoryRequests:
    def test_zero_adjustment_rejected(self) -> None:
        with pytest.raises(ValidationError, match="non-zero"):
            AdjustStockRequest(quantity_change=0)

    def test_adjustment_defaults(self) -> None:
        req = AdjustStockRequest(quantity_change=-2)
        assert req.transaction_type == "adjustment"
        assert req.expected_quantity is None

    @pytest.mark.parametrize("kind", ["sale", "reversal"])
    def test_ledger_owned_types_rejected(self, kind: str) -> None:
        with pytest.raises(ValidationError, match="ledger only"):
            AdjustStockRequest(quantity_change=1, transaction_type=kind)

    def test_purchase_allowed(self) -> None:
        req = AdjustStockRequest(quantity_change=6, transaction_type="purchase")
        assert req.transaction_type == "purchase"

    def test_negative_initial_stock_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CreateItemRequest(name="Beer", price_cents=300, stock_quantity=-1)
        assert CreateItemRequest(name="Beer", price_cents=300, stock_quantity=0).stock_quantity == 0

    def test_count_needs_lines(self) -> None:
        with pytest.raises(ValidationError):
            StockCountRequest(lines=[])

    def test_negative_count_rejected(self) -> None:
        with pytest.raises(ValidationError):
            StockCountRequest(lines=[{"item_id": uuid.uuid4(), "counted_quantity": -1}])

    def test_duplicate_item_rejected(self) -> None:
        item_id = uuid.uuid4()
        line = {"item_id": item_id, "counted_quantity": 3}
        with pytest.raises(ValidationError, match="only once"):
            StockCountRequest(lines=[line, line])
