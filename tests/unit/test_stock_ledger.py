"""Tests for StockLedger — counter and stock ledger move together."""

from unittest.mock import AsyncMock

import pytest

from src.tab_common.enums import StockTransactionType
from src.tab_common.errors import (
    InvalidStockChangeError,
    ItemNotFoundError,
    NegativeStockError,
    StockConflictError,
    StockNotTrackedError,
)
from src.tab_inventory.application.stock_ledger import StockLedger
from tests.unit.fakes import FakeInventoryRepository, FakeSession, FakeStore


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


def _ledger(store: FakeStore, enforce_floor: bool = False) -> tuple[StockLedger, FakeSession]:
    return StockLedger(FakeInventoryRepository(store), enforce_floor=enforce_floor), FakeSession(store)


class TestApply:
    async def test_increment_writes_entry(self, store: FakeStore) -> None:
        ledger, db = _ledger(store)
        cola = store.add_item("Cola", stock_quantity=24)
        entry = await ledger.apply(db, cola.id, 6, StockTransactionType.PURCHASE, "crate", "t-1")
        assert entry.quantity_change == 6
        assert entry.transaction_type == "purchase"
        assert store.state.items[cola.id].stock_quantity == 30

    async def test_zero_change_refused(self, store: FakeStore) -> None:
        ledger, db = _ledger(store)
        cola = store.add_item()
        with pytest.raises(InvalidStockChangeError):
            await ledger.apply(db, cola.id, 0, StockTransactionType.ADJUSTMENT, None, None)

    async def test_compare_and_swap_matches(self, store: FakeStore) -> None:
        ledger, db = _ledger(store)
        cola = store.add_item(stock_quantity=24)
        await ledger.apply(
            db, cola.id, -4, StockTransactionType.ADJUSTMENT, None, None, expected_quantity=24
        )
        assert store.state.items[cola.id].stock_quantity == 20

    async def test_compare_and_swap_conflict(self, store: FakeStore) -> None:
        ledger, db = _ledger(store)
        cola = store.add_item(stock_quantity=24)
        with pytest.raises(StockConflictError):
            await ledger.apply(
                db, cola.id, -4, StockTransactionType.ADJUSTMENT, None, None, expected_quantity=23
            )
        assert store.state.items[cola.id].stock_quantity == 24
        assert store.state.stock_transactions == []

    async def test_unknown_item(self, store: FakeStore) -> None:
        ledger, db = _ledger(store)
        with pytest.raises(ItemNotFoundError):
            await ledger.apply(db, "missing", 1, StockTransactionType.PURCHASE, None, None)

    async def test_untracked_item(self, store: FakeStore) -> None:
        ledger, db = _ledger(store)
        snack = store.add_item(stock_quantity=None)
        with pytest.raises(StockNotTrackedError):
            await ledger.apply(db, snack.id, 1, StockTransactionType.PURCHASE, None, None)

    async def test_mixed_drink_has_no_counter(self, store: FakeStore) -> None:
        ledger, db = _ledger(store)
        drink = store.add_item("Gin Tonic", stock_quantity=None, is_mixed_drink=True)
        with pytest.raises(StockNotTrackedError):
            await ledger.apply(db, drink.id, 1, StockTransactionType.PURCHASE, None, None)


class TestFloor:
    async def test_negative_allowed_by_default(self, store: FakeStore) -> None:
        ledger, db = _ledger(store)
        cola = store.add_item(stock_quantity=0)
        await ledger.apply(db, cola.id, -1, StockTransactionType.SALE, None, None)
        assert store.state.items[cola.id].stock_quantity == -1

    async def test_floor_enforced(self, store: FakeStore) -> None:
        ledger, db = _ledger(store, enforce_floor=True)
        cola = store.add_item(stock_quantity=0)
        with pytest.raises(NegativeStockError):
            await ledger.apply(db, cola.id, -1, StockTransactionType.SALE, None, None)

    async def test_counter_moved_after_rejection(self) -> None:
        repo = AsyncMock()
        repo.increment_stock.return_value = None
        repo.get_item.return_value = FakeStore().add_item(stock_quantity=5)
        ledger = StockLedger(repo, enforce_floor=True)
        with pytest.raises(StockConflictError):
            await ledger.apply(AsyncMock(), "item", -1, StockTransactionType.SALE, None, None)
        repo.insert_stock_transaction.assert_not_awaited()


class TestSaleAndRestore:
    async def test_sale_of_tracked_item(self, store: FakeStore) -> None:
        ledger, db = _ledger(store)
        cola = store.add_item(stock_quantity=24)
        entry = await ledger.record_sale(db, cola, "acc-1", "Consumption c-1")
        assert entry is not None
        assert entry.quantity_change == -1
        assert store.state.items[cola.id].stock_quantity == 23

    async def test_sale_of_untracked_item(self, store: FakeStore) -> None:
        ledger, db = _ledger(store)
        snack = store.add_item(stock_quantity=None)
        assert await ledger.record_sale(db, snack, "acc-1", None) is None
        assert store.state.stock_transactions == []

    async def test_restore(self, store: FakeStore) -> None:
        ledger, db = _ledger(store)
        cola = store.add_item(stock_quantity=23)
        entry = await ledger.restore_after_reversal(db, cola.id, "acc-1", "Reversal r-1")
        assert entry is not None
        assert entry.transaction_type == "reversal"
        assert store.state.items[cola.id].stock_quantity == 24

    async def test_restore_ignores_floor(self, store: FakeStore) -> None:
        ledger, db = _ledger(store, enforce_floor=True)
        cola = store.add_item(stock_quantity=-3)
        assert await ledger.restore_after_reversal(db, cola.id, None, None) is not None
        assert store.state.items[cola.id].stock_quantity == -2

    async def test_restore_skips_missing_item(self, store: FakeStore) -> None:
        ledger, db = _ledger(store)
        assert await ledger.restore_after_reversal(db, "deleted", None, None) is None
        assert await ledger.restore_after_reversal(db, None, None, None) is None
        assert store.state.stock_transactions == []
