"""Tests for InventoryApplicationService — catalog, bulk stock counts, consistency."""

import pytest

from src.tab_common.errors import (
    InvalidMixedDrinkError,
    ItemNotFoundError,
    StockConflictError,
    StockNotTrackedError,
)
from src.tab_inventory.application.service import InventoryApplicationService
from src.tab_inventory.application.stock_ledger import StockLedger
from src.tab_inventory.domain.models import StockCount
from tests.unit.fakes import FakeInventoryRepository, FakeSession, FakeStore


class _Env:
    def __init__(self) -> None:
        self.store = FakeStore()
        self.db = FakeSession(self.store)
        self.repo = FakeInventoryRepository(self.store)
        self.svc = InventoryApplicationService(
            repo=self.repo,
            stock_ledger=StockLedger(self.repo, enforce_floor=False),
            low_stock_threshold=10,
        )

    def stock(self, item_id: str) -> int | None:
        return self.store.state.items[item_id].stock_quantity


@pytest.fixture
def env() -> _Env:
    return _Env()


class TestCatalog:
    async def test_create_tracked_item(self, env: _Env) -> None:
        item = await env.svc.create_item(env.db, "Cola", 250, 90, 24, None, False)
        assert item.available_quantity == 24
        assert item.price_display == "€2.50"
        assert env.db.commits == 1

    async def test_mixed_drink_cannot_hold_stock(self, env: _Env) -> None:
        with pytest.raises(InvalidMixedDrinkError):
            await env.svc.create_item(env.db, "Gin Tonic", 600, 0, 5, None, True)

    async def test_update_unknown(self, env: _Env) -> None:
        with pytest.raises(ItemNotFoundError):
            await env.svc.update_item(env.db, "missing", name="x")

    async def test_archive_hides_from_default_listing(self, env: _Env) -> None:
        cola = env.store.add_item("Cola")
        env.store.add_item("Beer")
        archived = await env.svc.set_item_active(env.db, cola.id, False)
        assert archived.active is False

        listing = await env.svc.list_items(env.db)
        assert [i.name for i in listing.items] == ["Beer"]
        full = await env.svc.list_items(env.db, include_inactive=True)
        assert {i.name for i in full.items} == {"Beer", "Cola"}

    async def test_low_stock_report(self, env: _Env) -> None:
        env.store.add_item("Cola", stock_quantity=3)
        env.store.add_item("Beer", stock_quantity=40)
        env.store.add_item("Wine", stock_quantity=3, low_stock_threshold=2)
        env.store.add_item("Peanuts", stock_quantity=None)
        report = await env.svc.low_stock_report(env.db)
        assert [i.name for i in report.items] == ["Cola"]
        assert report.items[0].is_low_stock is True

    async def test_inventory_value(self, env: _Env) -> None:
        env.store.add_item("Cola", stock_quantity=10, purchase_price_cents=80)
        env.store.add_item("Beer", stock_quantity=-1, purchase_price_cents=100)
        value = await env.svc.get_inventory_value(env.db)
        assert value.total_value_cents == 800
        assert value.tracked_items == 2


class TestMixedDrinks:
    async def test_derived_availability(self, env: _Env) -> None:
        gin = env.store.add_item("Gin", stock_quantity=10)
        tonic = env.store.add_item("Tonic", stock_quantity=3)
        drink = env.store.add_item("Gin Tonic", stock_quantity=None, is_mixed_drink=True)

        result = await env.svc.set_components(env.db, drink.id, [(gin.id, 2), (tonic.id, 1)])
        assert result.available_quantity == 3
        assert result.stock_quantity is None
        assert {c.component_name for c in result.components} == {"Gin", "Tonic"}

        listing = await env.svc.list_items(env.db)
        by_name = {i.name: i for i in listing.items}
        assert by_name["Gin Tonic"].available_quantity == 3

    async def test_availability_follows_component_stock(self, env: _Env) -> None:
        gin = env.store.add_item("Gin", stock_quantity=10)
        drink = env.store.add_item("Gin Fizz", stock_quantity=None, is_mixed_drink=True)
        await env.svc.set_components(env.db, drink.id, [(gin.id, 2)])
        await env.svc.adjust_stock(env.db, gin.id, -7, "adjustment", "spilled", None)
        assert (await env.svc.get_item(env.db, drink.id)).available_quantity == 1

    async def test_drink_without_components(self, env: _Env) -> None:
        drink = env.store.add_item("Mystery", stock_quantity=None, is_mixed_drink=True)
        assert (await env.svc.get_item(env.db, drink.id)).available_quantity == 0

    async def test_rejects_plain_item(self, env: _Env) -> None:
        cola = env.store.add_item("Cola")
        gin = env.store.add_item("Gin")
        with pytest.raises(InvalidMixedDrinkError):
            await env.svc.set_components(env.db, cola.id, [(gin.id, 1)])

    async def test_rejects_self_reference(self, env: _Env) -> None:
        drink = env.store.add_item("Loop", stock_quantity=None, is_mixed_drink=True)
        with pytest.raises(InvalidMixedDrinkError):
            await env.svc.set_components(env.db, drink.id, [(drink.id, 1)])

    async def test_rejects_nested_mixed_drink(self, env: _Env) -> None:
        inner = env.store.add_item("Inner", stock_quantity=None, is_mixed_drink=True)
        outer = env.store.add_item("Outer", stock_quantity=None, is_mixed_drink=True)
        with pytest.raises(InvalidMixedDrinkError):
            await env.svc.set_components(env.db, outer.id, [(inner.id, 1)])

    async def test_rejects_duplicates(self, env: _Env) -> None:
        gin = env.store.add_item("Gin")
        drink = env.store.add_item("Double", stock_quantity=None, is_mixed_drink=True)
        with pytest.raises(InvalidMixedDrinkError):
            await env.svc.set_components(env.db, drink.id, [(gin.id, 1), (gin.id, 1)])

    async def test_rejects_untracked_component(self, env: _Env) -> None:
        ice = env.store.add_item("Ice", stock_quantity=None)
        drink = env.store.add_item("Cold", stock_quantity=None, is_mixed_drink=True)
        with pytest.raises(InvalidMixedDrinkError):
            await env.svc.set_components(env.db, drink.id, [(ice.id, 1)])

    async def test_unknown_component(self, env: _Env) -> None:
        drink = env.store.add_item("Ghost", stock_quantity=None, is_mixed_drink=True)
        with pytest.raises(ItemNotFoundError):
            await env.svc.set_components(env.db, drink.id, [("missing", 1)])


class TestRestock:
    async def test_only_changed_lines_reach_ledger(self, env: _Env) -> None:
        cola = env.store.add_item("Cola", stock_quantity=5)
        beer = env.store.add_item("Beer", stock_quantity=12)
        result = await env.svc.restock(
            env.db,
            [StockCount(cola.id, 29), StockCount(beer.id, 12)],
            "Tuesday delivery",
            "t-1",
        )
        assert result.kind == "restock"
        assert len(result.lines) == 2
        assert [(e.item_id, e.quantity_change, e.transaction_type) for e in result.entries] == [
            (cola.id, 24, "purchase")
        ]
        assert result.entries[0].restock_session_id == result.id
        assert [line.item_id for _, line in env.store.state.restock_items] == [cola.id]
        assert env.stock(cola.id) == 29
        assert env.stock(beer.id) == 12

    async def test_counted_decrease_is_adjustment(self, env: _Env) -> None:
        cola = env.store.add_item("Cola", stock_quantity=5)
        result = await env.svc.restock(env.db, [StockCount(cola.id, 3)], None, None)
        assert result.entries[0].transaction_type == "adjustment"
        assert result.entries[0].quantity_change == -2

    async def test_untracked_item_rejected_atomically(self, env: _Env) -> None:
        cola = env.store.add_item("Cola", stock_quantity=5)
        snack = env.store.add_item("Peanuts", stock_quantity=None)
        with pytest.raises(StockNotTrackedError):
            await env.svc.restock(
                env.db, [StockCount(cola.id, 10), StockCount(snack.id, 4)], None, None
            )
        assert env.stock(cola.id) == 5
        assert env.store.state.stock_transactions == []

    async def test_conflict_retried_with_fresh_count(self, env: _Env) -> None:
        cola = env.store.add_item("Cola", stock_quantity=24)
        # A sale lands between reading the counter and the compare-and-swap.
        env.repo.interference[cola.id] = [-1]
        result = await env.svc.restock(env.db, [StockCount(cola.id, 30)], None, "t-1")
        assert result.lines[0].previous_quantity == 23
        assert result.entries[0].quantity_change == 7
        assert env.stock(cola.id) == 30
        assert env.db.rollbacks == 1
        assert await env.repo.find_stock_drift(env.db) == []

    async def test_second_conflict_surfaces(self, env: _Env) -> None:
        cola = env.store.add_item("Cola", stock_quantity=24)
        env.repo.interference[cola.id] = [-1, -1]
        with pytest.raises(StockConflictError):
            await env.svc.restock(env.db, [StockCount(cola.id, 30)], None, "t-1")
        assert env.stock(cola.id) == 22
        assert env.store.state.restock_items == []


class TestAudit:
    async def test_all_lines_kept_only_differences_booked(self, env: _Env) -> None:
        cola = env.store.add_item("Cola", stock_quantity=20)
        beer = env.store.add_item("Beer", stock_quantity=8)
        result = await env.svc.audit(
            env.db, [StockCount(cola.id, 18, "two broken"), StockCount(beer.id, 8)], "monthly", None
        )
        assert result.kind == "audit"
        assert len(env.store.state.audit_items) == 2
        assert [(e.item_id, e.quantity_change) for e in result.entries] == [(cola.id, -2)]
        assert result.entries[0].transaction_type == "adjustment"
        assert result.entries[0].notes == "two broken"
        assert result.entries[0].stock_audit_id == result.id

    async def test_unknown_item(self, env: _Env) -> None:
        with pytest.raises(ItemNotFoundError):
            await env.svc.audit(env.db, [StockCount("missing", 1)], None, None)


class TestAdjustAndConsistency:
    async def test_adjust_with_stale_expectation(self, env: _Env) -> None:
        cola = env.store.add_item("Cola", stock_quantity=24)
        with pytest.raises(StockConflictError):
            await env.svc.adjust_stock(
                env.db, cola.id, -1, "adjustment", None, None, expected_quantity=20
            )
        assert env.db.rollbacks == 1

    async def test_history_newest_first(self, env: _Env) -> None:
        cola = env.store.add_item("Cola", stock_quantity=24)
        await env.svc.adjust_stock(env.db, cola.id, 6, "purchase", None, None)
        await env.svc.adjust_stock(env.db, cola.id, -1, "adjustment", None, None)
        history = await env.svc.list_stock_transactions(env.db, cola.id, 10)
        assert [e.quantity_change for e in history.items] == [-1, 6]

    async def test_consistent_after_operations(self, env: _Env) -> None:
        cola = env.store.add_item("Cola", stock_quantity=24)
        await env.svc.adjust_stock(env.db, cola.id, 6, "purchase", None, None)
        await env.svc.audit(env.db, [StockCount(cola.id, 25)], None, None)
        report = await env.svc.verify_stock_consistency(env.db)
        assert report.consistent is True

    async def test_drift_detected(self, env: _Env) -> None:
        cola = env.store.add_item("Cola", stock_quantity=24)
        env.store.state.items[cola.id].stock_quantity = 21
        report = await env.svc.verify_stock_consistency(env.db, cola.id)
        assert report.consistent is False
        assert report.violations[0].drift == -3
        assert report.violations[0].expected_quantity == 24
