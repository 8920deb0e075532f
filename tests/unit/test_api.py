"""HTTP-level tests: routers, envelope and error mapping over in-memory repositories."""

import uuid
from collections.abc import AsyncGenerator, Iterator
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError

import src.tab_account.api.router as account_api
import src.tab_inventory.api.router as inventory_api
import src.tab_ledger.api.router as ledger_api
from src.main import app
from src.tab_account.application.service import AccountApplicationService
from src.tab_account.domain.models import Account
from src.tab_common.database import get_db_session
from src.tab_common.enums import AccountRole
from src.tab_gateway.auth.dependencies import get_current_account
from src.tab_inventory.application.service import InventoryApplicationService
from src.tab_inventory.application.stock_ledger import StockLedger
from src.tab_ledger.application.service import LedgerApplicationService
from tests.unit.fakes import (
    FakeAccountRepository,
    FakeBalanceCache,
    FakeInventoryRepository,
    FakeLedgerRepository,
    FakeSession,
    FakeStore,
)


class _Api:
    def __init__(self, store: FakeStore) -> None:
        self.store = store
        self.acting: Account | None = None
        self.member = store.add_account("Sam")
        self.treasurer = store.add_account("Tess", role=AccountRole.TREASURER)
        self.admin = store.add_account("Ada", role=AccountRole.ADMIN)


@pytest.fixture
def api(monkeypatch: pytest.MonkeyPatch) -> Iterator[_Api]:
    store = FakeStore()
    ctx = _Api(store)
    inventory = FakeInventoryRepository(store)
    accounts = FakeAccountRepository(store)
    cache = FakeBalanceCache()
    ledger = LedgerApplicationService(
        repo=FakeLedgerRepository(store),
        account_repo=accounts,
        inventory_repo=inventory,
        stock_ledger=StockLedger(inventory, enforce_floor=False),
        cache=cache,
        reversal_window=timedelta(hours=4),
        clock=lambda: store.now,
    )
    monkeypatch.setattr(ledger_api, "_service", ledger)
    monkeypatch.setattr(account_api, "_ledger", ledger)
    monkeypatch.setattr(account_api, "_service", AccountApplicationService(accounts, cache))
    monkeypatch.setattr(
        inventory_api,
        "_service",
        InventoryApplicationService(inventory, StockLedger(inventory, enforce_floor=False)),
    )

    async def _db() -> AsyncGenerator[FakeSession, None]:
        yield FakeSession(store)

    def _acting() -> Account:
        assert ctx.acting is not None
        return ctx.acting

    app.dependency_overrides[get_db_session] = _db
    app.dependency_overrides[get_current_account] = _acting
    ctx.acting = ctx.member
    yield ctx
    app.dependency_overrides.clear()


class TestConsumptionFlow:
    async def test_tap_and_balance(self, client: AsyncClient, api: _Api) -> None:
        api.store.add_paid_top_up(api.member.id, 2500)
        beer = api.store.add_item("Beer", price_cents=350)

        resp = await client.post("/api/v1/ledger/consumptions", json={"item_id": beer.id})
        assert resp.status_code == 201
        body = resp.json()
        assert body["code"] == 0
        assert body["request_id"].startswith("req_")
        assert body["data"]["price_display"] == "€3.50"

        resp = await client.get("/api/v1/ledger/balance")
        assert resp.json()["data"]["balance_cents"] == 2150

    async def test_insufficient_balance_envelope(self, client: AsyncClient, api: _Api) -> None:
        beer = api.store.add_item("Beer", price_cents=350)
        resp = await client.post("/api/v1/ledger/consumptions", json={"item_id": beer.id})
        assert resp.status_code == 422
        body = resp.json()
        assert body["code"] == 2001
        assert body["data"] is None

    async def test_undo_twice(self, client: AsyncClient, api: _Api) -> None:
        api.store.add_paid_top_up(api.member.id, 2500)
        beer = api.store.add_item("Beer", price_cents=350)
        c = (await client.post("/api/v1/ledger/consumptions", json={"item_id": beer.id})).json()
        payload = {"original_event_id": c["data"]["id"], "original_event_type": "consumption"}

        first = await client.post("/api/v1/ledger/reversals", json=payload)
        assert first.status_code == 201
        assert first.json()["data"]["reason"] == "Undone"

        second = await client.post("/api/v1/ledger/reversals", json=payload)
        assert second.status_code == 409
        assert second.json()["code"] == 3001

    async def test_late_fee(self, client: AsyncClient, api: _Api) -> None:
        api.store.add_item("Late fee", price_cents=100, stock_quantity=None, active=False)
        resp = await client.post("/api/v1/ledger/late-fees", json={"minutes_late": 12})
        assert resp.status_code == 201
        assert resp.json()["data"]["price_cents"] == 300

        resp = await client.get("/api/v1/ledger/balance")
        assert resp.json()["data"]["balance_cents"] == -300

    async def test_late_fee_needs_minutes(self, client: AsyncClient, api: _Api) -> None:
        resp = await client.post("/api/v1/ledger/late-fees", json={"minutes_late": 0})
        assert resp.status_code == 422

    async def test_malformed_item_id(self, client: AsyncClient, api: _Api) -> None:
        resp = await client.post("/api/v1/ledger/consumptions", json={"item_id": "beer"})
        assert resp.status_code == 422

    async def test_unknown_event_type(self, client: AsyncClient, api: _Api) -> None:
        resp = await client.post(
            "/api/v1/ledger/reversals",
            json={"original_event_id": str(uuid.uuid4()), "original_event_type": "adjustment"},
        )
        assert resp.status_code == 422


class TestRoles:
    async def test_adjustment_needs_staff(self, client: AsyncClient, api: _Api) -> None:
        resp = await client.post(
            "/api/v1/ledger/adjustments",
            json={"account_id": api.member.id, "delta_cents": 100, "reason": "gift"},
        )
        assert resp.status_code == 403
        assert resp.json()["code"] == 1003

    async def test_treasurer_adjusts(self, client: AsyncClient, api: _Api) -> None:
        api.acting = api.treasurer
        resp = await client.post(
            "/api/v1/ledger/adjustments",
            json={"account_id": api.member.id, "delta_cents": -100, "reason": "glass"},
        )
        assert resp.status_code == 201
        assert resp.json()["data"]["delta_display"] == "-€1.00"

    async def test_missing_token(self, client: AsyncClient, api: _Api) -> None:
        del app.dependency_overrides[get_current_account]
        resp = await client.get("/api/v1/ledger/balance")
        assert resp.status_code == 401

    async def test_foreign_history_refused(self, client: AsyncClient, api: _Api) -> None:
        resp = await client.get(
            "/api/v1/ledger/top-ups", params={"account_id": api.treasurer.id}
        )
        assert resp.status_code == 403


class TestGuests:
    async def test_create_tab_and_settle(self, client: AsyncClient, api: _Api) -> None:
        api.acting = api.admin
        guest = (await client.post("/api/v1/accounts/guests", json={"name": "Bob"})).json()
        guest_id = guest["data"]["id"]
        assert guest["data"]["allow_negative_balance"] is True

        wine = api.store.add_item("Wine", price_cents=850)
        resp = await client.post(
            "/api/v1/ledger/consumptions", json={"item_id": wine.id, "account_id": guest_id}
        )
        assert resp.status_code == 201

        resp = await client.post(
            f"/api/v1/accounts/guests/{guest_id}/settle", json={"method": "cash"}
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["settled_cents"] == 850

        resp = await client.delete(f"/api/v1/accounts/guests/{guest_id}")
        assert resp.status_code == 409
        assert resp.json()["code"] == 1006


class TestInventory:
    async def test_duplicate_lines_rejected(self, client: AsyncClient, api: _Api) -> None:
        api.acting = api.treasurer
        cola = api.store.add_item("Cola")
        line = {"item_id": cola.id, "counted_quantity": 30}
        resp = await client.post("/api/v1/inventory/restock-sessions", json={"lines": [line, line]})
        assert resp.status_code == 422

    async def test_restock(self, client: AsyncClient, api: _Api) -> None:
        api.acting = api.treasurer
        cola = api.store.add_item("Cola", stock_quantity=6)
        resp = await client.post(
            "/api/v1/inventory/restock-sessions",
            json={"lines": [{"item_id": cola.id, "counted_quantity": 30}], "notes": "delivery"},
        )
        assert resp.status_code == 201
        assert resp.json()["data"]["entries"][0]["quantity_change"] == 24

    async def test_manual_sale_entry_rejected(self, client: AsyncClient, api: _Api) -> None:
        api.acting = api.treasurer
        cola = api.store.add_item("Cola", stock_quantity=6)
        resp = await client.post(
            f"/api/v1/inventory/items/{cola.id}/stock-adjustments",
            json={"quantity_change": -1, "transaction_type": "sale"},
        )
        assert resp.status_code == 422
        assert api.store.state.items[cola.id].stock_quantity == 6

    async def test_catalog_visible_to_members(self, client: AsyncClient, api: _Api) -> None:
        api.store.add_item("Cola")
        resp = await client.get("/api/v1/inventory/items")
        assert [i["name"] for i in resp.json()["data"]["items"]] == ["Cola"]


class TestStoreUnavailable:
    async def test_generic_503(
        self, client: AsyncClient, api: _Api, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        failing = AsyncMock(side_effect=OperationalError("SELECT 1", {}, ConnectionError("down")))
        monkeypatch.setattr(ledger_api._service, "get_balance", failing)
        resp = await client.get("/api/v1/ledger/balance")
        assert resp.status_code == 503
        assert resp.json()["code"] == 9001
        assert "down" not in resp.json()["message"]


class TestHealth:
    async def test_health(self, client: AsyncClient) -> None:
        resp = await client.get("/health")
        assert resp.json()["status"] == "ok"
