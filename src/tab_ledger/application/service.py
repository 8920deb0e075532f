"""LedgerApplicationService — balances, monetary events and reversals.

Write operations own the transaction: commit on success, rollback and
re-raise on any exception. The balance cache is invalidated only after a
successful commit.

Reversal pipeline (first failing step wins):
  1. the original event exists                  -> EventNotFoundError
  2. no reversal exists yet                     -> AlreadyReversedError
  3. authorization / self-service time window   -> ReversalWindowExpiredError,
                                                   PermissionDeniedError
  4. INSERT reversal ... ON CONFLICT DO NOTHING -> AlreadyReversedError (lost race)
  5. compensating adjustment (+price / -amount)
  6. stock +1 for a tracked item, best effort
Steps 4-6 are one transaction.
"""

import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.tab_account.domain.models import Account
from src.tab_account.domain.repository import AccountRepositoryProtocol
from src.tab_account.infrastructure.persistence import AccountRepository
from src.tab_common.cents import cents_to_display
from src.tab_common.datetime_utils import ensure_utc, utc_now
from src.tab_common.enums import (
    ConsumptionSource,
    GuestSettlementMethod,
    ReversibleEventType,
    TopUpProvider,
    TopUpStatus,
)
from src.tab_common.errors import (
    AccountDisabledError,
    AccountNotFoundError,
    AlreadyReversedError,
    DuplicateTopUpError,
    EventNotFoundError,
    InsufficientBalanceError,
    InternalError,
    InvalidAdjustmentError,
    InvalidLateFeeError,
    InvalidTopUpStatusError,
    ItemNotActiveError,
    ItemNotFoundError,
    NoOutstandingBalanceError,
    NotAGuestAccountError,
    PermissionDeniedError,
    ReversalWindowExpiredError,
    TopUpAmountMismatchError,
    TopUpNotFoundError,
)
from src.tab_common.pagination import cursor_decode, cursor_encode
from src.tab_inventory.application.stock_ledger import StockLedger
from src.tab_inventory.domain.models import CatalogItem
from src.tab_inventory.domain.repository import InventoryRepositoryProtocol
from src.tab_inventory.infrastructure.persistence import InventoryRepository
from src.tab_ledger.application.schemas import (
    AdjustmentHistoryResponse,
    AdjustmentResponse,
    BalanceBreakdownResponse,
    BalanceCacheCheckResponse,
    BalanceResponse,
    ConsumptionHistoryEntry,
    ConsumptionHistoryResponse,
    ConsumptionResponse,
    ReversalResponse,
    SettlementResponse,
    TopUpHistoryResponse,
    TopUpResponse,
)
from src.tab_ledger.domain.balance import would_overdraw
from src.tab_ledger.domain.cache import BalanceCache
from src.tab_ledger.domain.fees import LATE_FEE_UNIT_CENTS, late_fee_cents
from src.tab_ledger.domain.policy import ReversalDecision, evaluate_reversal
from src.tab_ledger.domain.repository import LedgerRepositoryProtocol
from src.tab_ledger.infrastructure.persistence import LedgerRepository

logger = logging.getLogger(__name__)


class LedgerApplicationService:
    def __init__(
        self,
        repo: LedgerRepositoryProtocol | None = None,
        account_repo: AccountRepositoryProtocol | None = None,
        inventory_repo: InventoryRepositoryProtocol | None = None,
        stock_ledger: StockLedger | None = None,
        cache: BalanceCache | None = None,
        reversal_window: timedelta | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repo: LedgerRepositoryProtocol = repo or LedgerRepository()
        self._accounts: AccountRepositoryProtocol = account_repo or AccountRepository()
        self._inventory: InventoryRepositoryProtocol = inventory_repo or InventoryRepository()
        self._stock = stock_ledger or StockLedger(self._inventory)
        self._cache = cache or BalanceCache()
        self._window = reversal_window or timedelta(
            minutes=settings.SELF_REVERSAL_WINDOW_MINUTES
        )
        self._clock = clock

    # ------------------------------------------------------------------
    # Balance
    # ------------------------------------------------------------------

    async def compute_balance(self, db: AsyncSession, account_id: str) -> int:
        """Cache-aside read; the event log stays the source of truth."""
        cached = await self._cache.get(account_id)
        if cached is not None:
            return cached
        breakdown = await self._repo.get_balance_breakdown(db, account_id)
        await self._cache.set(account_id, breakdown.balance)
        return breakdown.balance

    async def get_balance(self, db: AsyncSession, account_id: str) -> BalanceResponse:
        await self._require_account(db, account_id)
        return BalanceResponse.from_cents(account_id, await self.compute_balance(db, account_id))

    async def get_balance_breakdown(
        self, db: AsyncSession, account_id: str
    ) -> BalanceBreakdownResponse:
        await self._require_account(db, account_id)
        breakdown = await self._repo.get_balance_breakdown(db, account_id)
        return BalanceBreakdownResponse.from_domain(breakdown)

    async def verify_balance_cache(
        self, db: AsyncSession, account_id: str
    ) -> BalanceCacheCheckResponse:
        """Compare the cached balance with a fresh recomputation."""
        cached = await self._cache.get(account_id)
        computed = (await self._repo.get_balance_breakdown(db, account_id)).balance
        consistent = cached is None or cached == computed
        if not consistent:
            logger.error(
                "Balance cache mismatch for %s: cached=%d computed=%d",
                account_id, cached, computed,
            )
            await self._cache.invalidate(account_id)
        return BalanceCacheCheckResponse(
            account_id=account_id,
            cached_cents=cached,
            computed_cents=computed,
            consistent=consistent,
        )

    # ------------------------------------------------------------------
    # Consumptions
    # ------------------------------------------------------------------

    async def record_consumption(
        self,
        db: AsyncSession,
        actor: Account,
        account_id: str,
        item_id: str,
        source: str = ConsumptionSource.TAP,
        client_id: str | None = None,
        note: str | None = None,
    ) -> ConsumptionResponse:
        """Charge one unit of *item_id* to *account_id* at the item's current price."""
        origin = ConsumptionSource(source)
        is_admin_source = origin is ConsumptionSource.ADMIN
        if is_admin_source and not actor.is_staff:
            raise PermissionDeniedError("Only treasurers and admins can book on behalf of others")
        if actor.id != account_id and not actor.is_staff:
            raise PermissionDeniedError("You can only order on your own tab")

        if client_id is not None:
            existing = await self._repo.get_consumption_by_client_id(db, client_id)
            if existing is not None:
                return ConsumptionResponse.from_domain(existing, replayed=True)

        try:
            account = await self._accounts.get_account(db, account_id, for_update=True)
            if account is None:
                raise AccountNotFoundError(account_id)
            if not account.active and not is_admin_source:
                raise AccountDisabledError(account_id)
            item = await self._inventory.get_item(db, item_id)
            if item is None:
                raise ItemNotFoundError(item_id)
            if not item.active:
                raise ItemNotActiveError(item_id)

            if not is_admin_source:
                balance = (await self._repo.get_balance_breakdown(db, account_id)).balance
                if would_overdraw(balance, item.price_cents, account.allow_negative_balance):
                    raise InsufficientBalanceError(item.price_cents, balance)

            consumption = await self._repo.insert_consumption(
                db, account_id, item_id, item.price_cents, origin.value, client_id, note
            )
            if consumption is None:
                # A concurrent tap with the same client_id won the insert.
                await db.rollback()
                winner = await self._repo.get_consumption_by_client_id(db, client_id)  # type: ignore[arg-type]
                if winner is None:
                    raise InternalError("Consumption conflict without a stored row")
                return ConsumptionResponse.from_domain(winner, replayed=True)

            consumption.item_name = item.name
            await self._stock.record_sale(
                db, item, actor.id, notes=f"Consumption {consumption.id}"
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        await self._cache.invalidate(account_id)
        logger.info(
            "Consumption recorded: account=%s item=%s price=%d source=%s",
            account_id, item_id, consumption.price_cents, origin.value,
        )
        return ConsumptionResponse.from_domain(consumption)

    async def record_late_fee(
        self, db: AsyncSession, actor: Account, account_id: str, minutes_late: int
    ) -> ConsumptionResponse:
        """Book a late-arrival fee as a consumption of the fee item.

        The charge follows late_fee_cents(), not the item's list price, and is
        never refused for a low balance. The fee item is created (archived, so
        it stays off the tap grid) the first time an admin books a fee.
        """
        if minutes_late <= 0:
            raise InvalidLateFeeError(minutes_late)
        if actor.id != account_id and not actor.is_staff:
            raise PermissionDeniedError("You can only book a late fee on your own tab")
        fee = late_fee_cents(minutes_late)

        try:
            account = await self._accounts.get_account(db, account_id, for_update=True)
            if account is None:
                raise AccountNotFoundError(account_id)
            if not account.active:
                raise AccountDisabledError(account_id)
            item = await self._fee_item(db, actor)

            consumption = await self._repo.insert_consumption(
                db,
                account_id,
                item.id,
                fee,
                ConsumptionSource.TAP.value,
                None,
                f"Late: {minutes_late} minutes",
            )
            if consumption is None:
                raise InternalError("Late fee insert returned no rows")
            consumption.item_name = item.name
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        await self._cache.invalidate(account_id)
        logger.info(
            "Late fee recorded: account=%s minutes=%d fee=%d by=%s",
            account_id, minutes_late, fee, actor.id,
        )
        return ConsumptionResponse.from_domain(consumption)

    async def _fee_item(self, db: AsyncSession, actor: Account) -> CatalogItem:
        name = settings.LATE_FEE_ITEM_NAME
        item = await self._inventory.get_item_by_name(db, name)
        if item is not None:
            return item
        if not actor.is_admin:
            raise ItemNotFoundError(name)
        item = await self._inventory.create_item(
            db,
            name=name,
            price_cents=LATE_FEE_UNIT_CENTS,
            purchase_price_cents=0,
            stock_quantity=None,
            low_stock_threshold=None,
            is_mixed_drink=False,
        )
        archived = await self._inventory.set_item_active(db, item.id, False)
        logger.info("Late fee item created: %s", item.id)
        return archived or item

    # ------------------------------------------------------------------
    # Top-ups
    # ------------------------------------------------------------------

    async def create_top_up(
        self,
        db: AsyncSession,
        actor: Account,
        account_id: str,
        amount_cents: int,
        provider: str,
        provider_ref: str | None = None,
    ) -> TopUpResponse:
        """Cash is taken at the bar and paid at once; other providers start pending."""
        kind = TopUpProvider(provider)
        is_cash = kind is TopUpProvider.CASH
        if is_cash and not actor.is_staff:
            raise PermissionDeniedError("Cash top-ups are booked by a treasurer or admin")
        if actor.id != account_id and not actor.is_staff:
            raise PermissionDeniedError("You can only top up your own tab")
        status = TopUpStatus.PAID if is_cash else TopUpStatus.PENDING
        ref = provider_ref or f"{kind.value}_{uuid.uuid4().hex}"

        try:
            await self._require_account(db, account_id)
            top_up = await self._repo.insert_top_up(
                db, account_id, amount_cents, kind.value, ref, status.value
            )
            if top_up is None:
                raise DuplicateTopUpError(ref)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        if top_up.status == TopUpStatus.PAID:
            await self._cache.invalidate(account_id)
        logger.info(
            "Top-up created: account=%s amount=%d provider=%s status=%s",
            account_id, amount_cents, kind.value, top_up.status,
        )
        return TopUpResponse.from_domain(top_up)

    async def confirm_top_up(
        self, db: AsyncSession, provider_ref: str, confirmed_amount_cents: int
    ) -> TopUpResponse:
        """pending -> paid after the provider confirmed the amount. Idempotent."""
        try:
            top_up = await self._repo.get_top_up_by_ref(db, provider_ref)
            if top_up is None:
                raise TopUpNotFoundError(provider_ref)
            if top_up.status == TopUpStatus.PAID:
                await db.rollback()
                return TopUpResponse.from_domain(top_up)
            if top_up.status != TopUpStatus.PENDING:
                raise InvalidTopUpStatusError(provider_ref, top_up.status)
            if top_up.amount_cents != confirmed_amount_cents:
                raise TopUpAmountMismatchError(top_up.amount_cents, confirmed_amount_cents)

            paid = await self._repo.transition_top_up(
                db, provider_ref, TopUpStatus.PENDING, TopUpStatus.PAID
            )
            if paid is None:
                # Someone moved it first; report what it became.
                current = await self._repo.get_top_up_by_ref(db, provider_ref)
                if current is not None and current.status == TopUpStatus.PAID:
                    await db.rollback()
                    return TopUpResponse.from_domain(current)
                raise InvalidTopUpStatusError(
                    provider_ref, current.status if current else "missing"
                )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        await self._cache.invalidate(paid.account_id)
        logger.info("Top-up confirmed: %s amount=%d", provider_ref, paid.amount_cents)
        return TopUpResponse.from_domain(paid)

    async def fail_top_up(
        self, db: AsyncSession, provider_ref: str, status: str = TopUpStatus.FAILED
    ) -> TopUpResponse:
        """pending -> failed | cancelled; these never count towards the balance."""
        if status not in (TopUpStatus.FAILED, TopUpStatus.CANCELLED):
            raise InvalidTopUpStatusError(provider_ref, status)
        try:
            top_up = await self._repo.transition_top_up(
                db, provider_ref, TopUpStatus.PENDING, status
            )
            if top_up is None:
                current = await self._repo.get_top_up_by_ref(db, provider_ref)
                if current is None:
                    raise TopUpNotFoundError(provider_ref)
                raise InvalidTopUpStatusError(provider_ref, current.status)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Top-up %s marked %s", provider_ref, status)
        return TopUpResponse.from_domain(top_up)

    # ------------------------------------------------------------------
    # Adjustments
    # ------------------------------------------------------------------

    async def create_adjustment(
        self,
        db: AsyncSession,
        actor: Account,
        account_id: str,
        delta_cents: int,
        reason: str,
    ) -> AdjustmentResponse:
        if not actor.is_staff:
            raise PermissionDeniedError("Treasurer or admin role required")
        if delta_cents == 0:
            raise InvalidAdjustmentError("delta must be non-zero")
        if not reason.strip():
            raise InvalidAdjustmentError("a reason is required")
        try:
            await self._require_account(db, account_id)
            adjustment = await self._repo.insert_adjustment(
                db, account_id, delta_cents, reason.strip(), actor.id
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        await self._cache.invalidate(account_id)
        logger.info(
            "Adjustment recorded: account=%s delta=%+d by=%s", account_id, delta_cents, actor.id
        )
        return AdjustmentResponse.from_domain(adjustment)

    # ------------------------------------------------------------------
    # Reversals
    # ------------------------------------------------------------------

    async def reverse_transaction(
        self,
        db: AsyncSession,
        actor: Account,
        original_event_id: str,
        original_event_type: str,
        reason: str,
    ) -> ReversalResponse:
        event_type = ReversibleEventType(original_event_type)
        try:
            event = await self._repo.get_reversible_event(
                db, original_event_id, event_type.value
            )
            if event is None:
                raise EventNotFoundError(event_type.value, original_event_id)
            if await self._repo.get_reversal(db, original_event_id, event_type.value) is not None:
                raise AlreadyReversedError(event_type.value, original_event_id)

            age = self._clock() - ensure_utc(event.created_at)
            decision = evaluate_reversal(actor, event.account_id, age, self._window)
            if decision is ReversalDecision.WINDOW_EXPIRED:
                raise ReversalWindowExpiredError(int(self._window.total_seconds() // 60))
            if decision is ReversalDecision.NOT_PERMITTED:
                raise PermissionDeniedError("You can only undo your own transactions")
            if event_type is ReversibleEventType.TOPUP and event.status != TopUpStatus.PAID:
                raise InvalidTopUpStatusError(original_event_id, event.status or "unknown")

            adjustment_id = str(uuid.uuid4())
            reversal = await self._repo.insert_reversal(
                db,
                event.account_id,
                original_event_id,
                event_type.value,
                reason,
                actor.id,
                adjustment_id,
            )
            if reversal is None:
                raise AlreadyReversedError(event_type.value, original_event_id)

            delta = (
                event.amount_cents
                if event_type is ReversibleEventType.CONSUMPTION
                else -event.amount_cents
            )
            adjustment = await self._repo.insert_adjustment(
                db,
                event.account_id,
                delta,
                f"Reversal of {event_type.value} {original_event_id}: {reason}",
                actor.id,
                adjustment_id=adjustment_id,
            )

            stock_entry = None
            if event_type is ReversibleEventType.CONSUMPTION:
                stock_entry = await self._stock.restore_after_reversal(
                    db, event.item_id, actor.id, notes=f"Reversal {reversal.id}"
                )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        await self._cache.invalidate(event.account_id)
        logger.info(
            "Reversal written: %s %s by=%s delta=%+d stock_restored=%s",
            event_type.value, original_event_id, actor.id, delta, stock_entry is not None,
        )
        return ReversalResponse.from_domain(reversal, adjustment, stock_entry is not None)

    # ------------------------------------------------------------------
    # Guest settlement
    # ------------------------------------------------------------------

    async def settle_guest(
        self, db: AsyncSession, actor: Account, account_id: str, method: str
    ) -> SettlementResponse:
        """Bring a guest tab back to zero.

        A debt is paid off by cash top-up or written off by adjustment. Leftover
        credit is released with a negative adjustment whatever *method* says,
        since a top-up cannot pay money out.
        """
        settlement = GuestSettlementMethod(method)
        top_up = adjustment = None
        try:
            account = await self._accounts.get_account(db, account_id, for_update=True)
            if account is None:
                raise AccountNotFoundError(account_id)
            if not account.is_guest:
                raise NotAGuestAccountError(account_id)
            balance = (await self._repo.get_balance_breakdown(db, account_id)).balance
            if balance == 0:
                raise NoOutstandingBalanceError(account_id, balance)
            outstanding = abs(balance)

            if balance > 0:
                settlement = GuestSettlementMethod.ADJUSTMENT
                adjustment = await self._repo.insert_adjustment(
                    db, account_id, -balance, f"Guest credit released: {account.name}", actor.id
                )
            elif settlement is GuestSettlementMethod.CASH:
                ref = f"cash_{int(self._clock().timestamp() * 1000)}_{account_id[:8]}"
                top_up = await self._repo.insert_top_up(
                    db, account_id, outstanding, TopUpProvider.CASH.value, ref, TopUpStatus.PAID.value
                )
                if top_up is None:
                    raise DuplicateTopUpError(ref)
            else:
                adjustment = await self._repo.insert_adjustment(
                    db, account_id, outstanding, f"Guest tab settled: {account.name}", actor.id
                )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        await self._cache.invalidate(account_id)
        logger.info(
            "Guest settled: account=%s method=%s amount=%d by=%s",
            account_id, settlement.value, outstanding, actor.id,
        )
        return SettlementResponse(
            account_id=account_id,
            method=settlement.value,
            settled_cents=outstanding,
            settled_display=cents_to_display(outstanding),
            previous_balance_cents=balance,
            balance_cents=0,
            top_up=TopUpResponse.from_domain(top_up) if top_up else None,
            adjustment=AdjustmentResponse.from_domain(adjustment) if adjustment else None,
        )

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    async def list_consumptions(
        self,
        db: AsyncSession,
        actor: Account,
        account_id: str,
        cursor: str | None,
        limit: int,
    ) -> ConsumptionHistoryResponse:
        self._check_history_access(actor, account_id)
        cursor_ts, cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        rows = await self._repo.list_consumptions(db, account_id, cursor_ts, cursor_id, limit + 1)
        has_more = len(rows) > limit
        page = rows[:limit]
        now = self._clock()

        items = []
        for row in page:
            c = row.consumption
            age = now - ensure_utc(c.created_at)
            self_reversible = (
                actor.id == c.account_id
                and not row.is_reversed
                and evaluate_reversal(actor, c.account_id, age, self._window)
                is ReversalDecision.ALLOWED
            )
            base = ConsumptionResponse.from_domain(c)
            items.append(
                ConsumptionHistoryEntry(
                    **base.model_dump(),
                    is_reversed=row.is_reversed,
                    can_self_reverse=self_reversible,
                )
            )
        next_cursor = (
            cursor_encode(page[-1].consumption.created_at, page[-1].consumption.id)
            if has_more and page
            else None
        )
        return ConsumptionHistoryResponse(items=items, next_cursor=next_cursor, has_more=has_more)

    async def list_top_ups(
        self,
        db: AsyncSession,
        actor: Account,
        account_id: str,
        cursor: str | None,
        limit: int,
    ) -> TopUpHistoryResponse:
        self._check_history_access(actor, account_id)
        cursor_ts, cursor_id = cursor_decode(cursor)
        rows = await self._repo.list_top_ups(db, account_id, cursor_ts, cursor_id, limit + 1)
        has_more = len(rows) > limit
        page = rows[:limit]
        next_cursor = cursor_encode(page[-1].created_at, page[-1].id) if has_more and page else None
        return TopUpHistoryResponse(
            items=[TopUpResponse.from_domain(t) for t in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def list_adjustments(
        self,
        db: AsyncSession,
        actor: Account,
        account_id: str,
        cursor: str | None,
        limit: int,
    ) -> AdjustmentHistoryResponse:
        self._check_history_access(actor, account_id)
        cursor_ts, cursor_id = cursor_decode(cursor)
        rows = await self._repo.list_adjustments(db, account_id, cursor_ts, cursor_id, limit + 1)
        has_more = len(rows) > limit
        page = rows[:limit]
        next_cursor = cursor_encode(page[-1].created_at, page[-1].id) if has_more and page else None
        return AdjustmentHistoryResponse(
            items=[AdjustmentResponse.from_domain(a) for a in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _require_account(self, db: AsyncSession, account_id: str) -> Account:
        account = await self._accounts.get_account(db, account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    @staticmethod
    def _check_history_access(actor: Account, account_id: str) -> None:
        if actor.id != account_id and not actor.is_staff:
            raise PermissionDeniedError("You can only view your own history")
