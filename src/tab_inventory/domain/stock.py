"""Pure stock arithmetic: derived availability, line deltas, low-stock rule."""

from collections.abc import Iterable

from src.tab_common.enums import StockTransactionType
from src.tab_inventory.domain.models import CatalogItem, MixedDrinkComponent, StockLine


def derived_stock(components: Iterable[MixedDrinkComponent]) -> int | None:
    """Servings of a mixed drink the components allow: min(floor(stock / required)).

    Untracked components never run out and do not constrain. A drink without
    components yields 0; a drink made only of untracked components yields None
    (unlimited). Negative component stock yields 0, never a negative count.
    """
    components = list(components)
    if not components:
        return 0
    servings = [
        max(c.component_stock // c.quantity, 0)
        for c in components
        if c.component_stock is not None
    ]
    return min(servings) if servings else None


def restock_transaction_type(delta: int) -> StockTransactionType:
    """Counted increases are purchases; counted decreases are corrections."""
    return StockTransactionType.PURCHASE if delta > 0 else StockTransactionType.ADJUSTMENT


def changed_lines(lines: Iterable[StockLine]) -> list[StockLine]:
    """Only lines whose count differs from the expected quantity reach the ledger."""
    return [line for line in lines if line.delta != 0]


def is_low_stock(item: CatalogItem, default_threshold: int) -> bool:
    """Tracked, non-mixed items strictly below their threshold."""
    if not item.is_tracked:
        return False
    threshold = (
        item.low_stock_threshold if item.low_stock_threshold is not None else default_threshold
    )
    return item.stock_quantity < threshold  # type: ignore[operator]


def inventory_value(items: Iterable[CatalogItem]) -> int:
    """Σ stock × purchase price over tracked items with positive stock, in cents."""
    return sum(
        item.stock_quantity * item.purchase_price_cents  # type: ignore[operator]
        for item in items
        if item.is_tracked and item.stock_quantity > 0  # type: ignore[operator]
    )
