"""Integer arithmetic utilities for the bar tab.

All prices, amounts, deltas and balances are int (euro cents). No float, no Decimal.
"""


def validate_amount(amount: int) -> None:
    """Validate that a top-up or price amount is a positive number of cents."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"Amount must be an integer number of cents, got {amount!r}")
    if amount <= 0:
        raise ValueError(f"Amount must be positive, got {amount}")


def cents_to_display(cents: int) -> str:
    """Convert cents to display string: 2150 -> '€21.50', -500 -> '-€5.00'."""
    if cents < 0:
        abs_cents = -cents
        return f"-€{abs_cents // 100:,}.{abs_cents % 100:02d}"
    return f"€{cents // 100:,}.{cents % 100:02d}"
