"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth/Account
  2xxx: Ledger/Balance
  3xxx: Reversal
  4xxx: Inventory
  5xxx: Top-up/Payment
  9xxx: System

Every kind carries its own user-facing message; only StoreUnavailableError
is deliberately generic.
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Auth/Account ---

class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "Invalid or expired credentials", 401)


class AccountDisabledError(AppError):
    def __init__(self, account_id: str | None = None) -> None:
        detail = f": {account_id}" if account_id else ""
        super().__init__(1002, f"Account is disabled{detail}", 403)


class PermissionDeniedError(AppError):
    def __init__(self, detail: str = "Insufficient role for this operation") -> None:
        super().__init__(1003, detail, 403)


class AccountNotFoundError(AppError):
    def __init__(self, account_id: str) -> None:
        super().__init__(1004, f"Account not found: {account_id}", 404)


class NotAGuestAccountError(AppError):
    def __init__(self, account_id: str) -> None:
        super().__init__(1005, f"Account {account_id} is not a guest account", 422)


class GuestHasHistoryError(AppError):
    def __init__(self, account_id: str, consumptions: int) -> None:
        super().__init__(
            1006,
            f"Guest account {account_id} has {consumptions} consumption(s) and cannot be deleted",
            409,
        )


class NoOutstandingBalanceError(AppError):
    def __init__(self, account_id: str, balance: int) -> None:
        super().__init__(
            1007,
            f"No outstanding balance to settle for {account_id} (balance {balance} cents)",
            422,
        )


# --- 2xxx: Ledger/Balance ---

class InsufficientBalanceError(AppError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            2001,
            f"Insufficient balance: required {required} cents, available {available} cents. "
            "Top up first.",
            422,
        )


class EventNotFoundError(AppError):
    def __init__(self, event_type: str, event_id: str) -> None:
        super().__init__(2002, f"{event_type} not found: {event_id}", 404)


class InvalidAdjustmentError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(2003, f"Invalid adjustment: {detail}", 422)


class InvalidLateFeeError(AppError):
    def __init__(self, minutes_late: int) -> None:
        super().__init__(
            2004, f"Late fee needs a positive number of minutes, got {minutes_late}", 422
        )


# --- 3xxx: Reversal ---

class AlreadyReversedError(AppError):
    def __init__(self, event_type: str, event_id: str) -> None:
        super().__init__(3001, f"This {event_type} has already been undone: {event_id}", 409)


class ReversalWindowExpiredError(AppError):
    def __init__(self, window_minutes: int) -> None:
        super().__init__(
            3002,
            f"Too old to undo yourself (limit {window_minutes} minutes); contact an admin",
            422,
        )


# --- 4xxx: Inventory ---

class ItemNotFoundError(AppError):
    def __init__(self, item_id: str) -> None:
        super().__init__(4001, f"Item not found: {item_id}", 404)


class ItemNotActiveError(AppError):
    def __init__(self, item_id: str) -> None:
        super().__init__(4002, f"Item is not available: {item_id}", 422)


class StockNotTrackedError(AppError):
    def __init__(self, item_id: str) -> None:
        super().__init__(4003, f"Item {item_id} has no stock counter", 422)


class StockConflictError(AppError):
    def __init__(self, item_id: str, expected: int) -> None:
        super().__init__(
            4004,
            f"Stock of item {item_id} changed concurrently (expected {expected}); try again",
            409,
        )


class NegativeStockError(AppError):
    def __init__(self, item_id: str, change: int) -> None:
        super().__init__(
            4005, f"Stock of item {item_id} cannot drop below zero (change {change})", 422
        )


class InvalidMixedDrinkError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4006, f"Invalid mixed drink: {detail}", 422)


class InvalidStockChangeError(AppError):
    def __init__(self, item_id: str) -> None:
        super().__init__(4007, f"Stock change for item {item_id} must be non-zero", 422)


# --- 5xxx: Top-up/Payment ---

class TopUpNotFoundError(AppError):
    def __init__(self, provider_ref: str) -> None:
        super().__init__(5001, f"Top-up not found: {provider_ref}", 404)


class InvalidTopUpStatusError(AppError):
    def __init__(self, provider_ref: str, status: str) -> None:
        super().__init__(5002, f"Top-up {provider_ref} has invalid status {status}", 422)


class TopUpAmountMismatchError(AppError):
    def __init__(self, expected: int, confirmed: int) -> None:
        super().__init__(
            5003,
            f"Payment amount mismatch: expected {expected} cents, "
            f"provider confirmed {confirmed} cents",
            422,
        )


class DuplicateTopUpError(AppError):
    def __init__(self, provider_ref: str) -> None:
        super().__init__(5004, f"Duplicate provider reference: {provider_ref}", 409)


# --- 9xxx: System ---

class StoreUnavailableError(AppError):
    def __init__(self) -> None:
        super().__init__(9001, "Something went wrong, please try again later", 503)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
