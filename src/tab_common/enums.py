"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


class AccountRole(str, Enum):
    ORDINARY = "ordinary"
    TREASURER = "treasurer"
    ADMIN = "admin"


class ConsumptionSource(str, Enum):
    TAP = "tap"
    QR = "qr"
    ADMIN = "admin"


class TopUpProvider(str, Enum):
    STRIPE = "stripe"
    CASH = "cash"
    BANKTRANSFER = "banktransfer"


class TopUpStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ReversibleEventType(str, Enum):
    CONSUMPTION = "consumption"
    TOPUP = "topup"


class StockTransactionType(str, Enum):
    PURCHASE = "purchase"      # restock, positive
    SALE = "sale"              # consumption of a stock-tracked item
    ADJUSTMENT = "adjustment"  # manual correction or audit difference
    REVERSAL = "reversal"      # stock restored by a reversed consumption


class GuestSettlementMethod(str, Enum):
    CASH = "cash"
    ADJUSTMENT = "adjustment"


STAFF_ROLES = frozenset({AccountRole.TREASURER, AccountRole.ADMIN})
