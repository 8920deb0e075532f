"""Domain models for tab_account — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.tab_common.enums import STAFF_ROLES, AccountRole


@dataclass
class Account:
    id: str
    name: str
    role: str                       # AccountRole value
    is_guest: bool
    allow_negative_balance: bool    # guests run a tab on credit
    active: bool
    email: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_staff(self) -> bool:
        return AccountRole(self.role) in STAFF_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role == AccountRole.ADMIN
