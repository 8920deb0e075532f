"""Pydantic schemas for tab_account API."""

from pydantic import BaseModel, Field

from src.tab_account.domain.models import Account


class CreateGuestRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)


class AccountResponse(BaseModel):
    id: str
    name: str
    email: str | None
    role: str
    is_guest: bool
    allow_negative_balance: bool
    active: bool
    created_at: str  # ISO8601 string

    @classmethod
    def from_domain(cls, a: Account) -> "AccountResponse":
        return cls(
            id=a.id,
            name=a.name,
            email=a.email,
            role=a.role,
            is_guest=a.is_guest,
            allow_negative_balance=a.allow_negative_balance,
            active=a.active,
            created_at=a.created_at.isoformat() if a.created_at else "",
        )


class AccountListResponse(BaseModel):
    items: list[AccountResponse]


class DeleteAccountResponse(BaseModel):
    id: str
    deleted: bool
