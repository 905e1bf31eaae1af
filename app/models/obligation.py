from pydantic import BaseModel, Field, ConfigDict, field_validator
from datetime import date, datetime
from enum import Enum
from typing import Optional, Union
from bson import ObjectId

from app.models.base import from_mongo_date
from app.models.payment import PaymentResponse


CURRENCY_CODE_PATTERN = r"^[A-Z]{3}$"


class ObligationKind(str, Enum):
    TAX = "tax"
    TRANSACTION = "transaction"


class ObligationStatus(str, Enum):
    """Derived from the ledger on every read, never stored."""
    PAID = "paid"
    PENDING = "pending"
    OVERDUE = "overdue"


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class ObligationBase(BaseModel):
    """Base obligation schema."""
    kind: ObligationKind = ObligationKind.TAX
    name: str = Field(..., min_length=1, max_length=64)
    currency_code: str = Field(..., pattern=CURRENCY_CODE_PATTERN)
    due_date: date
    bank_account_number: Optional[str] = Field(None, max_length=64)
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("bank_account_number", "notes", mode="before")
    @classmethod
    def blank_optional_text(cls, value):
        return _blank_to_none(value)


class ObligationCreate(ObligationBase):
    """Obligation creation schema. ``amount`` is a decimal such as "120.50"."""
    amount: Union[str, int, float]


class ObligationUpdate(BaseModel):
    """Partial update; only fields that are set change."""
    kind: Optional[ObligationKind] = None
    name: Optional[str] = Field(None, min_length=1, max_length=64)
    amount: Optional[Union[str, int, float]] = None
    currency_code: Optional[str] = Field(None, pattern=CURRENCY_CODE_PATTERN)
    due_date: Optional[date] = None
    bank_account_number: Optional[str] = Field(None, max_length=64)
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("bank_account_number", "notes", mode="before")
    @classmethod
    def blank_optional_text(cls, value):
        return _blank_to_none(value)


class ObligationInDB(BaseModel):
    """Obligation database schema."""
    id: ObjectId = Field(alias="_id")
    owner_id: ObjectId
    kind: ObligationKind
    name: str
    amount_cents: int
    currency_code: str
    due_date: date
    bank_account_number: Optional[str] = None
    notes: Optional[str] = None
    # Bumped inside each payment transaction so concurrent writers collide.
    ledger_version: int = 0
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True,
        arbitrary_types_allowed=True
    )

    @field_validator("due_date", mode="before")
    @classmethod
    def stored_date(cls, value):
        return from_mongo_date(value)

    @property
    def _id(self) -> ObjectId:
        return self.id


class ObligationResponse(BaseModel):
    """Obligation with its ledger and derived settlement figures."""
    id: str
    owner_id: str
    kind: ObligationKind
    name: str
    amount_cents: int
    amount: str
    currency_code: str
    due_date: date
    bank_account_number: Optional[str] = None
    notes: Optional[str] = None
    total_paid_cents: int
    remaining_cents: int
    status: ObligationStatus
    payments: list[PaymentResponse] = []
    created_at: datetime
    updated_at: datetime


class ObligationMonthGroup(BaseModel):
    month: str
    obligations: list[ObligationResponse]


class ObligationStats(BaseModel):
    total_count: int
    paid_count: int
    pending_count: int
    overdue_count: int
    total_amount_cents: int
    total_amount_by_currency: dict[str, int] = {}
