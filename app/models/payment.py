"""
Payment model - ledger entries recorded against an obligation.

- Amounts are integer cents, always > 0
- Immutable once inserted; there is no update path
- The sum of an obligation's payments is its total paid
- attachment_id is a weak reference: the attachment outlives the payment
"""

from pydantic import BaseModel, Field, ConfigDict, field_validator
from datetime import date, datetime
from typing import Optional, Union
from bson import ObjectId

from app.models.base import from_mongo_date
from app.utils.money import format_amount


class PaymentCreate(BaseModel):
    """Payment intent. ``amount`` is a decimal such as "12.50"."""
    amount: Union[str, int, float]
    paid_at: date
    note: Optional[str] = Field(None, max_length=500)
    attachment_id: Optional[str] = None

    @field_validator("note", "attachment_id", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class PaymentInDB(BaseModel):
    """Payment database schema."""
    id: ObjectId = Field(alias="_id")
    obligation_id: ObjectId
    owner_id: ObjectId
    amount_cents: int = Field(..., gt=0)
    paid_at: date
    note: Optional[str] = None
    attachment_id: Optional[ObjectId] = None
    created_at: datetime

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True,
        arbitrary_types_allowed=True
    )

    @field_validator("paid_at", mode="before")
    @classmethod
    def stored_date(cls, value):
        return from_mongo_date(value)

    @property
    def _id(self) -> ObjectId:
        return self.id


class PaymentResponse(BaseModel):
    """Payment response schema."""
    id: str
    obligation_id: str
    amount_cents: int
    amount: str
    paid_at: date
    note: Optional[str] = None
    attachment_id: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_db(cls, payment: PaymentInDB) -> "PaymentResponse":
        return cls(
            id=str(payment.id),
            obligation_id=str(payment.obligation_id),
            amount_cents=payment.amount_cents,
            amount=format_amount(payment.amount_cents),
            paid_at=payment.paid_at,
            note=payment.note,
            attachment_id=str(payment.attachment_id) if payment.attachment_id else None,
            created_at=payment.created_at
        )
