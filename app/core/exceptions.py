"""Errors raised by the obligation and payment services."""

from typing import Optional


class ObligationError(Exception):
    """Base class for every service-level failure."""
    pass


class ObligationValidationError(ObligationError):
    """Malformed input: bad amount, date, currency code or missing field."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_detail(self) -> dict:
        return {"field": self.field, "message": self.message}


class InvalidAmountError(ObligationValidationError):
    """Payment amount is zero or negative."""

    def __init__(self, message: str = "Amount must be a positive number"):
        super().__init__(message, field="amount")


class NotFoundOrForbiddenError(ObligationError):
    """
    The record does not exist or belongs to another owner.

    Both cases share one error so callers cannot probe for other users' records.
    """
    pass


class ExceedsRemainingBalanceError(ObligationError):
    """Payment would take the total paid above the obligation amount."""

    def __init__(self, amount_cents: int, remaining_cents: int):
        from app.utils.money import format_amount

        self.amount_cents = amount_cents
        self.remaining_cents = remaining_cents
        super().__init__(
            f"Payment amount ({format_amount(amount_cents)}) exceeds "
            f"remaining balance ({format_amount(remaining_cents)})"
        )


class StorageFailureError(ObligationError):
    """Writing an attachment to storage failed."""
    pass


class TransactionConflictError(ObligationError):
    """The payment transaction could not be serialized, even after retrying."""
    pass
