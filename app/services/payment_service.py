"""
Payment recording and deletion.

record_payment is the only write that needs cross-request serialization:
reading the ledger, checking the remaining balance and inserting the new row
happen in one MongoDB transaction that first writes to the obligation
document. Two transactions on the same obligation therefore conflict instead
of both validating against the same stale balance. Inside one process an
asyncio.Lock per obligation queues requests so they rarely reach the database
conflict at all.
"""
import asyncio
import time
import weakref
from typing import Optional

import structlog
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from app.core.config import settings
from app.core.exceptions import (
    ExceedsRemainingBalanceError,
    NotFoundOrForbiddenError,
    ObligationError,
    TransactionConflictError,
)
from app.db.mongo import start_transaction
from app.models.base import parse_object_id, utcnow
from app.models.payment import PaymentCreate, PaymentInDB
from app.repositories.attachment_repo import AttachmentRepository
from app.repositories.obligation_repo import ObligationRepository
from app.repositories.payment_repo import PaymentRepository
from app.utils.money import ensure_positive, parse_amount
from app.utils.settlement import remaining_balance

logger = structlog.get_logger(__name__)


class PaymentService:
    # Shared by every instance; an entry disappears once no request holds it.
    _obligation_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        obligation_repo: Optional[ObligationRepository] = None,
        payment_repo: Optional[PaymentRepository] = None,
        attachment_repo: Optional[AttachmentRepository] = None
    ):
        self.db = db
        self.obligations = obligation_repo or ObligationRepository(db)
        self.payments = payment_repo or PaymentRepository(db)
        self.attachments = attachment_repo or AttachmentRepository(db)

    @classmethod
    def _lock_for(cls, obligation_id: str) -> asyncio.Lock:
        key = str(parse_object_id(obligation_id) or obligation_id)
        lock = cls._obligation_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            cls._obligation_locks[key] = lock
        return lock

    async def record_payment(
        self,
        owner_id: str,
        obligation_id: str,
        payment_in: PaymentCreate
    ) -> PaymentInDB:
        """
        Record a payment against an obligation.

        Raises:
            ObligationValidationError: amount is not a number
            NotFoundOrForbiddenError: obligation (or attachment) missing or not owned
            InvalidAmountError: amount <= 0
            ExceedsRemainingBalanceError: amount > remaining balance
            TransactionConflictError: still conflicting after retrying
        """
        start = time.monotonic()
        amount_cents = parse_amount(payment_in.amount)
        attempts = settings.TRANSACTION_RETRIES + 1

        for attempt in range(1, attempts + 1):
            try:
                async with self._lock_for(obligation_id):
                    payment = await self._record_once(
                        owner_id, obligation_id, amount_cents, payment_in
                    )
            except PyMongoError as exc:
                if not exc.has_error_label("TransientTransactionError"):
                    logger.error(
                        "payment_failed",
                        obligation_id=obligation_id,
                        error=str(exc)
                    )
                    raise
                logger.warning(
                    "transaction_conflict",
                    obligation_id=obligation_id,
                    attempt=attempt,
                    attempts=attempts
                )
                continue
            except ObligationError as exc:
                logger.info(
                    "payment_rejected",
                    obligation_id=obligation_id,
                    amount_cents=amount_cents,
                    reason=type(exc).__name__
                )
                raise

            logger.info(
                "payment_recorded",
                payment_id=str(payment.id),
                obligation_id=obligation_id,
                amount_cents=amount_cents,
                elapsed_ms=round((time.monotonic() - start) * 1000, 1)
            )
            return payment

        raise TransactionConflictError(
            "Payment could not be recorded because of a concurrent update; please retry"
        )

    async def _record_once(
        self,
        owner_id: str,
        obligation_id: str,
        amount_cents: int,
        payment_in: PaymentCreate
    ) -> PaymentInDB:
        """One read-validate-insert pass inside a single transaction."""
        async with start_transaction(self.db) as session:
            obligation = await self.obligations.lock_for_payment(
                obligation_id, owner_id, session=session
            )
            if obligation is None:
                raise NotFoundOrForbiddenError("Obligation not found")

            ensure_positive(amount_cents)

            # Fresh read inside the transaction, never a cached total
            ledger = await self.payments.list_for_obligation(obligation_id, session=session)
            remaining = remaining_balance(obligation, ledger)
            if amount_cents > remaining:
                raise ExceedsRemainingBalanceError(amount_cents, remaining)

            attachment_oid = None
            if payment_in.attachment_id:
                attachment = await self.attachments.get_attachment(
                    payment_in.attachment_id, owner_id, session=session
                )
                if attachment is None:
                    raise NotFoundOrForbiddenError("Attachment not found")
                attachment_oid = attachment.id

            payment = PaymentInDB(
                _id=ObjectId(),
                obligation_id=obligation.id,
                owner_id=obligation.owner_id,
                amount_cents=amount_cents,
                paid_at=payment_in.paid_at,
                note=payment_in.note,
                attachment_id=attachment_oid,
                created_at=utcnow()
            )
            return await self.payments.insert_payment(payment, session=session)

    async def list_payments(self, owner_id: str, obligation_id: str) -> list[PaymentInDB]:
        """Ledger of an owned obligation, oldest first."""
        obligation = await self.obligations.get_obligation(obligation_id, owner_id)
        if obligation is None:
            raise NotFoundOrForbiddenError("Obligation not found")
        return await self.payments.list_for_obligation(obligation_id)

    async def delete_payment(self, owner_id: str, payment_id: str) -> None:
        """
        Delete a payment after checking ownership through its obligation.

        The linked attachment, if any, is left alone.
        """
        payment = await self.payments.get_payment(payment_id)
        if payment is None:
            raise NotFoundOrForbiddenError("Payment not found")

        obligation = await self.obligations.get_obligation(str(payment.obligation_id), owner_id)
        if obligation is None or obligation.owner_id != parse_object_id(owner_id):
            raise NotFoundOrForbiddenError("Payment not found")

        deleted = await self.payments.delete_payment(payment_id)
        if not deleted:
            raise NotFoundOrForbiddenError("Payment not found")

        logger.info(
            "payment_deleted",
            payment_id=payment_id,
            obligation_id=str(payment.obligation_id)
        )
