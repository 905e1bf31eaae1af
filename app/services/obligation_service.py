from datetime import date
from typing import Optional

import structlog
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from app.core.config import settings
from app.core.exceptions import (
    NotFoundOrForbiddenError,
    ObligationValidationError,
    TransactionConflictError,
)
from app.db.mongo import start_transaction
from app.models.obligation import (
    ObligationCreate,
    ObligationInDB,
    ObligationKind,
    ObligationMonthGroup,
    ObligationResponse,
    ObligationStats,
    ObligationUpdate,
)
from app.models.payment import PaymentInDB, PaymentResponse
from app.repositories.obligation_repo import ObligationRepository
from app.repositories.payment_repo import PaymentRepository
from app.utils.money import format_amount, parse_amount
from app.utils.settlement import (
    derive_status,
    group_by_due_month,
    remaining_balance,
    summarize,
    total_paid,
)

logger = structlog.get_logger(__name__)


def _parse_obligation_amount(value) -> int:
    amount_cents = parse_amount(value)
    if amount_cents < 0:
        raise ObligationValidationError("Amount cannot be negative", field="amount")
    return amount_cents


def build_obligation_response(
    obligation: ObligationInDB,
    payments: list[PaymentInDB],
    today: date
) -> ObligationResponse:
    """Attach the ledger and the derived settlement figures to an obligation."""
    return ObligationResponse(
        id=str(obligation.id),
        owner_id=str(obligation.owner_id),
        kind=obligation.kind,
        name=obligation.name,
        amount_cents=obligation.amount_cents,
        amount=format_amount(obligation.amount_cents),
        currency_code=obligation.currency_code,
        due_date=obligation.due_date,
        bank_account_number=obligation.bank_account_number,
        notes=obligation.notes,
        total_paid_cents=total_paid(payments),
        remaining_cents=remaining_balance(obligation, payments),
        status=derive_status(obligation, payments, today),
        payments=[PaymentResponse.from_db(p) for p in payments],
        created_at=obligation.created_at,
        updated_at=obligation.updated_at
    )


class ObligationService:
    """Owner-scoped obligation lifecycle plus settlement views."""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        obligation_repo: Optional[ObligationRepository] = None,
        payment_repo: Optional[PaymentRepository] = None
    ):
        self.db = db
        self.obligations = obligation_repo or ObligationRepository(db)
        self.payments = payment_repo or PaymentRepository(db)

    async def create_obligation(
        self,
        owner_id: str,
        obligation_in: ObligationCreate
    ) -> ObligationInDB:
        amount_cents = _parse_obligation_amount(obligation_in.amount)
        obligation = await self.obligations.create_obligation(
            owner_id,
            kind=obligation_in.kind,
            name=obligation_in.name,
            amount_cents=amount_cents,
            currency_code=obligation_in.currency_code,
            due_date=obligation_in.due_date,
            bank_account_number=obligation_in.bank_account_number,
            notes=obligation_in.notes
        )
        logger.info(
            "obligation_created",
            obligation_id=str(obligation.id),
            kind=obligation.kind.value,
            amount_cents=amount_cents
        )
        return obligation

    async def update_obligation(
        self,
        owner_id: str,
        obligation_id: str,
        obligation_update: ObligationUpdate
    ) -> ObligationInDB:
        """
        Apply a partial update.

        Existing payments are untouched; lowering the amount below what has
        been paid leaves a negative remaining balance.
        """
        updates = obligation_update.model_dump(exclude_unset=True)
        if "amount" in updates:
            amount = updates.pop("amount")
            if amount is None:
                raise ObligationValidationError("Amount is required", field="amount")
            updates["amount_cents"] = _parse_obligation_amount(amount)

        for field in ("kind", "name", "currency_code", "due_date"):
            if field in updates and updates[field] is None:
                raise ObligationValidationError(f"{field} cannot be empty", field=field)

        obligation = await self.obligations.update_obligation(obligation_id, owner_id, updates)
        if obligation is None:
            raise NotFoundOrForbiddenError("Obligation not found")
        return obligation

    async def delete_obligation(self, owner_id: str, obligation_id: str) -> None:
        """
        Delete an obligation and all of its payments atomically.

        Attachment records and files are kept. A write conflict with a
        payment being recorded is retried like record_payment does.
        """
        attempts = settings.TRANSACTION_RETRIES + 1
        for attempt in range(1, attempts + 1):
            try:
                async with start_transaction(self.db) as session:
                    deleted = await self.obligations.delete_obligation(
                        obligation_id, owner_id, session=session
                    )
                    if not deleted:
                        raise NotFoundOrForbiddenError("Obligation not found")
                    removed = await self.payments.delete_for_obligation(
                        obligation_id, session=session
                    )
            except PyMongoError as exc:
                if not exc.has_error_label("TransientTransactionError"):
                    raise
                logger.warning(
                    "transaction_conflict",
                    obligation_id=obligation_id,
                    attempt=attempt,
                    attempts=attempts
                )
                continue

            logger.info("obligation_deleted", obligation_id=obligation_id, payments_removed=removed)
            return

        raise TransactionConflictError(
            "Obligation could not be deleted because of a concurrent update; please retry"
        )

    async def get_obligation(
        self,
        owner_id: str,
        obligation_id: str,
        today: Optional[date] = None
    ) -> ObligationResponse:
        obligation = await self.obligations.get_obligation(obligation_id, owner_id)
        if obligation is None:
            raise NotFoundOrForbiddenError("Obligation not found")
        payments = await self.payments.list_for_obligation(obligation_id)
        return build_obligation_response(obligation, payments, today or date.today())

    async def list_obligations(
        self,
        owner_id: str,
        kind: Optional[ObligationKind] = None,
        today: Optional[date] = None
    ) -> list[ObligationResponse]:
        """Every obligation of the owner with its payments and status."""
        today = today or date.today()
        obligations, payments_by_id = await self._load(owner_id, kind)
        return [
            build_obligation_response(o, payments_by_id.get(str(o.id), []), today)
            for o in obligations
        ]

    async def list_obligations_by_month(
        self,
        owner_id: str,
        kind: Optional[ObligationKind] = None,
        today: Optional[date] = None
    ) -> list[ObligationMonthGroup]:
        """Obligations grouped by due month, most recent month first."""
        responses = await self.list_obligations(owner_id, kind=kind, today=today)
        return [
            ObligationMonthGroup(month=month, obligations=items)
            for month, items in group_by_due_month(responses)
        ]

    async def get_stats(
        self,
        owner_id: str,
        kind: Optional[ObligationKind] = None,
        today: Optional[date] = None
    ) -> ObligationStats:
        obligations, payments_by_id = await self._load(owner_id, kind)
        return ObligationStats(**summarize(obligations, payments_by_id, today or date.today()))

    async def _load(
        self,
        owner_id: str,
        kind: Optional[ObligationKind]
    ) -> tuple[list[ObligationInDB], dict[str, list[PaymentInDB]]]:
        obligations = await self.obligations.list_obligations(owner_id, kind=kind)
        payments_by_id = await self.payments.list_for_obligations([str(o.id) for o in obligations])
        return obligations, payments_by_id
