"""
In-memory stand-ins for the Mongo repositories.

They implement the same coroutine methods as the real repositories so the
services can be exercised without a database. Reads yield to the event loop
so concurrent requests interleave the way they would against MongoDB.
"""
import asyncio
from datetime import datetime, timezone

from bson import ObjectId

from app.models.base import parse_object_id
from app.models.obligation import ObligationInDB, ObligationKind


def _now():
    return datetime.now(timezone.utc)


class InMemoryStore:
    def __init__(self):
        self.obligations: dict[str, ObligationInDB] = {}
        self.payments: dict[str, object] = {}
        self.attachments: dict[str, object] = {}
        self.storage_used: dict[str, int] = {}


class FakeObligationRepository:
    def __init__(self, store: InMemoryStore):
        self.store = store

    def _owned(self, obligation_id, owner_id):
        obligation = self.store.obligations.get(str(obligation_id))
        if obligation is None or obligation.owner_id != parse_object_id(owner_id):
            return None
        return obligation

    async def create_obligation(
        self, owner_id, kind, name, amount_cents, currency_code, due_date,
        bank_account_number=None, notes=None
    ):
        now = _now()
        obligation = ObligationInDB(
            _id=ObjectId(),
            owner_id=ObjectId(owner_id),
            kind=kind,
            name=name,
            amount_cents=amount_cents,
            currency_code=currency_code,
            due_date=due_date,
            bank_account_number=bank_account_number,
            notes=notes,
            created_at=now,
            updated_at=now
        )
        self.store.obligations[str(obligation.id)] = obligation
        return obligation

    async def get_obligation(self, obligation_id, owner_id, session=None):
        await asyncio.sleep(0)
        return self._owned(obligation_id, owner_id)

    async def list_obligations(self, owner_id, kind=None):
        owner_oid = parse_object_id(owner_id)
        found = [
            o for o in self.store.obligations.values()
            if o.owner_id == owner_oid and (kind is None or o.kind == kind)
        ]
        found.sort(key=lambda o: o.created_at, reverse=True)
        found.sort(key=lambda o: o.due_date)
        return found

    async def update_obligation(self, obligation_id, owner_id, updates):
        obligation = self._owned(obligation_id, owner_id)
        if obligation is None:
            return None
        updates = dict(updates)
        if "kind" in updates:
            updates["kind"] = ObligationKind(updates["kind"])
        updated = obligation.model_copy(update={**updates, "updated_at": _now()})
        self.store.obligations[str(obligation.id)] = updated
        return updated

    async def lock_for_payment(self, obligation_id, owner_id, session):
        obligation = self._owned(obligation_id, owner_id)
        if obligation is None:
            return None
        locked = obligation.model_copy(update={"ledger_version": obligation.ledger_version + 1})
        self.store.obligations[str(obligation.id)] = locked
        return locked

    async def delete_obligation(self, obligation_id, owner_id, session=None):
        if self._owned(obligation_id, owner_id) is None:
            return False
        del self.store.obligations[str(obligation_id)]
        return True


class FakePaymentRepository:
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def insert_payment(self, payment, session=None):
        self.store.payments[str(payment.id)] = payment
        return payment

    async def get_payment(self, payment_id, session=None):
        return self.store.payments.get(str(payment_id))

    async def list_for_obligation(self, obligation_id, session=None):
        await asyncio.sleep(0)
        payments = [
            p for p in self.store.payments.values()
            if str(p.obligation_id) == str(obligation_id)
        ]
        return sorted(payments, key=lambda p: (p.paid_at, p.created_at))

    async def list_for_obligations(self, obligation_ids):
        grouped = {str(i): [] for i in obligation_ids}
        for payment in sorted(self.store.payments.values(), key=lambda p: (p.paid_at, p.created_at)):
            key = str(payment.obligation_id)
            if key in grouped:
                grouped[key].append(payment)
        return grouped

    async def delete_payment(self, payment_id, session=None):
        return self.store.payments.pop(str(payment_id), None) is not None

    async def delete_for_obligation(self, obligation_id, session=None):
        doomed = [
            key for key, p in self.store.payments.items()
            if str(p.obligation_id) == str(obligation_id)
        ]
        for key in doomed:
            del self.store.payments[key]
        return len(doomed)


class FakeAttachmentRepository:
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def insert_attachment(self, attachment):
        self.store.attachments[str(attachment.id)] = attachment
        return attachment

    async def get_attachment(self, attachment_id, owner_id, session=None):
        attachment = self.store.attachments.get(str(attachment_id))
        if attachment is None or attachment.owner_id != parse_object_id(owner_id):
            return None
        return attachment

    async def delete_attachment(self, attachment_id, owner_id):
        if await self.get_attachment(attachment_id, owner_id) is None:
            return False
        del self.store.attachments[str(attachment_id)]
        return True


class FakeUserRepository:
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def set_storage_used(self, user_id, storage_used):
        self.store.storage_used[str(user_id)] = storage_used
        return True
