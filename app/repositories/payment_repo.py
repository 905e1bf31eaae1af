"""
PaymentRepository - the append-only payment ledger.

Payments are inserted and deleted, never updated. Ownership checks live in
PaymentService, which always goes through the obligation.
"""

from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorDatabase
from typing import Optional, Sequence

from app.models.base import parse_object_id, to_mongo_date
from app.models.payment import PaymentInDB


class PaymentRepository:
    """Repository for payment ledger entries."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["payments"]

    async def insert_payment(
        self,
        payment: PaymentInDB,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> PaymentInDB:
        """Insert one ledger entry."""
        doc = {
            "_id": payment.id,
            "obligation_id": payment.obligation_id,
            "owner_id": payment.owner_id,
            "amount_cents": payment.amount_cents,
            "paid_at": to_mongo_date(payment.paid_at),
            "note": payment.note,
            "attachment_id": payment.attachment_id,
            "created_at": payment.created_at
        }
        await self.collection.insert_one(doc, session=session)
        return payment

    async def get_payment(
        self,
        payment_id: str,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> Optional[PaymentInDB]:
        """Get a payment by id. Does not check ownership."""
        oid = parse_object_id(payment_id)
        if oid is None:
            return None

        doc = await self.collection.find_one({"_id": oid}, session=session)
        if doc:
            return PaymentInDB(**doc)
        return None

    async def list_for_obligation(
        self,
        obligation_id: str,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> list[PaymentInDB]:
        """All payments of an obligation, oldest first."""
        oid = parse_object_id(obligation_id)
        if oid is None:
            return []

        cursor = self.collection.find(
            {"obligation_id": oid},
            session=session
        ).sort([("paid_at", 1), ("created_at", 1)])
        docs = await cursor.to_list(None)
        return [PaymentInDB(**doc) for doc in docs]

    async def list_for_obligations(
        self,
        obligation_ids: Sequence[str]
    ) -> dict[str, list[PaymentInDB]]:
        """Payments grouped by obligation id (as string), oldest first."""
        oids = [oid for oid in (parse_object_id(i) for i in obligation_ids) if oid is not None]
        grouped: dict[str, list[PaymentInDB]] = {str(oid): [] for oid in oids}
        if not oids:
            return grouped

        cursor = self.collection.find(
            {"obligation_id": {"$in": oids}}
        ).sort([("paid_at", 1), ("created_at", 1)])
        async for doc in cursor:
            payment = PaymentInDB(**doc)
            grouped.setdefault(str(payment.obligation_id), []).append(payment)
        return grouped

    async def delete_payment(
        self,
        payment_id: str,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> bool:
        oid = parse_object_id(payment_id)
        if oid is None:
            return False

        result = await self.collection.delete_one({"_id": oid}, session=session)
        return result.deleted_count > 0

    async def delete_for_obligation(
        self,
        obligation_id: str,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> int:
        """Remove every payment of an obligation (cascade on obligation delete)."""
        oid = parse_object_id(obligation_id)
        if oid is None:
            return 0

        result = await self.collection.delete_many({"obligation_id": oid}, session=session)
        return result.deleted_count
