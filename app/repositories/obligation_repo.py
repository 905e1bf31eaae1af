from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorDatabase
from datetime import date, datetime, timezone
from typing import Optional

from app.models.base import parse_object_id, to_mongo_date
from app.models.obligation import ObligationInDB, ObligationKind


class ObligationRepository:
    """Obligation database operations. Every query is scoped by owner."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["obligations"]

    async def create_obligation(
        self,
        owner_id: str,
        kind: ObligationKind,
        name: str,
        amount_cents: int,
        currency_code: str,
        due_date: date,
        bank_account_number: Optional[str] = None,
        notes: Optional[str] = None
    ) -> ObligationInDB:
        """Create a new obligation."""
        now = datetime.now(timezone.utc)
        obligation_dict = {
            "owner_id": parse_object_id(owner_id),
            "kind": kind.value,
            "name": name,
            "amount_cents": amount_cents,
            "currency_code": currency_code,
            "due_date": to_mongo_date(due_date),
            "bank_account_number": bank_account_number,
            "notes": notes,
            "ledger_version": 0,
            "created_at": now,
            "updated_at": now
        }

        result = await self.collection.insert_one(obligation_dict)
        obligation_dict["_id"] = result.inserted_id
        return ObligationInDB(**obligation_dict)

    async def get_obligation(
        self,
        obligation_id: str,
        owner_id: str,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> Optional[ObligationInDB]:
        """Get an obligation by id for an owner."""
        oid = parse_object_id(obligation_id)
        owner_oid = parse_object_id(owner_id)
        if oid is None or owner_oid is None:
            return None

        doc = await self.collection.find_one(
            {"_id": oid, "owner_id": owner_oid},
            session=session
        )
        if doc:
            return ObligationInDB(**doc)
        return None

    async def list_obligations(
        self,
        owner_id: str,
        kind: Optional[ObligationKind] = None
    ) -> list[ObligationInDB]:
        """List obligations for an owner, earliest due first, then newest."""
        owner_oid = parse_object_id(owner_id)
        if owner_oid is None:
            return []

        query = {"owner_id": owner_oid}
        if kind is not None:
            query["kind"] = kind.value

        cursor = self.collection.find(query).sort([("due_date", 1), ("created_at", -1)])
        docs = await cursor.to_list(None)
        return [ObligationInDB(**doc) for doc in docs]

    async def update_obligation(
        self,
        obligation_id: str,
        owner_id: str,
        updates: dict
    ) -> Optional[ObligationInDB]:
        """
        Apply already-validated field updates.

        An amount below the paid total is accepted; the obligation then reads
        as overpaid.
        """
        oid = parse_object_id(obligation_id)
        owner_oid = parse_object_id(owner_id)
        if oid is None or owner_oid is None:
            return None

        if not updates:
            return await self.get_obligation(obligation_id, owner_id)

        updates = dict(updates)
        if "due_date" in updates:
            updates["due_date"] = to_mongo_date(updates["due_date"])
        if "kind" in updates:
            updates["kind"] = ObligationKind(updates["kind"]).value
        updates["updated_at"] = datetime.now(timezone.utc)

        result = await self.collection.find_one_and_update(
            {"_id": oid, "owner_id": owner_oid},
            {"$set": updates},
            return_document=True
        )
        if result:
            return ObligationInDB(**result)
        return None

    async def lock_for_payment(
        self,
        obligation_id: str,
        owner_id: str,
        session: AsyncIOMotorClientSession
    ) -> Optional[ObligationInDB]:
        """
        Take the per-obligation write lock inside a transaction.

        Bumping ledger_version writes to the obligation document, so a second
        transaction doing the same before this one commits fails with a
        write conflict instead of reading a stale ledger.
        """
        oid = parse_object_id(obligation_id)
        owner_oid = parse_object_id(owner_id)
        if oid is None or owner_oid is None:
            return None

        result = await self.collection.find_one_and_update(
            {"_id": oid, "owner_id": owner_oid},
            {
                "$inc": {"ledger_version": 1},
                "$set": {"updated_at": datetime.now(timezone.utc)}
            },
            return_document=True,
            session=session
        )
        if result:
            return ObligationInDB(**result)
        return None

    async def delete_obligation(
        self,
        obligation_id: str,
        owner_id: str,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> bool:
        """Delete an obligation. Payments are removed by the caller in the same transaction."""
        oid = parse_object_id(obligation_id)
        owner_oid = parse_object_id(owner_id)
        if oid is None or owner_oid is None:
            return False

        result = await self.collection.delete_one(
            {"_id": oid, "owner_id": owner_oid},
            session=session
        )
        return result.deleted_count > 0
