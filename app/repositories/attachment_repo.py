from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorDatabase
from typing import Optional

from app.models.attachment import AttachmentInDB
from app.models.base import parse_object_id


class AttachmentRepository:
    """Attachment record operations."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["attachments"]

    async def insert_attachment(self, attachment: AttachmentInDB) -> AttachmentInDB:
        await self.collection.insert_one(attachment.model_dump(by_alias=True))
        return attachment

    async def get_attachment(
        self,
        attachment_id: str,
        owner_id: str,
        session: Optional[AsyncIOMotorClientSession] = None
    ) -> Optional[AttachmentInDB]:
        """Get an attachment by id for an owner."""
        oid = parse_object_id(attachment_id)
        owner_oid = parse_object_id(owner_id)
        if oid is None or owner_oid is None:
            return None

        doc = await self.collection.find_one(
            {"_id": oid, "owner_id": owner_oid},
            session=session
        )
        if doc:
            return AttachmentInDB(**doc)
        return None

    async def delete_attachment(self, attachment_id: str, owner_id: str) -> bool:
        oid = parse_object_id(attachment_id)
        owner_oid = parse_object_id(owner_id)
        if oid is None or owner_oid is None:
            return False

        result = await self.collection.delete_one({"_id": oid, "owner_id": owner_oid})
        return result.deleted_count > 0
