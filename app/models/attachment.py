from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from bson import ObjectId


class AttachmentInDB(BaseModel):
    """Stored proof-of-payment file."""
    id: ObjectId = Field(alias="_id")
    owner_id: ObjectId
    filename: str
    path: str  # relative to the owner's upload directory
    mime_type: str
    size: int
    created_at: datetime

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True,
        arbitrary_types_allowed=True
    )

    @property
    def _id(self) -> ObjectId:
        return self.id


class AttachmentResponse(BaseModel):
    id: str
    filename: str
    mime_type: str
    size: int
    created_at: datetime

    @classmethod
    def from_db(cls, attachment: AttachmentInDB) -> "AttachmentResponse":
        return cls(
            id=str(attachment.id),
            filename=attachment.filename,
            mime_type=attachment.mime_type,
            size=attachment.size,
            created_at=attachment.created_at
        )
