from pydantic import BaseModel, EmailStr, Field, ConfigDict
from datetime import datetime
from bson import ObjectId

class UserBase(BaseModel):
    """Base user schema."""
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr

class UserCreate(UserBase):
    """User creation schema."""
    password: str = Field(..., min_length=8)

class UserResponse(UserBase):
    """User response schema."""
    id: str = Field(validation_alias="_id", serialization_alias="id")
    storage_used: int = 0
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True
    )

class UserInDB(BaseModel):
    """User database schema."""
    id: ObjectId = Field(alias="_id")
    name: str
    email: str
    password_hash: str
    # Bytes used by the user's uploaded attachments
    storage_used: int = 0
    is_deleted: bool = False
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True,
        arbitrary_types_allowed=True
    )

    @property
    def _id(self) -> ObjectId:
        """Alias for id to match MongoDB naming."""
        return self.id
