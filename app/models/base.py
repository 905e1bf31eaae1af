from datetime import date, datetime, timezone
from typing import Any, Optional

from bson import ObjectId


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_object_id(value: Any) -> Optional[ObjectId]:
    """Return an ObjectId for a valid id, None for anything else."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def to_mongo_date(value: date) -> datetime:
    """BSON has no date type; calendar dates are stored as midnight datetimes."""
    return datetime(value.year, value.month, value.day)


def from_mongo_date(value: Any) -> Any:
    """Turn a stored midnight datetime back into a date (for field validators)."""
    if isinstance(value, datetime):
        return value.date()
    return value
