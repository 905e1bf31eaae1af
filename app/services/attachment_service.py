"""
Proof-of-payment storage.

Files live under ``UPLOAD_DIR/<owner_id>/payments/YYYY/MM/<attachment_id><ext>``.
A stored attachment is referenced by payments but never owned by them:
deleting a payment or an obligation leaves the file and its record in place.
"""
import asyncio
from pathlib import Path
from typing import Optional

import structlog
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.config import settings
from app.core.exceptions import ObligationValidationError, StorageFailureError
from app.models.attachment import AttachmentInDB
from app.models.base import utcnow
from app.repositories.attachment_repo import AttachmentRepository
from app.repositories.user_repo import UserRepository

logger = structlog.get_logger(__name__)


def safe_path_join(base: Path, relative: str) -> Path:
    """Join ``relative`` onto ``base``, refusing paths that escape it."""
    base = base.resolve()
    target = (base / relative).resolve()
    if not target.is_relative_to(base):
        raise StorageFailureError("Attachment path escapes the upload directory")
    return target


def directory_size(path: Path) -> int:
    """Total size in bytes of every file below ``path``."""
    if not path.exists():
        return 0
    return sum(f.stat().st_size for f in path.rglob("*") if f.is_file())


class AttachmentService:
    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        upload_dir: Optional[str] = None,
        attachment_repo: Optional[AttachmentRepository] = None,
        user_repo: Optional[UserRepository] = None
    ):
        self.db = db
        self.upload_dir = Path(upload_dir or settings.UPLOAD_DIR)
        self.attachments = attachment_repo or AttachmentRepository(db)
        self.users = user_repo or UserRepository(db)

    def user_directory(self, owner_id: str) -> Path:
        return safe_path_join(self.upload_dir, str(owner_id))

    async def store_attachment(
        self,
        owner_id: str,
        content: bytes,
        filename: str,
        mime_type: Optional[str]
    ) -> AttachmentInDB:
        """
        Write an uploaded file and create its attachment record.

        Raises:
            ObligationValidationError: empty or oversized file
            StorageFailureError: the file or its record could not be written
        """
        if not content:
            raise ObligationValidationError("File is empty", field="file")
        if len(content) > settings.MAX_FILE_SIZE:
            raise ObligationValidationError(
                f"File exceeds the {settings.MAX_FILE_SIZE} byte limit", field="file"
            )

        attachment_id = ObjectId()
        now = utcnow()
        extension = Path(filename or "").suffix.lower()
        relative_path = Path(
            "payments", f"{now.year}", f"{now.month:02d}", f"{attachment_id}{extension}"
        ).as_posix()

        try:
            full_path = safe_path_join(self.user_directory(owner_id), relative_path)
            await asyncio.to_thread(self._write_file, full_path, content)
        except OSError as exc:
            logger.error("attachment_write_failed", owner_id=owner_id, error=str(exc))
            raise StorageFailureError("Failed to store proof of payment file") from exc

        attachment = AttachmentInDB(
            _id=attachment_id,
            owner_id=ObjectId(owner_id),
            filename=filename or f"{attachment_id}{extension}",
            path=relative_path,
            mime_type=mime_type or "application/octet-stream",
            size=len(content),
            created_at=now
        )
        try:
            await self.attachments.insert_attachment(attachment)
        except Exception as exc:
            # Leave no file without a record behind
            await asyncio.to_thread(full_path.unlink, True)
            logger.error("attachment_record_failed", owner_id=owner_id, error=str(exc))
            raise StorageFailureError("Failed to store proof of payment file") from exc

        logger.info(
            "attachment_stored",
            attachment_id=str(attachment_id),
            owner_id=owner_id,
            size=attachment.size
        )
        return attachment

    async def discard_attachment(self, owner_id: str, attachment: AttachmentInDB) -> None:
        """Remove a just-stored attachment whose payment was rejected."""
        full_path = safe_path_join(self.user_directory(owner_id), attachment.path)
        try:
            await asyncio.to_thread(full_path.unlink, True)
        except OSError as exc:
            logger.error(
                "attachment_discard_failed",
                attachment_id=str(attachment.id),
                error=str(exc)
            )
        await self.attachments.delete_attachment(str(attachment.id), owner_id)
        logger.info("attachment_discarded", attachment_id=str(attachment.id), owner_id=owner_id)

    async def recompute_storage_used(self, owner_id: str) -> int:
        """Re-measure the owner's upload directory and store the total."""
        used = await asyncio.to_thread(directory_size, self.user_directory(owner_id))
        await self.users.set_storage_used(owner_id, used)
        return used

    @staticmethod
    def _write_file(path: Path, content: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
