from fastapi import APIRouter, Depends, File, UploadFile, status

from app.core.auth import get_current_user
from app.core.exceptions import ObligationError
from app.models.attachment import AttachmentResponse
from app.models.user import UserResponse
from app.routes.deps import get_attachment_service, http_error
from app.services.attachment_service import AttachmentService

router = APIRouter(prefix="/attachments", tags=["attachments"])


@router.post("", response_model=AttachmentResponse, status_code=status.HTTP_201_CREATED)
async def upload_attachment(
    file: UploadFile = File(...),
    current_user: UserResponse = Depends(get_current_user),
    attachment_service: AttachmentService = Depends(get_attachment_service)
):
    """Store a proof-of-payment file; link it later with a payment's attachment_id."""
    content = await file.read()
    try:
        attachment = await attachment_service.store_attachment(
            current_user.id,
            content,
            file.filename,
            file.content_type
        )
    except ObligationError as exc:
        raise http_error(exc)

    await attachment_service.recompute_storage_used(current_user.id)
    return AttachmentResponse.from_db(attachment)
