from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from pydantic import ValidationError

from app.core.auth import get_current_user
from app.core.exceptions import ObligationError, ObligationValidationError
from app.models.payment import PaymentCreate, PaymentResponse
from app.models.user import UserResponse
from app.routes.deps import (
    get_attachment_service,
    get_payment_service,
    http_error,
    validation_http_error,
)
from app.services.attachment_service import AttachmentService
from app.services.payment_service import PaymentService
from app.utils.money import ensure_positive, parse_amount

router = APIRouter(tags=["payments"])


@router.get("/obligations/{obligation_id}/payments", response_model=list[PaymentResponse])
async def list_payments(
    obligation_id: str,
    current_user: UserResponse = Depends(get_current_user),
    payment_service: PaymentService = Depends(get_payment_service)
):
    """Payment history of an obligation, oldest first."""
    try:
        payments = await payment_service.list_payments(current_user.id, obligation_id)
    except ObligationError as exc:
        raise http_error(exc)
    return [PaymentResponse.from_db(p) for p in payments]


@router.post(
    "/obligations/{obligation_id}/payments",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED
)
async def record_payment(
    obligation_id: str,
    amount: str = Form(...),
    paid_at: date = Form(...),
    note: Optional[str] = Form(None),
    attachment_id: Optional[str] = Form(None),
    proof_of_payment_file: Optional[UploadFile] = File(None),
    current_user: UserResponse = Depends(get_current_user),
    payment_service: PaymentService = Depends(get_payment_service),
    attachment_service: AttachmentService = Depends(get_attachment_service)
):
    """
    Record a (partial) payment against an obligation.

    The amount is validated before a proof-of-payment file is stored. If the
    file cannot be stored no payment is recorded, and if the payment is
    rejected the freshly stored file is removed again. An already uploaded
    attachment can be linked with attachment_id.
    """
    try:
        payment_in = PaymentCreate(
            amount=amount,
            paid_at=paid_at,
            note=note,
            attachment_id=attachment_id
        )
    except ValidationError as exc:
        raise validation_http_error(exc)

    content = b""
    if proof_of_payment_file is not None and proof_of_payment_file.filename:
        content = await proof_of_payment_file.read()

    try:
        ensure_positive(parse_amount(payment_in.amount))
        if content and payment_in.attachment_id:
            raise ObligationValidationError(
                "Send either a file or an attachment_id, not both",
                field="proof_of_payment_file"
            )
    except ObligationError as exc:
        raise http_error(exc)

    if not content:
        try:
            payment = await payment_service.record_payment(current_user.id, obligation_id, payment_in)
        except ObligationError as exc:
            raise http_error(exc)
        return PaymentResponse.from_db(payment)

    try:
        attachment = await attachment_service.store_attachment(
            current_user.id,
            content,
            proof_of_payment_file.filename,
            proof_of_payment_file.content_type
        )
    except ObligationError as exc:
        raise http_error(exc)

    try:
        payment = await payment_service.record_payment(
            current_user.id,
            obligation_id,
            payment_in.model_copy(update={"attachment_id": str(attachment.id)})
        )
    except ObligationError as exc:
        await attachment_service.discard_attachment(current_user.id, attachment)
        raise http_error(exc)
    finally:
        await attachment_service.recompute_storage_used(current_user.id)

    return PaymentResponse.from_db(payment)


@router.delete("/payments/{payment_id}")
async def delete_payment(
    payment_id: str,
    current_user: UserResponse = Depends(get_current_user),
    payment_service: PaymentService = Depends(get_payment_service)
):
    """Delete a payment. Its attachment file is kept."""
    try:
        await payment_service.delete_payment(current_user.id, payment_id)
    except ObligationError as exc:
        raise http_error(exc)

    return {"success": True}
