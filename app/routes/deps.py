from fastapi import Depends, HTTPException, status
from pydantic import ValidationError

from app.core.exceptions import (
    ExceedsRemainingBalanceError,
    NotFoundOrForbiddenError,
    ObligationError,
    ObligationValidationError,
    StorageFailureError,
    TransactionConflictError,
)
from app.db.mongo import get_db
from app.services.attachment_service import AttachmentService
from app.services.obligation_service import ObligationService
from app.services.payment_service import PaymentService


def get_obligation_service(db = Depends(get_db)) -> ObligationService:
    return ObligationService(db)


def get_payment_service(db = Depends(get_db)) -> PaymentService:
    return PaymentService(db)


def get_attachment_service(db = Depends(get_db)) -> AttachmentService:
    return AttachmentService(db)


def http_error(exc: ObligationError) -> HTTPException:
    """Translate a service error into the HTTP error returned to the client."""
    if isinstance(exc, ObligationValidationError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=[exc.to_detail()]
        )
    if isinstance(exc, NotFoundOrForbiddenError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ExceedsRemainingBalanceError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": str(exc),
                "amount_cents": exc.amount_cents,
                "remaining_cents": exc.remaining_cents
            }
        )
    if isinstance(exc, TransactionConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, StorageFailureError):
        return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def validation_http_error(exc: ValidationError) -> HTTPException:
    """Field-level 422 for models built by hand from form fields."""
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=[
            {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
            for error in exc.errors()
        ]
    )
