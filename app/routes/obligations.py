from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app.core.auth import get_current_user
from app.core.exceptions import ObligationError
from app.models.obligation import (
    ObligationCreate,
    ObligationKind,
    ObligationMonthGroup,
    ObligationResponse,
    ObligationStats,
    ObligationUpdate,
)
from app.models.user import UserResponse
from app.routes.deps import get_obligation_service, http_error
from app.services.obligation_service import ObligationService, build_obligation_response

router = APIRouter(prefix="/obligations", tags=["obligations"])

TODAY_DESCRIPTION = "Caller's calendar date for overdue checks (defaults to server date)"


@router.post("", response_model=ObligationResponse, status_code=status.HTTP_201_CREATED)
async def create_obligation(
    obligation_in: ObligationCreate,
    current_user: UserResponse = Depends(get_current_user),
    service: ObligationService = Depends(get_obligation_service)
):
    """Create a tax or transaction obligation for the current user."""
    try:
        obligation = await service.create_obligation(current_user.id, obligation_in)
    except ObligationError as exc:
        raise http_error(exc)
    return build_obligation_response(obligation, [], date.today())


@router.get("", response_model=list[ObligationResponse])
async def list_obligations(
    kind: Optional[ObligationKind] = Query(None),
    today: Optional[date] = Query(None, description=TODAY_DESCRIPTION),
    current_user: UserResponse = Depends(get_current_user),
    service: ObligationService = Depends(get_obligation_service)
):
    """List obligations with their payments and derived status."""
    return await service.list_obligations(current_user.id, kind=kind, today=today)


@router.get("/by-month", response_model=list[ObligationMonthGroup])
async def list_obligations_by_month(
    kind: Optional[ObligationKind] = Query(None),
    today: Optional[date] = Query(None, description=TODAY_DESCRIPTION),
    current_user: UserResponse = Depends(get_current_user),
    service: ObligationService = Depends(get_obligation_service)
):
    """List obligations grouped by due month, most recent month first."""
    return await service.list_obligations_by_month(current_user.id, kind=kind, today=today)


@router.get("/stats", response_model=ObligationStats)
async def get_stats(
    kind: Optional[ObligationKind] = Query(None),
    today: Optional[date] = Query(None, description=TODAY_DESCRIPTION),
    current_user: UserResponse = Depends(get_current_user),
    service: ObligationService = Depends(get_obligation_service)
):
    """Counts and totals across the current user's obligations."""
    return await service.get_stats(current_user.id, kind=kind, today=today)


@router.get("/{obligation_id}", response_model=ObligationResponse)
async def get_obligation(
    obligation_id: str,
    today: Optional[date] = Query(None, description=TODAY_DESCRIPTION),
    current_user: UserResponse = Depends(get_current_user),
    service: ObligationService = Depends(get_obligation_service)
):
    try:
        return await service.get_obligation(current_user.id, obligation_id, today=today)
    except ObligationError as exc:
        raise http_error(exc)


@router.patch("/{obligation_id}", response_model=ObligationResponse)
async def update_obligation(
    obligation_id: str,
    obligation_update: ObligationUpdate,
    today: Optional[date] = Query(None, description=TODAY_DESCRIPTION),
    current_user: UserResponse = Depends(get_current_user),
    service: ObligationService = Depends(get_obligation_service)
):
    """Update an obligation. Existing payments are kept as they are."""
    try:
        await service.update_obligation(current_user.id, obligation_id, obligation_update)
        return await service.get_obligation(current_user.id, obligation_id, today=today)
    except ObligationError as exc:
        raise http_error(exc)


@router.delete("/{obligation_id}")
async def delete_obligation(
    obligation_id: str,
    current_user: UserResponse = Depends(get_current_user),
    service: ObligationService = Depends(get_obligation_service)
):
    """Delete an obligation together with all of its payments."""
    try:
        await service.delete_obligation(current_user.id, obligation_id)
    except ObligationError as exc:
        raise http_error(exc)

    return {"success": True}
