"""
Waiting list endpoints
"""

from typing import Any, List
from uuid import UUID
from fastapi import APIRouter, Depends, status

from gymbook.api.deps import get_current_actor, get_waiting_list_service
from gymbook.schemas.booking import BookingResponse
from gymbook.schemas.response import SuccessResponse
from gymbook.schemas.waiting_list import (
    WaitingListJoin,
    WaitingListEntryResponse,
    MyWaitingListItem,
    LeaveResponse,
)
from gymbook.services.actor import Actor
from gymbook.services.waiting_list_service import WaitingListService

router = APIRouter()


@router.post("/", response_model=SuccessResponse[WaitingListEntryResponse], status_code=status.HTTP_201_CREATED)
async def join_waiting_list(
    join_data: WaitingListJoin,
    actor: Actor = Depends(get_current_actor),
    service: WaitingListService = Depends(get_waiting_list_service)
) -> Any:
    """
    Join the waiting list of a full schedule
    """
    entry = await service.join(actor, join_data.schedule_id)
    return SuccessResponse(
        data=WaitingListEntryResponse.model_validate(entry),
        message=f"Added to waiting list at position {entry.position}"
    )


@router.get("/my-list", response_model=SuccessResponse[List[MyWaitingListItem]])
async def get_my_waiting_list(
    actor: Actor = Depends(get_current_actor),
    service: WaitingListService = Depends(get_waiting_list_service)
) -> Any:
    views = await service.list_for_user(actor)
    items = [
        MyWaitingListItem(
            id=view.entry.id,
            schedule_id=view.entry.schedule_id,
            position=view.entry.position,
            notified=view.entry.notified,
            notified_at=view.entry.notified_at,
            expires_at=view.entry.expires_at,
            class_name=view.class_name,
            start_time=view.start_time,
            end_time=view.end_time,
            spots_available=view.spots_available,
            can_confirm=view.can_confirm,
            hours_to_confirm=view.hours_to_confirm,
        )
        for view in views
    ]
    return SuccessResponse(data=items)


@router.post("/{entry_id}/confirm", response_model=SuccessResponse[BookingResponse], status_code=status.HTTP_201_CREATED)
async def confirm_from_waiting_list(
    entry_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: WaitingListService = Depends(get_waiting_list_service)
) -> Any:
    """
    Claim an offered seat
    """
    booking = await service.confirm(actor, entry_id)
    return SuccessResponse(
        data=BookingResponse.model_validate(booking),
        message="Booking confirmed from waiting list"
    )


@router.delete("/{entry_id}", response_model=SuccessResponse[LeaveResponse])
async def leave_waiting_list(
    entry_id: UUID,
    actor: Actor = Depends(get_current_actor),
    service: WaitingListService = Depends(get_waiting_list_service)
) -> Any:
    renumbered = await service.leave(actor, entry_id)
    return SuccessResponse(
        data=LeaveResponse(renumbered=renumbered),
        message="Removed from waiting list"
    )
